"""Relation index: which entities currently have a given field value.

An index entry lives under build_key(type_name, indexed_field, value) and
holds the primary cache keys of the member entities as a sorted,
deduplicated JSON list. Entries are absent until first touched and are
deleted, never stored empty, when their last member is removed.

Membership updates are read-modify-write on a single key and are not
atomic. Two concurrent writers of the same entry can lose an update. This
is an accepted weak-consistency tradeoff: a missing or stale membership
only lowers the hit rate, because lookups fall through to the entity store
whenever the index misses. No locking is done here.
"""

from __future__ import annotations

import logging
from typing import Any

from entity_cache.domain.exceptions import CacheSerializationError, CacheUnavailableError
from entity_cache.infrastructure.cache.cache_protocol import CacheProtocol
from entity_cache.infrastructure.cache.keys import build_key

logger = logging.getLogger(__name__)


class RelationIndex:
    """Maintains per (field, value) member sets of primary cache keys."""

    def __init__(self, cache: CacheProtocol | None, ttl: int) -> None:
        self.cache = cache
        self.ttl = ttl

    def _usable(self) -> bool:
        return self.cache is not None and self.cache.is_available()

    async def _read(self, key: str) -> set[str] | None:
        """Return the stored member set, or None if the entry is absent."""
        value = await self.cache.get(key)
        if value is None:
            return None
        if not isinstance(value, list):
            logger.warning("Relation index %s holds %s, expected list; ignoring", key, type(value).__name__)
            return None
        return {str(member) for member in value}

    async def members(
        self, type_name: str, indexed_field: str, field_value: Any
    ) -> set[str] | None:
        """Return the member keys for (field, value), or None if the index is absent."""
        if not self._usable():
            return None
        key = build_key(type_name, indexed_field, field_value)
        try:
            return await self._read(key)
        except CacheUnavailableError as e:
            logger.warning("Relation index read skipped (%s): %s", e.error_code, e.message)
            return None

    async def add_member(
        self, type_name: str, indexed_field: str, field_value: Any, primary_key: str
    ) -> None:
        """Add primary_key to the index for (field, value) and refresh its TTL.

        An absent index is created. Adding an existing member leaves the set
        unchanged.
        """
        await self._add(type_name, indexed_field, field_value, primary_key, create_missing=True)

    async def extend_member(
        self, type_name: str, indexed_field: str, field_value: Any, primary_key: str
    ) -> None:
        """Like add_member, but a no-op when the index is absent."""
        await self._add(type_name, indexed_field, field_value, primary_key, create_missing=False)

    async def _add(
        self,
        type_name: str,
        indexed_field: str,
        field_value: Any,
        primary_key: str,
        *,
        create_missing: bool,
    ) -> None:
        if not self._usable():
            return
        key = build_key(type_name, indexed_field, field_value)
        try:
            current = await self._read(key)
            if current is None:
                if not create_missing:
                    return
                current = set()
            current.add(primary_key)
            await self.cache.set(key, sorted(current), ttl=self.ttl)
        except (CacheUnavailableError, CacheSerializationError) as e:
            logger.warning("Relation index add skipped for %s (%s): %s", key, e.error_code, e.message)

    async def replace_members(
        self, type_name: str, indexed_field: str, field_value: Any, primary_keys: set[str]
    ) -> None:
        """Overwrite the index for (field, value) with a complete member set.

        An empty set deletes the index instead of storing it.
        """
        if not self._usable():
            return
        key = build_key(type_name, indexed_field, field_value)
        try:
            if primary_keys:
                await self.cache.set(key, sorted(primary_keys), ttl=self.ttl)
            else:
                await self.cache.delete(key)
        except (CacheUnavailableError, CacheSerializationError) as e:
            logger.warning("Relation index replace skipped for %s (%s): %s", key, e.error_code, e.message)

    async def remove_member(
        self, type_name: str, indexed_field: str, field_value: Any, primary_key: str
    ) -> None:
        """Remove primary_key from the index for (field, value).

        Writes the remaining members back with a refreshed TTL, or deletes the
        entry when none remain. An absent entry or absent member is a no-op.
        """
        if not self._usable():
            return
        key = build_key(type_name, indexed_field, field_value)
        try:
            current = await self._read(key)
            if not current or primary_key not in current:
                return
            current.discard(primary_key)
            if current:
                await self.cache.set(key, sorted(current), ttl=self.ttl)
            else:
                await self.cache.delete(key)
                logger.debug("Relation index pruned: %s", key)
        except (CacheUnavailableError, CacheSerializationError) as e:
            logger.warning("Relation index remove skipped for %s (%s): %s", key, e.error_code, e.message)
