"""Primary cache: fully materialized entities keyed by primary key.

Entries live under build_key(type_name, primary_key_field, id_value) with a
fixed TTL. Cache failures never fail the caller: reads report a miss and
writes are skipped (including values the backend cannot encode), both logged.
"""

from __future__ import annotations

import logging
from typing import Any

from entity_cache.domain.exceptions import CacheSerializationError, CacheUnavailableError
from entity_cache.infrastructure.cache.cache_protocol import CacheProtocol
from entity_cache.infrastructure.cache.keys import build_key

logger = logging.getLogger(__name__)


class PrimaryCache:
    """Get/put entity snapshots by primary key through a CacheProtocol backend."""

    def __init__(self, cache: CacheProtocol | None, ttl: int) -> None:
        self.cache = cache
        self.ttl = ttl

    def _usable(self) -> bool:
        return self.cache is not None and self.cache.is_available()

    async def get(
        self, type_name: str, primary_key_field: str, id_value: Any
    ) -> dict[str, Any] | None:
        """Return the cached entity snapshot, or None on miss. No side effects."""
        if not self._usable():
            return None
        key = build_key(type_name, primary_key_field, id_value)
        try:
            return await self.cache.get(key)
        except CacheUnavailableError as e:
            logger.warning("Primary cache read skipped (%s): %s", e.error_code, e.message)
            return None

    async def put(
        self,
        type_name: str,
        primary_key_field: str,
        id_value: Any,
        entity: dict[str, Any],
    ) -> bool:
        """Write the entity snapshot with the configured TTL. Returns True if written."""
        if not self._usable():
            return False
        key = build_key(type_name, primary_key_field, id_value)
        try:
            return await self.cache.set(key, entity, ttl=self.ttl)
        except (CacheUnavailableError, CacheSerializationError) as e:
            logger.warning("Primary cache write skipped (%s): %s", e.error_code, e.message)
            return False

    async def forget(self, type_name: str, primary_key_field: str, id_value: Any) -> bool:
        """Delete the entry for this primary key. Returns True if deleted."""
        if not self._usable():
            return False
        key = build_key(type_name, primary_key_field, id_value)
        try:
            return await self.cache.delete(key)
        except CacheUnavailableError as e:
            logger.warning("Primary cache delete skipped (%s): %s", e.error_code, e.message)
            return False
