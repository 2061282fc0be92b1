"""Cache-aside service: cached entity lookups and write-path synchronization.

Reads are served from the primary cache and relation indexes, falling
through to the entity store on miss and backfilling the primary cache.
Writes are synchronized through on_entity_committed, which the entity
store's lifecycle hooks call after every committed create or update.

The store is always the source of truth. Cache failures are logged and
never surface to callers; negative lookups are never cached.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from entity_cache.application.interfaces.entities import CacheableEntity
from entity_cache.application.interfaces.repositories import IEntityStore
from entity_cache.core.config import get_settings
from entity_cache.domain.exceptions import InvalidCacheKeyError
from entity_cache.infrastructure.cache.cache_protocol import CacheProtocol
from entity_cache.infrastructure.cache.keys import build_key, escape_value, parse_key
from entity_cache.infrastructure.cache.primary_cache import PrimaryCache
from entity_cache.infrastructure.cache.relation_index import RelationIndex
from entity_cache.shared.telemetry.tracing import add_span_attributes, traced

logger = logging.getLogger(__name__)


EntityT = TypeVar("EntityT", bound=CacheableEntity)


class CacheAsideService(Generic[EntityT]):
    """Cache-aside lookups and write synchronization for one entity type.

    Args:
        entity_type: Entity class served by this service.
        store: Entity store bound to the same entity class.
        cache: Key-value cache backend; None disables caching entirely.
        ttl: TTL in seconds for primary entries and indexes
            (default settings.cache_ttl_seconds).
        strict_index: When True, relation indexes only hold complete member
            sets: a cold lookup-by-field writes the index from the store
            result, and the write path extends existing indexes but never
            creates one. Default settings.cache_strict_index.
    """

    def __init__(
        self,
        entity_type: type[EntityT],
        store: IEntityStore[EntityT],
        cache: CacheProtocol | None,
        *,
        ttl: int | None = None,
        strict_index: bool | None = None,
    ) -> None:
        if ttl is None or strict_index is None:
            settings = get_settings()
            ttl = settings.cache_ttl_seconds if ttl is None else ttl
            strict_index = settings.cache_strict_index if strict_index is None else strict_index
        if ttl <= 0:
            raise ValueError(f"ttl must be a positive number of seconds, got: {ttl}")
        self.entity_type = entity_type
        self.store = store
        self.ttl = ttl
        self.strict_index = strict_index
        self.primary = PrimaryCache(cache, ttl)
        self.index = RelationIndex(cache, ttl)

    @property
    def type_name(self) -> str:
        return self.entity_type.cache_type_name

    @property
    def primary_key_field(self) -> str:
        return self.entity_type.primary_key_field

    def primary_cache_key(self, entity_id: Any) -> str:
        """Primary cache key for an id (also the member string stored in indexes)."""
        return build_key(self.type_name, self.primary_key_field, entity_id)

    async def _get_cached(self, entity_id: Any) -> EntityT | None:
        data = await self.primary.get(self.type_name, self.primary_key_field, entity_id)
        if data is None:
            return None
        try:
            return self.entity_type.from_cache_dict(data)
        except (TypeError, ValueError, KeyError) as e:
            logger.warning(
                "Discarding unreadable cache entry %s: %s",
                self.primary_cache_key(entity_id),
                e,
            )
            return None

    async def _put_primary(self, entity: EntityT) -> None:
        await self.primary.put(
            self.type_name,
            self.primary_key_field,
            entity.primary_key_value(),
            entity.to_cache_dict(),
        )

    @traced("cache_aside.get_one_by_id")
    async def get_one_by_id(self, entity_id: Any) -> EntityT | None:
        """Return the entity with this id, or None if the store has none.

        On a primary cache miss the store is queried once and a found entity
        is written to the primary cache. Not-found results are not cached.
        """
        entity = await self._get_cached(entity_id)
        if entity is not None:
            add_span_attributes(cache_hit=True)
            return entity
        add_span_attributes(cache_hit=False)
        entity = await self.store.find_by_id(entity_id)
        if entity is None:
            return None
        await self._put_primary(entity)
        return entity

    @traced("cache_aside.get_collection_by_ids")
    async def get_collection_by_ids(self, entity_ids: Iterable[Any]) -> list[EntityT]:
        """Return entities for the given ids, at most one per id.

        Each id is looked up in the primary cache; the remaining ids are fetched
        with one batched store query and backfilled. Ids found nowhere are
        simply absent. Order across cached and fetched entities is not
        guaranteed.
        """
        # Ids that render to the same key (42 and "42") are the same entity.
        requested: dict[str, Any] = {}
        for entity_id in entity_ids:
            requested.setdefault(self.primary_cache_key(entity_id), entity_id)
        cached: list[EntityT] = []
        remaining: list[Any] = []
        for entity_id in requested.values():
            entity = await self._get_cached(entity_id)
            if entity is None:
                remaining.append(entity_id)
            else:
                cached.append(entity)
        add_span_attributes(cache_hits=len(cached), cache_misses=len(remaining))
        if not remaining:
            return cached

        seen = {self.primary_cache_key(entity.primary_key_value()) for entity in cached}
        fetched: list[EntityT] = []
        for entity in await self.store.find_by_ids(remaining):
            key = self.primary_cache_key(entity.primary_key_value())
            if key in seen:
                continue
            seen.add(key)
            await self._put_primary(entity)
            fetched.append(entity)
        return cached + fetched

    def _member_ids(self, field: str, members: set[str]) -> list[Any]:
        """Extract primary key values from index member keys."""
        ids: list[Any] = []
        for member in sorted(members):
            try:
                type_name, key_field, raw_id = parse_key(member)
            except InvalidCacheKeyError:
                logger.warning("Skipping malformed member %r in %s index %s", member, self.type_name, field)
                continue
            if type_name != self.type_name or key_field != self.primary_key_field or raw_id is None:
                logger.warning("Skipping foreign member %r in %s index %s", member, self.type_name, field)
                continue
            ids.append(self.entity_type.parse_primary_key(raw_id))
        return ids

    @traced("cache_aside.get_collection_by_field")
    async def get_collection_by_field(self, field: str, value: Any) -> list[EntityT]:
        """Return entities whose field equals value.

        On a relation index hit, member ids are resolved through
        get_collection_by_ids; members whose current value no longer matches
        are dropped from the result and from the index. On a miss the store
        is queried and every entity is written to the primary cache. The
        index itself is only written on a miss in strict_index mode.
        """
        members = await self.index.members(self.type_name, field, value)
        if members is not None:
            add_span_attributes(index_hit=True)
            entities = await self.get_collection_by_ids(self._member_ids(field, members))
            return await self._drop_stale_members(field, value, entities)

        add_span_attributes(index_hit=False)
        entities = await self.store.find_where(field, value)
        for entity in entities:
            await self._put_primary(entity)
        if self.strict_index and entities and field in self.entity_type.indexed_fields:
            await self.index.replace_members(
                self.type_name,
                field,
                value,
                {self.primary_cache_key(entity.primary_key_value()) for entity in entities},
            )
        return entities

    async def _drop_stale_members(
        self, field: str, value: Any, entities: list[EntityT]
    ) -> list[EntityT]:
        expected = escape_value(value)
        current: list[EntityT] = []
        for entity in entities:
            values = entity.indexed_values()
            if field in values and escape_value(values[field]) != expected:
                logger.debug(
                    "Dropping stale member %s from %s index %s",
                    entity.primary_key_value(),
                    self.type_name,
                    field,
                )
                await self.index.remove_member(
                    self.type_name,
                    field,
                    value,
                    self.primary_cache_key(entity.primary_key_value()),
                )
                continue
            current.append(entity)
        return current

    @traced("cache_aside.sync_on_write")
    async def sync_on_write(
        self, entity: EntityT, is_create: bool, original_values: dict[str, Any]
    ) -> None:
        """Write entity to the primary cache and update its relation indexes.

        For updates, memberships under the previous value of every changed
        indexed field are removed first (original_values holds pre-change
        values). Memberships under the current value of every indexed field
        are then added; re-adding an unchanged one is a no-op. Values are
        compared in their rendered key form, so 1 and True differ.
        """
        primary_key = self.primary_cache_key(entity.primary_key_value())
        await self._put_primary(entity)

        current = entity.indexed_values()
        if not is_create:
            for field in self.entity_type.indexed_fields:
                if field not in original_values:
                    continue
                if escape_value(original_values[field]) != escape_value(current.get(field)):
                    await self.index.remove_member(
                        self.type_name, field, original_values[field], primary_key
                    )
        for field in self.entity_type.indexed_fields:
            if self.strict_index:
                await self.index.extend_member(self.type_name, field, current.get(field), primary_key)
            else:
                await self.index.add_member(self.type_name, field, current.get(field), primary_key)

    async def on_entity_committed(
        self, entity: EntityT, is_create: bool, original_values: dict[str, Any]
    ) -> None:
        """Lifecycle callback: invoked after a create/update is committed."""
        await self.sync_on_write(entity, is_create, original_values)

    @traced("cache_aside.evict")
    async def evict(self, entity: EntityT) -> None:
        """Remove entity's primary entry and its memberships under current values."""
        primary_key = self.primary_cache_key(entity.primary_key_value())
        await self.primary.forget(self.type_name, self.primary_key_field, entity.primary_key_value())
        for field, value in entity.indexed_values().items():
            await self.index.remove_member(self.type_name, field, value, primary_key)

    async def on_entity_deleted(self, entity: EntityT) -> None:
        """Lifecycle callback: invoked after a delete is committed."""
        await self.evict(entity)
