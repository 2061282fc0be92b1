"""Entity store interface (port) consumed on cache miss.

Stores are bound to one entity type at construction, so lookups take
only ids and field values. The store is the source of truth.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol, TypeVar


EntityT = TypeVar("EntityT")


class IEntityStore(Protocol[EntityT]):
    """Protocol for the persistent entity store (DIP)."""

    async def find_by_id(self, entity_id: Any) -> EntityT | None:
        """Return the entity with this primary key, or None."""
        ...

    async def find_by_ids(self, entity_ids: Iterable[Any]) -> list[EntityT]:
        """Return entities for the given ids in one query. Missing ids are absent."""
        ...

    async def find_where(self, field: str, value: Any) -> list[EntityT]:
        """Return entities whose field equals value."""
        ...
