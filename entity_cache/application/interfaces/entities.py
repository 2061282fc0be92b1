"""Entity capability required by the cache-aside layer.

Entities declare their cache identity (type name, primary key field,
indexed fields) and expose indexed values through an explicit accessor
instead of arbitrary attribute lookup.
"""

from __future__ import annotations

from typing import Any, ClassVar, Protocol, Self, runtime_checkable


@runtime_checkable
class CacheableEntity(Protocol):
    """Protocol for entities served by CacheAsideService."""

    cache_type_name: ClassVar[str]
    primary_key_field: ClassVar[str]
    indexed_fields: ClassVar[tuple[str, ...]]

    def primary_key_value(self) -> Any:
        """Return the primary key value."""
        ...

    def indexed_values(self) -> dict[str, Any]:
        """Return current values of indexed_fields, keyed by field name."""
        ...

    def to_cache_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of the entity."""
        ...

    @classmethod
    def from_cache_dict(cls, data: dict[str, Any]) -> Self:
        """Rebuild an entity from a to_cache_dict snapshot."""
        ...

    @classmethod
    def parse_primary_key(cls, raw: str) -> Any:
        """Convert the primary key component of a cache key to its Python type."""
        ...
