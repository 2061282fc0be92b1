"""Pytest configuration and fixtures for entity_cache.

Unit tests run against MemoryCache and an AsyncMock entity store backed by
a dict of Order rows. Repository tests (tests/integration) use in-memory
SQLite through aiosqlite.
"""

from dataclasses import asdict, dataclass, replace
from typing import Any, ClassVar
from unittest.mock import AsyncMock

import pytest

from entity_cache.application.services.cache_aside_service import CacheAsideService
from entity_cache.core.config import get_settings
from entity_cache.infrastructure.cache.memory_cache import MemoryCache


@dataclass
class Order:
    """Plain CacheableEntity used by unit tests (no ORM)."""

    cache_type_name: ClassVar[str] = "Order"
    primary_key_field: ClassVar[str] = "id"
    indexed_fields: ClassVar[tuple[str, ...]] = ("user_id", "status")

    id: int
    user_id: int | None
    status: str
    total: float = 0.0

    def primary_key_value(self) -> int:
        return self.id

    def indexed_values(self) -> dict[str, Any]:
        return {field: getattr(self, field) for field in self.indexed_fields}

    def to_cache_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_cache_dict(cls, data: dict[str, Any]) -> "Order":
        return cls(**data)

    @classmethod
    def parse_primary_key(cls, raw: str) -> int:
        return int(raw)


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_store(rows: dict[int, Order]) -> AsyncMock:
    """AsyncMock entity store over rows; every call returns fresh copies."""
    store = AsyncMock()
    store.find_by_id.side_effect = lambda entity_id: (
        replace(rows[entity_id]) if entity_id in rows else None
    )
    store.find_by_ids.side_effect = lambda entity_ids: [
        replace(rows[i]) for i in entity_ids if i in rows
    ]
    store.find_where.side_effect = lambda field, value: [
        replace(row) for row in rows.values() if getattr(row, field) == value
    ]
    return store


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop cached settings so env overrides in one test do not leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def rows() -> dict[int, Order]:
    return {
        1: Order(id=1, user_id=7, status="open", total=10.0),
        2: Order(id=2, user_id=7, status="paid", total=20.0),
        3: Order(id=3, user_id=8, status="open", total=30.0),
    }


@pytest.fixture
def store(rows: dict[int, Order]) -> AsyncMock:
    return make_store(rows)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> MemoryCache:
    return MemoryCache(clock=clock)


@pytest.fixture
def service(store: AsyncMock, cache: MemoryCache) -> CacheAsideService[Order]:
    return CacheAsideService(Order, store, cache, ttl=86400, strict_index=False)
