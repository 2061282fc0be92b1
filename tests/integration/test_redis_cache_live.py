"""CacheService against a real Redis (skipped when none is reachable)."""

import uuid

import pytest

from entity_cache.core.config import Settings
from entity_cache.infrastructure.cache.redis_cache import CacheService

pytestmark = pytest.mark.requires_redis


@pytest.fixture
async def live_cache():
    cache = CacheService(settings=Settings())
    await cache.connect()
    if not cache.is_available():
        pytest.skip("Redis not reachable")
    yield cache
    await cache.disconnect()


@pytest.mark.asyncio
async def test_set_get_delete(live_cache: CacheService) -> None:
    key = f"Probe:id:{uuid.uuid4().hex}"
    assert await live_cache.set(key, {"id": 1, "tags": ["a"]}, ttl=30)
    assert await live_cache.exists(key)
    assert await live_cache.get(key) == {"id": 1, "tags": ["a"]}
    assert await live_cache.delete(key) is True
    assert await live_cache.get(key) is None
