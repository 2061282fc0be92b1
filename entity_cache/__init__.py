"""entity_cache: write-through cache-aside layer over a persistent entity store.

Primary entries cache whole entities by primary key; relation indexes map
(field, value) to the primary keys of entities currently holding that value.
CacheAsideService serves lookups and keeps both coherent on writes.
"""

from entity_cache.application.services.cache_aside_service import CacheAsideService
from entity_cache.application.services.lifecycle_hooks import EntityLifecycleHooks
from entity_cache.infrastructure.cache.memory_cache import MemoryCache
from entity_cache.infrastructure.cache.redis_cache import CacheService

__all__ = ["CacheAsideService", "CacheService", "EntityLifecycleHooks", "MemoryCache"]
