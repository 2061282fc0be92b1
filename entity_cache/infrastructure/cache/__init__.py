"""Cache: key scheme, key-value backends, primary cache and relation index.

CacheService (Redis) and MemoryCache implement CacheProtocol. PrimaryCache
and RelationIndex sit on top of any CacheProtocol; key format is in keys.py (DRY).
"""

from entity_cache.infrastructure.cache.cache_protocol import CacheProtocol
from entity_cache.infrastructure.cache.keys import build_key, parse_key
from entity_cache.infrastructure.cache.memory_cache import MemoryCache
from entity_cache.infrastructure.cache.primary_cache import PrimaryCache
from entity_cache.infrastructure.cache.redis_cache import CacheService
from entity_cache.infrastructure.cache.relation_index import RelationIndex

__all__ = [
    "CacheProtocol",
    "CacheService",
    "MemoryCache",
    "PrimaryCache",
    "RelationIndex",
    "build_key",
    "parse_key",
]
