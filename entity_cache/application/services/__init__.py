"""Application services: cache-aside orchestration and lifecycle hooks."""

from entity_cache.application.services.cache_aside_service import CacheAsideService
from entity_cache.application.services.lifecycle_hooks import (
    EntityLifecycleHooks,
    EntityLifecycleListener,
)

__all__ = ["CacheAsideService", "EntityLifecycleHooks", "EntityLifecycleListener"]
