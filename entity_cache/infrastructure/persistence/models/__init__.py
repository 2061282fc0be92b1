"""Model helpers for cacheable SQLAlchemy entities."""

from entity_cache.infrastructure.persistence.models.mixins import CacheableMixin

__all__ = ["CacheableMixin"]
