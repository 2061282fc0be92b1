"""Ports (Protocols) implemented by entities and entity stores."""

from entity_cache.application.interfaces.entities import CacheableEntity
from entity_cache.application.interfaces.repositories import IEntityStore

__all__ = ["CacheableEntity", "IEntityStore"]
