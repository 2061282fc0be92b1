"""SQLAlchemy repositories implementing the entity store port."""

from entity_cache.infrastructure.persistence.repositories.base import BaseRepository

__all__ = ["BaseRepository"]
