"""Base repository: entity store queries, CRUD and post-commit lifecycle hooks."""

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from sqlalchemy import and_, inspect as sa_inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import object_session

from entity_cache.application.services.lifecycle_hooks import EntityLifecycleHooks
from entity_cache.domain.exceptions import EntityNotFoundException
from entity_cache.infrastructure.persistence.database import Base
from entity_cache.infrastructure.persistence.notifications import dispatch_pending, queue_notification


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with find_by_id, find_by_ids, find_where, create, update, delete.

    Implements the entity store port for one model. Create, update and
    delete queue lifecycle notifications on the session (see
    notifications.py); commit() commits the session and then dispatches
    every committed notification, including those queued by other
    repositories sharing the session. Listeners (such as the cache-aside
    service) therefore only ever see committed writes. Any rollback of the
    session, through this repository or not, discards the notifications
    written inside it.
    """

    def __init__(
        self,
        db: AsyncSession,
        model: type[ModelType],
        hooks: EntityLifecycleHooks | None = None,
    ) -> None:
        self.db = db
        self.model = model
        self.hooks = hooks

    def _pk_attr(self) -> Any:
        mapper = sa_inspect(self.model)
        return getattr(self.model, mapper.primary_key[0].key)

    def _column_attr(self, field: str) -> Any:
        mapper = sa_inspect(self.model)
        if field not in mapper.column_attrs.keys():
            raise ValueError(f"{self.model.__name__} has no column attribute {field!r}")
        return getattr(self.model, field)

    async def find_by_id(self, entity_id: Any) -> ModelType | None:
        """Return a single record by primary key, or None."""
        result = await self.db.execute(select(self.model).where(self._pk_attr() == entity_id))
        return result.scalar_one_or_none()

    async def find_by_ids(self, entity_ids: Iterable[Any]) -> list[ModelType]:
        """Return records whose primary key is in entity_ids (one query)."""
        ids = list(entity_ids)
        if not ids:
            return []
        result = await self.db.execute(select(self.model).where(self._pk_attr().in_(ids)))
        return list(result.scalars().all())

    async def find_where(self, field: str, value: Any) -> list[ModelType]:
        """Return records whose column field equals value (None matches NULL)."""
        column = self._column_attr(field)
        condition = column.is_(None) if value is None else column == value
        result = await self.db.execute(select(self.model).where(condition))
        return list(result.scalars().all())

    async def create(self, obj: ModelType) -> ModelType:
        """Persist a new record and run _on_after_create hook."""
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        await self._on_after_create(obj)
        return obj

    async def update(
        self, obj: ModelType, *, skip_existence_check: bool = False
    ) -> ModelType:
        """Update an existing record (merge if detached) and run _on_after_update hook.

        Verifies the record exists by primary key before merging; raises
        EntityNotFoundException if no row is found. When the object is
        already attached to this session, skips the existence SELECT. When
        skip_existence_check is True, the existence SELECT is also skipped.
        Pre-change values of changed indexed fields are captured before the
        flush and passed to _on_after_update.
        """
        mapper = sa_inspect(self.model)
        pk_attrs = mapper.primary_key
        for col in pk_attrs:
            if getattr(obj, col.key) is None:
                raise ValueError(
                    f"Cannot update: primary key '{col.key}' is missing on "
                    f"{self.model.__name__} instance."
                )
        attached = object_session(obj) is self.db.sync_session
        if not attached and not skip_existence_check:
            stmt = select(self.model).where(
                and_(
                    *(getattr(self.model, c.key) == getattr(obj, c.key) for c in pk_attrs)
                )
            )
            result = await self.db.execute(stmt)
            if result.scalar_one_or_none() is None:
                pk_str = ",".join(str(getattr(obj, c.key)) for c in pk_attrs)
                raise EntityNotFoundException(self.model.__name__, pk_str)
            obj = await self.db.merge(obj)
        elif not attached and skip_existence_check:
            obj = await self.db.merge(obj)
        original_values = self._original_values(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        await self._on_after_update(obj, original_values)
        return obj

    async def delete(self, obj: ModelType) -> None:
        """Run _on_before_delete hook then delete the record."""
        await self._on_before_delete(obj)
        await self.db.delete(obj)
        await self.db.flush()

    def _original_values(self, obj: ModelType) -> dict[str, Any]:
        """Pre-change values of modified indexed fields (from attribute history)."""
        state = sa_inspect(obj)
        original: dict[str, Any] = {}
        for field in getattr(self.model, "indexed_fields", ()):
            history = state.attrs[field].history
            if history.deleted:
                original[field] = history.deleted[0]
        return original

    async def commit(self) -> None:
        """Commit the session, then dispatch committed lifecycle notifications."""
        await self.db.commit()
        await dispatch_pending(self.db)

    async def rollback(self) -> None:
        """Roll back the session; notifications written inside it are dropped."""
        await self.db.rollback()

    def _queue(self, event: str, obj: ModelType, original_values: dict[str, Any]) -> None:
        if self.hooks is not None:
            queue_notification(self.db, event, obj, original_values, self.hooks)

    async def _on_after_create(self, obj: ModelType) -> None:
        """Queue a created notification. Override to add more work; call super()."""
        self._queue("created", obj, {})

    async def _on_after_update(self, obj: ModelType, original_values: dict[str, Any]) -> None:
        """Queue an updated notification. Override to add more work; call super()."""
        self._queue("updated", obj, original_values)

    async def _on_before_delete(self, obj: ModelType) -> None:
        """Queue a deleted notification. Override to add more work; call super()."""
        self._queue("deleted", obj, {})
