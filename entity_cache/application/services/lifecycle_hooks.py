"""Lifecycle hook registry: notifies listeners after committed writes.

The entity store calls dispatch_committed exactly once per committed create
or update (with the pre-change values of changed fields) and
dispatch_deleted once per committed delete. Listener failures are wrapped
in HookDispatchError, logged, and discarded so the write that triggered
them is never affected.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Protocol

from entity_cache.domain.exceptions import HookDispatchError
from entity_cache.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


class EntityLifecycleListener(Protocol):
    """Callback interface invoked after a write is durably committed."""

    async def on_entity_committed(
        self, entity: Any, is_create: bool, original_values: dict[str, Any]
    ) -> None: ...

    async def on_entity_deleted(self, entity: Any) -> None: ...


class EntityLifecycleHooks:
    """Per-entity-type listener registry with failure isolation."""

    def __init__(self) -> None:
        self._listeners: dict[type, list[EntityLifecycleListener]] = defaultdict(list)

    def register(self, entity_type: type, listener: EntityLifecycleListener) -> None:
        """Register listener for entities of entity_type (exact type match)."""
        if listener not in self._listeners[entity_type]:
            self._listeners[entity_type].append(listener)

    def unregister(self, entity_type: type, listener: EntityLifecycleListener) -> None:
        if listener in self._listeners.get(entity_type, []):
            self._listeners[entity_type].remove(listener)

    def listeners_for(self, entity_type: type) -> list[EntityLifecycleListener]:
        return list(self._listeners.get(entity_type, []))

    async def dispatch_committed(
        self, entity: Any, is_create: bool, original_values: dict[str, Any] | None = None
    ) -> None:
        """Notify listeners that entity was created (is_create) or updated."""
        event = "created" if is_create else "updated"
        for listener in self.listeners_for(type(entity)):
            try:
                await listener.on_entity_committed(entity, is_create, dict(original_values or {}))
            except Exception as e:
                _report(listener, event, e)

    async def dispatch_deleted(self, entity: Any) -> None:
        """Notify listeners that entity was deleted."""
        for listener in self.listeners_for(type(entity)):
            try:
                await listener.on_entity_deleted(entity)
            except Exception as e:
                _report(listener, "deleted", e)


def _report(listener: object, event: str, exc: Exception) -> None:
    """Log a listener failure as HookDispatchError; never raises."""
    error = HookDispatchError(type(listener).__name__, event, str(exc))
    logger.error(
        "%s [%s]",
        error.message,
        error.error_code,
        exc_info=exc,
        extra={"error_code": error.error_code, **error.details},
    )
