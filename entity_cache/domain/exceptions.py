"""Domain exceptions for the entity cache.

Every error raised by this package inherits from EntityCacheException so
callers can log and classify failures consistently (message, error_code,
details). Cache failures are never fatal to lookups or writes: the entity
store stays authoritative.
"""

from typing import Any


class EntityCacheException(Exception):
    """Base exception for all entity cache errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. key, entity_type).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class CacheUnavailableError(EntityCacheException):
    """Raised by a key-value cache backend that cannot serve a request.

    Reads fall through to the entity store; writes are skipped.
    """

    def __init__(self, operation: str, key: str | None = None, reason: str = "") -> None:
        """Initialize with failed operation, optional key and reason.

        Args:
            operation: Cache operation that failed (get, set, delete, exists).
            key: Cache key involved, if any.
            reason: Backend error message.
        """
        super().__init__(
            f"Cache unavailable during {operation}" + (f": {reason}" if reason else ""),
            "CACHE_UNAVAILABLE",
            {"operation": operation, "key": key, "reason": reason},
        )


class EntityNotFoundException(EntityCacheException):
    """Raised when a write targets an entity the store does not have.

    Lookups report a missing entity as None instead.
    """

    def __init__(self, entity_type: str, entity_id: str) -> None:
        """Initialize with entity type and id.

        Args:
            entity_type: Type of entity (e.g. 'User').
            entity_id: The ID that was not found.
        """
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            "ENTITY_NOT_FOUND",
            {"entity_type": entity_type, "entity_id": entity_id},
        )


class HookDispatchError(EntityCacheException):
    """Wraps a failure raised while dispatching a lifecycle notification.

    Logged and discarded; never aborts the create/update that triggered it.
    """

    def __init__(self, listener: str, event: str, reason: str) -> None:
        """Initialize with listener name, event kind and reason.

        Args:
            listener: Name of the listener that failed.
            event: Lifecycle event (created, updated, deleted).
            reason: Error message of the original exception.
        """
        super().__init__(
            f"Lifecycle hook {listener} failed on {event}: {reason}",
            "HOOK_DISPATCH_FAILED",
            {"listener": listener, "event": event, "reason": reason},
        )


class InvalidCacheKeyError(EntityCacheException, ValueError):
    """Raised when a cache key component or a stored key cannot be used."""

    def __init__(self, message: str, component: str | None = None) -> None:
        """Initialize with message and optional component name.

        Args:
            message: Description of the problem.
            component: Key component that was rejected (type_name, field_name, key).
        """
        details = {"component": component} if component else {}
        super().__init__(message, "INVALID_CACHE_KEY", details)


class StoreNotConfiguredException(EntityCacheException):
    """Raised when a database session is requested but DATABASE_URL is not set."""

    def __init__(self) -> None:
        super().__init__(
            "Entity store not configured: set DATABASE_URL",
            "STORE_NOT_CONFIGURED",
        )


class CacheSerializationError(EntityCacheException):
    """Raised by a cache backend when a value cannot be encoded as JSON.

    Treated like an unavailable cache: the write is skipped and logged.
    """

    def __init__(self, key: str, reason: str) -> None:
        """Initialize with the key being written and the encoder's message.

        Args:
            key: Cache key involved.
            reason: Error message from the JSON encoder.
        """
        super().__init__(
            f"Cache value for {key} is not JSON serializable: {reason}",
            "CACHE_SERIALIZATION_FAILED",
            {"key": key, "reason": reason},
        )
