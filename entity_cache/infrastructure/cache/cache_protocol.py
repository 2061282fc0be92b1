"""Cache protocol for the key-value cache port (DIP)."""

from typing import Any, Protocol


class CacheProtocol(Protocol):
    """Protocol for key-value cache backends (e.g. Redis, in-memory).

    Backends raise CacheUnavailableError when they cannot serve a call.
    Single-key operations only; no multi-key transactions are assumed.
    """

    def is_available(self) -> bool:
        """Return True if cache is connected and usable."""
        ...

    async def exists(self, key: str) -> bool:
        """Return True if key is present (not expired)."""
        ...

    async def get(self, key: str) -> Any:
        """Return cached value or None."""
        ...

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Store value with TTL in seconds."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove key from cache."""
        ...
