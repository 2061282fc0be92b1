"""In-process key-value cache backend.

For development, tests and single-process deployments. Values are stored
JSON-encoded, like CacheService, so callers always get a fresh copy and
non-serializable values fail on set just as they would against Redis.
Expiry is checked lazily on access against a monotonic clock.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any

from entity_cache.domain.exceptions import CacheSerializationError

logger = logging.getLogger(__name__)


class MemoryCache:
    """Dict-backed cache with per-key TTL. Implements CacheProtocol."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty cache.

        Args:
            clock: Monotonic time source in seconds (injectable for tests).
        """
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self.stats = {"hits": 0, "misses": 0, "sets": 0, "deletes": 0}

    def is_available(self) -> bool:
        return True

    def _live_entry(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        serialized, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return serialized

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def get(self, key: str) -> Any | None:
        serialized = self._live_entry(key)
        if serialized is None:
            self.stats["misses"] += 1
            logger.debug("Cache MISS: %s", key)
            return None
        self.stats["hits"] += 1
        logger.debug("Cache HIT: %s", key)
        return json.loads(serialized)

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(key, str(e)) from e
        self._entries[key] = (serialized, self._clock() + ttl)
        self.stats["sets"] += 1
        logger.debug("Cache SET: %s (TTL: %ss)", key, ttl)
        return True

    async def delete(self, key: str) -> bool:
        existed = self._live_entry(key) is not None
        self._entries.pop(key, None)
        if existed:
            self.stats["deletes"] += 1
            logger.debug("Cache DELETE: %s", key)
        return existed

    def keys(self) -> list[str]:
        """Return all live keys (for inspection in tests and diagnostics)."""
        return [key for key in list(self._entries) if self._live_entry(key) is not None]

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
