"""Process lifespan: startup and shutdown of the cache infrastructure.

Single place for startup/shutdown wiring: logging, Redis cache (if
enabled), telemetry (if enabled), SQL engine dispose. No caching logic.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from entity_cache.application.services.cache_aside_service import CacheAsideService
from entity_cache.application.services.lifecycle_hooks import EntityLifecycleHooks
from entity_cache.core.config import get_settings
from entity_cache.infrastructure.cache.redis_cache import CacheService
from entity_cache.shared.telemetry.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class CacheRuntime:
    """Shared infrastructure handed to callers for the life of the process."""

    cache: CacheService | None
    hooks: EntityLifecycleHooks = field(default_factory=EntityLifecycleHooks)

    def service_for(self, entity_type: type, store: Any) -> CacheAsideService:
        """Build a CacheAsideService for entity_type and register it for write sync."""
        service = CacheAsideService(entity_type, store, self.cache)
        self.hooks.register(entity_type, service)
        return service


@asynccontextmanager
async def create_lifespan(configure_logging: bool = True) -> AsyncIterator[CacheRuntime]:
    """Run startup then yield the runtime; on exit run shutdown.

    Startup order: logging, Redis cache (if enabled), telemetry (if
    enabled). Shutdown order: cache disconnect, telemetry shutdown, SQL
    engine dispose.
    """
    settings = get_settings()
    if configure_logging:
        setup_logging()

    # ---- Startup ----
    cache: CacheService | None = None
    if settings.redis_enabled:
        cache = CacheService(settings=settings)
        await cache.connect()

    if settings.telemetry_enabled:
        from entity_cache.shared.telemetry.telemetry import TelemetryConfig, set_telemetry

        telemetry = TelemetryConfig.from_settings(settings)
        telemetry.setup_telemetry(
            exporter_type=settings.telemetry_exporter,
            otlp_endpoint=settings.telemetry_otlp_endpoint,
            sample_rate=settings.telemetry_sample_rate,
        )
        set_telemetry(telemetry)
        telemetry.instrument_redis()
        telemetry.instrument_logging()

        from entity_cache.infrastructure.persistence import database

        engine = database.get_engine()
        if engine is not None:
            telemetry.instrument_sqlalchemy(engine)
        logger.info("Telemetry initialized")

    runtime = CacheRuntime(cache=cache)
    try:
        yield runtime
    finally:
        # ---- Shutdown ----
        if cache is not None:
            await cache.disconnect()
            logger.info("Cache disconnected")

        if settings.telemetry_enabled:
            from entity_cache.shared.telemetry.telemetry import get_telemetry, set_telemetry

            telemetry_instance = get_telemetry()
            if telemetry_instance is not None:
                telemetry_instance.shutdown()
                set_telemetry(None)

        from entity_cache.infrastructure.persistence import database

        if database.engine is not None:
            await database.dispose_engine()
            logger.info("Database engine disposed")
