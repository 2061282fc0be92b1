"""Shared telemetry: logging setup, OpenTelemetry config, and tracing helpers.

TelemetryConfig lives in entity_cache.shared.telemetry.telemetry and is
imported from there, so the exporter packages load only when used.
"""

from entity_cache.shared.telemetry.logging import get_logger, setup_logging
from entity_cache.shared.telemetry.tracing import add_span_attributes, traced

__all__ = [
    "setup_logging",
    "get_logger",
    "traced",
    "add_span_attributes",
]
