"""Shared utilities (telemetry)."""
