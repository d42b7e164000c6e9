"""Telemetry events for dashboard analytics."""

from .events import (
    InMemoryTelemetryEmitter,
    LoggingTelemetryEmitter,
    PostgresTelemetryEmitter,
    TelemetryEmitter,
    TelemetryEvent,
    emit_safely,
)

__all__ = [
    "InMemoryTelemetryEmitter",
    "LoggingTelemetryEmitter",
    "PostgresTelemetryEmitter",
    "TelemetryEmitter",
    "TelemetryEvent",
    "emit_safely",
]
