"""Lifecycle telemetry events and the emitters that persist them."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from threading import Lock
from typing import List, Literal, Protocol

import psycopg
from psycopg.types.json import Jsonb
from pydantic import BaseModel, ConfigDict, Field

from ..agents.schemas import RiskLevel

logger = logging.getLogger(__name__)

EventType = Literal["inbound", "router_decision", "outbound"]
OutcomeStatus = Literal["answered", "fallback", "failed"]

TELEMETRY_DDL = """
CREATE TABLE IF NOT EXISTS telemetry_events (
    id BIGSERIAL PRIMARY KEY,
    event_type TEXT NOT NULL,
    conversation_id TEXT NOT NULL,
    occurred_at TIMESTAMPTZ NOT NULL,
    category TEXT,
    risk_level TEXT,
    agent_routed_to TEXT,
    response_time_ms INTEGER,
    confidence_score DOUBLE PRECISION,
    has_citations BOOLEAN,
    outcome_status TEXT,
    payload JSONB NOT NULL DEFAULT '{}'::jsonb
);
CREATE INDEX IF NOT EXISTS telemetry_events_conversation_idx
    ON telemetry_events (conversation_id, occurred_at);
"""


class TelemetryEvent(BaseModel):
    """Write-once record of one step of the message lifecycle."""

    model_config = ConfigDict(frozen=True)

    event_type: EventType
    conversation_id: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    category: str | None = None
    risk_level: RiskLevel | None = None
    agent_routed_to: str | None = None
    response_time_ms: int | None = Field(default=None, ge=0)
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    has_citations: bool | None = None
    outcome_status: OutcomeStatus | None = None


class TelemetryEmitter(Protocol):
    def emit(self, event: TelemetryEvent) -> None: ...


class InMemoryTelemetryEmitter:
    """Keeps events in a list; handy for tests and local runs."""

    def __init__(self) -> None:
        self.events: List[TelemetryEvent] = []
        self._lock = Lock()

    def emit(self, event: TelemetryEvent) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, event_type: str) -> List[TelemetryEvent]:
        with self._lock:
            return [event for event in self.events if event.event_type == event_type]


class LoggingTelemetryEmitter:
    """Writes each event as one JSON line on a dedicated logger."""

    def __init__(self, logger_name: str = "solara_control.telemetry.events") -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: TelemetryEvent) -> None:
        self._logger.info(
            json.dumps(event.model_dump(mode="json", exclude_none=True), ensure_ascii=False)
        )


class PostgresTelemetryEmitter:
    """Append telemetry events to the ``telemetry_events`` table."""

    def __init__(self, connection: psycopg.Connection):
        self._conn = connection

    def ensure_schema(self) -> None:
        with self._conn.cursor() as cur:
            cur.execute(TELEMETRY_DDL)

    def emit(self, event: TelemetryEvent) -> None:
        with self._conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO telemetry_events (
                    event_type, conversation_id, occurred_at, category, risk_level,
                    agent_routed_to, response_time_ms, confidence_score,
                    has_citations, outcome_status, payload
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    event.event_type,
                    event.conversation_id,
                    event.occurred_at,
                    event.category,
                    event.risk_level,
                    event.agent_routed_to,
                    event.response_time_ms,
                    event.confidence_score,
                    event.has_citations,
                    event.outcome_status,
                    Jsonb(event.model_dump(mode="json")),
                ),
            )


def emit_safely(emitter: TelemetryEmitter | None, event: TelemetryEvent) -> bool:
    """Hand ``event`` to ``emitter``; failures are logged, never raised."""

    if emitter is None:
        return False
    try:
        emitter.emit(event)
    except Exception:
        logger.exception(
            "Telemetry emitter failed for %s event of conversation %s",
            event.event_type,
            event.conversation_id,
        )
        return False
    return True
