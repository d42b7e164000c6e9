"""Domain models used by the conversation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class NormalizedMessage:
    """Uniform representation of inbound channel messages."""

    channel: str
    external_conversation_id: str
    sender_id: str
    text: str
    sender_name: str | None = None
    attachments: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ticket_id: str | None = None
    ticket_queue: str | None = None
    ticket_severity: str | None = None

    @property
    def visitor_id(self) -> str:
        return f"{self.channel}:{self.sender_id}"

    @property
    def conversation_id(self) -> str:
        return f"{self.channel}:{self.external_conversation_id}"


@dataclass(frozen=True)
class VisitorProfile:
    id: str
    name: str | None = None
    persona_type: str | None = None


@dataclass
class ProcessedReply:
    """Reply text produced for one inbound message, ready for dispatch."""

    conversation_id: str
    text: str
    agent_slug: str
    response_time_ms: int
    decision: Any | None = None
