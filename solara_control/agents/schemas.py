"""Pydantic schemas for orchestration inputs and decisions."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RiskLevel = Literal["low", "medium", "high", "critical"]
RISK_LEVELS: tuple[str, ...] = ("low", "medium", "high", "critical")
NO_ROUTE = "none"
DEFAULT_CATEGORY = "GERAL"

# ``answered`` is a fully valid model decision; the other two are fallbacks.
DecisionOutcome = Literal["answered", "malformed", "provider_error"]


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class OrchestratorInput(BaseModel):
    """Inbound message plus the context the caller already has at hand."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    conversation_id: str = Field(..., alias="conversationId")
    visitor_id: str | None = Field(default=None, alias="visitorId")
    ticket_id: str | None = Field(default=None, alias="ticketId")
    ticket_queue: str | None = Field(default=None, alias="ticketQueue")
    ticket_severity: str | None = Field(default=None, alias="ticketSeverity")
    visitor_name: str | None = Field(default=None, alias="visitorName")
    history: list[ConversationTurn] = Field(default_factory=list)


class OrchestratorDecision(BaseModel):
    """Structured answer of the orchestrator for a single inbound message."""

    final_answer: str = Field(..., min_length=1)
    routed_to: str = NO_ROUTE
    risk_level: RiskLevel = "low"
    category: str = DEFAULT_CATEGORY
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    outcome: DecisionOutcome = "answered"

    @property
    def is_fallback(self) -> bool:
        return self.outcome != "answered"


class RouteRequest(BaseModel):
    text: str = Field(..., min_length=1)
