"""Pydantic schemas for the webhook API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ..agents.schemas import OrchestratorDecision


class WebhookReply(BaseModel):
    chat_id: str
    text: str
    agent: str
    response_time_ms: int
    decision: OrchestratorDecision | None = None
    outgoing: dict[str, Any] = Field(default_factory=dict)


class WebhookResponse(BaseModel):
    processed: int
    replies: list[WebhookReply] = Field(default_factory=list)
