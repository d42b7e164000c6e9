"""Inbound message pipeline: history, decision, history append and telemetry."""

from __future__ import annotations

import logging
import time
from typing import List

from ..agents.orchestrator import TECHNICAL_DIFFICULTIES_ANSWER, OrchestratorEngine
from ..agents.registry import AgentDefinition
from ..agents.router import AgentRouter
from ..agents.schemas import (
    DEFAULT_CATEGORY,
    ConversationTurn,
    OrchestratorDecision,
    OrchestratorInput,
)
from ..agents.service import AgentResponder
from ..telemetry import TelemetryEmitter, TelemetryEvent, emit_safely
from .models import NormalizedMessage, ProcessedReply, VisitorProfile
from .repository import ConversationHistoryStore

logger = logging.getLogger(__name__)

ORCHESTRATOR_HISTORY_LIMIT = 5
DEFAULT_ORCHESTRATOR_SLUG = "kuaray"


def _elapsed_ms(started: float) -> int:
    return max(int((time.monotonic() - started) * 1000), 0)


class ConversationService:
    """Coordinates the orchestrator (or router + responder) for one message.

    The engine itself never persists anything; this service performs the
    boundary writes. History and telemetry failures are logged and do not
    prevent the visitor from getting a reply.
    """

    def __init__(
        self,
        engine: OrchestratorEngine,
        history: ConversationHistoryStore,
        *,
        telemetry: TelemetryEmitter | None = None,
        router: AgentRouter | None = None,
        responder: AgentResponder | None = None,
    ) -> None:
        self._engine = engine
        self._history = history
        self._telemetry = telemetry
        self._router = router
        self._responder = responder

    @property
    def orchestrator_slug(self) -> str:
        agent = self._engine.registry.orchestrator()
        return agent.slug if agent else DEFAULT_ORCHESTRATOR_SLUG

    # ------------------------------------------------------------------
    # Orchestrator path

    def load_history(self, visitor_id: str | None) -> List[ConversationTurn]:
        if not visitor_id:
            return []
        try:
            return self._history.get_history(
                visitor_id, self.orchestrator_slug, ORCHESTRATOR_HISTORY_LIMIT
            )
        except Exception:
            logger.exception("Could not load history for visitor %s", visitor_id)
            return []

    def handle_message(self, message: NormalizedMessage) -> ProcessedReply:
        started = time.monotonic()
        conversation_id = message.conversation_id
        self._emit(TelemetryEvent(event_type="inbound", conversation_id=conversation_id))

        payload = OrchestratorInput(
            message=message.text,
            conversation_id=conversation_id,
            visitor_id=message.visitor_id,
            ticket_id=message.ticket_id,
            ticket_queue=message.ticket_queue,
            ticket_severity=message.ticket_severity,
            visitor_name=message.sender_name,
            history=self.load_history(message.visitor_id),
        )
        decision = self._engine.decide(payload)
        self._emit(
            TelemetryEvent(
                event_type="router_decision",
                conversation_id=conversation_id,
                category=decision.category,
                risk_level=decision.risk_level,
                agent_routed_to=decision.routed_to,
                confidence_score=decision.confidence_score,
            )
        )

        self._append_turns(
            message.visitor_id, self.orchestrator_slug, message.text, decision.final_answer
        )

        elapsed = _elapsed_ms(started)
        self._emit(
            TelemetryEvent(
                event_type="outbound",
                conversation_id=conversation_id,
                category=decision.category,
                risk_level=decision.risk_level,
                agent_routed_to=decision.routed_to,
                response_time_ms=elapsed,
                confidence_score=decision.confidence_score,
                has_citations=False,
                outcome_status="fallback" if decision.is_fallback else "answered",
            )
        )
        return ProcessedReply(
            conversation_id=conversation_id,
            text=decision.final_answer,
            agent_slug=self.orchestrator_slug,
            response_time_ms=elapsed,
            decision=decision,
        )

    def decide(self, payload: OrchestratorInput) -> OrchestratorDecision:
        """Run the engine on a caller-assembled input, without side effects."""

        return self._engine.decide(payload)

    # ------------------------------------------------------------------
    # Direct agent path

    def handle_direct(self, message: NormalizedMessage) -> ProcessedReply | None:
        """Route the message to one agent and let it answer in its own voice."""

        if self._router is None or self._responder is None:
            raise RuntimeError("Direct dispatch requires a router and a responder")
        started = time.monotonic()
        conversation_id = message.conversation_id
        self._emit(TelemetryEvent(event_type="inbound", conversation_id=conversation_id))

        agent: AgentDefinition | None = self._router.route(message.text)
        if agent is None:
            logger.info("No active agent for conversation %s", conversation_id)
            return None
        self._emit(
            TelemetryEvent(
                event_type="router_decision",
                conversation_id=conversation_id,
                category=DEFAULT_CATEGORY,
                risk_level="low",
                agent_routed_to=agent.slug,
            )
        )

        visitor = VisitorProfile(
            id=message.visitor_id,
            name=message.sender_name,
            persona_type=message.metadata.get("persona_type"),
        )
        text = self._responder.reply(agent, visitor, message.text)
        elapsed = _elapsed_ms(started)
        self._emit(
            TelemetryEvent(
                event_type="outbound",
                conversation_id=conversation_id,
                category=DEFAULT_CATEGORY,
                risk_level="low",
                agent_routed_to=agent.slug,
                response_time_ms=elapsed,
                has_citations=False,
                outcome_status=(
                    "fallback" if text == TECHNICAL_DIFFICULTIES_ANSWER else "answered"
                ),
            )
        )
        return ProcessedReply(
            conversation_id=conversation_id,
            text=text,
            agent_slug=agent.slug,
            response_time_ms=elapsed,
        )

    # ------------------------------------------------------------------
    # Helpers

    def _append_turns(
        self, visitor_id: str, agent_slug: str, user_text: str, reply: str
    ) -> None:
        try:
            self._history.append_turn(visitor_id, agent_slug, "user", user_text)
            self._history.append_turn(visitor_id, agent_slug, "assistant", reply)
        except Exception:
            logger.exception("Could not append history for visitor %s", visitor_id)

    def _emit(self, event: TelemetryEvent) -> None:
        emit_safely(self._telemetry, event)
