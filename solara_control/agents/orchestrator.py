"""Kuaray orchestrator: turns an inbound message into a validated decision.

The engine is side-effect free with respect to persistence. Callers load the
conversation history, hand it in through :class:`OrchestratorInput`, and decide
what to do with the returned :class:`OrchestratorDecision` (reply dispatch,
history append, telemetry).

Whatever the provider does, :meth:`OrchestratorEngine.decide` returns a
decision whose ``routed_to`` is ``"none"`` or an active specialist slug and
whose ``risk_level`` is one of the four levels. Provider failures and
malformed completions become fallback decisions, never exceptions.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from ..settings import get_settings
from . import prompts
from .providers import ChatMessage, CompletionProvider, ProviderError
from .registry import AgentRegistry
from .responses import ResponseParameterStore
from .schemas import (
    DEFAULT_CATEGORY,
    NO_ROUTE,
    RISK_LEVELS,
    DecisionOutcome,
    OrchestratorDecision,
    OrchestratorInput,
)

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 5

SAFE_FALLBACK_ANSWER = (
    "Desculpe, não consegui processar sua mensagem. Por favor, tente novamente."
)
TECHNICAL_DIFFICULTIES_ANSWER = (
    "Desculpe, estou com dificuldades técnicas no momento. "
    "Por favor, tente novamente em alguns instantes."
)

# Legal threats and refund demands are handled institutionally. Bare words such
# as "processo" or "reclamação" alone do not count.
_CRISIS_PATTERN = re.compile(
    r"\b(procon|reclame\s?aqui|reembolso|estorno|devolu[çc][ãa]o do dinheiro|"
    r"(abrir|abrirei|entrar com|mover)( um)? processo|processar (voc[êe]s|a empresa)|"
    r"meu advogad\w*|a[çc][ãa]o judicial)\b",
    re.IGNORECASE,
)


def fallback_decision(
    outcome: DecisionOutcome, answer: str = SAFE_FALLBACK_ANSWER
) -> OrchestratorDecision:
    return OrchestratorDecision(
        final_answer=answer,
        routed_to=NO_ROUTE,
        risk_level="low",
        category=DEFAULT_CATEGORY,
        confidence_score=None,
        outcome=outcome,
    )


def is_crisis_message(text: str) -> bool:
    return bool(_CRISIS_PATTERN.search(text or ""))


def _coerce_confidence(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value) or not 0.0 <= value <= 1.0:
        return None
    return value


class OrchestratorEngine:
    """Decision engine backed by a :class:`CompletionProvider`."""

    def __init__(
        self,
        provider: CompletionProvider,
        registry: AgentRegistry | None = None,
        *,
        model: str | None = None,
        response_store: ResponseParameterStore | None = None,
    ) -> None:
        self._provider = provider
        self._registry = registry or AgentRegistry()
        self._model = model
        self._responses = response_store or ResponseParameterStore()

    @property
    def model(self) -> str:
        return self._model or get_settings().orchestrator_model

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    def build_messages(self, payload: OrchestratorInput) -> list[ChatMessage]:
        """Assemble system prompt, the last history turns and the new message."""

        specialists = self._registry.list_specialists()
        messages: list[ChatMessage] = [
            {
                "role": "system",
                "content": prompts.build_orchestrator_prompt(specialists, payload),
            }
        ]
        for turn in payload.history[-HISTORY_WINDOW:]:
            messages.append({"role": turn.role, "content": turn.content})
        messages.append({"role": "user", "content": payload.message})
        return messages

    def decide(self, payload: OrchestratorInput) -> OrchestratorDecision:
        messages = self.build_messages(payload)
        params = self._responses.for_purpose("orchestrator")
        try:
            raw = self._provider.complete(
                self.model,
                messages,
                max_output_tokens=params.max_output_tokens,
                json_mode=params.json_mode,
            )
        except ProviderError as exc:
            logger.warning(
                "Orchestrator completion failed for conversation %s: %s",
                payload.conversation_id,
                exc,
                extra={"conversation_id": payload.conversation_id},
            )
            return fallback_decision("provider_error", TECHNICAL_DIFFICULTIES_ANSWER)
        except Exception:
            logger.exception(
                "Unexpected provider error for conversation %s", payload.conversation_id
            )
            return fallback_decision("provider_error", TECHNICAL_DIFFICULTIES_ANSWER)

        decision = self._decode(raw, payload.conversation_id)
        if decision.routed_to != NO_ROUTE and is_crisis_message(payload.message):
            logger.info(
                "Crisis message in conversation %s kept institutional (model chose %s)",
                payload.conversation_id,
                decision.routed_to,
                extra={"conversation_id": payload.conversation_id},
            )
            decision = decision.model_copy(update={"routed_to": NO_ROUTE})
        return decision

    def _decode(self, raw: str | None, conversation_id: str) -> OrchestratorDecision:
        try:
            data = json.loads(raw or "")
        except ValueError:
            logger.warning(
                "Discarding non-JSON orchestrator output for conversation %s",
                conversation_id,
                extra={"conversation_id": conversation_id},
            )
            return fallback_decision("malformed")
        if not isinstance(data, dict):
            logger.warning(
                "Discarding orchestrator output that is not a JSON object (%s)",
                type(data).__name__,
            )
            return fallback_decision("malformed")

        outcome: DecisionOutcome = "answered"
        final_answer = data.get("final_answer")
        if not isinstance(final_answer, str) or not final_answer.strip():
            final_answer = SAFE_FALLBACK_ANSWER
            outcome = "malformed"

        routed_to = data.get("routed_to")
        if not isinstance(routed_to, str) or routed_to not in self._registry.specialist_slugs():
            routed_to = NO_ROUTE

        risk_level = data.get("risk_level")
        if risk_level not in RISK_LEVELS:
            risk_level = "low"

        category = data.get("category")
        if not isinstance(category, str) or not category.strip():
            category = DEFAULT_CATEGORY

        return OrchestratorDecision(
            final_answer=final_answer,
            routed_to=routed_to,
            risk_level=risk_level,
            category=category.strip(),
            confidence_score=_coerce_confidence(data.get("confidence_score")),
            outcome=outcome,
        )
