"""Direct conversational replies from a single agent persona."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from ..conversations.models import VisitorProfile
from ..settings import get_settings
from . import prompts
from .orchestrator import TECHNICAL_DIFFICULTIES_ANSWER
from .providers import ChatMessage, CompletionProvider, ProviderError
from .registry import AgentDefinition
from .responses import ResponseParameterStore
from .schemas import ConversationTurn

if TYPE_CHECKING:
    from ..conversations.repository import ConversationHistoryStore

logger = logging.getLogger(__name__)

AGENT_HISTORY_LIMIT = 20
EMPTY_REPLY_ANSWER = "Desculpe, não consegui gerar uma resposta no momento."


class AgentResponder:
    """Generate an agent's own reply and keep its per-visitor history.

    Unlike the orchestrator, the responder owns history writes: the user turn
    is appended before the model is called and the assistant turn after a
    successful completion. Store failures are logged and never cost the
    visitor a reply.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        history: ConversationHistoryStore,
        *,
        response_store: ResponseParameterStore | None = None,
    ) -> None:
        self._provider = provider
        self._history = history
        self._responses = response_store or ResponseParameterStore()

    def build_messages(
        self,
        agent: AgentDefinition,
        visitor: VisitorProfile,
        user_message: str,
        history: Sequence[ConversationTurn],
    ) -> list[ChatMessage]:
        messages: list[ChatMessage] = [
            {"role": "system", "content": agent.system_prompt or agent.description}
        ]
        if visitor.name:
            messages.append(
                {
                    "role": "system",
                    "content": prompts.build_visitor_line(visitor.name, visitor.persona_type),
                }
            )
        for turn in history:
            messages.append({"role": turn.role, "content": turn.content})
        messages.append({"role": "user", "content": user_message})
        return messages

    def reply(
        self, agent: AgentDefinition, visitor: VisitorProfile, user_message: str
    ) -> str:
        history = self._load_history(visitor.id, agent.slug)
        self._append(visitor.id, agent.slug, "user", user_message)

        messages = self.build_messages(agent, visitor, user_message, history)
        params = self._responses.for_purpose("agent_reply")
        model = agent.model or get_settings().agent_default_model
        try:
            reply = self._provider.complete(
                model,
                messages,
                max_output_tokens=params.max_output_tokens,
                json_mode=params.json_mode,
            )
        except ProviderError as exc:
            logger.warning(
                "AI agent error (%s): %s", agent.display_name, exc, extra={"agent": agent.slug}
            )
            return TECHNICAL_DIFFICULTIES_ANSWER
        except Exception:
            logger.exception("Unexpected provider error for agent %s", agent.slug)
            return TECHNICAL_DIFFICULTIES_ANSWER

        reply = (reply or "").strip() or EMPTY_REPLY_ANSWER
        self._append(visitor.id, agent.slug, "assistant", reply)
        return reply

    def _load_history(self, visitor_id: str, agent_slug: str) -> list[ConversationTurn]:
        try:
            return self._history.get_history(visitor_id, agent_slug, AGENT_HISTORY_LIMIT)
        except Exception:
            logger.exception(
                "Could not load %s history for visitor %s", agent_slug, visitor_id
            )
            return []

    def _append(self, visitor_id: str, agent_slug: str, role: str, content: str) -> None:
        try:
            self._history.append_turn(visitor_id, agent_slug, role, content)
        except Exception:
            logger.exception(
                "Could not append %s turn to %s history for visitor %s",
                role,
                agent_slug,
                visitor_id,
            )
