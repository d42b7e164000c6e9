"""Keyword router with an LLM classification fallback."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..settings import get_settings
from . import prompts
from .providers import CompletionProvider, ProviderError
from .registry import AgentDefinition, AgentRegistry
from .responses import ResponseParameterStore

logger = logging.getLogger(__name__)


def keyword_score(agent: AgentDefinition, text_lower: str) -> int:
    """Sum of the lengths of the agent keywords found in ``text_lower``."""

    return sum(
        len(keyword)
        for keyword in agent.keywords
        if keyword and keyword.lower() in text_lower
    )


def best_keyword_match(
    agents: Sequence[AgentDefinition], text: str
) -> AgentDefinition | None:
    """Return the highest scoring agent; ties go to the earliest agent."""

    text_lower = text.lower()
    best: AgentDefinition | None = None
    best_score = 0
    for agent in agents:
        score = keyword_score(agent, text_lower)
        if score > best_score:
            best, best_score = agent, score
    return best


class AgentRouter:
    """Pick the agent that should hold the conversational reply for a message."""

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
        return self._model or get_settings().router_model

    def route(self, text: str) -> AgentDefinition | None:
        agents = self._registry.list_active()
        if not agents:
            return None

        matched = best_keyword_match(agents, text)
        if matched is not None:
            return matched

        if len(agents) == 1:
            return agents[0]

        chosen = self._classify(agents, text)
        if chosen is not None:
            return chosen
        logger.info("Routing fell back to first active agent '%s'", agents[0].slug)
        return agents[0]

    def _classify(
        self, agents: Sequence[AgentDefinition], text: str
    ) -> AgentDefinition | None:
        params = self._responses.for_purpose("router")
        try:
            raw = self._provider.complete(
                self.model,
                [
                    {"role": "system", "content": prompts.build_router_prompt(agents)},
                    {"role": "user", "content": text},
                ],
                max_output_tokens=params.max_output_tokens,
                json_mode=params.json_mode,
            )
        except ProviderError as exc:
            logger.warning("AI routing error: %s", exc)
            return None
        except Exception:
            logger.exception("Unexpected error during AI routing")
            return None

        slug = (raw or "").strip()
        for agent in agents:
            if agent.slug == slug:
                return agent
        if slug:
            logger.info("Router model answered unknown slug %r", slug[:80])
        return None
