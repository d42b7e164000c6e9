"""Wiring of the orchestration collaborators for request handlers."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from functools import lru_cache

import psycopg

from .agents.orchestrator import OrchestratorEngine
from .agents.providers import CompletionProvider, OpenAICompletionProvider
from .agents.registry import AgentRegistry
from .agents.router import AgentRouter
from .agents.service import AgentResponder
from .conversations.repository import (
    ConversationHistoryStore,
    InMemoryConversationHistoryStore,
    PostgresConversationHistoryStore,
)
from .conversations.service import ConversationService
from .settings import Settings, get_settings
from .telemetry import (
    LoggingTelemetryEmitter,
    PostgresTelemetryEmitter,
    TelemetryEmitter,
)

logger = logging.getLogger(__name__)

# Used when no DATABASE_URL is configured; lives as long as the process.
_MEMORY_HISTORY = InMemoryConversationHistoryStore()


@dataclass
class Services:
    registry: AgentRegistry
    engine: OrchestratorEngine
    router: AgentRouter
    conversations: ConversationService
    settings: Settings


@lru_cache(maxsize=1)
def default_provider() -> CompletionProvider:
    return OpenAICompletionProvider()


@lru_cache(maxsize=1)
def default_registry() -> AgentRegistry:
    return AgentRegistry()


def build_services(
    provider: CompletionProvider,
    *,
    history: ConversationHistoryStore,
    telemetry: TelemetryEmitter | None = None,
    registry: AgentRegistry | None = None,
    settings: Settings | None = None,
) -> Services:
    settings = settings or get_settings()
    registry = registry or default_registry()
    engine = OrchestratorEngine(provider, registry, model=settings.orchestrator_model)
    router = AgentRouter(provider, registry, model=settings.router_model)
    responder = AgentResponder(provider, history)
    conversations = ConversationService(
        engine,
        history,
        telemetry=telemetry,
        router=router,
        responder=responder,
    )
    return Services(
        registry=registry,
        engine=engine,
        router=router,
        conversations=conversations,
        settings=settings,
    )


@contextmanager
def service_context(settings: Settings | None = None) -> Iterator[Services]:
    """Yield request-scoped services backed by PostgreSQL when configured.

    The connection runs in autocommit mode so a failed telemetry insert never
    rolls back the conversation history written for the same message.
    """

    settings = settings or get_settings()
    provider = default_provider()
    if not settings.database_url:
        yield build_services(
            provider,
            history=_MEMORY_HISTORY,
            telemetry=LoggingTelemetryEmitter(),
            settings=settings,
        )
        return

    conn = psycopg.connect(settings.database_url, autocommit=True)
    try:
        yield build_services(
            provider,
            history=PostgresConversationHistoryStore(conn),
            telemetry=PostgresTelemetryEmitter(conn),
            settings=settings,
        )
    finally:
        conn.close()


def ensure_schema(settings: Settings | None = None) -> None:
    """Create the history and telemetry tables if they are missing."""

    settings = settings or get_settings()
    if not settings.database_url:
        return
    with psycopg.connect(settings.database_url, autocommit=True) as conn:
        PostgresConversationHistoryStore(conn).ensure_schema()
        PostgresTelemetryEmitter(conn).ensure_schema()
    logger.info("Conversation history and telemetry tables are in place")
