"""Agent registry, orchestration engine, router and direct responder."""

from . import schemas
from .orchestrator import OrchestratorEngine
from .providers import CompletionProvider, OpenAICompletionProvider, ProviderError
from .registry import AgentDefinition, AgentNotFoundError, AgentRegistry, AgentRole
from .router import AgentRouter
from .service import AgentResponder

__all__ = [
    "AgentDefinition",
    "AgentNotFoundError",
    "AgentRegistry",
    "AgentResponder",
    "AgentRole",
    "AgentRouter",
    "CompletionProvider",
    "OpenAICompletionProvider",
    "OrchestratorEngine",
    "ProviderError",
    "schemas",
]
