"""Runtime configuration resolved from environment variables."""

from __future__ import annotations

import dataclasses
import os
from functools import lru_cache

DISPATCH_MODES = ("orchestrator", "direct")


@dataclasses.dataclass(frozen=True)
class Settings:
    """Settings shared by the orchestration pipeline and the HTTP layer."""

    orchestrator_model: str = "gpt-4o"
    router_model: str = "gpt-5-nano"
    agent_default_model: str = "gpt-5.2"
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    provider_timeout_seconds: float = 30.0
    database_url: str | None = None
    telegram_secret_token: str | None = None
    dispatch_mode: str = "orchestrator"
    audit_conversation_prefix: str = "audit"
    chat_max_message_length: int = 5000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from the environment with development defaults."""

    dispatch_mode = os.getenv("AGENT_DISPATCH_MODE", "orchestrator").lower()
    if dispatch_mode not in DISPATCH_MODES:
        raise RuntimeError(
            f"AGENT_DISPATCH_MODE must be one of {', '.join(DISPATCH_MODES)}",
        )
    return Settings(
        orchestrator_model=os.getenv("KUARAY_MODEL") or "gpt-4o",
        router_model=os.getenv("ROUTER_MODEL") or "gpt-5-nano",
        agent_default_model=os.getenv("AGENT_DEFAULT_MODEL") or "gpt-5.2",
        openai_api_key=os.getenv("AI_INTEGRATIONS_OPENAI_API_KEY")
        or os.getenv("OPENAI_API_KEY"),
        openai_base_url=os.getenv("AI_INTEGRATIONS_OPENAI_BASE_URL") or None,
        provider_timeout_seconds=float(os.getenv("AI_PROVIDER_TIMEOUT_SECONDS", "30")),
        database_url=os.getenv("DATABASE_URL") or None,
        telegram_secret_token=os.getenv("TELEGRAM_SECRET_TOKEN") or None,
        dispatch_mode=dispatch_mode,
        audit_conversation_prefix=os.getenv("AUDIT_CONVERSATION_PREFIX", "audit"),
        chat_max_message_length=int(os.getenv("CHAT_MAX_MESSAGE_LENGTH", "5000")),
    )


def reset_settings_cache() -> None:
    """Clear cached settings; useful in tests when env vars change."""

    get_settings.cache_clear()
