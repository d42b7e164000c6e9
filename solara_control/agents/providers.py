"""Completion provider interface and the OpenAI-backed implementation."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol, TypedDict

import openai

from ..settings import Settings, get_settings

logger = logging.getLogger(__name__)


class ChatMessage(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class ProviderError(RuntimeError):
    """Network, auth, rate-limit or timeout failure of a completion call."""


class CompletionProvider(Protocol):
    """Anything able to turn role-tagged messages into one completion text."""

    def complete(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        max_output_tokens: int,
        json_mode: bool = False,
    ) -> str: ...


@dataclass(frozen=True)
class ProviderCredentials:
    """Credential and endpoint resolved for the completion provider."""

    api_key: str | None
    base_url: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


def resolve_credentials(settings: Settings | None = None) -> ProviderCredentials:
    """Return credentials from settings, falling back to the raw environment."""

    settings = settings or get_settings()
    api_key = settings.openai_api_key or os.getenv("OPENAI_API_KEY")
    return ProviderCredentials(api_key=api_key, base_url=settings.openai_base_url)


class OpenAICompletionProvider:
    """``CompletionProvider`` backed by the OpenAI chat completions API.

    Any exception raised by the SDK (connection errors, timeouts, auth and
    rate-limit responses) surfaces as :class:`ProviderError`. The SDK client
    is created once per provider instance and can be injected for tests.
    """

    def __init__(
        self,
        credentials: ProviderCredentials | None = None,
        *,
        timeout: float | None = None,
        client: Any | None = None,
    ) -> None:
        if client is None:
            settings = get_settings()
            credentials = credentials or resolve_credentials(settings)
            client = openai.OpenAI(
                api_key=credentials.api_key or "not-configured",
                base_url=credentials.base_url,
                timeout=timeout if timeout is not None else settings.provider_timeout_seconds,
                max_retries=0,
            )
        self._client = client

    def complete(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        max_output_tokens: int,
        json_mode: bool = False,
    ) -> str:
        params: dict[str, Any] = {
            "model": model,
            "messages": list(messages),
            "max_completion_tokens": max_output_tokens,
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}
        try:
            response = self._client.chat.completions.create(**params)
        except openai.OpenAIError as exc:
            raise ProviderError(f"{type(exc).__name__}: {exc}") from exc
        choices = getattr(response, "choices", None) or []
        if not choices:
            logger.warning("Completion for model %s returned no choices", model)
            return ""
        return choices[0].message.content or ""
