"""Completion parameter defaults for each kind of model call."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True)
class CompletionParameters:
    max_output_tokens: int
    json_mode: bool = False


class ResponseParameterStore:
    """Maintain per-purpose completion parameters with optional overrides."""

    _DEFAULTS: Mapping[str, CompletionParameters] = {
        "orchestrator": CompletionParameters(max_output_tokens=2048, json_mode=True),
        "router": CompletionParameters(max_output_tokens=50),
        "agent_reply": CompletionParameters(max_output_tokens=2048),
    }

    def __init__(self, overrides: Mapping[str, Mapping[str, Any]] | None = None):
        self._params: dict[str, CompletionParameters] = dict(self._DEFAULTS)
        for purpose, values in (overrides or {}).items():
            base = self._params.get(purpose.lower(), CompletionParameters(max_output_tokens=1024))
            self._params[purpose.lower()] = replace(base, **dict(values))

    def for_purpose(self, purpose: str) -> CompletionParameters:
        """Return parameters for ``purpose`` (``KeyError`` when unknown)."""

        return self._params[purpose.lower()]
