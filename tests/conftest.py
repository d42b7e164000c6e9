import json
import pathlib
import sys

import pytest
from fastapi import FastAPI, Request

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from solara_control.agents.registry import AgentRegistry
from solara_control.app_logging import init_logging
from solara_control.settings import reset_settings_cache

_SETTINGS_ENV = (
    "KUARAY_MODEL",
    "ROUTER_MODEL",
    "AGENT_DEFAULT_MODEL",
    "AI_INTEGRATIONS_OPENAI_API_KEY",
    "AI_INTEGRATIONS_OPENAI_BASE_URL",
    "DATABASE_URL",
    "TELEGRAM_SECRET_TOKEN",
    "AGENT_DISPATCH_MODE",
    "AUDIT_CONVERSATION_PREFIX",
    "CHAT_MAX_MESSAGE_LENGTH",
)


class ScriptedProvider:
    """``CompletionProvider`` fake that replays canned replies.

    Each reply is either a string, an exception to raise, or a callable that
    receives the message list and returns a string. The last reply is reused
    once the script runs out.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def complete(self, model, messages, max_output_tokens, json_mode=False):
        self.calls.append(
            {
                "model": model,
                "messages": list(messages),
                "max_output_tokens": max_output_tokens,
                "json_mode": json_mode,
            }
        )
        if not self.replies:
            raise AssertionError("unexpected completion call")
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(messages)
        return reply


def decision_json(**overrides) -> str:
    payload = {
        "final_answer": "Olá! Como posso ajudar com seu sistema solar?",
        "routed_to": "none",
        "risk_level": "low",
        "category": "GERAL",
    }
    payload.update(overrides)
    return json.dumps(payload, ensure_ascii=False)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture
def registry() -> AgentRegistry:
    return AgentRegistry()


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir, json_lines: bool = False):
        """Create a FastAPI app with a webhook-like route and logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if json_lines:
            monkeypatch.setenv("LOG_JSON", "true")
        app = FastAPI()

        @app.post("/hook")
        async def hook(request: Request):
            return {"received": len(await request.body())}

        init_logging(app)
        return app

    return _create_app
