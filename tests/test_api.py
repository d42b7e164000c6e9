from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedProvider, decision_json
from solara_control.agents.registry import AgentRegistry
from solara_control.conversations import InMemoryConversationHistoryStore
from solara_control.main import app
from solara_control.routers import orchestrator as orchestrator_router
from solara_control.routers import webhooks as webhooks_router
from solara_control.services import build_services
from solara_control.settings import reset_settings_cache
from solara_control.telemetry import InMemoryTelemetryEmitter

TELEGRAM_UPDATE = {
    "update_id": 1,
    "message": {
        "message_id": 5,
        "date": 1714521600,
        "chat": {"id": 42},
        "from": {"id": 7, "first_name": "Maria"},
        "text": "Meu inversor desligou",
    },
}


@pytest.fixture
def wired(monkeypatch):
    state = {
        "provider": ScriptedProvider(decision_json()),
        "history": InMemoryConversationHistoryStore(),
        "telemetry": InMemoryTelemetryEmitter(),
    }

    @contextmanager
    def fake_context():
        yield build_services(
            state["provider"],
            history=state["history"],
            telemetry=state["telemetry"],
            registry=AgentRegistry(),
        )

    monkeypatch.setattr(orchestrator_router, "_service_context", fake_context)
    monkeypatch.setattr(webhooks_router, "_service_context", fake_context)
    return state


@pytest.fixture
def client():
    return TestClient(app)


def test_health_and_version(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    body = client.get("/api/version").json()
    assert set(body) == {"version", "build_date", "commit_sha"}


def test_list_and_get_agents(client, wired):
    resp = client.get("/api/agents")
    assert resp.status_code == 200
    assert [a["slug"] for a in resp.json()] == ["kuaray", "solara", "bess_architect"]

    resp = client.get("/api/agents/solara")
    assert resp.status_code == 200
    assert resp.json()["role"] == "pv_support"


def test_unknown_agent_returns_404(client, monkeypatch):
    @contextmanager
    def registry_only():
        yield build_services(
            ScriptedProvider(), history=InMemoryConversationHistoryStore(), registry=AgentRegistry()
        )

    monkeypatch.setattr(orchestrator_router, "service_context", registry_only)

    resp = client.get("/api/agents/nope")

    assert resp.status_code == 404
    assert "nope" in resp.json()["detail"]


def test_decide_endpoint(client, wired):
    wired["provider"] = ScriptedProvider(
        decision_json(final_answer="Envie o modelo.", routed_to="solara", risk_level="medium")
    )

    resp = client.post(
        "/api/orchestrator/decide",
        json={"message": "Meu inversor desligou", "conversationId": "c-1"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["final_answer"] == "Envie o modelo."
    assert body["routed_to"] == "solara"
    assert body["risk_level"] == "medium"
    assert wired["telemetry"].events == []


def test_decide_rejects_empty_message(client, wired):
    resp = client.post("/api/orchestrator/decide", json={"message": "", "conversationId": "c"})

    assert resp.status_code == 422


def test_route_endpoint(client, wired):
    resp = client.post("/api/orchestrator/route", json={"text": "preciso de baterias"})

    assert resp.status_code == 200
    assert resp.json()["agent"]["slug"] == "bess_architect"


def test_institutional_audit_endpoint(client, wired):
    wired["provider"] = ScriptedProvider(decision_json(final_answer="Ok."))

    resp = client.post("/api/audit/institutional", json={"mode": "structure"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["score"] == 0
    assert body["allPass"] is False
    assert body["results"] == [
        {"name": "ESTRUTURA", "pass": False, "reason": "resposta muito curta para ser bem formatada"}
    ]
    assert body["reportText"].startswith("🛡 AUDITORIA INSTITUCIONAL")
    assert len(wired["provider"].calls) == 1


def test_institutional_audit_rejects_unknown_mode(client, wired):
    resp = client.post("/api/audit/institutional", json={"mode": "bogus"})

    assert resp.status_code == 422


def test_telegram_webhook_replies_through_orchestrator(client, wired):
    wired["provider"] = ScriptedProvider(decision_json(final_answer="Envie o modelo do inversor."))

    resp = client.post("/api/webhooks/telegram", json=TELEGRAM_UPDATE)

    assert resp.status_code == 200
    body = resp.json()
    assert body["processed"] == 1
    reply = body["replies"][0]
    assert reply["chat_id"] == "42"
    assert reply["agent"] == "kuaray"
    assert reply["text"] == "Envie o modelo do inversor."
    assert reply["outgoing"] == {
        "method": "sendMessage",
        "chat_id": "42",
        "text": "Envie o modelo do inversor.",
    }
    assert [e.event_type for e in wired["telemetry"].events] == [
        "inbound",
        "router_decision",
        "outbound",
    ]
    assert len(wired["history"].get_history("telegram:7", "kuaray", 10)) == 2


def test_telegram_webhook_direct_mode(client, wired, monkeypatch):
    monkeypatch.setenv("AGENT_DISPATCH_MODE", "direct")
    reset_settings_cache()
    wired["provider"] = ScriptedProvider("Qual o modelo do inversor?")

    resp = client.post("/api/webhooks/telegram", json=TELEGRAM_UPDATE)

    assert resp.status_code == 200
    reply = resp.json()["replies"][0]
    assert reply["agent"] == "solara"
    assert reply["text"] == "Qual o modelo do inversor?"
    assert reply["decision"] is None


def test_telegram_webhook_secret_token(client, wired, monkeypatch):
    monkeypatch.setenv("TELEGRAM_SECRET_TOKEN", "s3cret")
    reset_settings_cache()

    resp = client.post("/api/webhooks/telegram", json=TELEGRAM_UPDATE)
    assert resp.status_code == 401

    resp = client.post(
        "/api/webhooks/telegram",
        json=TELEGRAM_UPDATE,
        headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"},
    )
    assert resp.status_code == 200


def test_telegram_webhook_rejects_invalid_json(client, wired):
    resp = client.post(
        "/api/webhooks/telegram",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400


def test_telegram_webhook_accepts_updates_without_text(client, wired):
    resp = client.post("/api/webhooks/telegram", json={"update_id": 9})

    assert resp.status_code == 202
    assert wired["telemetry"].events == []


def test_telegram_webhook_truncates_long_messages(client, wired, monkeypatch):
    monkeypatch.setenv("CHAT_MAX_MESSAGE_LENGTH", "10")
    reset_settings_cache()
    update = {**TELEGRAM_UPDATE, "message": {**TELEGRAM_UPDATE["message"], "text": "x" * 50}}

    client.post("/api/webhooks/telegram", json=update)

    assert wired["provider"].calls[0]["messages"][-1]["content"] == "x" * 10
