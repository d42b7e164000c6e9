from conftest import ScriptedProvider
from solara_control.agents.orchestrator import TECHNICAL_DIFFICULTIES_ANSWER
from solara_control.agents.providers import ProviderError
from solara_control.agents.schemas import ConversationTurn
from solara_control.agents.service import AGENT_HISTORY_LIMIT, EMPTY_REPLY_ANSWER, AgentResponder
from solara_control.conversations import InMemoryConversationHistoryStore, VisitorProfile

VISITOR = VisitorProfile(id="telegram:7", name="Maria", persona_type="residencial")


def test_reply_uses_history_and_records_both_turns(registry):
    store = InMemoryConversationHistoryStore()
    store.append_turn("telegram:7", "solara", "user", "Oi")
    store.append_turn("telegram:7", "solara", "assistant", "Olá, Maria!")
    provider = ScriptedProvider("  Envie o modelo do inversor.  ")
    agent = registry.get("solara")

    reply = AgentResponder(provider, store).reply(agent, VISITOR, "Meu inversor desligou")

    assert reply == "Envie o modelo do inversor."
    call = provider.calls[0]
    assert call["model"] == "gpt-5.2"
    assert call["max_output_tokens"] == 2048
    assert [m["role"] for m in call["messages"]] == ["system", "system", "user", "assistant", "user"]
    assert call["messages"][0]["content"] == agent.system_prompt
    assert call["messages"][1]["content"] == (
        "O nome do visitante é: Maria. Tipo: residencial."
    )
    assert call["messages"][-1]["content"] == "Meu inversor desligou"
    assert store.get_history("telegram:7", "solara", 10)[-2:] == [
        ConversationTurn(role="user", content="Meu inversor desligou"),
        ConversationTurn(role="assistant", content="Envie o modelo do inversor."),
    ]


def test_history_window_is_limited(registry):
    store = InMemoryConversationHistoryStore()
    for i in range(30):
        store.append_turn("v", "solara", "user", f"m{i}")
    provider = ScriptedProvider("ok")

    AgentResponder(provider, store).reply(registry.get("solara"), VisitorProfile(id="v"), "novo")

    messages = provider.calls[0]["messages"]
    assert len(messages) == 1 + AGENT_HISTORY_LIMIT + 1
    assert messages[1]["content"] == "m10"


def test_agent_model_overrides_default(registry):
    agent = registry.get("solara").model_copy(update={"model": "gpt-4.1"})
    provider = ScriptedProvider("ok")

    AgentResponder(provider, InMemoryConversationHistoryStore()).reply(
        agent, VisitorProfile(id="v"), "oi"
    )

    assert provider.calls[0]["model"] == "gpt-4.1"


def test_provider_failure_keeps_user_turn_only(registry):
    store = InMemoryConversationHistoryStore()
    responder = AgentResponder(ScriptedProvider(ProviderError("down")), store)

    reply = responder.reply(registry.get("bess_architect"), VisitorProfile(id="v"), "bateria")

    assert reply == TECHNICAL_DIFFICULTIES_ANSWER
    assert store.get_history("v", "bess_architect", 10) == [
        ConversationTurn(role="user", content="bateria")
    ]


def test_empty_completion_gets_placeholder(registry):
    store = InMemoryConversationHistoryStore()
    responder = AgentResponder(ScriptedProvider("   "), store)

    reply = responder.reply(registry.get("solara"), VisitorProfile(id="v"), "oi")

    assert reply == EMPTY_REPLY_ANSWER
    assert store.get_history("v", "solara", 10)[-1].content == EMPTY_REPLY_ANSWER


class UnavailableHistory:
    def get_history(self, visitor_id, agent_id, limit):
        raise RuntimeError("db down")

    def append_turn(self, visitor_id, agent_id, role, content):
        raise RuntimeError("db down")


def test_history_store_outage_still_replies(registry, caplog):
    provider = ScriptedProvider("Envie uma foto da etiqueta do inversor.")
    responder = AgentResponder(provider, UnavailableHistory())

    reply = responder.reply(registry.get("solara"), VISITOR, "meu painel solar parou")

    assert reply == "Envie uma foto da etiqueta do inversor."
    messages = provider.calls[0]["messages"]
    assert [m["role"] for m in messages] == ["system", "system", "user"]
    assert "Could not load solara history for visitor telegram:7" in caplog.text
    assert "Could not append user turn to solara history" in caplog.text
    assert "Could not append assistant turn to solara history" in caplog.text
