import logging

from conftest import ScriptedProvider
from solara_control.agents.providers import ProviderError
from solara_control.agents.registry import DEFAULT_AGENTS, AgentRegistry
from solara_control.agents.router import AgentRouter, best_keyword_match, keyword_score


def test_keyword_match_skips_model_call(registry):
    provider = ScriptedProvider()
    router = AgentRouter(provider, registry)

    assert router.route("Quero instalar uma bateria em casa").slug == "bess_architect"
    assert router.route("Meu INVERSOR apita").slug == "solara"
    assert provider.calls == []


def test_longest_keyword_total_wins(registry):
    # "inversor" (8) outweighs "bateria" (7)
    assert AgentRouter(ScriptedProvider(), registry).route("inversor e bateria").slug == "solara"


def test_ties_go_to_earliest_agent():
    agents = DEFAULT_AGENTS[1:]
    text = "string backup"

    assert keyword_score(agents[0], text) == keyword_score(agents[1], text) == 6
    assert best_keyword_match(agents, text).slug == "solara"


def test_model_classifies_when_no_keyword_matches(registry):
    provider = ScriptedProvider("  bess_architect\n")
    router = AgentRouter(provider, registry)

    agent = router.route("Olá, bom dia")

    assert agent.slug == "bess_architect"
    call = provider.calls[0]
    assert call["model"] == "gpt-5-nano"
    assert call["max_output_tokens"] == 50
    assert call["json_mode"] is False
    assert '- "kuaray": Orquestrador central' in call["messages"][0]["content"]
    assert call["messages"][1] == {"role": "user", "content": "Olá, bom dia"}


def test_unknown_slug_falls_back_to_first_active_agent(registry):
    router = AgentRouter(ScriptedProvider("someone"), registry)

    assert router.route("Olá, bom dia").slug == "kuaray"


def test_provider_failure_falls_back_to_first_active_agent(registry, caplog):
    router = AgentRouter(ScriptedProvider(ProviderError("offline")), registry)

    with caplog.at_level(logging.WARNING, logger="solara_control.agents.router"):
        agent = router.route("Olá, bom dia")

    assert agent.slug == "kuaray"
    assert "AI routing error: offline" in caplog.text


def test_single_active_agent_is_returned_without_model_call():
    registry = AgentRegistry([DEFAULT_AGENTS[0]])
    provider = ScriptedProvider()

    assert AgentRouter(provider, registry).route("Olá").slug == "kuaray"
    assert provider.calls == []


def test_no_active_agents_returns_none():
    registry = AgentRegistry([a.model_copy(update={"active": False}) for a in DEFAULT_AGENTS])

    assert AgentRouter(ScriptedProvider(), registry).route("bateria") is None


def test_painel_solar_routes_to_solara_deterministically(registry):
    provider = ScriptedProvider()
    router = AgentRouter(provider, registry)

    first = router.route("Tenho um painel solar sujo")
    second = router.route("Tenho um painel solar sujo")

    assert first.slug == second.slug == "solara"
    assert provider.calls == []
