"""Static catalog of responder agents (orchestrator and specialists)."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AgentNotFoundError(LookupError):
    """Raised when an agent slug is not part of the registry."""


class AgentRole(str, Enum):
    ORCHESTRATOR = "orchestrator"
    PV_SUPPORT = "pv_support"
    BESS_SPECIALIST = "bess_specialist"
    GENERAL = "general"

    @property
    def is_specialist(self) -> bool:
        if self is AgentRole.ORCHESTRATOR:
            return False
        if self in (AgentRole.PV_SUPPORT, AgentRole.BESS_SPECIALIST, AgentRole.GENERAL):
            return True
        raise ValueError(f"Unhandled agent role: {self!r}")


class AgentDefinition(BaseModel):
    """A responder persona addressable by ``slug``."""

    model_config = ConfigDict(frozen=True)

    slug: str
    role: AgentRole
    description: str
    active: bool = True
    name: str | None = None
    keywords: tuple[str, ...] = Field(default_factory=tuple)
    system_prompt: str | None = None
    model: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.slug


DEFAULT_AGENTS: tuple[AgentDefinition, ...] = (
    AgentDefinition(
        slug="kuaray",
        role=AgentRole.ORCHESTRATOR,
        name="Kuaray",
        description="Orquestrador central que analisa intenção e roteia para especialistas",
        system_prompt=(
            "Você é Kuaray, assistente institucional da Embaixada Solar. "
            "Responda em português, com cordialidade e objetividade, e encaminhe "
            "questões técnicas específicas para a equipe responsável."
        ),
    ),
    AgentDefinition(
        slug="solara",
        role=AgentRole.PV_SUPPORT,
        name="Solara",
        description=(
            "Especialista em energia solar fotovoltaica, automações e sistemas de "
            "energia renovável"
        ),
        keywords=(
            "painel solar",
            "painéis",
            "fotovoltaic",
            "inversor",
            "placa solar",
            "microgeração",
            "string",
            "geração solar",
        ),
        system_prompt=(
            "Você é Solara, especialista em energia solar fotovoltaica da Embaixada "
            "Solar. Antes de diagnosticar erros, peça modelo, etiqueta ou manual do "
            "equipamento. Nunca invente dados técnicos."
        ),
    ),
    AgentDefinition(
        slug="bess_architect",
        role=AgentRole.BESS_SPECIALIST,
        name="BESS Architect",
        description=(
            "Especialista em Battery Energy Storage Systems (BESS), dimensionamento e "
            "engenharia"
        ),
        keywords=(
            "bateria",
            "baterias",
            "bess",
            "armazenamento",
            "autonomia",
            "kwh",
            "backup",
        ),
        system_prompt=(
            "Você é BESS Architect, engenheiro de armazenamento de energia da "
            "Embaixada Solar. Para dimensionar, peça cargas, potência, consumo "
            "diário e autonomia desejada. Nunca afirme compatibilidade sem datasheet."
        ),
    ),
)


class AgentRegistry:
    """Read-only view over the configured agents, in declaration order."""

    def __init__(self, agents: Iterable[AgentDefinition] | None = None) -> None:
        self._agents: dict[str, AgentDefinition] = {}
        for agent in DEFAULT_AGENTS if agents is None else agents:
            if agent.slug in self._agents:
                raise ValueError(f"Duplicate agent slug '{agent.slug}'")
            self._agents[agent.slug] = agent

    def get(self, slug: str) -> AgentDefinition:
        try:
            return self._agents[slug]
        except KeyError as exc:
            raise AgentNotFoundError(f"Agent '{slug}' not found") from exc

    def list_all(self) -> list[AgentDefinition]:
        return list(self._agents.values())

    def list_active(self) -> list[AgentDefinition]:
        return [agent for agent in self._agents.values() if agent.active]

    def list_specialists(self) -> list[AgentDefinition]:
        """Return active agents whose role is not the orchestrator."""

        return [agent for agent in self.list_active() if agent.role.is_specialist]

    def orchestrator(self) -> AgentDefinition | None:
        for agent in self.list_active():
            if agent.role is AgentRole.ORCHESTRATOR:
                return agent
        return None

    def specialist_slugs(self) -> frozenset[str]:
        return frozenset(agent.slug for agent in self.list_specialists())
