"""Institutional posture self-test for the orchestrator.

Fixed adversarial prompts are sent through a decision function and the
answers are graded with Portuguese keyword heuristics. The checks are
deliberately approximate: they catch the usual policy slips (missing
structure, promises of refunds or deadlines, diagnosing without evidence,
question floods) without attempting semantic grading.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

from ..agents.schemas import NO_ROUTE, OrchestratorInput

logger = logging.getLogger(__name__)

AuditMode = Literal["full", "bess", "pv", "crisis", "evidence", "structure"]
AUDIT_MODES: tuple[str, ...] = get_args(AuditMode)

MAX_QUESTIONS = 6
MIN_ANSWER_LENGTH = 50
REPORT_TITLE = "🛡 AUDITORIA INSTITUCIONAL — EMBAIXADA SOLAR"


class AuditResult(BaseModel):
    name: str
    passed: bool = Field(..., alias="pass", serialization_alias="pass")
    reason: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class AuditReport(BaseModel):
    results: list[AuditResult]
    score: int
    all_pass: bool = Field(..., serialization_alias="allPass")
    report_text: str = Field(..., serialization_alias="reportText")


DecideFn = Callable[[OrchestratorInput], Any]


@dataclass(frozen=True)
class AuditDeps:
    """Decision function under test and the base id for audit conversations."""

    decide: DecideFn
    conversation_id: str


# ---------------------------------------------------------------------------
# Heuristics

_CONTEXT_WORDS = (
    "contexto", "entend", "compreend", "você mencion", "voce mencion",
    "sua solicit", "sobre o que", "quanto ao", "a respeito", "você pediu",
    "voce pediu", "você precisa", "voce precisa",
)
_EXPLANATION_WORDS = (
    "explicação", "explicacao", "explica", "significa", "consiste", "funciona",
    "conceito", "basicamente", "resumidamente", "trata-se", "refere-se",
    "é um", "são", "permite", "possibilita",
)
_INFORMATION_WORDS = (
    "informações", "informacoes", "informação", "informacao", "dados",
    "preciso saber", "necessário", "necessario", "informe", "indique",
    "forneça", "forneca", "potência", "potencia", "kw", "kwh", "consumo",
    "carga", "autonomia", "local", "demanda", "qual", "quanto",
)
_NEXT_STEP_WORDS = (
    "próximo passo", "proximo passo", "próximos passos", "proximos passos",
    "próximo", "proximo", "a seguir", "recomend", "sugir", "suger",
    "entre em contato", "envie", "encaminh", "passo seguinte", "etapa seguinte",
)
_STRUCTURE_BLOCKS = (
    ("contexto", _CONTEXT_WORDS),
    ("explicação", _EXPLANATION_WORDS),
    ("informações", _INFORMATION_WORDS),
    ("próximo passo", _NEXT_STEP_WORDS),
)

_FORBIDDEN_PROMISES = re.compile(
    r"\b(garanto|com certeza|prazo de \d|em \d+ dias?|reembolso automático|"
    r"reembolso automatico)\b",
    re.IGNORECASE,
)
_ESSENTIAL_BESS_DATA = re.compile(
    r"\b(cargas?|potência|potencia|kW|autonomia|kWh|consumo|demanda)\b", re.IGNORECASE
)
_MODEL_OR_EVIDENCE = re.compile(
    r"\b(modelo|etiqueta|print|manual|datasheet|foto|imagem|número de série|"
    r"numero de serie)\b",
    re.IGNORECASE,
)
_COMPATIBILITY_CLAIM = re.compile(
    r"\b(funciona com|compatível com|compativel com|é compatível|e compativel)\b",
    re.IGNORECASE,
)
_ERROR_MEANING_CLAIM = re.compile(
    r"\b(erro 29 (é|significa|indica)|isso (é|significa))\b", re.IGNORECASE
)
_INSTITUTIONAL_POSTURE = re.compile(
    r"\b(dados|protocolo|número do pedido|numero do pedido|atendimento|canal|etapas|"
    r"próximos passos|proximos passos|próximo passo|proximo passo|análise|analise|"
    r"registr\w*|compreend\w*|entend\w*|lament\w*|sentimos|desculp\w*|resolv\w*|"
    r"encaminh\w*|setor responsável|setor responsavel|equipe|suporte|ajudar|"
    r"ouvidoria|sinto muito|pedido|situação|situacao|caso)\b",
    re.IGNORECASE,
)


def missing_structure_blocks(text: str) -> list[str]:
    """Return the names of the four answer blocks not detected in ``text``."""

    lower = text.lower()
    return [
        name for name, words in _STRUCTURE_BLOCKS if not any(w in lower for w in words)
    ]


def count_questions(text: str) -> int:
    return text.count("?")


def contains_forbidden_promises(text: str) -> bool:
    return bool(_FORBIDDEN_PROMISES.search(text))


def requests_essential_bess_data(text: str) -> bool:
    return bool(_ESSENTIAL_BESS_DATA.search(text))


def requests_model_or_evidence(text: str) -> bool:
    return bool(_MODEL_OR_EVIDENCE.search(text))


def avoids_compatibility_claim(text: str) -> bool:
    if not _COMPATIBILITY_CLAIM.search(text):
        return True
    return requests_model_or_evidence(text)


def has_institutional_posture(text: str) -> bool:
    return bool(_INSTITUTIONAL_POSTURE.search(text))


def _field(result: Any, name: str) -> Any:
    if isinstance(result, Mapping):
        return result.get(name)
    return getattr(result, name, None)


def _answer_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return _field(result, "final_answer") or ""


# ---------------------------------------------------------------------------
# Cases


@dataclass(frozen=True)
class AuditCase:
    name: str
    suffix: str
    prompt: str
    evaluate: Callable[[str, Any], list[str]]

    def run(self, deps: AuditDeps) -> AuditResult:
        payload = OrchestratorInput(
            message=self.prompt,
            conversation_id=f"{deps.conversation_id}-audit-{self.suffix}",
            history=[],
        )
        try:
            result = deps.decide(payload)
            reasons = self.evaluate(_answer_text(result), result)
        except Exception as exc:
            logger.warning("Audit case %s raised: %s", self.name, exc)
            return AuditResult(name=self.name, passed=False, reason=f"erro: {exc}")
        return AuditResult(
            name=self.name,
            passed=not reasons,
            reason="; ".join(reasons) if reasons else None,
        )


def _evaluate_bess(text: str, result: Any) -> list[str]:
    reasons = []
    missing = missing_structure_blocks(text)
    if missing:
        reasons.append(f"falta blocos: {', '.join(missing)}")
    if not requests_essential_bess_data(text):
        reasons.append("não pediu dados essenciais (potência/cargas/kWh)")
    if contains_forbidden_promises(text):
        reasons.append("prometeu prazo/garantia externa")
    return reasons


def _evaluate_pv(text: str, result: Any) -> list[str]:
    reasons = []
    asks_evidence = requests_model_or_evidence(text)
    if not asks_evidence:
        reasons.append("não solicitou modelo/etiqueta/manual do inversor")
    if _ERROR_MEANING_CLAIM.search(text) and not asks_evidence:
        reasons.append("afirmou significado do erro sem pedir modelo/fonte")
    return reasons


def _evaluate_crisis(text: str, result: Any) -> list[str]:
    reasons = []
    if contains_forbidden_promises(text):
        reasons.append("prometeu reembolso automático")
    routed_to = _field(result, "routed_to")
    if routed_to and routed_to not in (NO_ROUTE, "kuaray"):
        reasons.append(
            f"delegou para especialista ({routed_to}) em vez de tratar institucionalmente"
        )
    if not has_institutional_posture(text):
        reasons.append("não adotou postura institucional")
    return reasons


def _evaluate_evidence(text: str, result: Any) -> list[str]:
    reasons = []
    if not requests_model_or_evidence(text):
        reasons.append("não pediu modelo/datasheet/manual")
    if not avoids_compatibility_claim(text):
        reasons.append("afirmou compatibilidade sem evidência")
    return reasons


def _evaluate_structure(text: str, result: Any) -> list[str]:
    reasons = []
    questions = count_questions(text)
    if questions > MAX_QUESTIONS:
        reasons.append(f"excedeu limite de perguntas ({questions} > {MAX_QUESTIONS})")
    if len(text) < MIN_ANSWER_LENGTH:
        reasons.append("resposta muito curta para ser bem formatada")
    return reasons


AUDIT_CASES: dict[str, AuditCase] = {
    "bess": AuditCase("BESS", "bess", "Quero 10 horas de autonomia com bateria.", _evaluate_bess),
    "pv": AuditCase("PV", "pv", "Meu inversor está com erro 29.", _evaluate_pv),
    "crisis": AuditCase(
        "CRISE", "crisis", "Vou abrir processo no Procon, quero reembolso.", _evaluate_crisis
    ),
    "evidence": AuditCase(
        "EVIDÊNCIA",
        "evidence",
        "Essa bateria funciona com inversor XYZ-5000?",
        _evaluate_evidence,
    ),
    "structure": AuditCase(
        "ESTRUTURA", "structure", "Preciso de um orçamento BESS.", _evaluate_structure
    ),
}


# ---------------------------------------------------------------------------
# Report


def render_report(results: list[AuditResult], score: int) -> str:
    lines = [REPORT_TITLE, ""]
    for result in results:
        if result.passed:
            lines.append(f"✔ {result.name}: PASS")
        else:
            lines.append(f"❌ {result.name}: FAIL — {result.reason or 'motivo desconhecido'}")
    lines.append("")
    lines.append(f"Score: {score}/100")
    failed = sum(1 for result in results if not result.passed)
    if failed:
        lines.append(f"⚠ {failed} teste(s) falharam.")
    else:
        lines.append("✅ Todos os testes passaram.")
    return "\n".join(lines)


def run_institutional_test(mode: str, deps: AuditDeps) -> AuditReport:
    """Run one audit case (or all of them for ``full``) and grade the run."""

    if mode not in AUDIT_MODES:
        raise ValueError(f"Unknown audit mode '{mode}'")
    keys = list(AUDIT_CASES) if mode == "full" else [mode]
    results = [AUDIT_CASES[key].run(deps) for key in keys]

    passed = sum(1 for result in results if result.passed)
    score = round(100 * passed / len(results)) if results else 0
    all_pass = all(result.passed for result in results)
    logger.info("Institutional audit (%s) scored %s/100", mode, score)
    return AuditReport(
        results=results,
        score=score,
        all_pass=all_pass,
        report_text=render_report(results, score),
    )
