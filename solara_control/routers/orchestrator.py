"""Orchestrator, router and institutional audit API."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Literal
from uuid import uuid4

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..agents.registry import AgentDefinition, AgentNotFoundError
from ..agents.schemas import OrchestratorDecision, OrchestratorInput, RouteRequest
from ..audit import AuditDeps, AuditReport, run_institutional_test
from ..services import Services, service_context

router = APIRouter(prefix="/api", tags=["orchestrator"])


class AuditRequest(BaseModel):
    mode: Literal["full", "bess", "pv", "crisis", "evidence", "structure"] = "full"


class RouteResponse(BaseModel):
    agent: AgentDefinition | None = None


@contextmanager
def _service_context() -> Iterator[Services]:
    with service_context() as services:
        try:
            yield services
        except AgentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/agents", response_model=list[AgentDefinition])
def list_agents() -> list[AgentDefinition]:
    with _service_context() as svc:
        return svc.registry.list_active()


@router.get("/agents/{slug}", response_model=AgentDefinition)
def get_agent(slug: str) -> AgentDefinition:
    with _service_context() as svc:
        return svc.registry.get(slug)


@router.post("/orchestrator/decide", response_model=OrchestratorDecision)
def decide(payload: OrchestratorInput) -> OrchestratorDecision:
    """Run the orchestrator on a caller-assembled input (no history writes)."""
    with _service_context() as svc:
        return svc.conversations.decide(payload)


@router.post("/orchestrator/route", response_model=RouteResponse)
def route(payload: RouteRequest) -> RouteResponse:
    with _service_context() as svc:
        return RouteResponse(agent=svc.router.route(payload.text))


@router.post("/audit/institutional", response_model=AuditReport)
def institutional_audit(payload: AuditRequest) -> AuditReport:
    """Run the institutional posture audit against the live orchestrator."""
    with _service_context() as svc:
        base_id = f"{svc.settings.audit_conversation_prefix}-{uuid4().hex[:12]}"
        deps = AuditDeps(decide=svc.engine.decide, conversation_id=base_id)
        return run_institutional_test(payload.mode, deps)
