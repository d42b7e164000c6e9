"""Institutional policy audit of the orchestrator."""

from .institutional import (
    AUDIT_MODES,
    AuditDeps,
    AuditReport,
    AuditResult,
    run_institutional_test,
)

__all__ = [
    "AUDIT_MODES",
    "AuditDeps",
    "AuditReport",
    "AuditResult",
    "run_institutional_test",
]
