"""
Night Audit - business-day reconciliation of rooms, stays, reservations and folios.
"""
from .clock import BusinessDayClock
from .errors import AuditError, AuditLoadError
from .io import AuditSnapshot, SnapshotLoader
from .normalize import to_local_timestamp
from .reconcile import calculate_folio_totals, reconcile_snapshot, ReconciliationResult
from .rules import RuleContext, Rule, RuleRegistry, default_registry
from .findings import Issue, build_issue_key, filter_new_issues
from .metrics import calculate_summary
from .finalize import (
    FinalizeReport,
    WriteStrategy,
    AtomicBatchWrite,
    SequentialFallbackWrite,
    FallbackWritePlan,
    build_finalize_ops,
    finalize_audit,
)
from .runner import NightAuditOptions, AuditResult, run_night_audit, get_audit_status
from .canonical_fields import DocField, IssueType

__all__ = [
    "BusinessDayClock",
    "AuditError",
    "AuditLoadError",
    "AuditSnapshot",
    "SnapshotLoader",
    "to_local_timestamp",
    "calculate_folio_totals",
    "reconcile_snapshot",
    "ReconciliationResult",
    "RuleContext",
    "Rule",
    "RuleRegistry",
    "default_registry",
    "Issue",
    "build_issue_key",
    "filter_new_issues",
    "calculate_summary",
    "FinalizeReport",
    "WriteStrategy",
    "AtomicBatchWrite",
    "SequentialFallbackWrite",
    "FallbackWritePlan",
    "build_finalize_ops",
    "finalize_audit",
    "NightAuditOptions",
    "AuditResult",
    "run_night_audit",
    "get_audit_status",
    "DocField",
    "IssueType",
]
