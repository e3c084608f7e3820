"""
Night audit entry points: run (preview or finalize) and the status gate.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config import AuditConfig, CollectionConfig, config
from storage import DocumentRepository
from .clock import BusinessDayClock
from .finalize import FallbackWritePlan, FinalizeReport, build_finalize_ops, finalize_audit
from .findings import Issue, filter_new_issues
from .io import SnapshotLoader
from .metrics import calculate_summary
from .reconcile import reconcile_snapshot
from .rules import RuleRegistry

logger = logging.getLogger(__name__)


@dataclass
class NightAuditOptions:
    """
    Options for one night audit run.

    Attributes:
        tz_offset: Hours east of UTC for the hotel wall clock (required)
        run_by: Operator running the audit
        finalize: Persist the run log, snapshot and new issues
    """
    tz_offset: int
    run_by: str = "system"
    finalize: bool = False


@dataclass
class AuditResult:
    """Outcome of a successful run."""
    issues: List[Issue]
    summary: Dict[str, Any]
    finalize_report: Optional[FinalizeReport] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": True,
            "issues": [issue.to_dict() for issue in self.issues],
            "summary": self.summary,
        }
        if self.finalize_report is not None:
            result["finalizeReport"] = self.finalize_report.to_dict()
        return result


def run_night_audit(
    repository: DocumentRepository,
    options: NightAuditOptions,
    audit_config: AuditConfig = config,
    now: Optional[datetime] = None,
    registry: Optional[RuleRegistry] = None,
    write_plan: Optional[FallbackWritePlan] = None
) -> AuditResult:
    """
    Run the night audit for the current business day.

    Args:
        repository: Document store
        options: Run options (offset, operator, finalize flag)
        audit_config: Configuration tree
        now: Instant of the run (defaults to the current UTC time)
        registry: Rule registry (defaults to the standard checks)
        write_plan: Finalize write plan (defaults to batch then sequential)

    Returns:
        AuditResult with the new issues and the summary

    Raises:
        AuditLoadError: If any collection could not be read
    """
    run_at = now or datetime.now(timezone.utc)
    clock = BusinessDayClock(options.tz_offset, audit_config.business_day.cutover_hour)
    business_day = clock.business_day(run_at)
    business_day_key = clock.business_day_key(business_day)

    logger.info(
        f"Night audit started for {business_day_key} "
        f"(run_by={options.run_by}, finalize={options.finalize}, tz_offset={options.tz_offset})"
    )

    loader = SnapshotLoader(
        repository,
        audit_config.collections,
        audit_config.reconciliation,
        options.tz_offset,
        max_workers=audit_config.storage.load_workers,
    )
    snapshot = loader.load()

    reconciliation = reconcile_snapshot(
        snapshot,
        business_day,
        business_day_key,
        audit_config.reconciliation,
        registry=registry,
    )
    new_issues = filter_new_issues(reconciliation.issues, snapshot.noticed_issue_keys)

    summary = calculate_summary(
        snapshot,
        reconciliation.folio_totals,
        business_day_key,
        run_at,
        len(new_issues),
        audit_config.reconciliation,
    )

    finalize_report = None
    if options.finalize:
        ops = build_finalize_ops(
            business_day_key,
            summary["runAt"],
            options.run_by,
            summary,
            new_issues,
            snapshot,
            audit_config.collections,
        )
        finalize_report = finalize_audit(repository, ops, business_day_key, plan=write_plan)

    logger.info(
        f"Night audit complete for {business_day_key}: {len(new_issues)} new issue(s) "
        f"of {len(reconciliation.issues)} found (loaded {snapshot.summary()})"
    )
    return AuditResult(
        issues=new_issues,
        summary=summary,
        finalize_report=finalize_report,
    )


def get_audit_status(
    repository: DocumentRepository,
    tz_offset: int,
    collections: CollectionConfig,
    now: Optional[datetime] = None,
    cutover_hour: int = 4
) -> Dict[str, Any]:
    """
    Whether the current business day has been finalized.

    Returns:
        {businessDay, ready, lastRun}; lastRun is the run log's runAt
        (or createdAt), None when no log exists
    """
    clock = BusinessDayClock(tz_offset, cutover_hour)
    business_day_key = clock.current_key(now or datetime.now(timezone.utc))
    log = repository.get_document(collections.logs, business_day_key)

    last_run = None
    if log is not None:
        last_run = log.get("runAt") or log.get("createdAt")

    return {
        "businessDay": business_day_key,
        "ready": log is not None,
        "lastRun": last_run,
    }
