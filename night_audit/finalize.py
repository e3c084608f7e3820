"""
Finalize a night audit: persist the run log, the snapshot counts and the new
issues for a business day.

Writes are attempted as one atomic batch first. If the batch fails, the same
writes are replayed one document at a time and every outcome is reported.
"""
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from config import CollectionConfig
from storage import DocumentRepository, StorageError, WriteOp
from .findings import Issue
from .io import AuditSnapshot

logger = logging.getLogger(__name__)


def normalize_for_json(value: Any) -> Any:
    """Normalize pandas/numpy values (recursively) into JSON-serializable primitives."""
    if value is None or value is pd.NaT:
        return None

    if isinstance(value, dict):
        return {str(k): normalize_for_json(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [normalize_for_json(v) for v in value]

    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()

    if isinstance(value, bool):
        return value

    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return value

    if isinstance(value, (int, str)):
        return value

    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass

    # numpy scalars
    if hasattr(value, "item"):
        return normalize_for_json(value.item())

    return str(value)


@dataclass
class FinalizeReport:
    """
    Outcome of a finalize.

    Attributes:
        business_day: Business-day key that was finalized
        strategy: Name of the strategy whose result this is
        written: Paths ('collection/key') written successfully
        failed: Path -> error text for writes that failed
        batch_error: Error text of the atomic batch, when it failed
    """
    business_day: str
    strategy: str
    written: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    batch_error: Optional[str] = None

    @property
    def complete(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "businessDay": self.business_day,
            "strategy": self.strategy,
            "complete": self.complete,
            "written": list(self.written),
            "failed": dict(self.failed),
            "batchError": self.batch_error,
        }


class WriteStrategy(ABC):
    """A way of applying a list of writes to a repository."""

    name = "abstract"

    @abstractmethod
    def apply(self, repository: DocumentRepository, ops: Sequence[WriteOp], business_day: str) -> FinalizeReport:
        pass


class AtomicBatchWrite(WriteStrategy):
    """All writes in one batch. Raises StorageError if the batch is rejected."""

    name = "atomic"

    def apply(self, repository: DocumentRepository, ops: Sequence[WriteOp], business_day: str) -> FinalizeReport:
        repository.write_batch(ops)
        return FinalizeReport(business_day=business_day, strategy=self.name, written=[op.path for op in ops])


class SequentialFallbackWrite(WriteStrategy):
    """One write per document; a failed write is recorded and the rest still run."""

    name = "sequential"

    def apply(self, repository: DocumentRepository, ops: Sequence[WriteOp], business_day: str) -> FinalizeReport:
        report = FinalizeReport(business_day=business_day, strategy=self.name)
        for op in ops:
            try:
                repository.set_document(op.collection, op.key, op.data, merge=op.merge)
                report.written.append(op.path)
            except StorageError as e:
                logger.error(f"[FINALIZE] Sequential write failed for {op.path}: {e}")
                report.failed[op.path] = str(e)
        return report


class FallbackWritePlan:
    """Try the primary strategy; if it raises StorageError, run the fallback."""

    def __init__(self, primary: Optional[WriteStrategy] = None, fallback: Optional[WriteStrategy] = None):
        self.primary = primary or AtomicBatchWrite()
        self.fallback = fallback or SequentialFallbackWrite()

    def commit(self, repository: DocumentRepository, ops: Sequence[WriteOp], business_day: str) -> FinalizeReport:
        try:
            report = self.primary.apply(repository, ops, business_day)
        except StorageError as e:
            logger.error(
                f"[FINALIZE] {self.primary.name} write of {len(ops)} document(s) failed for {business_day}: {e}. "
                f"Falling back to {self.fallback.name} writes"
            )
            report = self.fallback.apply(repository, ops, business_day)
            report.batch_error = str(e)

        if report.complete:
            logger.info(f"[FINALIZE] {business_day}: wrote {len(report.written)} document(s) ({report.strategy})")
        else:
            logger.warning(
                f"[FINALIZE] {business_day}: wrote {len(report.written)} document(s), "
                f"{len(report.failed)} failed ({report.strategy})"
            )
        return report


def build_finalize_ops(
    business_day_key: str,
    run_at: str,
    run_by: str,
    summary: Dict[str, Any],
    issues: Sequence[Issue],
    snapshot: AuditSnapshot,
    collections: CollectionConfig
) -> List[WriteOp]:
    """
    Build the writes for a finalize.

    The run log and snapshot are replaced on every finalize of the same day.
    Issue documents are merged so fields set elsewhere (an acknowledgement,
    a note) survive.
    """
    issue_docs = [normalize_for_json(issue.to_dict()) for issue in issues]

    ops = [
        WriteOp(
            collections.logs,
            business_day_key,
            {
                "runAt": run_at,
                "runBy": run_by,
                "businessDay": business_day_key,
                "summary": normalize_for_json(summary),
                "issues": issue_docs,
                "createdAt": run_at,
            },
        ),
        WriteOp(
            collections.snapshots,
            business_day_key,
            {
                "roomsTotal": len(snapshot.rooms),
                "roomsOccupied": summary.get("roomsOccupied", 0),
                "totalReservations": len(snapshot.reservations),
                "totalStays": len(snapshot.stays),
                "totalPostings": len(snapshot.postings),
                "totalPayments": len(snapshot.payments),
                "createdAt": run_at,
            },
        ),
    ]

    for issue, issue_doc in zip(issues, issue_docs):
        data = dict(issue_doc)
        data.update({
            "businessDay": business_day_key,
            "noticed": False,
            "lastSeenAt": run_at,
        })
        ops.append(WriteOp(collections.issues, issue.issue_key, data, merge=True))

    return ops


def finalize_audit(
    repository: DocumentRepository,
    ops: Sequence[WriteOp],
    business_day_key: str,
    plan: Optional[FallbackWritePlan] = None
) -> FinalizeReport:
    """Commit finalize writes with the batch-then-sequential plan."""
    plan = plan or FallbackWritePlan()
    return plan.commit(repository, ops, business_day_key)
