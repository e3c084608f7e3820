"""
Reconciliation logic - aggregate postings and payments per reservation folio,
then run the rule battery over the snapshot.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import pandas as pd

from config import ReconciliationConfig
from .canonical_fields import DocField
from .findings import Issue
from .io import AuditSnapshot
from .normalize import is_blank
from .rules import RuleContext, RuleRegistry, default_registry

logger = logging.getLogger(__name__)

POSTINGS_TOTAL = "postings_total"
GROSS_POSTINGS_TOTAL = "gross_postings_total"
PAYMENTS_TOTAL = "payments_total"
VARIANCE = "variance"
FOLIO_STATUS = "status"


def _sum_by_reservation(values: pd.Series, reservation_ids: pd.Series, index: pd.Index) -> pd.Series:
    # groupby drops rows without a reservationId
    totals = values.groupby(reservation_ids).sum()
    return totals.reindex(index).fillna(0.0).astype("float64")


def calculate_folio_totals(
    reservations: pd.DataFrame,
    postings: pd.DataFrame,
    payments: pd.DataFrame,
    recon_config: ReconciliationConfig
) -> pd.DataFrame:
    """
    Aggregate charges and settlements per loaded reservation.

    Args:
        reservations: Normalized reservations (defines the folio set)
        postings: Normalized postings
        payments: Normalized payments
        recon_config: Reconciliation configuration

    Returns:
        DataFrame indexed by reservation id with postings_total (excluded
        statuses removed), gross_postings_total (every posting),
        payments_total, variance and status
    """
    reservation_ids = [rid for rid in pd.unique(reservations[DocField.ID.value]) if not is_blank(rid)]
    index = pd.Index(reservation_ids, name=DocField.RESERVATION_ID.value, dtype=object)

    charge_total = (
        postings[DocField.AMOUNT.value]
        + postings[DocField.TAX.value]
        + postings[DocField.SERVICE.value]
    )
    posting_keys = postings[DocField.RESERVATION_ID.value]
    billable = ~postings[DocField.STATUS.value].isin(recon_config.excluded_posting_statuses)

    totals = pd.DataFrame(index=index)
    totals[POSTINGS_TOTAL] = _sum_by_reservation(charge_total[billable], posting_keys[billable], index)
    totals[GROSS_POSTINGS_TOTAL] = _sum_by_reservation(charge_total, posting_keys, index)
    totals[PAYMENTS_TOTAL] = _sum_by_reservation(
        payments[DocField.AMOUNT.value],
        payments[DocField.RESERVATION_ID.value],
        index
    )
    totals[VARIANCE] = totals[POSTINGS_TOTAL] - totals[PAYMENTS_TOTAL]
    totals[FOLIO_STATUS] = [
        _classify_status(posted, paid, recon_config)
        for posted, paid in zip(totals[POSTINGS_TOTAL], totals[PAYMENTS_TOTAL])
    ]
    return totals


def _classify_status(postings_total: float, payments_total: float, config: ReconciliationConfig) -> str:
    """
    Classify a folio.

    Rules:
    - EMPTY if nothing was posted or paid
    - MISMATCH if abs(postings - payments) > tolerance
    - MATCHED otherwise
    """
    if postings_total == 0 and payments_total == 0:
        return config.status_empty
    if abs(postings_total - payments_total) > config.mismatch_tolerance:
        return config.status_mismatch
    return config.status_matched


@dataclass
class ReconciliationResult:
    """Issues found by the rules plus the folio totals they were based on."""
    issues: List[Issue]
    folio_totals: pd.DataFrame


def reconcile_snapshot(
    snapshot: AuditSnapshot,
    business_day: datetime,
    business_day_key: str,
    recon_config: ReconciliationConfig,
    registry: Optional[RuleRegistry] = None
) -> ReconciliationResult:
    """
    Run every registered rule over a loaded snapshot.

    Pure: reads nothing from the store and never raises for data problems.
    """
    registry = registry or default_registry
    folio_totals = calculate_folio_totals(
        snapshot.reservations,
        snapshot.postings,
        snapshot.payments,
        recon_config
    )
    context = RuleContext(
        business_day=business_day,
        business_day_key=business_day_key,
        snapshot=snapshot,
        folio_totals=folio_totals,
        reconciliation=recon_config,
    )
    issues = registry.evaluate_all(context)
    logger.info(f"[RECONCILE] {len(issues)} issue(s) for business day {business_day_key}")
    return ReconciliationResult(issues=issues, folio_totals=folio_totals)
