"""
KPI and summary calculation.
"""
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict

import pandas as pd

from config import ReconciliationConfig
from .canonical_fields import DocField, RoomStatus
from .io import AuditSnapshot
from .normalize import is_blank
from .reconcile import GROSS_POSTINGS_TOTAL


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounding up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def format_run_at(run_at: datetime) -> str:
    """ISO-8601 UTC instant with millisecond precision and a Z suffix."""
    if run_at.tzinfo is not None:
        run_at = run_at.astimezone(timezone.utc).replace(tzinfo=None)
    return run_at.strftime('%Y-%m-%dT%H:%M:%S.') + f"{run_at.microsecond // 1000:03d}Z"


def _room_type_lookup(rooms: pd.DataFrame) -> Dict[str, Any]:
    # First room wins when a room number is duplicated
    lookup: Dict[str, Any] = {}
    for room_number, room_type in zip(rooms[DocField.ROOM_NUMBER.value], rooms[DocField.ROOM_TYPE.value]):
        if not is_blank(room_number) and room_number not in lookup:
            lookup[room_number] = room_type
    return lookup


def count_channels(reservations: pd.DataFrame, recon_config: ReconciliationConfig) -> Dict[str, int]:
    """Reservations per booking channel (lower-cased, missing means the default channel)."""
    channels = Counter(
        channel or recon_config.default_channel
        for channel in reservations[DocField.CHANNEL.value]
    )
    return dict(channels)


def count_room_types(
    reservations: pd.DataFrame,
    rooms: pd.DataFrame,
    recon_config: ReconciliationConfig
) -> Dict[str, int]:
    """
    Reservations per primary room type.

    The primary room is the first room number on the reservation; reservations
    without any room number are not counted.
    """
    lookup = _room_type_lookup(rooms)
    counts: Counter = Counter()
    for room_numbers in reservations[DocField.ROOM_NUMBERS.value]:
        if not room_numbers:
            continue
        room_type = lookup.get(room_numbers[0])
        counts[recon_config.unknown_room_type if is_blank(room_type) else room_type] += 1
    return dict(counts)


def calculate_summary(
    snapshot: AuditSnapshot,
    folio_totals: pd.DataFrame,
    business_day_key: str,
    run_at: datetime,
    issues_count: int,
    recon_config: ReconciliationConfig
) -> Dict[str, Any]:
    """
    Calculate the run summary.

    Args:
        snapshot: Loaded snapshot
        folio_totals: Output of calculate_folio_totals for the same snapshot
        business_day_key: Business day being audited (YYYY-MM-DD)
        run_at: Instant of the run
        issues_count: Number of new (unacknowledged) issues
        recon_config: Reconciliation configuration

    Returns:
        Dictionary of summary values (plain Python types)
    """
    rooms = snapshot.rooms
    rooms_total = len(rooms)
    rooms_occupied = int((rooms[DocField.STATUS.value] == RoomStatus.OCCUPIED.value).sum())

    # Revenue counts every posting, voided or not
    total_room_revenue = float(folio_totals[GROSS_POSTINGS_TOTAL].sum()) if len(folio_totals) > 0 else 0.0

    occupancy_pct = round_half_up(rooms_occupied / rooms_total * 10000) / 100 if rooms_total > 0 else 0
    adr = round_half_up(total_room_revenue / rooms_occupied) if rooms_occupied > 0 else 0
    revpar = round_half_up(total_room_revenue / rooms_total) if rooms_total > 0 else 0

    return {
        "runAt": format_run_at(run_at),
        "businessDay": business_day_key,
        "roomsTotal": int(rooms_total),
        "roomsOccupied": rooms_occupied,
        "occupancyPct": occupancy_pct,
        "adr": adr,
        "revpar": revpar,
        "totalRoomRevenue": round_half_up(total_room_revenue),
        "channelCounts": count_channels(snapshot.reservations, recon_config),
        "roomTypeCounts": count_room_types(snapshot.reservations, rooms, recon_config),
        "issuesCount": int(issues_count),
    }
