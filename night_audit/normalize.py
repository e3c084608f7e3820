"""
Normalization logic for hotel documents.
Converts raw store records into canonical DataFrames.

Everything shape-dependent happens here: date-like fields arrive as ISO
strings, epoch-second maps or timestamp objects; identifiers arrive as
strings or numbers; statuses arrive in any case. Rules downstream only ever
see one representation.
"""
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .canonical_fields import (
    DocField,
    ROOM_FIELDS,
    RESERVATION_FIELDS,
    STAY_FIELDS,
    POSTING_FIELDS,
    PAYMENT_FIELDS,
    DATE_FIELDS,
    AMOUNT_FIELDS,
    get_field_names,
)

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

TIMESTAMP_ERRORS = (TypeError, ValueError, OverflowError, pd.errors.OutOfBoundsDatetime)


def is_blank(value: Any) -> bool:
    """True for None, NaN/NaT and empty strings."""
    if value is None or value is pd.NaT:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def normalize_identifier(value: Any) -> Optional[str]:
    """Normalize a key to a string so numeric and text keys compare equal."""
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        numeric = float(value)
        if numeric.is_integer():
            return str(int(numeric))
        return str(numeric)
    return str(value).strip()


def normalize_status(value: Any) -> str:
    if is_blank(value):
        return ""
    return str(value).strip().lower()


def _safe_float(value: Any) -> float:
    if is_blank(value):
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(result) else result


def _epoch_parts(value: Any) -> Optional[Tuple[float, int]]:
    """
    Extract (seconds, nanoseconds) from a timestamp-like map or object.

    Raises:
        ValueError: If seconds or nanoseconds are not numeric
    """
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", value.get("nanos", 0)))
    elif hasattr(value, "seconds") and not isinstance(value, (datetime, date, timedelta)):
        seconds = getattr(value, "seconds")
        nanos = getattr(value, "nanoseconds", getattr(value, "nanos", 0))
    else:
        return None

    if is_blank(seconds):
        return None
    return float(seconds), int(nanos or 0)


def to_local_timestamp(value: Any, tz_offset_hours: int) -> Optional[pd.Timestamp]:
    """
    Normalize a date-like value onto the hotel's offset wall clock.

    Accepts ISO strings, {seconds, nanoseconds} maps (and the underscored
    variants), objects exposing `seconds`, and datetime/date values.
    Values that carry a timezone (or are epoch based) are shifted from UTC by
    `tz_offset_hours`; naive values are already wall-clock values.

    Returns:
        Naive Timestamp, or None for blank and unparseable input
    """
    if is_blank(value):
        return None

    try:
        parts = _epoch_parts(value)
        if parts is not None:
            seconds, nanos = parts
            # datetime arithmetic reaches past the nanosecond range (year 2262)
            stamp = pd.Timestamp(EPOCH + timedelta(seconds=seconds, microseconds=nanos // 1000))
        elif isinstance(value, str):
            stamp = pd.to_datetime(value.strip(), errors="coerce")
        elif isinstance(value, (datetime, date, pd.Timestamp)):
            stamp = pd.Timestamp(value)
        else:
            return None

        if stamp is None or stamp is pd.NaT:
            return None

        if stamp.tzinfo is not None:
            stamp = stamp.tz_convert("UTC").tz_localize(None) + timedelta(hours=tz_offset_hours)
    except TIMESTAMP_ERRORS as e:
        logger.debug(f"[NORMALIZE] Unparseable date value {value!r}: {e}")
        return None
    return stamp


def _records_to_frame(records: Iterable[Dict[str, Any]], fields: Tuple[DocField, ...]) -> pd.DataFrame:
    """Build a DataFrame that always carries the canonical columns."""
    columns = list(get_field_names(fields))
    df = pd.DataFrame(list(records))
    extra = [col for col in df.columns if col not in columns]
    return df.reindex(columns=columns + extra)


def _normalize_identifiers(df: pd.DataFrame, fields: List[DocField]) -> None:
    for field in fields:
        df[field.value] = df[field.value].map(normalize_identifier).astype(object)


def _normalize_dates(df: pd.DataFrame, tz_offset_hours: int, source: str) -> None:
    for field in DATE_FIELDS:
        col = field.value
        raw = df[col]
        converted = raw.map(lambda v: to_local_timestamp(v, tz_offset_hours))
        invalid = sum(
            1 for original, parsed in zip(raw, converted)
            if not is_blank(original) and parsed is None
        )
        if invalid:
            logger.warning(f"[NORMALIZE] {source}: {invalid} unparseable '{col}' value(s) treated as missing")
        try:
            df[col] = pd.to_datetime(converted)
        except pd.errors.OutOfBoundsDatetime:
            # Year-9999 style dates do not fit a nanosecond column
            df[col] = converted.map(lambda v: pd.NaT if v is None else v).astype(object)


def _normalize_amounts(df: pd.DataFrame, fields: Iterable[DocField]) -> None:
    for field in fields:
        df[field.value] = df[field.value].map(_safe_float).astype("float64")


def _room_sequence(room_numbers: Any, legacy_room: Any) -> Tuple[str, ...]:
    if isinstance(room_numbers, (list, tuple)):
        normalized = (normalize_identifier(v) for v in room_numbers)
        return tuple(v for v in normalized if v is not None)
    legacy = normalize_identifier(legacy_room)
    return (legacy,) if legacy is not None else ()


def normalize_rooms(records: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """
    Normalize room documents.

    Output columns: id, roomNumber (str), roomType, status (lower-case)
    """
    df = _records_to_frame(records, ROOM_FIELDS)
    _normalize_identifiers(df, [DocField.ID, DocField.ROOM_NUMBER])
    df[DocField.STATUS.value] = df[DocField.STATUS.value].map(normalize_status)
    df[DocField.ROOM_TYPE.value] = df[DocField.ROOM_TYPE.value].map(
        lambda v: None if is_blank(v) else str(v)
    ).astype(object)
    return df


def normalize_reservations(records: Iterable[Dict[str, Any]], tz_offset_hours: int) -> pd.DataFrame:
    """
    Normalize reservation documents.

    Output columns: id, status (lower-case), checkInDate/checkOutDate
    (naive wall-clock datetimes, NaT when missing), roomNumbers (tuple of str),
    channel (lower-case, '' when missing)
    """
    df = _records_to_frame(records, RESERVATION_FIELDS)
    _normalize_identifiers(df, [DocField.ID])
    df[DocField.STATUS.value] = df[DocField.STATUS.value].map(normalize_status)
    df[DocField.CHANNEL.value] = df[DocField.CHANNEL.value].map(normalize_status)
    _normalize_dates(df, tz_offset_hours, "reservations")

    # Older reservations carry a single roomNumber instead of roomNumbers
    if DocField.ROOM_NUMBER.value in df.columns:
        legacy = df[DocField.ROOM_NUMBER.value]
    else:
        legacy = pd.Series([None] * len(df), index=df.index, dtype=object)
    df[DocField.ROOM_NUMBERS.value] = pd.Series(
        [_room_sequence(rooms, room) for rooms, room in zip(df[DocField.ROOM_NUMBERS.value], legacy)],
        index=df.index,
        dtype=object
    )
    return df


def normalize_stays(records: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """
    Normalize stay documents.

    Output columns: id, status (lower-case), roomNumber (str), reservationId (str or None)
    """
    df = _records_to_frame(records, STAY_FIELDS)
    _normalize_identifiers(df, [DocField.ID, DocField.ROOM_NUMBER, DocField.RESERVATION_ID])
    df[DocField.STATUS.value] = df[DocField.STATUS.value].map(normalize_status)
    return df


def normalize_postings(records: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """
    Normalize posting (charge) documents.

    Output columns: id, reservationId, amount/tax/service (float, 0.0 when missing),
    status (lower-case; missing means posted)
    """
    df = _records_to_frame(records, POSTING_FIELDS)
    _normalize_identifiers(df, [DocField.ID, DocField.RESERVATION_ID])
    _normalize_amounts(df, AMOUNT_FIELDS)
    df[DocField.STATUS.value] = df[DocField.STATUS.value].map(
        lambda v: normalize_status(v) or "posted"
    )
    return df


def normalize_payments(records: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """
    Normalize payment documents.

    Output columns: id, reservationId, amount (float), status (lower-case)
    """
    df = _records_to_frame(records, PAYMENT_FIELDS)
    _normalize_identifiers(df, [DocField.ID, DocField.RESERVATION_ID])
    _normalize_amounts(df, [DocField.AMOUNT])
    df[DocField.STATUS.value] = df[DocField.STATUS.value].map(normalize_status)
    return df
