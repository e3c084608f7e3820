"""
Canonical field definitions for the Night Audit engine.

This module is the single source of truth for the document field names read
from the hotel store and the issue types the engine emits. Raw field names
should not be spelled out anywhere else.
"""
from enum import Enum
from typing import Tuple


class DocField(str, Enum):
    """
    Document field names used by the hotel collections.

    Inheriting from str makes these usable as dictionary keys and
    compatible with pandas DataFrame column operations.
    """

    # ==================== Identifiers ====================
    ID = "id"
    """Document key"""

    RESERVATION_ID = "reservationId"
    """Foreign key into reservations"""

    ROOM_NUMBER = "roomNumber"
    """Room identifier (unique per room)"""

    ROOM_NUMBERS = "roomNumbers"
    """Ordered room identifiers attached to a reservation"""

    # ==================== Descriptors ====================
    STATUS = "status"
    """Lifecycle status (lower-cased after normalization)"""

    ROOM_TYPE = "roomType"
    """Room category"""

    CHANNEL = "channel"
    """Booking channel"""

    # ==================== Dates ====================
    CHECK_IN_DATE = "checkInDate"
    """Planned arrival date"""

    CHECK_OUT_DATE = "checkOutDate"
    """Planned departure date"""

    # ==================== Amounts ====================
    AMOUNT = "amount"
    """Base amount of a posting or payment"""

    TAX = "tax"
    """Tax component of a posting"""

    SERVICE = "service"
    """Service charge component of a posting"""

    # ==================== Issue records ====================
    NOTICED = "noticed"
    """Operator acknowledged the issue"""


class IssueType(str, Enum):
    """Data-integrity findings produced by the night audit."""

    STAY_WITHOUT_RESERVATION = "stay_without_reservation"
    STAY_RESERVATION_MISSING = "stay_reservation_missing"
    STAY_PAST_CHECKOUT = "stay_past_checkout"
    STAY_MISSING_CHECKOUT = "stay_missing_checkout"
    CHECKED_IN_WITH_PAST_CHECKIN = "checked_in_with_past_checkin"
    PAYMENTS_MISMATCH = "payments_mismatch"
    POSSIBLE_NOSHOW = "possible_noshow"
    ROOM_OCCUPIED_WITHOUT_STAY = "room_occupied_without_stay"


class StayStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class ReservationStatus(str, Enum):
    BOOKED = "booked"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"
    DELETED = "deleted"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    VACANT_DIRTY = "vacant dirty"
    VACANT_CLEAN = "vacant clean"
    OUT_OF_ORDER = "ooo"


# ==================== Collection schemas ====================

ROOM_FIELDS: Tuple[DocField, ...] = (
    DocField.ID, DocField.ROOM_NUMBER, DocField.ROOM_TYPE, DocField.STATUS,
)

RESERVATION_FIELDS: Tuple[DocField, ...] = (
    DocField.ID, DocField.STATUS, DocField.CHECK_IN_DATE, DocField.CHECK_OUT_DATE,
    DocField.ROOM_NUMBERS, DocField.CHANNEL,
)

STAY_FIELDS: Tuple[DocField, ...] = (
    DocField.ID, DocField.STATUS, DocField.ROOM_NUMBER, DocField.RESERVATION_ID,
)

POSTING_FIELDS: Tuple[DocField, ...] = (
    DocField.ID, DocField.RESERVATION_ID, DocField.AMOUNT, DocField.TAX,
    DocField.SERVICE, DocField.STATUS,
)

PAYMENT_FIELDS: Tuple[DocField, ...] = (
    DocField.ID, DocField.RESERVATION_ID, DocField.AMOUNT, DocField.STATUS,
)

DATE_FIELDS: Tuple[DocField, ...] = (DocField.CHECK_IN_DATE, DocField.CHECK_OUT_DATE)

AMOUNT_FIELDS: Tuple[DocField, ...] = (DocField.AMOUNT, DocField.TAX, DocField.SERVICE)


def get_field_names(fields: Tuple[DocField, ...]) -> Tuple[str, ...]:
    """Convert a tuple of DocField enums to their string values."""
    return tuple(f.value for f in fields)
