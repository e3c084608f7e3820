"""
Rule framework and rule implementations.
Extensible plugin-style architecture for night audit checks.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

import pandas as pd

from config import ReconciliationConfig
from .canonical_fields import DocField, IssueType, ReservationStatus, RoomStatus, StayStatus
from .findings import Issue
from .io import AuditSnapshot
from .normalize import is_blank


def _fmt_day(value: Any) -> str:
    return value.strftime('%Y-%m-%d')


def _fmt_amount(value: float) -> str:
    return f"{value:.2f}"


@dataclass
class RuleContext:
    """
    Context object passed to rules containing the loaded snapshot.

    Lookups shared by several rules (open stays, reservations by id) are
    built once here.
    """
    business_day: datetime
    business_day_key: str
    snapshot: AuditSnapshot
    folio_totals: pd.DataFrame
    reconciliation: ReconciliationConfig

    open_stays: List[Dict[str, Any]] = field(init=False)
    reservations_by_id: Dict[str, Dict[str, Any]] = field(init=False)

    def __post_init__(self):
        stays = self.snapshot.stays
        self.open_stays = stays[stays[DocField.STATUS.value] == StayStatus.OPEN.value].to_dict('records')

        self.reservations_by_id = {}
        for record in self.snapshot.reservations.to_dict('records'):
            reservation_id = record.get(DocField.ID.value)
            if not is_blank(reservation_id):
                self.reservations_by_id[reservation_id] = record

    def reservations_with_status(self, status: str) -> List[Dict[str, Any]]:
        reservations = self.snapshot.reservations
        return reservations[reservations[DocField.STATUS.value] == status].to_dict('records')

    def linked_reservation(self, stay: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Reservation an open stay points at, if it was loaded."""
        reservation_id = stay.get(DocField.RESERVATION_ID.value)
        if is_blank(reservation_id):
            return None
        return self.reservations_by_id.get(reservation_id)

    def open_stay_rooms(self) -> Set[str]:
        return {
            stay[DocField.ROOM_NUMBER.value] for stay in self.open_stays
            if not is_blank(stay.get(DocField.ROOM_NUMBER.value))
        }


class Rule(ABC):
    """
    Abstract base class for night audit rules.

    Each rule emits exactly one issue type. Rules are deterministic and never
    raise for bad data; bad data is what they report.
    """

    @property
    @abstractmethod
    def rule_id(self) -> str:
        """Unique identifier for this rule (the issue type it emits)."""
        pass

    @property
    @abstractmethod
    def rule_name(self) -> str:
        """Human-readable name for this rule."""
        pass

    @abstractmethod
    def evaluate(self, context: RuleContext) -> List[Issue]:
        """Evaluate rule against context and return the issues found."""
        pass


class StayWithoutReservationRule(Rule):
    """Open stay with no reservation link at all."""

    @property
    def rule_id(self) -> str:
        return IssueType.STAY_WITHOUT_RESERVATION.value

    @property
    def rule_name(self) -> str:
        return "Open stay without reservation"

    def evaluate(self, context: RuleContext) -> List[Issue]:
        issues = []
        for stay in context.open_stays:
            if is_blank(stay.get(DocField.RESERVATION_ID.value)):
                stay_id = stay[DocField.ID.value]
                issues.append(Issue(
                    type=self.rule_id,
                    message=f"Open stay {stay_id} ({stay.get(DocField.ROOM_NUMBER.value)}) missing reservationId",
                    stay_id=stay_id,
                ))
        return issues


class StayReservationMissingRule(Rule):
    """Open stay pointing at a reservation that was not loaded."""

    @property
    def rule_id(self) -> str:
        return IssueType.STAY_RESERVATION_MISSING.value

    @property
    def rule_name(self) -> str:
        return "Open stay references missing reservation"

    def evaluate(self, context: RuleContext) -> List[Issue]:
        issues = []
        for stay in context.open_stays:
            reservation_id = stay.get(DocField.RESERVATION_ID.value)
            if is_blank(reservation_id) or reservation_id in context.reservations_by_id:
                continue
            stay_id = stay[DocField.ID.value]
            issues.append(Issue(
                type=self.rule_id,
                message=f"Stay {stay_id} references missing reservation {reservation_id}",
                stay_id=stay_id,
                reservation_id=reservation_id,
            ))
        return issues


class StayPastCheckoutRule(Rule):
    """Guest still in house after the reservation's check-out date."""

    @property
    def rule_id(self) -> str:
        return IssueType.STAY_PAST_CHECKOUT.value

    @property
    def rule_name(self) -> str:
        return "Open stay past check-out"

    def evaluate(self, context: RuleContext) -> List[Issue]:
        issues = []
        for stay in context.open_stays:
            reservation = context.linked_reservation(stay)
            if reservation is None:
                continue
            check_out = reservation.get(DocField.CHECK_OUT_DATE.value)
            if is_blank(check_out) or not check_out < context.business_day:
                continue
            stay_id = stay[DocField.ID.value]
            issues.append(Issue(
                type=self.rule_id,
                message=(
                    f"Stay {stay_id} in room {stay.get(DocField.ROOM_NUMBER.value)} has check-out "
                    f"{_fmt_day(check_out)} < business day {context.business_day_key}"
                ),
                stay_id=stay_id,
                reservation_id=reservation[DocField.ID.value],
                details={"checkOut": _fmt_day(check_out)},
            ))
        return issues


class StayMissingCheckoutRule(Rule):
    """Open stay whose reservation has no check-out date."""

    @property
    def rule_id(self) -> str:
        return IssueType.STAY_MISSING_CHECKOUT.value

    @property
    def rule_name(self) -> str:
        return "Open stay without check-out date"

    def evaluate(self, context: RuleContext) -> List[Issue]:
        issues = []
        for stay in context.open_stays:
            reservation = context.linked_reservation(stay)
            if reservation is None or not is_blank(reservation.get(DocField.CHECK_OUT_DATE.value)):
                continue
            stay_id = stay[DocField.ID.value]
            reservation_id = reservation[DocField.ID.value]
            issues.append(Issue(
                type=self.rule_id,
                message=(
                    f"Stay {stay_id} in room {stay.get(DocField.ROOM_NUMBER.value)} has no check-out "
                    f"date on reservation {reservation_id}"
                ),
                stay_id=stay_id,
                reservation_id=reservation_id,
            ))
        return issues


class CheckedInWithPastCheckinRule(Rule):
    """Checked-in reservation whose check-in date is before the business day."""

    @property
    def rule_id(self) -> str:
        return IssueType.CHECKED_IN_WITH_PAST_CHECKIN.value

    @property
    def rule_name(self) -> str:
        return "Checked-in with stale check-in date"

    def evaluate(self, context: RuleContext) -> List[Issue]:
        issues = []
        for reservation in context.reservations_with_status(ReservationStatus.CHECKED_IN.value):
            check_in = reservation.get(DocField.CHECK_IN_DATE.value)
            if is_blank(check_in) or not check_in < context.business_day:
                continue
            reservation_id = reservation[DocField.ID.value]
            issues.append(Issue(
                type=self.rule_id,
                message=(
                    f"Reservation {reservation_id} is checked-in but has check-in "
                    f"{_fmt_day(check_in)} < business day {context.business_day_key}"
                ),
                reservation_id=reservation_id,
            ))
        return issues


class PaymentsMismatchRule(Rule):
    """Folio whose postings and payments differ by more than the tolerance."""

    @property
    def rule_id(self) -> str:
        return IssueType.PAYMENTS_MISMATCH.value

    @property
    def rule_name(self) -> str:
        return "Postings vs payments mismatch"

    def evaluate(self, context: RuleContext) -> List[Issue]:
        from .reconcile import POSTINGS_TOTAL, PAYMENTS_TOTAL, FOLIO_STATUS

        issues = []
        mismatched = context.folio_totals[
            context.folio_totals[FOLIO_STATUS] == context.reconciliation.status_mismatch
        ]
        for reservation_id, folio in mismatched.iterrows():
            postings_total = float(folio[POSTINGS_TOTAL])
            payments_total = float(folio[PAYMENTS_TOTAL])
            issues.append(Issue(
                type=self.rule_id,
                message=(
                    f"Reservation {reservation_id} postings {_fmt_amount(postings_total)} "
                    f"!= payments {_fmt_amount(payments_total)}"
                ),
                reservation_id=reservation_id,
                details={"postingsTotal": postings_total, "paymentsTotal": payments_total},
            ))
        return issues


class PossibleNoShowRule(Rule):
    """Reservation still booked after its check-in date."""

    @property
    def rule_id(self) -> str:
        return IssueType.POSSIBLE_NOSHOW.value

    @property
    def rule_name(self) -> str:
        return "Possible no-show"

    def evaluate(self, context: RuleContext) -> List[Issue]:
        issues = []
        for reservation in context.reservations_with_status(ReservationStatus.BOOKED.value):
            check_in = reservation.get(DocField.CHECK_IN_DATE.value)
            if is_blank(check_in) or not check_in < context.business_day:
                continue
            reservation_id = reservation[DocField.ID.value]
            issues.append(Issue(
                type=self.rule_id,
                message=(
                    f"Reservation {reservation_id} with check-in {_fmt_day(check_in)} is still booked "
                    f"(past business day). Mark as no-show?"
                ),
                reservation_id=reservation_id,
            ))
        return issues


class RoomOccupiedWithoutStayRule(Rule):
    """Room marked occupied with no open stay in it."""

    @property
    def rule_id(self) -> str:
        return IssueType.ROOM_OCCUPIED_WITHOUT_STAY.value

    @property
    def rule_name(self) -> str:
        return "Occupied room without open stay"

    def evaluate(self, context: RuleContext) -> List[Issue]:
        issues = []
        occupied_rooms = context.open_stay_rooms()
        rooms = context.snapshot.rooms
        occupied = rooms[rooms[DocField.STATUS.value] == RoomStatus.OCCUPIED.value]
        for room in occupied.to_dict('records'):
            room_number = room.get(DocField.ROOM_NUMBER.value)
            if not is_blank(room_number) and room_number in occupied_rooms:
                continue
            issues.append(Issue(
                type=self.rule_id,
                message=f"Room {room_number} shows Occupied but no open stay found.",
                room_number=None if is_blank(room_number) else room_number,
            ))
        return issues


class RuleRegistry:
    """
    Central registry for night audit rules.

    Adding a new rule:
    1. Create a Rule subclass
    2. Register it here
    3. No other code changes needed
    """

    def __init__(self):
        self._rules: List[Rule] = []

    def register(self, rule: Rule):
        """Register a rule."""
        self._rules.append(rule)

    def get_all_rules(self) -> List[Rule]:
        """Get all registered rules."""
        return self._rules.copy()

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        """Get rule by ID."""
        for rule in self._rules:
            if rule.rule_id == rule_id:
                return rule
        return None

    def evaluate_all(self, context: RuleContext) -> List[Issue]:
        """Evaluate all registered rules and aggregate issues."""
        all_issues = []
        for rule in self._rules:
            all_issues.extend(rule.evaluate(context))
        return all_issues


# Create global registry and register the standard checks
default_registry = RuleRegistry()
default_registry.register(StayWithoutReservationRule())
default_registry.register(StayReservationMissingRule())
default_registry.register(StayPastCheckoutRule())
default_registry.register(StayMissingCheckoutRule())
default_registry.register(CheckedInWithPastCheckinRule())
default_registry.register(PaymentsMismatchRule())
default_registry.register(PossibleNoShowRule())
default_registry.register(RoomOccupiedWithoutStayRule())
