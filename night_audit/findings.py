"""
Issue records and de-duplication against acknowledged issues.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

logger = logging.getLogger(__name__)

UNKNOWN_SUBJECT = "?"


def build_issue_key(
    issue_type: str,
    reservation_id: Optional[str] = None,
    stay_id: Optional[str] = None,
    room_number: Optional[str] = None
) -> str:
    """Deterministic key: '{type}:{reservationId|stayId|roomNumber|?}'."""
    subject = reservation_id or stay_id or room_number or UNKNOWN_SUBJECT
    return f"{issue_type}:{subject}"


@dataclass
class Issue:
    """Structured night audit finding."""
    type: str
    message: str
    reservation_id: Optional[str] = None
    stay_id: Optional[str] = None
    room_number: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    noticed: bool = False

    @property
    def issue_key(self) -> str:
        return build_issue_key(self.type, self.reservation_id, self.stay_id, self.room_number)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored/returned document shape."""
        d: Dict[str, Any] = {
            "issueKey": self.issue_key,
            "type": self.type,
            "message": self.message,
        }
        if self.reservation_id is not None:
            d["reservationId"] = self.reservation_id
        if self.stay_id is not None:
            d["stayId"] = self.stay_id
        if self.room_number is not None:
            d["roomNumber"] = self.room_number
        d.update(self.details)
        d["noticed"] = self.noticed
        return d


def filter_new_issues(issues: Iterable[Issue], noticed_keys: FrozenSet[str]) -> List[Issue]:
    """
    Drop issues an operator has already acknowledged, and repeats of a key.

    Several stays of one multi-room reservation can raise the same issue;
    only the first is kept so each key is counted and persisted once.

    Args:
        issues: Issues produced by the rules
        noticed_keys: Keys of issue documents flagged noticed=true

    Returns:
        Issues whose key has not been acknowledged, first occurrence per key,
        in original order
    """
    new_issues = []
    seen = set()
    suppressed = 0
    duplicates = 0
    for issue in issues:
        key = issue.issue_key
        if key in noticed_keys:
            suppressed += 1
            continue
        if key in seen:
            duplicates += 1
            continue
        seen.add(key)
        new_issues.append(issue)

    if suppressed:
        logger.info(f"[DEDUP] Suppressed {suppressed} acknowledged issue(s)")
    if duplicates:
        logger.info(f"[DEDUP] Collapsed {duplicates} repeated issue key(s)")
    return new_issues
