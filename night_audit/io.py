"""
Snapshot loading from the document store.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

import pandas as pd

from config import CollectionConfig, ReconciliationConfig
from storage import DocumentRepository, FieldFilter
from .canonical_fields import DocField
from .errors import AuditLoadError
from .normalize import (
    normalize_rooms,
    normalize_reservations,
    normalize_stays,
    normalize_postings,
    normalize_payments,
)

logger = logging.getLogger(__name__)


@dataclass
class AuditSnapshot:
    """
    Container for one consistent-as-read view of the hotel collections.

    Attributes:
        rooms: Normalized room documents
        reservations: Normalized reservations (audited statuses only)
        stays: Normalized stay documents
        postings: Normalized posting (charge) documents
        payments: Normalized payment documents
        noticed_issue_keys: Keys of issues already acknowledged by an operator
    """

    rooms: pd.DataFrame
    reservations: pd.DataFrame
    stays: pd.DataFrame
    postings: pd.DataFrame
    payments: pd.DataFrame
    noticed_issue_keys: FrozenSet[str] = field(default_factory=frozenset)

    def summary(self) -> Dict[str, int]:
        """Record counts per collection."""
        return {
            "rooms": len(self.rooms),
            "reservations": len(self.reservations),
            "stays": len(self.stays),
            "postings": len(self.postings),
            "payments": len(self.payments),
            "noticed_issues": len(self.noticed_issue_keys),
        }

    @classmethod
    def from_records(
        cls,
        tz_offset_hours: int,
        rooms: Optional[List[Dict[str, Any]]] = None,
        reservations: Optional[List[Dict[str, Any]]] = None,
        stays: Optional[List[Dict[str, Any]]] = None,
        postings: Optional[List[Dict[str, Any]]] = None,
        payments: Optional[List[Dict[str, Any]]] = None,
        noticed_issue_keys: Optional[FrozenSet[str]] = None
    ) -> "AuditSnapshot":
        """Normalize raw document lists into a snapshot."""
        return cls(
            rooms=normalize_rooms(rooms or []),
            reservations=normalize_reservations(reservations or [], tz_offset_hours),
            stays=normalize_stays(stays or []),
            postings=normalize_postings(postings or []),
            payments=normalize_payments(payments or []),
            noticed_issue_keys=frozenset(noticed_issue_keys or ()),
        )


class SnapshotLoader:
    """
    Read the five source collections and the acknowledged issues.

    Reads are dispatched concurrently and joined before anything is
    reconciled. The first failed read aborts the whole load.
    """

    def __init__(
        self,
        repository: DocumentRepository,
        collections: CollectionConfig,
        reconciliation: ReconciliationConfig,
        tz_offset_hours: int,
        max_workers: int = 6
    ):
        self.repository = repository
        self.collections = collections
        self.reconciliation = reconciliation
        self.tz_offset_hours = tz_offset_hours
        self.max_workers = max_workers

    def _queries(self) -> Dict[str, Tuple[str, Optional[FieldFilter]]]:
        return {
            "rooms": (self.collections.rooms, None),
            "reservations": (
                self.collections.reservations,
                FieldFilter(DocField.STATUS.value, "in", list(self.reconciliation.reservation_statuses)),
            ),
            "stays": (self.collections.stays, None),
            "postings": (self.collections.postings, None),
            "payments": (self.collections.payments, None),
            "noticed_issues": (
                self.collections.issues,
                FieldFilter(DocField.NOTICED.value, "==", True),
            ),
        }

    def _fetch(self, collection: str, predicate: Optional[FieldFilter]) -> List[Dict[str, Any]]:
        return self.repository.list_collection(collection, predicate)

    def load_raw(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Fetch every source collection.

        Raises:
            AuditLoadError: If any read fails
        """
        queries = self._queries()
        raw: Dict[str, List[Dict[str, Any]]] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                name: (collection, pool.submit(self._fetch, collection, predicate))
                for name, (collection, predicate) in queries.items()
            }
            for name, (collection, future) in futures.items():
                try:
                    raw[name] = future.result()
                except Exception as e:
                    logger.error(f"[LOADER] Failed to load '{collection}': {e}")
                    for _, pending in futures.values():
                        pending.cancel()
                    raise AuditLoadError(collection, e) from e

        logger.info(
            "[LOADER] Loaded " + ", ".join(f"{name}={len(docs)}" for name, docs in raw.items())
        )
        return raw

    def load(self) -> AuditSnapshot:
        """Fetch and normalize a snapshot."""
        raw = self.load_raw()
        noticed_keys = frozenset(
            str(doc.get(DocField.ID.value)) for doc in raw["noticed_issues"]
            if doc.get(DocField.ID.value) is not None
        )
        return AuditSnapshot.from_records(
            self.tz_offset_hours,
            rooms=raw["rooms"],
            reservations=raw["reservations"],
            stays=raw["stays"],
            postings=raw["postings"],
            payments=raw["payments"],
            noticed_issue_keys=noticed_keys,
        )
