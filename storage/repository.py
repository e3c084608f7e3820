"""
Document store contract used by the night audit.

Every backend exposes the same four operations: list a collection (optionally
filtered on one field), read one document, write one document (replace or
merge), and write a batch of documents all-or-nothing.
"""
from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence


class StorageError(Exception):
    """Base error for document store failures."""


class DocumentReadError(StorageError):
    """Raised when a collection or document cannot be read."""


class DocumentWriteError(StorageError):
    """Raised when a single document write fails."""


class BatchWriteError(StorageError):
    """Raised when an atomic batch could not be committed."""


SUPPORTED_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in")


@dataclass(frozen=True)
class FieldFilter:
    """Single-field predicate: equality, range or `in` membership."""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in SUPPORTED_OPERATORS:
            raise ValueError(f"Unsupported filter operator '{self.op}'. Supported: {SUPPORTED_OPERATORS}")
        if self.op == "in" and not isinstance(self.value, (list, tuple, set, frozenset)):
            raise ValueError("Operator 'in' requires a list of values")

    def matches(self, document: Dict[str, Any]) -> bool:
        """Evaluate the predicate against a document (missing field never matches)."""
        if self.field not in document:
            return False
        actual = document[self.field]

        if self.op == "==":
            return actual == self.value
        if self.op == "!=":
            return actual != self.value
        if self.op == "in":
            return actual in self.value

        try:
            if self.op == "<":
                return actual < self.value
            if self.op == "<=":
                return actual <= self.value
            if self.op == ">":
                return actual > self.value
            return actual >= self.value
        except TypeError:
            # Mixed types are not comparable, same as a typed store
            return False


@dataclass(frozen=True)
class WriteOp:
    """A single create-or-replace (or merge) write at a known key."""
    collection: str
    key: str
    data: Dict[str, Any] = field(default_factory=dict)
    merge: bool = False

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.key}"


def merge_document(existing: Optional[Dict[str, Any]], data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge `data` into `existing` the way a document store merge-write does.

    Nested maps are merged recursively; every other value (lists included)
    replaces what was there. Fields absent from `data` are preserved.
    """
    result = deepcopy(existing) if existing else {}
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_document(result[key], value)
        else:
            result[key] = deepcopy(value)
    return result


class DocumentRepository(ABC):
    """Abstract document store."""

    @abstractmethod
    def list_collection(self, name: str, predicate: Optional[FieldFilter] = None) -> List[Dict[str, Any]]:
        """
        Read all documents of a collection.

        Returns:
            List of document dicts, each carrying its key under 'id'.

        Raises:
            DocumentReadError: If the collection cannot be read
        """
        pass

    @abstractmethod
    def get_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        """Read one document (with 'id'), or None if it does not exist."""
        pass

    @abstractmethod
    def set_document(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> None:
        """
        Create or overwrite a document; with merge=True extend the existing one.

        Raises:
            DocumentWriteError: If the write fails
        """
        pass

    @abstractmethod
    def write_batch(self, ops: Sequence[WriteOp]) -> None:
        """
        Apply all writes or none of them.

        Raises:
            BatchWriteError: If the batch could not be committed
        """
        pass
