"""
In-memory document store, used for tests and local previews.
"""
import logging
import threading
from copy import deepcopy
from typing import Any, Dict, List, Optional, Sequence

from .repository import (
    DocumentRepository,
    FieldFilter,
    WriteOp,
    BatchWriteError,
    merge_document,
)

logger = logging.getLogger(__name__)


class InMemoryRepository(DocumentRepository):
    """
    Thread-safe dict-of-dicts store.

    Structure: {collection: {key: document}}. Documents are deep-copied on
    the way in and out so callers never share state with the store.
    """

    def __init__(self, initial: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._lock = threading.Lock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = deepcopy(initial) if initial else {}

    def list_collection(self, name: str, predicate: Optional[FieldFilter] = None) -> List[Dict[str, Any]]:
        with self._lock:
            documents = self._collections.get(name, {})
            results = []
            for key, data in documents.items():
                if predicate is not None and not predicate.matches(data):
                    continue
                results.append({**deepcopy(data), "id": key})
        logger.debug(f"[STORAGE] Listed {len(results)} documents from '{name}'")
        return results

    def get_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._collections.get(collection, {}).get(key)
            if data is None:
                return None
            return {**deepcopy(data), "id": key}

    def set_document(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> None:
        with self._lock:
            self._apply(self._collections, WriteOp(collection, key, data, merge))

    def write_batch(self, ops: Sequence[WriteOp]) -> None:
        with self._lock:
            staged = deepcopy(self._collections)
            try:
                for op in ops:
                    self._apply(staged, op)
            except (TypeError, ValueError) as e:
                raise BatchWriteError(f"Batch of {len(ops)} writes rejected: {e}") from e
            self._collections = staged
        logger.debug(f"[STORAGE] Committed batch of {len(ops)} writes")

    @staticmethod
    def _apply(collections: Dict[str, Dict[str, Dict[str, Any]]], op: WriteOp) -> None:
        if not op.key:
            raise ValueError(f"Document key is required for collection '{op.collection}'")
        documents = collections.setdefault(op.collection, {})
        if op.merge:
            documents[op.key] = merge_document(documents.get(op.key), op.data)
        else:
            documents[op.key] = deepcopy(op.data)

    def seed(self, collection: str, documents: Dict[str, Dict[str, Any]]) -> None:
        """Load documents into a collection, replacing any with the same key."""
        with self._lock:
            target = self._collections.setdefault(collection, {})
            for key, data in documents.items():
                target[key] = deepcopy(data)

    def count(self, collection: str) -> int:
        """Number of documents in a collection."""
        with self._lock:
            return len(self._collections.get(collection, {}))
