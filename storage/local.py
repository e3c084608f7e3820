"""
Local filesystem document store.

Structure:
base_dir/
    <collection>/
        <quoted key>.json
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote, unquote

from .repository import (
    DocumentRepository,
    FieldFilter,
    WriteOp,
    BatchWriteError,
    DocumentReadError,
    DocumentWriteError,
    merge_document,
)

logger = logging.getLogger(__name__)


class LocalJsonRepository(DocumentRepository):
    """Persist each document as a JSON file, one directory per collection."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"[STORAGE] Using local filesystem: {self.base_dir}")

    def _collection_dir(self, collection: str) -> Path:
        return self.base_dir / quote(collection, safe='')

    def _document_path(self, collection: str, key: str) -> Path:
        # Issue keys contain ':' which is not portable in file names
        return self._collection_dir(collection) / f"{quote(key, safe='')}.json"

    def _load_json(self, path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def list_collection(self, name: str, predicate: Optional[FieldFilter] = None) -> List[Dict[str, Any]]:
        collection_dir = self._collection_dir(name)
        if not collection_dir.exists():
            return []

        results = []
        try:
            for path in sorted(collection_dir.glob("*.json")):
                data = self._load_json(path)
                if predicate is not None and not predicate.matches(data):
                    continue
                results.append({**data, "id": unquote(path.stem)})
        except (OSError, json.JSONDecodeError) as e:
            raise DocumentReadError(f"Failed to read collection '{name}': {e}") from e

        logger.debug(f"[STORAGE] Listed {len(results)} documents from '{name}'")
        return results

    def get_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        path = self._document_path(collection, key)
        if not path.exists():
            return None
        try:
            return {**self._load_json(path), "id": key}
        except (OSError, json.JSONDecodeError) as e:
            raise DocumentReadError(f"Failed to read document '{collection}/{key}': {e}") from e

    def set_document(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> None:
        op = WriteOp(collection, key, data, merge)
        try:
            staged = self._stage(op)
            os.replace(staged, self._document_path(collection, key))
        except (OSError, TypeError, ValueError) as e:
            raise DocumentWriteError(f"Failed to write document '{op.path}': {e}") from e

    def write_batch(self, ops: Sequence[WriteOp]) -> None:
        """
        Stage every document to a temp file first, then move them into place.

        A failure while staging (serialization, disk) leaves the store untouched.
        """
        staged = []
        try:
            for op in ops:
                staged.append((self._stage(op), self._document_path(op.collection, op.key)))
        except (OSError, TypeError, ValueError) as e:
            for temp_path, _ in staged:
                Path(temp_path).unlink(missing_ok=True)
            raise BatchWriteError(f"Batch of {len(ops)} writes rejected: {e}") from e

        try:
            for temp_path, final_path in staged:
                os.replace(temp_path, final_path)
        except OSError as e:
            raise BatchWriteError(f"Batch commit interrupted: {e}") from e

        logger.debug(f"[STORAGE] Committed batch of {len(ops)} writes to {self.base_dir}")

    def _stage(self, op: WriteOp) -> str:
        """Write the resulting document to a temp file next to its final path."""
        if not op.key:
            raise ValueError(f"Document key is required for collection '{op.collection}'")

        final_path = self._document_path(op.collection, op.key)
        final_path.parent.mkdir(parents=True, exist_ok=True)

        document = op.data
        if op.merge and final_path.exists():
            document = merge_document(self._load_json(final_path), op.data)

        fd, temp_path = tempfile.mkstemp(dir=final_path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
        except (TypeError, ValueError):
            Path(temp_path).unlink(missing_ok=True)
            raise
        return temp_path
