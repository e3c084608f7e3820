"""
Firestore document store over the REST v1 API.

Uses plain `requests` calls with a bearer token:
- listings:      POST {documents}:runQuery
- single read:   GET  {documents}/{collection}/{key}
- single write:  PATCH {documents}/{collection}/{key} (updateMask for merge)
- atomic batch:  POST {documents}:commit
"""
import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import requests

from .repository import (
    DocumentRepository,
    FieldFilter,
    WriteOp,
    BatchWriteError,
    DocumentReadError,
    DocumentWriteError,
)

logger = logging.getLogger(__name__)

FIRESTORE_API = "https://firestore.googleapis.com/v1"

OPERATORS = {
    "==": "EQUAL",
    "!=": "NOT_EQUAL",
    "<": "LESS_THAN",
    "<=": "LESS_THAN_OR_EQUAL",
    ">": "GREATER_THAN",
    ">=": "GREATER_THAN_OR_EQUAL",
    "in": "IN",
}

_SIMPLE_FIELD = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")


def encode_value(value: Any) -> Dict[str, Any]:
    """Convert a Python value into a Firestore typed Value."""
    if value is None:
        return {"nullValue": None}
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        stamp = value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
        return {"timestampValue": stamp}
    if isinstance(value, date):
        return {"stringValue": value.isoformat()}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple, set, frozenset)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot encode value of type {type(value).__name__} for Firestore")


def encode_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(key): encode_value(value) for key, value in data.items()}


def decode_value(value: Dict[str, Any]) -> Any:
    """Convert a Firestore typed Value back into a Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        # ISO string; the night audit normalizer parses it
        return value["timestampValue"]
    if "referenceValue" in value:
        return value["referenceValue"]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "geoPointValue" in value:
        return value["geoPointValue"]
    if "bytesValue" in value:
        return value["bytesValue"]
    return None


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {key: decode_value(value) for key, value in fields.items()}


def quote_field_path(segment: str) -> str:
    """Backtick-quote a field path segment unless it is a simple identifier."""
    if _SIMPLE_FIELD.match(segment):
        return segment
    escaped = segment.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


def merge_field_paths(data: Dict[str, Any], prefix: str = "") -> List[str]:
    """
    Build the update mask for a merge write.

    Nested maps expand to their leaf paths so that sibling fields already in
    the stored map are preserved.
    """
    paths = []
    for key, value in data.items():
        path = f"{prefix}{quote_field_path(str(key))}"
        if isinstance(value, dict) and value:
            paths.extend(merge_field_paths(value, prefix=f"{path}."))
        else:
            paths.append(path)
    return paths


class FirestoreRestRepository(DocumentRepository):
    """Document repository backed by the Firestore REST API."""

    def __init__(self, project_id: str, access_token: str, database: str = "(default)", timeout: int = 30):
        if not project_id:
            raise ValueError("Firestore project id is required")
        self.project_id = project_id
        self.database = database
        self.access_token = access_token
        self.timeout = timeout
        self.database_path = f"projects/{project_id}/databases/{database}"
        self.documents_url = f"{FIRESTORE_API}/{self.database_path}/documents"
        logger.info(f"[FIRESTORE] Using project '{project_id}', database '{database}'")

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.access_token}',
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        }

    def _document_name(self, collection: str, key: str) -> str:
        return f"{self.database_path}/documents/{collection}/{key}"

    def _document_url(self, collection: str, key: str) -> str:
        return f"{self.documents_url}/{quote(collection, safe='')}/{quote(key, safe='')}"

    @staticmethod
    def _document_from_response(document: Dict[str, Any]) -> Dict[str, Any]:
        data = decode_fields(document.get("fields", {}))
        data["id"] = document["name"].rsplit("/", 1)[-1]
        return data

    def _build_query(self, name: str, predicate: Optional[FieldFilter]) -> Dict[str, Any]:
        structured_query: Dict[str, Any] = {"from": [{"collectionId": name}]}
        if predicate is not None:
            value = list(predicate.value) if predicate.op == "in" else predicate.value
            structured_query["where"] = {
                "fieldFilter": {
                    "field": {"fieldPath": quote_field_path(predicate.field)},
                    "op": OPERATORS[predicate.op],
                    "value": encode_value(value),
                }
            }
        return {"structuredQuery": structured_query}

    def list_collection(self, name: str, predicate: Optional[FieldFilter] = None) -> List[Dict[str, Any]]:
        url = f"{self.documents_url}:runQuery"
        try:
            response = requests.post(
                url,
                json=self._build_query(name, predicate),
                headers=self._headers(),
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"[FIRESTORE] Network error querying '{name}': {e}")
            raise DocumentReadError(f"Failed to query collection '{name}': {e}") from e

        if response.status_code != 200:
            logger.error(f"[FIRESTORE] Query on '{name}' failed: {response.status_code} - {response.text}")
            raise DocumentReadError(
                f"Failed to query collection '{name}': HTTP {response.status_code}"
            )

        # runQuery streams one entry per result; entries without 'document' carry only readTime
        documents = [
            self._document_from_response(entry["document"])
            for entry in response.json()
            if entry.get("document")
        ]
        logger.debug(f"[FIRESTORE] Listed {len(documents)} documents from '{name}'")
        return documents

    def get_document(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        try:
            response = requests.get(
                self._document_url(collection, key),
                headers=self._headers(),
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise DocumentReadError(f"Failed to read document '{collection}/{key}': {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.error(f"[FIRESTORE] Read of '{collection}/{key}' failed: {response.status_code} - {response.text}")
            raise DocumentReadError(
                f"Failed to read document '{collection}/{key}': HTTP {response.status_code}"
            )
        return self._document_from_response(response.json())

    def set_document(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> None:
        params = None
        if merge:
            params = [("updateMask.fieldPaths", path) for path in merge_field_paths(data)]
        try:
            response = requests.patch(
                self._document_url(collection, key),
                json={"fields": encode_fields(data)},
                params=params,
                headers=self._headers(),
                timeout=self.timeout
            )
        except (requests.exceptions.RequestException, TypeError) as e:
            raise DocumentWriteError(f"Failed to write document '{collection}/{key}': {e}") from e

        if response.status_code != 200:
            logger.error(f"[FIRESTORE] Write of '{collection}/{key}' failed: {response.status_code} - {response.text}")
            raise DocumentWriteError(
                f"Failed to write document '{collection}/{key}': HTTP {response.status_code}"
            )

    def _build_write(self, op: WriteOp) -> Dict[str, Any]:
        write: Dict[str, Any] = {
            "update": {
                "name": self._document_name(op.collection, op.key),
                "fields": encode_fields(op.data),
            }
        }
        if op.merge:
            write["updateMask"] = {"fieldPaths": merge_field_paths(op.data)}
        return write

    def write_batch(self, ops: Sequence[WriteOp]) -> None:
        try:
            body = {"writes": [self._build_write(op) for op in ops]}
            response = requests.post(
                f"{self.documents_url}:commit",
                json=body,
                headers=self._headers(),
                timeout=self.timeout
            )
        except (requests.exceptions.RequestException, TypeError) as e:
            raise BatchWriteError(f"Batch of {len(ops)} writes failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"[FIRESTORE] Commit of {len(ops)} writes failed: {response.status_code} - {response.text}")
            raise BatchWriteError(f"Batch of {len(ops)} writes failed: HTTP {response.status_code}")

        logger.debug(f"[FIRESTORE] Committed batch of {len(ops)} writes")
