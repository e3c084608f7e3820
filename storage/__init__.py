"""
Document store backends for the night audit.
"""
import logging

from config import StorageConfig
from .repository import (
    DocumentRepository,
    FieldFilter,
    WriteOp,
    StorageError,
    DocumentReadError,
    DocumentWriteError,
    BatchWriteError,
    merge_document,
)
from .memory import InMemoryRepository
from .local import LocalJsonRepository
from .firestore import FirestoreRestRepository

logger = logging.getLogger(__name__)

__all__ = [
    "DocumentRepository",
    "FieldFilter",
    "WriteOp",
    "StorageError",
    "DocumentReadError",
    "DocumentWriteError",
    "BatchWriteError",
    "merge_document",
    "InMemoryRepository",
    "LocalJsonRepository",
    "FirestoreRestRepository",
    "get_repository",
]


def get_repository(storage_config: StorageConfig) -> DocumentRepository:
    """Build the configured repository, falling back to local files when Firestore is not configured."""
    backend = storage_config.backend

    if backend == "firestore":
        if storage_config.is_firestore_configured():
            return FirestoreRestRepository(
                project_id=storage_config.firestore_project_id,
                access_token=storage_config.firestore_access_token,
                database=storage_config.firestore_database,
                timeout=storage_config.request_timeout
            )
        logger.warning("[STORAGE] Firestore backend selected but not configured; using local filesystem")
        backend = "local"

    if backend == "memory":
        return InMemoryRepository()

    if backend == "local":
        return LocalJsonRepository(storage_config.base_dir)

    raise ValueError(f"Unknown storage backend '{storage_config.backend}'")
