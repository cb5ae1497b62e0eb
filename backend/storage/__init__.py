"""
Document Storage Layer

RESPONSIBILITY: Key-value document persistence for charts and nodes
ALLOWED INPUTS: Plain JSON-compatible documents addressed by slash paths
OUTPUTS: Document snapshots (copies, never live references)

WHAT THIS LAYER MUST NOT DO:
============================
- Interpret node content or chart structure
- Cascade deletes (callers delete subcollections explicitly)
- Hand out references to its internal state

PATHS:
======
Collections and documents alternate, Firestore style:
    charts                      -> collection
    charts/acme-corp            -> document
    charts/acme-corp/nodes      -> collection
    charts/acme-corp/nodes/7    -> document
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import copy
import json
import logging
import os
import tempfile
import threading


logger = logging.getLogger(__name__)

# Per-commit operation limit enforced by the backend (Firestore uses 500).
DEFAULT_MAX_BATCH_SIZE = 500


# =============================================================================
# ERRORS
# =============================================================================

class StoreError(Exception):
    """Any failure of the document store (I/O, limits, transport)."""


class DocumentNotFound(StoreError):
    """An update targeted a document that does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Document not found: {path}")
        self.path = path


class BatchTooLarge(StoreError):
    """A batch exceeded the store's per-commit operation limit."""


def _split(path: str) -> Tuple[str, str]:
    """Split a document path into (collection path, document id)."""
    path = path.strip("/")
    if "/" not in path:
        raise ValueError(f"Not a document path: {path!r}")
    collection, doc_id = path.rsplit("/", 1)
    return collection, doc_id


# =============================================================================
# STORAGE INTERFACES (Dependency Inversion)
# =============================================================================

class WriteBatch:
    """
    Accumulates writes and applies them all-or-nothing on commit().
    """

    def __init__(self, store: DocumentStore):
        self._store = store
        self._ops: List[Tuple[str, str, Optional[Dict[str, Any]], bool]] = []
        self._committed = False

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> WriteBatch:
        self._ops.append(("set", path, dict(data), merge))
        return self

    def update(self, path: str, data: Dict[str, Any]) -> WriteBatch:
        self._ops.append(("update", path, dict(data), True))
        return self

    def delete(self, path: str) -> WriteBatch:
        self._ops.append(("delete", path, None, False))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    def commit(self) -> int:
        """Apply all writes. Returns the number of operations applied."""
        if self._committed:
            raise StoreError("Batch already committed")
        if len(self._ops) > self._store.max_batch_size:
            raise BatchTooLarge(
                f"Batch of {len(self._ops)} writes exceeds limit {self._store.max_batch_size}"
            )
        self._store._apply(self._ops)
        self._committed = True
        return len(self._ops)


class DocumentStore:
    """
    Abstract document store interface.

    Implementations can use different storage systems (memory, file,
    remote service) while keeping the same document semantics.
    """

    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE

    def get_collection(self, path: str) -> Dict[str, Dict[str, Any]]:
        """All documents of a collection, keyed by document id."""
        raise NotImplementedError

    def get_document(self, path: str) -> Optional[Dict[str, Any]]:
        """A single document, or None if absent."""
        raise NotImplementedError

    def set_document(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        self.batch().set(path, data, merge=merge).commit()

    def update_document(self, path: str, data: Dict[str, Any]) -> None:
        self.batch().update(path, data).commit()

    def delete_document(self, path: str) -> None:
        self.batch().delete(path).commit()

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def _apply(self, ops) -> None:
        raise NotImplementedError


# =============================================================================
# IN-MEMORY STORE (Reference Implementation)
# =============================================================================

class InMemoryDocumentStore(DocumentStore):
    """
    In-memory implementation of the document store.

    Suitable for testing and single-process deployments.
    """

    def __init__(self, max_batch_size: int = DEFAULT_MAX_BATCH_SIZE):
        self.max_batch_size = max_batch_size
        # collection path -> {doc_id -> document}
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self.commit_count = 0

    def get_collection(self, path: str) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            docs = self._collections.get(path.strip("/"), {})
            return copy.deepcopy(docs)

    def get_document(self, path: str) -> Optional[Dict[str, Any]]:
        collection, doc_id = _split(path)
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def _apply(self, ops) -> None:
        with self._lock:
            staged = copy.deepcopy(self._collections)
            for kind, path, data, merge in ops:
                collection, doc_id = _split(path)
                docs = staged.setdefault(collection, {})
                if kind == "delete":
                    docs.pop(doc_id, None)
                elif kind == "update":
                    if doc_id not in docs:
                        raise DocumentNotFound(path)
                    docs[doc_id].update(copy.deepcopy(data))
                elif merge and doc_id in docs:
                    docs[doc_id].update(copy.deepcopy(data))
                else:
                    docs[doc_id] = copy.deepcopy(data)
            self._persist(staged)
            self._collections = staged
            self.commit_count += 1

    def _persist(self, collections) -> None:
        """Hook for persistent subclasses; raising aborts the commit."""


# =============================================================================
# FILE-BASED STORE
# =============================================================================

class JsonFileDocumentStore(InMemoryDocumentStore):
    """
    File-backed document store.

    The whole store lives in one JSON file that is rewritten atomically
    (write to temp file, then rename) after every commit. Suitable for
    persistent storage without a database.
    """

    def __init__(self, file_path: str, max_batch_size: int = DEFAULT_MAX_BATCH_SIZE):
        super().__init__(max_batch_size=max_batch_size)
        self._file_path = file_path
        directory = os.path.dirname(os.path.abspath(file_path))
        os.makedirs(directory, exist_ok=True)
        self._load()

    @property
    def file_path(self) -> str:
        return self._file_path

    def _load(self) -> None:
        if not os.path.exists(self._file_path):
            return
        try:
            with open(self._file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to load store from {self._file_path}: {e}") from e
        self._collections = data.get("collections", {})
        logger.info("Loaded document store from %s", self._file_path)

    def _persist(self, collections) -> None:
        directory = os.path.dirname(os.path.abspath(self._file_path))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump({"collections": collections}, f, indent=2, default=str)
            os.replace(tmp_path, self._file_path)
        except OSError as e:
            raise StoreError(f"Failed to write store to {self._file_path}: {e}") from e


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class StorageConfig:
    """Configuration for document storage."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_path: Optional[str] = None
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE


def create_store(config: Optional[StorageConfig] = None) -> DocumentStore:
    """Create a document store based on configuration."""
    config = config or StorageConfig()
    if config.backend_type == "file" and config.storage_path:
        return JsonFileDocumentStore(config.storage_path, max_batch_size=config.max_batch_size)
    if config.backend_type not in ("memory", "file"):
        raise ValueError(f"Unknown storage backend: {config.backend_type}")
    return InMemoryDocumentStore(max_batch_size=config.max_batch_size)


__all__ = [
    'StoreError', 'DocumentNotFound', 'BatchTooLarge',
    'WriteBatch', 'DocumentStore', 'InMemoryDocumentStore', 'JsonFileDocumentStore',
    'StorageConfig', 'create_store', 'DEFAULT_MAX_BATCH_SIZE',
]
