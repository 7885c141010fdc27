"""
Local file-based collection store.

The unit of truth while offline. Each record kind is a collection
persisted as a single JSON file:

    {data_dir}/
      businesses.json
      articles.json

File layout:
    {"kind": "articles", "documents": {"<id>": {...document...}}}

Writes replace the whole collection file atomically, so a failed
validation or a failed write never leaves a partial document on disk.
The in-memory copy is only swapped after the file write succeeds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from ..exceptions import (
    ConflictError,
    RecordNotFoundError,
    StorageIOError,
    StoreClosedError,
    UnknownKindError,
    ValidationError,
)
from ..schema import SchemaRegistry, default_registry
from .file_ops import ensure_directory, read_json, write_json_atomic

logger = logging.getLogger(__name__)

Document = dict[str, Any]


class ChangeOperation(Enum):
    """Type of mutation applied to a collection."""

    INSERT = "insert"
    REPLACE = "replace"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed mutation, published to store listeners.

    Attributes:
        kind: Collection that changed
        operation: Type of mutation
        record_id: Id of the affected document
        before: Document before the mutation (None for inserts)
        after: Document after the mutation (None for deletes)
        snapshot: Full collection contents after the mutation
        version: Per-collection mutation counter, starting at 1 after open
    """

    kind: str
    operation: ChangeOperation
    record_id: str
    before: Document | None
    after: Document | None
    snapshot: tuple[Document, ...]
    version: int


ChangeListener = Callable[[ChangeEvent], None]


class LocalStore:
    """Durable per-kind document collections.

    Mutations on one collection are serialised by a per-kind lock.
    Listeners are called synchronously while that lock is held, so they
    observe changes in exactly the order they were committed.

    Example:
        >>> store = LocalStore(Path("/tmp/shop"))
        >>> await store.open()
        >>> await store.insert("businesses", {"id": "b1", "name": "Acme"})
        >>> await store.get_all("businesses")
        [{'id': 'b1', 'name': 'Acme'}]
    """

    def __init__(self, data_dir: Path, registry: SchemaRegistry | None = None) -> None:
        """Initialize the local store.

        Args:
            data_dir: Directory holding the collection files
            registry: Schema registry; defaults to businesses + articles
        """
        self.data_dir = Path(data_dir)
        self.registry = registry or default_registry()

        self._collections: dict[str, dict[str, Document]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._versions: dict[str, int] = {}
        self._listeners: list[ChangeListener] = []
        self._open = False

    def _collection_path(self, kind: str) -> Path:
        return self.data_dir / f"{kind}.json"

    @property
    def is_open(self) -> bool:
        return self._open

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def open(self) -> None:
        """Load every registered collection from disk."""
        if self._open:
            return

        await ensure_directory(self.data_dir)
        for kind in self.registry.kinds():
            self._collections[kind] = await self._load_collection(kind)
            self._locks[kind] = asyncio.Lock()
            self._versions[kind] = 0

        self._open = True
        logger.info(
            f"Local store opened at {self.data_dir} "
            f"({', '.join(f'{k}={len(v)}' for k, v in self._collections.items())})"
        )

    async def close(self) -> None:
        """Release in-memory state. Data on disk is already durable."""
        self._open = False
        self._collections.clear()
        self._locks.clear()
        self._listeners.clear()

    async def _load_collection(self, kind: str) -> dict[str, Document]:
        path = self._collection_path(kind)
        data = await read_json(path)
        if data is None:
            return {}

        if not isinstance(data, dict) or not isinstance(data.get("documents"), dict):
            raise StorageIOError("load_collection", str(path), ValueError("missing documents map"))
        documents = data["documents"]

        schema = self.registry.get(kind)
        loaded: dict[str, Document] = {}
        for record_id, document in documents.items():
            try:
                schema.validate(document)
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid {kind} document {record_id!r} on load: {e}",
                    extra={"kind": kind, "record_id": record_id},
                )
                continue
            loaded[document["id"]] = document
        return loaded

    async def _persist(self, kind: str, documents: dict[str, Document]) -> None:
        await write_json_atomic(
            self._collection_path(kind),
            {"kind": kind, "documents": documents},
        )

    def _require_open(self, operation: str, kind: str) -> None:
        if not self._open:
            raise StoreClosedError(operation)
        if kind not in self._collections:
            raise UnknownKindError(kind)

    def _log_context(self, kind: str, record_id: str, operation: ChangeOperation) -> dict[str, Any]:
        return {
            "kind": kind,
            "record_id": record_id,
            "operation": operation.value,
            "version": self._versions.get(kind),
        }

    # =========================================================================
    # Mutations
    # =========================================================================

    async def insert(self, kind: str, document: Mapping[str, Any]) -> Document:
        """Insert a new document.

        Raises:
            ValidationError: If the document does not validate
            ConflictError: If a document with the same id exists
        """
        self._require_open("insert", kind)
        self.registry.validate(kind, document)
        new_doc = dict(document)
        record_id = new_doc["id"]

        async with self._locks[kind]:
            current = self._collections[kind]
            if record_id in current:
                raise ConflictError(kind, record_id)

            updated = dict(current)
            updated[record_id] = new_doc
            await self._persist(kind, updated)
            self._collections[kind] = updated
            self._publish(kind, ChangeOperation.INSERT, record_id, None, new_doc)

        logger.debug(
            f"Inserted {kind}/{record_id}",
            extra=self._log_context(kind, record_id, ChangeOperation.INSERT),
        )
        return dict(new_doc)

    async def replace(self, kind: str, document: Mapping[str, Any]) -> Document:
        """Replace an existing document as a whole.

        ``createdAt`` is immutable: if the stored document has one, the
        replacement must carry the same value or omit it (in which case
        the stored value is kept).

        Raises:
            ValidationError: If the document does not validate or changes createdAt
            RecordNotFoundError: If no document has this id
        """
        self._require_open("replace", kind)
        self.registry.validate(kind, document)
        new_doc = dict(document)
        record_id = new_doc["id"]

        async with self._locks[kind]:
            current = self._collections[kind]
            existing = current.get(record_id)
            if existing is None:
                raise RecordNotFoundError(kind, record_id)

            created_at = existing.get("createdAt")
            if created_at is not None:
                if new_doc.get("createdAt") is None:
                    new_doc["createdAt"] = created_at
                elif new_doc["createdAt"] != created_at:
                    raise ValidationError("createdAt", "is immutable", new_doc["createdAt"])

            updated = dict(current)
            updated[record_id] = new_doc
            await self._persist(kind, updated)
            self._collections[kind] = updated
            self._publish(kind, ChangeOperation.REPLACE, record_id, existing, new_doc)

        logger.debug(
            f"Replaced {kind}/{record_id}",
            extra=self._log_context(kind, record_id, ChangeOperation.REPLACE),
        )
        return dict(new_doc)

    async def delete(self, kind: str, record_id: str) -> bool:
        """Delete a document by id.

        Idempotent: deleting an absent id is a successful no-op. Documents
        in other collections that reference this id are left untouched.

        Returns:
            True if a document was removed, False if it did not exist
        """
        self._require_open("delete", kind)

        async with self._locks[kind]:
            current = self._collections[kind]
            existing = current.get(record_id)
            if existing is None:
                return False

            updated = dict(current)
            del updated[record_id]
            await self._persist(kind, updated)
            self._collections[kind] = updated
            self._publish(kind, ChangeOperation.DELETE, record_id, existing, None)

        logger.debug(
            f"Deleted {kind}/{record_id}",
            extra=self._log_context(kind, record_id, ChangeOperation.DELETE),
        )
        return True

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_all(self, kind: str) -> list[Document]:
        """Return copies of every document in a collection."""
        return list(self.snapshot(kind))

    async def get(self, kind: str, record_id: str) -> Document | None:
        self._require_open("get", kind)
        document = self._collections[kind].get(record_id)
        return dict(document) if document is not None else None

    async def count(self, kind: str) -> int:
        self._require_open("count", kind)
        return len(self._collections[kind])

    def snapshot(self, kind: str) -> tuple[Document, ...]:
        """Synchronous copy of a collection's current contents."""
        self._require_open("snapshot", kind)
        return tuple(dict(d) for d in self._collections[kind].values())

    def version(self, kind: str) -> int:
        """Number of committed mutations on a collection since open."""
        self._require_open("version", kind)
        return self._versions[kind]

    # =========================================================================
    # Change listeners
    # =========================================================================

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(
        self,
        kind: str,
        operation: ChangeOperation,
        record_id: str,
        before: Document | None,
        after: Document | None,
    ) -> None:
        self._versions[kind] += 1
        event = ChangeEvent(
            kind=kind,
            operation=operation,
            record_id=record_id,
            before=dict(before) if before is not None else None,
            after=dict(after) if after is not None else None,
            snapshot=tuple(dict(d) for d in self._collections[kind].values()),
            version=self._versions[kind],
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    f"Change listener failed for {kind}/{record_id}",
                    extra=self._log_context(kind, record_id, operation),
                )
