"""
Document Store - JSON documents grouped in collections on top of a StorageInterface.

Each document lives at ``<collection>/<id>.json`` and carries two fields set
by the store: ``id`` and ``seq``. ``seq`` comes from a persisted per-collection
counter and defines store order (insertion order).

Read-modify-write of a single document is atomic: ``update`` and ``locked``
serialize writers per document key. Locks are not re-entrant, so code running
inside ``locked`` must use ``replace`` rather than ``update`` on the same key.
"""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional
from urllib.parse import quote

from ..core.errors import StorageError
from .interface import StorageInterface

logger = logging.getLogger(__name__)

COUNTERS_COLLECTION = "_counters"

Document = Dict[str, Any]


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class DocumentStore:
    """
    Collection/document persistence with per-document atomic updates.
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self._locks: Dict[str, asyncio.Lock] = {}
        # Tasks holding or waiting on each lock; the lock is dropped at zero
        self._lock_users: Dict[str, int] = {}

    @staticmethod
    def _path(collection: str, doc_id: str) -> str:
        # quote() escapes "/" so ids can never leave their collection
        return f"{collection}/{quote(doc_id, safe='')}.json"

    @asynccontextmanager
    async def locked(self, collection: str, doc_id: str) -> AsyncIterator[None]:
        """Hold the write lock of one document."""
        key = self._path(collection, doc_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def _write(self, collection: str, document: Document) -> None:
        path = self._path(collection, document["id"])
        content = json.dumps(document, ensure_ascii=False, indent=2, default=_json_default)
        if not await self.storage.save(path, content):
            raise StorageError(path)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Load a document, or None if it doesn't exist."""
        content = await self.storage.load(self._path(collection, doc_id))
        if content is None:
            return None
        return json.loads(content.decode('utf-8'))

    async def next_sequence(self, name: str) -> int:
        """Atomically increment and return a named counter, starting at 1."""
        async with self.locked(COUNTERS_COLLECTION, name):
            counter = await self.get(COUNTERS_COLLECTION, name)
            value = (counter["value"] if counter else 0) + 1
            await self._write(COUNTERS_COLLECTION, {"id": name, "value": value})
            return value

    async def insert(
        self,
        collection: str,
        document: Document,
        doc_id: Optional[str] = None
    ) -> Document:
        """
        Insert a new document.

        Args:
            collection: Collection name
            document: Field values (``id``/``seq`` are assigned here)
            doc_id: Optional explicit id, otherwise a random hex id

        Returns:
            Document: The stored document
        """
        seq = await self.next_sequence(collection)
        stored = {**document, "id": doc_id or uuid.uuid4().hex, "seq": seq}
        await self._write(collection, stored)
        logger.debug(f"Inserted {collection}/{stored['id']} (seq={seq})")
        return stored

    async def replace(self, collection: str, document: Document) -> Document:
        """Overwrite a whole document. Caller must hold its lock."""
        await self._write(collection, document)
        return document

    async def update(
        self,
        collection: str,
        doc_id: str,
        mutator: Callable[[Document], Optional[Document]]
    ) -> Optional[Document]:
        """
        Atomic read-modify-write of one document.

        ``mutator`` receives the current document and returns the fields to
        change (or None for no change). If it raises, nothing is written.

        Returns:
            Optional[Document]: Updated document, or None if it doesn't exist
        """
        async with self.locked(collection, doc_id):
            document = await self.get(collection, doc_id)
            if document is None:
                return None
            changes = mutator(dict(document))
            if changes:
                document.update(changes)
                await self._write(collection, document)
            return document

    async def query(
        self,
        collection: str,
        where: Optional[Callable[[Document], bool]] = None
    ) -> List[Document]:
        """
        Return documents of a collection in store order.

        Args:
            collection: Collection name
            where: Optional predicate to filter documents

        Returns:
            List[Document]: Matching documents sorted by ``seq``
        """
        documents = []
        for path in await self.storage.list(collection, pattern="*.json"):
            content = await self.storage.load(path)
            if content is None:
                # Deleted between list and load
                continue
            document = json.loads(content.decode('utf-8'))
            if where is None or where(document):
                documents.append(document)
        documents.sort(key=lambda d: d.get("seq", 0))
        return documents
