"""JSON file document store.

Each collection lives in ``<data_dir>/<collection>.json`` as a JSON array of
documents. Every mutation rewrites the whole file.
"""

import asyncio
import copy
import json
import logging
import re
import uuid
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os
from beartype import beartype

from careerdesk.storage.cache import CollectionCache
from careerdesk.utils.dates import now_iso

logger = logging.getLogger(__name__)

_COLLECTION_NAME = re.compile(r"[A-Za-z0-9_-]+")


class StorageError(Exception):
    """Base class for document store errors."""


class CorruptCollectionError(StorageError):
    """A collection file exists but does not hold a JSON array."""


class DuplicateDocumentError(StorageError):
    """A document with the same unique key values already exists."""


@beartype
def new_id() -> str:
    """Generate a fresh document id."""
    return uuid.uuid4().hex


@beartype
def _strict_equals(left: object, right: object) -> bool:
    """Compare two JSON values without bool/number coercion."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return left == right


@beartype
def matches(document: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    """Check that every query key equals the document's field."""
    return all(
        key in document and _strict_equals(document[key], value)
        for key, value in query.items()
    )


class DocumentStore:
    """Async CRUD over one JSON file per collection."""

    @beartype
    def __init__(
        self,
        data_dir: Path,
        cache: CollectionCache | None = None,
        indent: int = 2,
    ) -> None:
        """Initialize document store.

        Args:
            data_dir: Directory holding the collection files. Created lazily.
            cache: Cache to mirror collections into. A private one by default.
            indent: JSON indentation used when writing files.
        """
        self._data_dir = data_dir
        self._cache = cache if cache is not None else CollectionCache()
        self._indent = indent
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def data_dir(self) -> Path:
        """Directory holding the collection files."""
        return self._data_dir

    @property
    def cache(self) -> CollectionCache:
        """Cache owned by this store."""
        return self._cache

    @staticmethod
    @beartype
    def _file_name(collection: str) -> str:
        if not _COLLECTION_NAME.fullmatch(collection):
            msg = f"Invalid collection name: '{collection}'"
            raise ValueError(msg)
        return f"{collection}.json"

    @beartype
    def _lock(self, collection: str) -> asyncio.Lock:
        lock = self._locks.get(collection)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[collection] = lock
        return lock

    async def _ensure_dir(self) -> None:
        await aiofiles.os.makedirs(self._data_dir, exist_ok=True)

    @beartype
    async def _load(self, collection: str) -> list[dict[str, Any]]:
        """Read a collection from disk and refresh its cache entry.

        Always goes to disk so that edits made outside this process are seen.
        """
        file_name = self._file_name(collection)
        await self._ensure_dir()
        path = self._data_dir / file_name

        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            documents: list[dict[str, Any]] = []
        else:
            try:
                documents = json.loads(raw) if raw.strip() else []
            except json.JSONDecodeError as e:
                msg = f"Collection file {path} is not valid JSON: {e}"
                raise CorruptCollectionError(msg) from e
            if not isinstance(documents, list):
                msg = f"Collection file {path} must contain a JSON array"
                raise CorruptCollectionError(msg)

        self._cache.set(file_name, documents)
        return documents

    @beartype
    async def _save(self, collection: str, documents: list[dict[str, Any]]) -> None:
        """Write a collection to disk atomically and refresh its cache entry."""
        file_name = self._file_name(collection)
        await self._ensure_dir()
        path = self._data_dir / file_name
        tmp_path = path.with_name(f".{file_name}.{uuid.uuid4().hex[:8]}.tmp")

        payload = json.dumps(documents, indent=self._indent, ensure_ascii=False)
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(payload)
            await aiofiles.os.replace(tmp_path, path)
        except BaseException:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            raise

        self._cache.set(file_name, documents)
        logger.debug("Wrote %d documents to %s", len(documents), path)

    @beartype
    async def find(
        self,
        collection: str,
        query: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Find documents whose fields equal every value in query.

        Args:
            collection: Collection name.
            query: Field/value pairs. Empty or None returns everything.

        Returns:
            Matching documents in file order.
        """
        documents = await self._load(collection)
        if query:
            documents = [doc for doc in documents if matches(doc, query)]
        return copy.deepcopy(documents)

    @beartype
    async def find_by_id(
        self, collection: str, document_id: str
    ) -> dict[str, Any] | None:
        """Get a document by id.

        Returns:
            The first document with this id, or None.
        """
        for doc in await self._load(collection):
            if doc.get("id") == document_id:
                return copy.deepcopy(doc)
        return None

    @beartype
    async def create(
        self,
        collection: str,
        item: Mapping[str, Any],
        unique_on: Sequence[str] = (),
    ) -> dict[str, Any]:
        """Append a new document.

        Args:
            collection: Collection name.
            item: Document fields. ``id`` and ``created_at`` are kept if given.
            unique_on: Field names whose combined values must not already
                exist in the collection.

        Returns:
            The stored document.

        Raises:
            DuplicateDocumentError: If the id is already taken, or if a
                document already has the same values for all unique_on fields.
        """
        async with self._lock(collection):
            documents = await self._load(collection)

            document_id = item.get("id") or new_id()
            if self._index_of(documents, document_id) is not None:
                msg = f"Document '{document_id}' already exists in '{collection}'"
                raise DuplicateDocumentError(msg)

            if unique_on:
                key = {name: item.get(name) for name in unique_on}
                if any(matches(doc, key) for doc in documents):
                    msg = f"Document with {key} already exists in '{collection}'"
                    raise DuplicateDocumentError(msg)

            now = now_iso()
            document = {
                **copy.deepcopy(dict(item)),
                "id": document_id,
                "created_at": item.get("created_at") or now,
                "updated_at": now,
            }
            documents.append(document)
            await self._save(collection, documents)

        return copy.deepcopy(document)

    @beartype
    async def update(
        self,
        collection: str,
        document_id: str,
        patch: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Shallow-merge patch into a document.

        The document id never changes; ``updated_at`` is refreshed.

        Returns:
            The updated document, or None if no document has this id.
        """
        async with self._lock(collection):
            documents = await self._load(collection)
            index = self._index_of(documents, document_id)
            if index is None:
                return None

            documents[index] = {
                **documents[index],
                **copy.deepcopy(dict(patch)),
                "id": document_id,
                "updated_at": now_iso(),
            }
            await self._save(collection, documents)
            return copy.deepcopy(documents[index])

    @beartype
    async def increment(
        self,
        collection: str,
        document_id: str,
        field: str,
        amount: int = 1,
    ) -> dict[str, Any] | None:
        """Add amount to a numeric field, treating a missing value as 0.

        Returns:
            The updated document, or None if no document has this id.
        """
        async with self._lock(collection):
            documents = await self._load(collection)
            index = self._index_of(documents, document_id)
            if index is None:
                return None

            document = documents[index]
            current = document.get(field)
            if isinstance(current, bool) or not isinstance(current, int | float):
                current = 0
            document[field] = current + amount
            document["updated_at"] = now_iso()
            await self._save(collection, documents)
            return copy.deepcopy(document)

    @beartype
    async def delete(self, collection: str, document_id: str) -> bool:
        """Remove a document.

        Returns:
            True if deleted, False if no document has this id.
        """
        async with self._lock(collection):
            documents = await self._load(collection)
            index = self._index_of(documents, document_id)
            if index is None:
                return False

            del documents[index]
            await self._save(collection, documents)
            return True

    @beartype
    async def list_collections(self) -> list[str]:
        """Names of the collections that have a file on disk, sorted."""
        await self._ensure_dir()
        names = await aiofiles.os.listdir(self._data_dir)
        return sorted(
            name.removesuffix(".json")
            for name in names
            if name.endswith(".json")
            and _COLLECTION_NAME.fullmatch(name.removesuffix(".json"))
        )

    @beartype
    def clear_cache(self, collection: str | None = None) -> None:
        """Drop one collection from the cache, or all of them."""
        if collection:
            self._cache.drop(self._file_name(collection))
        else:
            self._cache.clear()

    @staticmethod
    def _index_of(documents: list[dict[str, Any]], document_id: str) -> int | None:
        for index, doc in enumerate(documents):
            if doc.get("id") == document_id:
                return index
        return None
