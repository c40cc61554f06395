"""Tests for the JSON document store."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path

from careerdesk.storage.cache import CollectionCache
from careerdesk.storage.document_store import (
    CorruptCollectionError,
    DocumentStore,
    DuplicateDocumentError,
    matches,
)


class TestCreateAndRead:
    """Tests for create, find and find_by_id."""

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamps(self, store: DocumentStore) -> None:
        """Test that create fills in id, created_at and updated_at."""
        doc = await store.create("companies", {"name": "Acme"})

        assert doc["id"]
        assert doc["name"] == "Acme"
        assert doc["created_at"].endswith("Z")
        assert doc["updated_at"].endswith("Z")

    @pytest.mark.asyncio
    async def test_create_keeps_supplied_id_and_created_at(
        self, store: DocumentStore
    ) -> None:
        """Test that a caller-supplied id and created_at are kept."""
        doc = await store.create(
            "companies",
            {"id": "acme", "name": "Acme", "created_at": "2024-01-01T00:00:00.000Z"},
        )

        assert doc["id"] == "acme"
        assert doc["created_at"] == "2024-01-01T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_find_by_id_returns_created_document(
        self, store: DocumentStore
    ) -> None:
        """Test that a created document reads back unchanged."""
        item = {"name": "Acme", "tags": ["it", "finance"], "size": 42}

        created = await store.create("companies", item)
        found = await store.find_by_id("companies", created["id"])

        assert found == created
        assert {k: found[k] for k in item} == item

    @pytest.mark.asyncio
    async def test_find_by_id_missing_returns_none(self, store: DocumentStore) -> None:
        """Test that an unknown id returns None."""
        assert await store.find_by_id("companies", "nope") is None

    @pytest.mark.asyncio
    async def test_create_duplicate_id_raises(self, store: DocumentStore) -> None:
        """Test that ids stay unique within a collection."""
        await store.create("companies", {"id": "acme"})

        with pytest.raises(DuplicateDocumentError):
            await store.create("companies", {"id": "acme"})

    @pytest.mark.asyncio
    async def test_create_unique_on_rejects_existing_pair(
        self, store: DocumentStore
    ) -> None:
        """Test that unique_on rejects a document with the same key values."""
        await store.create("saved_jobs", {"user_id": "u1", "job_id": "j1"})
        await store.create("saved_jobs", {"user_id": "u1", "job_id": "j2"})

        with pytest.raises(DuplicateDocumentError):
            await store.create(
                "saved_jobs",
                {"user_id": "u1", "job_id": "j1"},
                unique_on=("user_id", "job_id"),
            )

        assert len(await store.find("saved_jobs")) == 2


class TestFind:
    """Tests for equality queries."""

    @pytest.mark.asyncio
    async def test_empty_query_returns_everything_in_order(
        self, store: DocumentStore
    ) -> None:
        """Test that find without a query returns all documents in order."""
        for name in ("a", "b", "c"):
            await store.create("companies", {"name": name})

        docs = await store.find("companies")

        assert [d["name"] for d in docs] == ["a", "b", "c"]
        assert await store.find("companies", {}) == docs

    @pytest.mark.asyncio
    async def test_query_matches_all_keys(self, store: DocumentStore) -> None:
        """Test that every query key must match."""
        await store.create("jobs", {"title": "A", "featured": True, "status": "published"})
        await store.create("jobs", {"title": "B", "featured": True, "status": "draft"})
        await store.create("jobs", {"title": "C", "featured": False, "status": "published"})

        docs = await store.find("jobs", {"featured": True, "status": "published"})

        assert [d["title"] for d in docs] == ["A"]

    @pytest.mark.asyncio
    async def test_bool_does_not_match_number(self, store: DocumentStore) -> None:
        """Test that True does not equal 1 in queries."""
        await store.create("jobs", {"title": "A", "featured": 1})
        await store.create("jobs", {"title": "B", "featured": True})

        docs = await store.find("jobs", {"featured": True})

        assert [d["title"] for d in docs] == ["B"]

    @pytest.mark.asyncio
    async def test_missing_field_does_not_match_none(self, store: DocumentStore) -> None:
        """Test that a missing field is not equal to None."""
        await store.create("jobs", {"title": "A"})

        assert await store.find("jobs", {"category": None}) == []

    @pytest.mark.asyncio
    async def test_results_are_copies(self, store: DocumentStore) -> None:
        """Test that mutating results does not change stored data."""
        await store.create("jobs", {"title": "A"})

        docs = await store.find("jobs")
        docs[0]["title"] = "changed"

        assert (await store.find("jobs"))[0]["title"] == "A"

    def test_matches(self) -> None:
        """Test the equality matcher directly."""
        doc = {"a": 1, "b": "x", "c": False}

        assert matches(doc, {})
        assert matches(doc, {"a": 1, "b": "x"})
        assert not matches(doc, {"a": 2})
        assert not matches(doc, {"c": 0})
        assert not matches(doc, {"d": None})


class TestUpdate:
    """Tests for update and increment."""

    @pytest.mark.asyncio
    async def test_update_changes_only_patched_keys(self, store: DocumentStore) -> None:
        """Test that update merges the patch and keeps other fields."""
        created = await store.create(
            "jobs", {"title": "Dev", "location": "Paris", "salary_max": 50000}
        )

        updated = await store.update("jobs", created["id"], {"location": "Remote"})

        assert updated is not None
        assert updated["location"] == "Remote"
        assert updated["title"] == "Dev"
        assert updated["salary_max"] == 50000
        assert updated["created_at"] == created["created_at"]
        assert updated["updated_at"] >= created["updated_at"]
        assert await store.find_by_id("jobs", created["id"]) == updated

    @pytest.mark.asyncio
    async def test_update_keeps_id(self, store: DocumentStore) -> None:
        """Test that a patch cannot change the document id."""
        created = await store.create("jobs", {"title": "Dev"})

        updated = await store.update("jobs", created["id"], {"id": "other"})

        assert updated is not None
        assert updated["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, store: DocumentStore) -> None:
        """Test that updating an unknown id returns None."""
        assert await store.update("jobs", "nope", {"title": "x"}) is None

    @pytest.mark.asyncio
    async def test_increment(self, store: DocumentStore) -> None:
        """Test incrementing a counter, starting from a missing value."""
        created = await store.create("advertisements", {"title": "Ad"})

        await store.increment("advertisements", created["id"], "click_count")
        doc = await store.increment("advertisements", created["id"], "click_count", 2)

        assert doc is not None
        assert doc["click_count"] == 3

    @pytest.mark.asyncio
    async def test_increment_missing_returns_none(self, store: DocumentStore) -> None:
        """Test that incrementing an unknown id returns None."""
        assert await store.increment("advertisements", "nope", "click_count") is None

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(
        self, store: DocumentStore
    ) -> None:
        """Test that concurrent read-modify-write calls serialize."""
        created = await store.create("advertisements", {"title": "Ad"})

        await asyncio.gather(
            *(
                store.increment("advertisements", created["id"], "impression_count")
                for _ in range(20)
            )
        )

        doc = await store.find_by_id("advertisements", created["id"])
        assert doc is not None
        assert doc["impression_count"] == 20

    @pytest.mark.asyncio
    async def test_concurrent_creates_are_not_lost(self, store: DocumentStore) -> None:
        """Test that concurrent creates all end up in the file."""
        await asyncio.gather(
            *(store.create("form_submissions", {"n": i}) for i in range(15))
        )

        docs = await store.find("form_submissions")
        assert sorted(d["n"] for d in docs) == list(range(15))


class TestDelete:
    """Tests for delete."""

    @pytest.mark.asyncio
    async def test_delete_twice(self, store: DocumentStore) -> None:
        """Test that delete returns True then False."""
        keep = await store.create("jobs", {"title": "keep"})
        gone = await store.create("jobs", {"title": "gone"})

        assert await store.delete("jobs", gone["id"]) is True
        assert len(await store.find("jobs")) == 1
        assert await store.delete("jobs", gone["id"]) is False
        assert [d["id"] for d in await store.find("jobs")] == [keep["id"]]


class TestFiles:
    """Tests for on-disk behaviour."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty_collection(self, store: DocumentStore) -> None:
        """Test that a collection without a file reads as empty."""
        assert await store.find("users") == []

    @pytest.mark.asyncio
    async def test_creates_directory_lazily(self, temp_dir: Path) -> None:
        """Test that the data directory is created on first access."""
        data_dir = temp_dir / "nested" / "data"
        store = DocumentStore(data_dir)

        await store.find("users")

        assert data_dir.is_dir()

    @pytest.mark.asyncio
    async def test_writes_json_array(self, store: DocumentStore) -> None:
        """Test that the collection file is a JSON array of documents."""
        created = await store.create("users", {"username": "ana"})

        path = store.data_dir / "users.json"
        data = json.loads(path.read_text(encoding="utf-8"))

        assert data == [created]
        assert not list(store.data_dir.glob("*.tmp"))

    @pytest.mark.asyncio
    async def test_reads_out_of_band_edits(self, store: DocumentStore) -> None:
        """Test that edits made directly to the file are seen."""
        await store.create("users", {"username": "ana"})
        path = store.data_dir / "users.json"
        path.write_text(json.dumps([{"id": "x", "username": "bob"}]), encoding="utf-8")

        docs = await store.find("users")

        assert [d["username"] for d in docs] == ["bob"]

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, store: DocumentStore) -> None:
        """Test that a file that is not JSON is reported, not emptied."""
        store.data_dir.mkdir(parents=True)
        (store.data_dir / "users.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(CorruptCollectionError):
            await store.find("users")

    @pytest.mark.asyncio
    async def test_non_array_file_raises(self, store: DocumentStore) -> None:
        """Test that a JSON object at the top level is rejected."""
        store.data_dir.mkdir(parents=True)
        (store.data_dir / "users.json").write_text('{"a": 1}', encoding="utf-8")

        with pytest.raises(CorruptCollectionError):
            await store.find("users")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["../etc", "a/b", "", "jobs.json", "x y"])
    async def test_invalid_collection_name(self, store: DocumentStore, name: str) -> None:
        """Test that collection names cannot escape the data directory."""
        with pytest.raises(ValueError, match="Invalid collection name"):
            await store.find(name)

    @pytest.mark.asyncio
    async def test_list_collections(self, store: DocumentStore) -> None:
        """Test listing the collections that have files."""
        await store.create("users", {"username": "ana"})
        await store.create("jobs", {"title": "Dev"})
        (store.data_dir / "notes.txt").write_text("x", encoding="utf-8")

        assert await store.list_collections() == ["jobs", "users"]


class TestCache:
    """Tests for the collection cache."""

    @pytest.mark.asyncio
    async def test_reads_and_writes_fill_cache(self, temp_dir: Path) -> None:
        """Test that the store mirrors collections into its cache."""
        cache = CollectionCache()
        store = DocumentStore(temp_dir, cache=cache)

        await store.create("users", {"username": "ana"})
        await store.find("jobs")

        assert "users.json" in cache
        assert "jobs.json" in cache
        assert store.cache is cache

    @pytest.mark.asyncio
    async def test_clear_cache_one_collection(self, store: DocumentStore) -> None:
        """Test dropping a single collection from the cache."""
        await store.find("users")
        await store.find("jobs")

        store.clear_cache("users")

        assert "users.json" not in store.cache
        assert "jobs.json" in store.cache

    @pytest.mark.asyncio
    async def test_clear_cache_all(self, store: DocumentStore) -> None:
        """Test dropping every collection from the cache."""
        await store.find("users")
        await store.find("jobs")

        store.clear_cache()

        assert len(store.cache) == 0

    def test_separate_stores_do_not_share_cache(self, temp_dir: Path) -> None:
        """Test that each store owns its own cache by default."""
        first = DocumentStore(temp_dir)
        second = DocumentStore(temp_dir)

        assert first.cache is not second.cache
