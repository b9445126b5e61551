"""
Tests for the local storage backend and the document store.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock

from workdesk.core.errors import StorageError
from workdesk.storage import DocumentStore


class TestLocalStorage:

    @pytest.mark.asyncio
    async def test_save_and_load(self, storage):
        assert await storage.save("notes/a.json", "{}")
        assert await storage.load("notes/a.json") == b"{}"
        assert await storage.exists("notes/a.json")

    @pytest.mark.asyncio
    async def test_load_missing_returns_none(self, storage):
        assert await storage.load("nope/missing.json") is None

    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, storage):
        assert await storage.save("../outside.json", "x") is False
        assert await storage.exists("../outside.json") is False

    @pytest.mark.asyncio
    async def test_list_skips_hidden_files(self, storage):
        await storage.save("c/1.json", "{}")
        await storage.save("c/.1.json", "{}")
        assert await storage.list("c", pattern="*.json") == ["c/1.json"]

    @pytest.mark.asyncio
    async def test_delete(self, storage):
        await storage.save("c/1.json", "{}")
        assert await storage.delete("c/1.json")
        assert await storage.delete("c/1.json") is False


class TestDocumentStore:

    @pytest.mark.asyncio
    async def test_insert_assigns_id_and_seq(self, store):
        first = await store.insert("things", {"name": "a"})
        second = await store.insert("things", {"name": "b"})
        assert first["id"] != second["id"]
        assert (first["seq"], second["seq"]) == (1, 2)
        assert await store.get("things", first["id"]) == first

    @pytest.mark.asyncio
    async def test_insert_with_explicit_id(self, store):
        doc = await store.insert("ledgers", {"credits": 5}, doc_id="user/1")
        assert doc["id"] == "user/1"
        # Slashes in ids stay inside the collection directory
        assert await store.get("ledgers", "user/1") == doc

    @pytest.mark.asyncio
    async def test_counters_are_independent(self, store):
        assert await store.next_sequence("a") == 1
        assert await store.next_sequence("a") == 2
        assert await store.next_sequence("b") == 1

    @pytest.mark.asyncio
    async def test_query_in_store_order(self, store):
        for i in range(12):
            await store.insert("items", {"n": i})
        docs = await store.query("items")
        assert [d["n"] for d in docs] == list(range(12))

    @pytest.mark.asyncio
    async def test_query_with_predicate(self, store):
        for i in range(5):
            await store.insert("items", {"n": i})
        docs = await store.query("items", where=lambda d: d["n"] % 2 == 0)
        assert [d["n"] for d in docs] == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_update_applies_changes(self, store):
        doc = await store.insert("items", {"n": 1})
        updated = await store.update("items", doc["id"], lambda d: {"n": d["n"] + 1})
        assert updated["n"] == 2
        assert (await store.get("items", doc["id"]))["n"] == 2

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, store):
        assert await store.update("items", "missing", lambda d: {"n": 0}) is None

    @pytest.mark.asyncio
    async def test_update_mutator_error_writes_nothing(self, store):
        doc = await store.insert("items", {"n": 1})

        def boom(_):
            raise ValueError("rejected")

        with pytest.raises(ValueError):
            await store.update("items", doc["id"], boom)
        assert (await store.get("items", doc["id"]))["n"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_serialized(self, store):
        doc = await store.insert("counter", {"n": 0})

        async def bump():
            await store.update("counter", doc["id"], lambda d: {"n": d["n"] + 1})

        await asyncio.gather(*(bump() for _ in range(25)))
        assert (await store.get("counter", doc["id"]))["n"] == 25

    @pytest.mark.asyncio
    async def test_locks_released_after_use(self, store):
        docs = [await store.insert("items", {"n": i}) for i in range(20)]

        async def bump(doc_id):
            await store.update("items", doc_id, lambda d: {"n": d["n"] + 1})

        await asyncio.gather(*(bump(d["id"]) for d in docs for _ in range(3)))

        def fail(document):
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await store.update("items", docs[0]["id"], fail)

        assert (await store.get("items", docs[0]["id"]))["n"] == 3
        assert store._locks == {}
        assert store._lock_users == {}

    @pytest.mark.asyncio
    async def test_failed_write_raises_storage_error(self):
        backend = AsyncMock()
        backend.load.return_value = None
        backend.save.return_value = False
        store = DocumentStore(backend)

        with pytest.raises(StorageError):
            await store.insert("items", {"n": 1})
