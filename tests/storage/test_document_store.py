"""
Document Store Tests

INVARIANTS:
===========
- Reads return copies, never live references
- A batch applies all-or-nothing
- Batches over the store limit are refused
- The file store survives a restart and leaves state intact on failed commits
"""

import json

import pytest

from backend.storage import (
    BatchTooLarge, DocumentNotFound, InMemoryDocumentStore, JsonFileDocumentStore,
    StorageConfig, StoreError, create_store,
)


class TestInMemoryDocumentStore:

    def test_set_get_and_collection(self):
        store = InMemoryDocumentStore()
        store.set_document("charts/a/nodes/1", {"name": "Root"})
        store.set_document("charts/a/nodes/2", {"name": "Child"})
        assert store.get_document("charts/a/nodes/1") == {"name": "Root"}
        assert list(store.get_collection("charts/a/nodes")) == ["1", "2"]
        assert store.get_document("charts/a/nodes/3") is None
        assert store.get_collection("charts/b/nodes") == {}

    def test_reads_are_copies(self):
        store = InMemoryDocumentStore()
        store.set_document("charts/a", {"title": "A"})
        store.get_document("charts/a")["title"] = "mutated"
        store.get_collection("charts")["a"]["title"] = "mutated"
        assert store.get_document("charts/a") == {"title": "A"}

    def test_merge_and_update(self):
        store = InMemoryDocumentStore()
        store.set_document("charts/a", {"title": "A", "nextId": 1})
        store.set_document("charts/a", {"nextId": 2}, merge=True)
        store.update_document("charts/a", {"title": "B"})
        assert store.get_document("charts/a") == {"title": "B", "nextId": 2}

    def test_update_missing_document_fails(self):
        store = InMemoryDocumentStore()
        with pytest.raises(DocumentNotFound):
            store.update_document("charts/missing", {"title": "x"})

    def test_batch_is_all_or_nothing(self):
        store = InMemoryDocumentStore()
        store.set_document("charts/a/nodes/1", {"name": "Root"})
        batch = store.batch()
        batch.delete("charts/a/nodes/1")
        batch.update("charts/a/nodes/404", {"name": "ghost"})
        with pytest.raises(DocumentNotFound):
            batch.commit()
        assert store.get_document("charts/a/nodes/1") == {"name": "Root"}

    def test_batch_limit(self):
        store = InMemoryDocumentStore(max_batch_size=3)
        batch = store.batch()
        for i in range(4):
            batch.set(f"c/x/n/{i}", {"i": i})
        with pytest.raises(BatchTooLarge):
            batch.commit()
        assert store.get_collection("c/x/n") == {}

    def test_batch_commits_once(self):
        store = InMemoryDocumentStore()
        batch = store.batch().set("charts/a", {"title": "A"})
        assert batch.commit() == 1
        with pytest.raises(StoreError):
            batch.commit()
        assert store.commit_count == 1

    def test_rejects_collection_path_as_document(self):
        store = InMemoryDocumentStore()
        with pytest.raises(ValueError):
            store.get_document("charts")


class TestJsonFileDocumentStore:

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store" / "charts.json"
        store = JsonFileDocumentStore(str(path))
        store.set_document("charts/a", {"title": "A"})
        store.set_document("charts/a/nodes/1", {"name": "Root"})

        reopened = JsonFileDocumentStore(str(path))
        assert reopened.get_document("charts/a") == {"title": "A"}
        assert reopened.get_collection("charts/a/nodes") == {"1": {"name": "Root"}}

    def test_file_layout(self, tmp_path):
        path = tmp_path / "charts.json"
        JsonFileDocumentStore(str(path)).set_document("charts/a", {"title": "A"})
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {"collections": {"charts": {"a": {"title": "A"}}}}

    def test_failed_write_leaves_memory_unchanged(self, tmp_path, monkeypatch):
        store = JsonFileDocumentStore(str(tmp_path / "charts.json"))
        store.set_document("charts/a", {"title": "A"})

        def broken(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr("backend.storage.tempfile.mkstemp", broken)
        with pytest.raises(StoreError):
            store.set_document("charts/b", {"title": "B"})
        assert store.get_document("charts/b") is None

    def test_corrupt_file_raises_store_error(self, tmp_path):
        path = tmp_path / "charts.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreError):
            JsonFileDocumentStore(str(path))


class TestCreateStore:

    def test_memory_default(self):
        assert type(create_store()) is InMemoryDocumentStore

    def test_file_backend(self, tmp_path):
        store = create_store(StorageConfig(backend_type="file", storage_path=str(tmp_path / "s.json")))
        assert isinstance(store, JsonFileDocumentStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_store(StorageConfig(backend_type="firestore"))
