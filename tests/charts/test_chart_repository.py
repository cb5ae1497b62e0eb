"""
Chart Repository Tests

INVARIANTS:
===========
- nextId / nodeCount / updatedAt follow every node write
- Multi-node deletes are split into batches of at most batch_size
- Writes are idempotent per record
- Unknown charts and nodes raise ChartNotFound / NodeNotFound
"""

from datetime import datetime, timedelta, timezone

import pytest

from backend.charts import ChartNotFound, ChartRepository, NodeNotFound, chunked, descendant_ids
from backend.contracts import NodeRecord
from backend.storage import InMemoryDocumentStore, StoreError
from tests.fixtures import org_chart, wide_chart


class TickingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class FailingCommitStore(InMemoryDocumentStore):
    """Aborts the commit numbered ``fail_on`` (1-based)."""

    fail_on = None

    def _persist(self, collections):
        if self.commit_count + 1 == self.fail_on:
            raise StoreError("injected commit failure")


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def repository(store):
    repo = ChartRepository(store, clock=TickingClock())
    repo.create_chart(title="Org", nodes=org_chart(), chart_id="org")
    return repo


class TestCharts:

    def test_create_sets_metadata(self, repository):
        meta = repository.get_chart("org")
        assert meta.title == "Org"
        assert meta.next_id == 9
        assert meta.node_count == 8
        assert meta.created_at is not None

    def test_create_from_template(self, repository):
        meta = repository.create_chart(title="Startup", template="startup")
        names = [r.name for r in repository.list_nodes(meta.id)]
        assert names[0] == "CEO / Founder"
        assert meta.node_count == len(names)

    def test_blank_template(self, repository):
        meta = repository.create_chart(template="blank")
        assert [r.name for r in repository.list_nodes(meta.id)] == ["Root Node"]

    def test_unknown_template(self, repository):
        with pytest.raises(ValueError):
            repository.create_chart(template="galactic")

    def test_duplicate_id_rejected(self, repository):
        with pytest.raises(ValueError):
            repository.create_chart(chart_id="org")

    def test_list_sorted_by_most_recent_update(self, repository):
        repository.create_chart(title="Second", chart_id="second")
        repository.rename_chart("org", "Org renamed")
        assert [c.id for c in repository.list_charts()] == ["org", "second"]

    def test_duplicate_chart(self, repository):
        copy = repository.duplicate_chart("org")
        assert copy.title == "Org (Copy)"
        assert copy.id != "org"
        original = {(r.id, r.parent_id, r.name) for r in repository.list_nodes("org")}
        copied = {(r.id, r.parent_id, r.name) for r in repository.list_nodes(copy.id)}
        assert copied == original

    def test_delete_chart_removes_nodes(self, repository, store):
        assert repository.delete_chart("org") == 8
        assert store.get_collection("charts/org/nodes") == {}
        with pytest.raises(ChartNotFound):
            repository.get_chart("org")

    def test_unknown_chart(self, repository):
        with pytest.raises(ChartNotFound):
            repository.list_nodes("nope")


class TestNodeWrites:

    def test_add_node_uses_counter(self, repository):
        new_id = repository.add_node("org", {"name": "Intern"}, parent_id=5)
        assert new_id == 9
        record = repository.get_node("org", 9)
        assert record.parent_id == 5
        assert record.name == "Intern"
        meta = repository.get_chart("org")
        assert meta.next_id == 10
        assert meta.node_count == 9

    def test_add_node_honours_free_requested_id(self, repository):
        assert repository.add_node("org", {"name": "X"}, parent_id=1, node_id=42) == 42
        assert repository.get_chart("org").next_id == 43

    def test_add_node_skips_taken_requested_id(self, repository):
        assert repository.add_node("org", {"name": "X"}, parent_id=1, node_id=3) == 9

    def test_update_node_partial(self, repository):
        repository.update_node("org", 2, {"name": "Chief Technologist", "bogus": "dropped"})
        record = repository.get_node("org", 2)
        assert record.name == "Chief Technologist"
        assert record.responsible == ""

    def test_update_is_idempotent(self, repository, store):
        repository.update_node("org", 2, {"status": "Active"})
        first = store.get_document("charts/org/nodes/2")
        repository.update_node("org", 2, {"status": "Active"})
        assert store.get_document("charts/org/nodes/2") == first

    def test_update_missing_node(self, repository):
        with pytest.raises(NodeNotFound):
            repository.update_node("org", 404, {"name": "ghost"})

    def test_update_nodes_single_commit(self, repository, store):
        commits = store.commit_count
        written = repository.update_nodes("org", {2: {"name": "A"}, 3: {"color": "#FF0000", "textColor": "#111827"}})
        assert written == 2
        assert store.commit_count == commits + 1
        assert repository.get_node("org", 3).color == "#FF0000"

    def test_update_node_color(self, repository):
        repository.update_node_color("org", 4, "#FFFFFF", "#111827")
        record = repository.get_node("org", 4)
        assert (record.color, record.text_color) == ("#FFFFFF", "#111827")

    def test_updated_at_moves_forward(self, repository):
        before = repository.get_chart("org").updated_at
        repository.update_node("org", 1, {"name": "Chief"})
        assert repository.get_chart("org").updated_at > before

    def test_delete_nodes_exact_set(self, repository):
        assert repository.delete_nodes("org", [5, 8]) == 2
        assert {r.id for r in repository.list_nodes("org")} == {1, 2, 3, 4, 6, 7}
        assert repository.get_chart("org").node_count == 6

    def test_delete_nodes_ignores_missing_ids(self, repository):
        assert repository.delete_nodes("org", [8, 404]) == 1

    def test_delete_subtree(self, repository):
        removed = repository.delete_subtree("org", 2)
        assert set(removed) == {2, 5, 6, 8}
        assert {r.id for r in repository.list_nodes("org")} == {1, 3, 4, 7}


class TestChunking:

    def test_chunked(self):
        assert chunked(list(range(5)), 2) == [[0, 1], [2, 3], [4]]
        assert chunked([], 3) == []
        with pytest.raises(ValueError):
            chunked([1], 0)

    def test_large_delete_is_split(self):
        store = InMemoryDocumentStore(max_batch_size=10)
        repository = ChartRepository(store, batch_size=4)
        repository.create_chart(nodes=wide_chart(9), chart_id="wide")
        commits = store.commit_count

        deleted = repository.delete_nodes("wide", list(range(2, 11)))

        assert deleted == 9
        assert store.commit_count - commits == 3
        assert [r.id for r in repository.list_nodes("wide")] == [1]

    def test_batch_size_leaves_room_for_metadata(self):
        repository = ChartRepository(InMemoryDocumentStore(max_batch_size=10), batch_size=50)
        assert repository.batch_size == 9

    def test_default_chunk_is_450(self):
        assert ChartRepository(InMemoryDocumentStore()).batch_size == 450

    def test_replace_nodes_large_import(self):
        store = InMemoryDocumentStore(max_batch_size=10)
        repository = ChartRepository(store, batch_size=5)
        repository.create_chart(nodes=wide_chart(6), chart_id="w")
        records = [NodeRecord(id="1.0", name="Root")] + [
            NodeRecord(id=f"1.{i}", parent_id="1.0", name=f"Item {i}") for i in range(1, 12)
        ]

        repository.replace_nodes("w", records)

        assert [r.id for r in repository.list_nodes("w")] == [r.id for r in records]
        meta = repository.get_chart("w")
        assert meta.node_count == 12
        assert meta.next_id == 2

    def test_interrupted_delete_keeps_count_in_step(self):
        store = FailingCommitStore(max_batch_size=10)
        repository = ChartRepository(store, batch_size=4)
        repository.create_chart(nodes=wide_chart(9), chart_id="wide")
        store.fail_on = store.commit_count + 2

        with pytest.raises(StoreError):
            repository.delete_nodes("wide", list(range(2, 11)))

        remaining = repository.list_nodes("wide")
        assert len(remaining) == 6
        assert repository.get_chart("wide").node_count == len(remaining), \
            "VIOLATION: nodeCount drifted from the committed nodes"

    def test_every_delete_chunk_writes_count(self):
        store = InMemoryDocumentStore(max_batch_size=10)
        repository = ChartRepository(store, batch_size=4)
        repository.create_chart(nodes=wide_chart(9), chart_id="wide")
        counts = []
        original_apply = store._apply

        def recording_apply(ops):
            original_apply(ops)
            counts.append(store.get_document("charts/wide")["nodeCount"])

        store._apply = recording_apply
        repository.delete_nodes("wide", list(range(2, 11)))

        assert counts == [6, 2, 1]


class TestDescendantIds:

    def test_collects_whole_subtree(self):
        assert set(descendant_ids(org_chart(), 2)) == {5, 6, 8}
        assert descendant_ids(org_chart(), 8) == []
