"""
Chart Repository (Persistence Adapter)

Translates chart and node operations into document-store writes.

LAYOUT IN THE STORE:
====================
    charts/{chartId}                -> ChartMeta document
    charts/{chartId}/nodes/{nodeId} -> NodeRecord document (id is the key)

GUARANTEES:
===========
- Chart metadata {nextId, nodeCount, updatedAt} is written in the same
  batch as the node writes that change it
- Multi-document writes are split into chunks of at most ``batch_size``
  documents so a single commit never exceeds the store's limit
- Writes are idempotent per record: re-applying a write changes nothing
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence
from datetime import datetime
import logging
import uuid

from ..contracts.base import NodeId, normalize_node_id, numeric_id, utc_now
from ..contracts.records import NodeRecord, ChartMeta, document_changes, STYLE_FIELDS
from ..contracts.events import AuditEventType
from ..core.outline import next_id_after_import
from ..observability import AuditLog
from ..storage import DocumentStore, DocumentNotFound
from .templates import template_records


logger = logging.getLogger(__name__)

CHARTS = "charts"
DEFAULT_BATCH_SIZE = 450


class ChartNotFound(LookupError):
    def __init__(self, chart_id: str):
        super().__init__(f"Chart not found: {chart_id}")
        self.chart_id = chart_id


class NodeNotFound(LookupError):
    def __init__(self, chart_id: str, node_id: NodeId):
        super().__init__(f"Node {node_id} not found in chart {chart_id}")
        self.chart_id = chart_id
        self.node_id = node_id


def chunked(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [items[i:i + size] for i in range(0, len(items), size)]


def descendant_ids(records: Iterable[NodeRecord], node_id: NodeId) -> List[NodeId]:
    """All ids below ``node_id`` (not including it), depth-first."""
    by_parent: Dict[Optional[NodeId], List[NodeId]] = {}
    for record in records:
        by_parent.setdefault(record.parent_id, []).append(record.id)
    out: List[NodeId] = []
    stack = list(reversed(by_parent.get(node_id, [])))
    seen = {node_id}
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        out.append(current)
        stack.extend(reversed(by_parent.get(current, [])))
    return out


class ChartRepository:
    """
    Chart and node persistence over a DocumentStore.
    """

    def __init__(
        self,
        store: DocumentStore,
        audit: Optional[AuditLog] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ):
        if batch_size >= store.max_batch_size:
            # Leave room for the metadata write that rides along.
            batch_size = store.max_batch_size - 1
        self._store = store
        self._audit = audit or AuditLog(layer="persistence")
        self._batch_size = batch_size
        self._clock = clock

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def audit(self) -> AuditLog:
        return self._audit

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def _chart_path(chart_id: str) -> str:
        return f"{CHARTS}/{chart_id}"

    @staticmethod
    def _nodes_path(chart_id: str) -> str:
        return f"{CHARTS}/{chart_id}/nodes"

    def _node_path(self, chart_id: str, node_id: NodeId) -> str:
        return f"{self._nodes_path(chart_id)}/{node_id}"

    def _require_chart(self, chart_id: str) -> Dict[str, Any]:
        doc = self._store.get_document(self._chart_path(chart_id))
        if doc is None:
            raise ChartNotFound(chart_id)
        return doc

    def _touch(self, **extra: Any) -> Dict[str, Any]:
        data = {"updatedAt": self._clock().isoformat()}
        data.update(extra)
        return data

    # =========================================================================
    # CHARTS
    # =========================================================================

    def list_charts(self) -> List[ChartMeta]:
        """All charts, most recently updated first."""
        charts = [
            ChartMeta.from_document(chart_id, doc)
            for chart_id, doc in self._store.get_collection(CHARTS).items()
        ]
        charts.sort(key=lambda c: c.updated_at.timestamp() if c.updated_at else float("-inf"), reverse=True)
        return charts

    def get_chart(self, chart_id: str) -> ChartMeta:
        return ChartMeta.from_document(chart_id, self._require_chart(chart_id))

    def chart_exists(self, chart_id: str) -> bool:
        return self._store.get_document(self._chart_path(chart_id)) is not None

    def create_chart(
        self,
        title: Optional[str] = None,
        nodes: Optional[Sequence[NodeRecord]] = None,
        template: Optional[str] = None,
        chart_id: Optional[str] = None,
    ) -> ChartMeta:
        """
        Create a chart, optionally populated from explicit nodes or a template.
        """
        chart_id = chart_id or uuid.uuid4().hex[:20]
        if self.chart_exists(chart_id):
            raise ValueError(f"Chart already exists: {chart_id}")

        records = list(nodes) if nodes else (template_records(template) if template else [])
        now = self._clock()
        meta = ChartMeta(
            id=chart_id,
            title=title or "Untitled Chart",
            next_id=next_id_after_import(records) if records else 1,
            node_count=len(records),
            created_at=now,
            updated_at=now,
        )
        self._write_records(chart_id, records, meta_doc=meta.to_document())
        self._audit.record(AuditEventType.CHART, "chart_created", chart_id, chart_id=chart_id,
                           node_count=len(records))
        logger.info("Chart created: %s (%d nodes)", chart_id, len(records))
        return meta

    def delete_chart(self, chart_id: str) -> int:
        """Delete a chart and all of its nodes. Returns the node count removed."""
        self._require_chart(chart_id)
        node_ids = list(self._store.get_collection(self._nodes_path(chart_id)).keys())
        for chunk in chunked(node_ids, self._batch_size):
            batch = self._store.batch()
            for node_id in chunk:
                batch.delete(self._node_path(chart_id, node_id))
            batch.commit()
        self._store.delete_document(self._chart_path(chart_id))
        self._audit.record(AuditEventType.CHART, "chart_deleted", chart_id, chart_id=chart_id)
        logger.info("Chart deleted: %s (%d nodes)", chart_id, len(node_ids))
        return len(node_ids)

    def duplicate_chart(self, chart_id: str, title: Optional[str] = None) -> ChartMeta:
        source = self.get_chart(chart_id)
        records = self.list_nodes(chart_id)
        copy_meta = self.create_chart(title=title or f"{source.title} (Copy)", nodes=records)
        if source.next_id > copy_meta.next_id:
            self._store.update_document(self._chart_path(copy_meta.id), {"nextId": source.next_id})
            copy_meta.next_id = source.next_id
        return copy_meta

    def rename_chart(self, chart_id: str, title: str) -> ChartMeta:
        self._require_chart(chart_id)
        self._store.update_document(self._chart_path(chart_id), self._touch(title=title))
        return self.get_chart(chart_id)

    # =========================================================================
    # NODES
    # =========================================================================

    def list_nodes(self, chart_id: str) -> List[NodeRecord]:
        self._require_chart(chart_id)
        docs = self._store.get_collection(self._nodes_path(chart_id))
        return [NodeRecord.from_document(node_id, doc) for node_id, doc in docs.items()]

    def get_node(self, chart_id: str, node_id: NodeId) -> NodeRecord:
        doc = self._store.get_document(self._node_path(chart_id, node_id))
        if doc is None:
            self._require_chart(chart_id)
            raise NodeNotFound(chart_id, node_id)
        return NodeRecord.from_document(node_id, doc)

    def add_node(
        self,
        chart_id: str,
        fields: Optional[Mapping[str, Any]] = None,
        parent_id: Optional[NodeId] = None,
        node_id: Optional[NodeId] = None,
    ) -> NodeId:
        """
        Create a node and return its id.

        A requested ``node_id`` is honoured when it is free; otherwise the
        chart's ``nextId`` counter supplies the id.
        """
        meta = self._require_chart(chart_id)
        existing = self._store.get_collection(self._nodes_path(chart_id))
        counter = int(meta.get("nextId") or 1)

        if node_id is not None and str(node_id) not in existing:
            new_id = normalize_node_id(node_id)
        else:
            new_id = counter
            while str(new_id) in existing:
                new_id += 1
        numeric = numeric_id(new_id)
        counter = max(counter, numeric + 1) if numeric is not None else counter

        fields = dict(fields or {})
        if parent_id is not None:
            fields["parentId"] = parent_id
        record = NodeRecord(id=new_id)
        record.apply(document_changes(fields))

        batch = self._store.batch()
        batch.set(self._node_path(chart_id, new_id), record.to_document())
        batch.update(self._chart_path(chart_id), self._touch(nextId=counter, nodeCount=len(existing) + 1))
        batch.commit()
        self._audit.record(AuditEventType.NODE_WRITE, "node_added", new_id, chart_id=chart_id,
                           parent_id=record.parent_id)
        return new_id

    def update_node(self, chart_id: str, node_id: NodeId, changes: Mapping[str, Any]) -> None:
        self.update_nodes(chart_id, {node_id: changes})

    def update_nodes(self, chart_id: str, changes_by_id: Mapping[NodeId, Mapping[str, Any]]) -> int:
        """
        Apply partial updates to several nodes. Unknown fields are dropped.
        Returns the number of node documents written.
        """
        self._require_chart(chart_id)
        items = [
            (node_id, document_changes(changes))
            for node_id, changes in changes_by_id.items()
        ]
        items = [(node_id, changes) for node_id, changes in items if changes]
        if not items:
            return 0
        for node_id, changes in items:
            if "parentId" in changes and changes["parentId"] not in (None, ""):
                changes["parentId"] = normalize_node_id(changes["parentId"])

        for chunk in chunked(items, self._batch_size):
            batch = self._store.batch()
            for node_id, changes in chunk:
                batch.update(self._node_path(chart_id, node_id), changes)
            batch.update(self._chart_path(chart_id), self._touch())
            try:
                batch.commit()
            except DocumentNotFound as e:
                missing = e.path.rsplit("/", 1)[-1]
                raise NodeNotFound(chart_id, normalize_node_id(missing)) from e

        for node_id, changes in items:
            self._audit.record(
                AuditEventType.STRUCTURE if "parentId" in changes else AuditEventType.NODE_WRITE,
                "node_updated", node_id, chart_id=chart_id, fields=",".join(sorted(changes)),
            )
        return len(items)

    def update_node_color(self, chart_id: str, node_id: NodeId, color: str, text_color: str) -> None:
        self.update_nodes(chart_id, {node_id: dict(zip(STYLE_FIELDS, (color, text_color)))})

    def delete_nodes(self, chart_id: str, node_ids: Iterable[NodeId]) -> int:
        """
        Delete exactly the given nodes (no cascade), in chunks.
        Returns the number of ids that existed and were removed.
        """
        self._require_chart(chart_id)
        existing = self._store.get_collection(self._nodes_path(chart_id))
        ids = list(dict.fromkeys(str(normalize_node_id(n)) for n in node_ids))
        if not ids:
            return 0
        removed = sum(1 for node_id in ids if node_id in existing)

        batches = self._commit_ops(chart_id, [("delete", node_id, None) for node_id in ids], existing, {})

        self._audit.record(AuditEventType.STRUCTURE, "nodes_deleted", None, chart_id=chart_id,
                           count=removed, batches=batches)
        logger.info("Deleted %d nodes from %s in %d batch(es)", removed, chart_id, batches)
        return removed

    def delete_subtree(self, chart_id: str, node_id: NodeId) -> List[NodeId]:
        """Delete a node and all of its descendants (server-side cascade)."""
        records = self.list_nodes(chart_id)
        node_id = normalize_node_id(node_id)
        if not any(r.id == node_id for r in records):
            raise NodeNotFound(chart_id, node_id)
        ids = [node_id] + descendant_ids(records, node_id)
        self.delete_nodes(chart_id, ids)
        return ids

    def replace_nodes(
        self,
        chart_id: str,
        records: Sequence[NodeRecord],
        next_id: Optional[int] = None,
    ) -> int:
        """
        Replace the whole node collection (bulk import). Destructive.
        """
        self._require_chart(chart_id)
        existing = self._store.get_collection(self._nodes_path(chart_id))
        new_ids = {str(r.id) for r in records}
        stale = [node_id for node_id in existing if node_id not in new_ids]
        if next_id is None:
            next_id = next_id_after_import(records)

        ops = [("delete", node_id, None) for node_id in stale]
        ops += [("set", str(r.id), r.to_document()) for r in records]
        self._commit_ops(chart_id, ops, existing, {"nextId": next_id})

        self._audit.record(AuditEventType.IMPORT, "nodes_replaced", None, chart_id=chart_id,
                           count=len(records), removed=len(stale), next_id=next_id)
        logger.info("Replaced nodes of %s: %d imported, %d removed", chart_id, len(records), len(stale))
        return len(records)

    def next_node_id(self, chart_id: str) -> Optional[int]:
        """The persisted id counter, if the chart has one."""
        value = self._require_chart(chart_id).get("nextId")
        return numeric_id(value) if value is not None else None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _write_records(self, chart_id: str, records: Sequence[NodeRecord], meta_doc: Dict[str, Any]) -> None:
        self._store.set_document(self._chart_path(chart_id), meta_doc)
        ops = [("set", str(r.id), r.to_document()) for r in records]
        if ops:
            self._commit_ops(chart_id, ops, None, None)

    def _commit_ops(
        self,
        chart_id: str,
        ops,
        existing: Optional[Iterable[str]],
        extra_meta: Optional[Dict[str, Any]],
    ) -> int:
        """
        Commit node ops in chunks. With ``existing`` given, every chunk also
        writes the node count as of that chunk, so a failure part way
        through leaves metadata matching what was committed. ``extra_meta``
        rides along with every chunk. Returns the number of batches.
        """
        present = set(existing) if existing is not None else None
        chunks = chunked(ops, self._batch_size) or [[]]
        for chunk in chunks:
            batch = self._store.batch()
            for kind, node_id, data in chunk:
                path = self._node_path(chart_id, node_id)
                if kind == "delete":
                    batch.delete(path)
                    if present is not None:
                        present.discard(node_id)
                else:
                    batch.set(path, data)
                    if present is not None:
                        present.add(node_id)
            if present is not None:
                batch.update(self._chart_path(chart_id), self._touch(nodeCount=len(present), **(extra_meta or {})))
            batch.commit()
        return len(chunks)
