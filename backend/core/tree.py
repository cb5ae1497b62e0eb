"""
Tree Builder

Converts the flat record collection of a chart into nested trees and back.

RULES:
======
- build_tree is pure: the input records are never modified
- Children keep the order of the input collection
- Orphans (parentId pointing at a missing node) attach nowhere and are
  silently left out; this is not an error
- Records unreachable from the requested level (including parent cycles)
  are left out the same way
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..contracts.base import NodeId, normalize_node_id
from ..contracts.records import NodeRecord, DEFAULT_NODE_COLOR, DEFAULT_TEXT_COLOR


# Export field names (record attribute -> exported key)
EXPORT_FIELDS = (
    ("id", "id"),
    ("parent_id", "parentId"),
    ("name", "name"),
    ("url", "url"),
    ("description", "additionalInfo"),
    ("responsible", "personName"),
    ("status", "status"),
    ("cost", "cost"),
    ("color", "color"),
    ("text_color", "textColor"),
)


@dataclass
class TreeNode:
    """A record with its nested children."""
    record: NodeRecord
    children: List[TreeNode] = field(default_factory=list)

    @property
    def id(self) -> NodeId:
        return self.record.id

    def size(self) -> int:
        return 1 + sum(child.size() for child in self.children)


def build_tree(records: Sequence[NodeRecord], parent_id: Optional[NodeId] = None) -> List[TreeNode]:
    """
    Build one tree per record whose parent is ``parent_id``.

    The caller takes element 0 for the single chart root.
    """
    by_parent: Dict[Optional[NodeId], List[NodeRecord]] = {}
    for record in records:
        by_parent.setdefault(record.parent_id, []).append(record)

    def build(level_parent: Optional[NodeId], seen: frozenset) -> List[TreeNode]:
        trees = []
        for record in by_parent.get(level_parent, []):
            if record.id in seen:
                continue
            trees.append(TreeNode(record=record, children=build(record.id, seen | {record.id})))
        return trees

    return build(parent_id, frozenset())


def flatten(trees: Iterable[TreeNode]) -> List[NodeRecord]:
    """Depth-first (parent before children) copy of every record."""
    out: List[NodeRecord] = []

    def walk(node: TreeNode) -> None:
        out.append(node.record.copy())
        for child in node.children:
            walk(child)

    for tree in trees:
        walk(tree)
    return out


# =============================================================================
# EXPORT FORMAT
# =============================================================================

def export_record(record: NodeRecord) -> Dict[str, Any]:
    return {key: getattr(record, attr) for attr, key in EXPORT_FIELDS}


def to_export(node: TreeNode) -> Dict[str, Any]:
    data = export_record(node.record)
    data["children"] = [to_export(child) for child in node.children]
    return data


def export_tree(records: Sequence[NodeRecord]) -> Dict[str, Any]:
    """Nested export of the chart root, or ``{}`` for an empty chart."""
    roots = build_tree(records)
    return to_export(roots[0]) if roots else {}


def export_flat(records: Sequence[NodeRecord]) -> List[Dict[str, Any]]:
    return [export_record(r) for r in records]


def record_from_export(data: Mapping[str, Any]) -> NodeRecord:
    raw_parent = data.get("parentId")
    return NodeRecord(
        id=normalize_node_id(data["id"]),
        parent_id=normalize_node_id(raw_parent) if raw_parent not in (None, "") else None,
        name=str(data.get("name") or ""),
        url=str(data.get("url") or ""),
        description=str(data.get("additionalInfo") or data.get("description") or ""),
        responsible=str(data.get("personName") or data.get("responsible") or ""),
        status=str(data.get("status") or ""),
        cost=str(data.get("cost") or ""),
        color=str(data.get("color") or DEFAULT_NODE_COLOR),
        text_color=str(data.get("textColor") or DEFAULT_TEXT_COLOR),
    )


def records_from_export(data: Any) -> List[NodeRecord]:
    """
    Inverse of the export formats.

    Accepts the nested tree export (a dict with ``children``) or the flat
    export (a list of dicts). Nesting wins over an exported ``parentId``.
    """
    if isinstance(data, list):
        return [record_from_export(item) for item in data]
    if not data:
        return []

    out: List[NodeRecord] = []

    def walk(item: Mapping[str, Any], parent: Optional[NodeId]) -> None:
        record = record_from_export(item)
        record.parent_id = parent
        out.append(record)
        for child in item.get("children") or []:
            walk(child, record.id)

    walk(data, None)
    return out
