"""
Node and Chart Records

Persisted shapes for a chart and its nodes. A record is what the document
store holds; everything else (hierarchy, positions, collapse state) is
derived in memory.

WIRE FORMAT:
============
Stored documents use camelCase keys (``parentId``, ``textColor``) so the
same documents can be exchanged with the browser client unchanged. The
node ``id`` is the document key and is NOT stored inside the document.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from .base import NodeId, normalize_node_id


DEFAULT_NODE_COLOR = "#003057"
DEFAULT_TEXT_COLOR = "white"
IMPORTED_NODE_COLOR = "#2A3565"

# Fields a client may change through a content edit.
EDITABLE_FIELDS = ("parentId", "name", "url", "description", "responsible", "status", "cost")
STYLE_FIELDS = ("color", "textColor")

# record attribute -> document key
_DOC_KEYS = {
    "parent_id": "parentId",
    "name": "name",
    "description": "description",
    "responsible": "responsible",
    "status": "status",
    "cost": "cost",
    "url": "url",
    "color": "color",
    "text_color": "textColor",
}
_ATTRS = {doc_key: attr for attr, doc_key in _DOC_KEYS.items()}


@dataclass
class NodeRecord:
    """One node of a chart, as persisted."""
    id: NodeId
    parent_id: Optional[NodeId] = None
    name: str = ""
    description: str = ""
    responsible: str = ""
    status: str = ""
    cost: str = ""
    url: str = ""
    color: str = DEFAULT_NODE_COLOR
    text_color: str = DEFAULT_TEXT_COLOR

    def to_document(self) -> Dict[str, Any]:
        """Document body (without the id, which is the document key)."""
        return {doc_key: getattr(self, attr) for attr, doc_key in _DOC_KEYS.items()}

    def to_dict(self) -> Dict[str, Any]:
        """Flat record including the id."""
        data = {"id": self.id}
        data.update(self.to_document())
        return data

    @classmethod
    def from_document(cls, node_id: Any, data: Mapping[str, Any]) -> NodeRecord:
        parent = data.get("parentId")
        return cls(
            id=normalize_node_id(node_id),
            parent_id=normalize_node_id(parent) if parent not in (None, "") else None,
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            responsible=str(data.get("responsible") or ""),
            status=str(data.get("status") or ""),
            cost=str(data.get("cost") or ""),
            url=str(data.get("url") or ""),
            color=str(data.get("color") or DEFAULT_NODE_COLOR),
            text_color=str(data.get("textColor") or DEFAULT_TEXT_COLOR),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NodeRecord:
        if "id" not in data:
            raise ValueError("Node record requires an 'id'")
        return cls.from_document(data["id"], data)

    def apply(self, changes: Mapping[str, Any]) -> None:
        """Apply a partial document (camelCase keys) in place."""
        for key, value in changes.items():
            attr = _ATTRS.get(key)
            if attr is None:
                continue
            if attr == "parent_id":
                value = normalize_node_id(value) if value not in (None, "") else None
            elif value is None:
                value = ""
            setattr(self, attr, value)

    def copy(self) -> NodeRecord:
        return replace(self)


def document_changes(changes: Mapping[str, Any], allowed=None) -> Dict[str, Any]:
    """
    Keep only known document keys (optionally restricted to ``allowed``).
    Unknown keys are dropped, never stored.
    """
    allowed = set(allowed) if allowed is not None else set(_ATTRS)
    return {k: v for k, v in changes.items() if k in allowed and k in _ATTRS}


@dataclass
class ChartMeta:
    """Chart-level metadata kept alongside the node collection."""
    id: str
    title: str = "Untitled Chart"
    next_id: int = 1
    node_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_document(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "nextId": self.next_id,
            "nodeCount": self.node_count,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id}
        data.update(self.to_document())
        return data

    @classmethod
    def from_document(cls, chart_id: str, data: Mapping[str, Any]) -> ChartMeta:
        return cls(
            id=chart_id,
            title=data.get("title") or "Untitled Chart",
            next_id=int(data.get("nextId") or 1),
            node_count=int(data.get("nodeCount") or 0),
            created_at=_parse_time(data.get("createdAt")),
            updated_at=_parse_time(data.get("updatedAt")),
        )


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
