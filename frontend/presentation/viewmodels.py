"""
Presentation Contracts

Responsibility:
Define ViewModel contracts for pure UI components.
Strictly decoupled from tree mutation and persistence.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from backend.contracts import NodeId
from frontend.state.hierarchy import HierarchyNode


LIGHT_TEXT = "#FFFFFF"
DARK_TEXT = "#111827"


def contrast_text_color(fill: str) -> str:
    """
    Readable text color for a hex fill (``#RGB`` or ``#RRGGBB``).
    Unparseable fills get light text.
    """
    value = (fill or "").lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        return LIGHT_TEXT
    try:
        r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return LIGHT_TEXT
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return DARK_TEXT if luminance > 0.5 else LIGHT_TEXT


class NotificationLevel(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class SaveStatus(Enum):
    IDLE = "idle"
    PENDING = "pending"
    SAVED = "saved"
    FAILED = "failed"


@dataclass(frozen=True)
class Notification:
    """Non-blocking toast."""
    notification_id: int
    level: NotificationLevel
    message: str
    duration_seconds: float = 3.0


@dataclass(frozen=True)
class SaveIndicatorViewModel:
    status: SaveStatus
    label: str


_SAVE_LABELS = {
    SaveStatus.IDLE: "",
    SaveStatus.PENDING: "Saving...",
    SaveStatus.SAVED: "Saved",
    SaveStatus.FAILED: "Save failed",
}


def save_indicator(status: SaveStatus) -> SaveIndicatorViewModel:
    return SaveIndicatorViewModel(status=status, label=_SAVE_LABELS[status])


@dataclass(frozen=True)
class NodeCardViewModel:
    """ViewModel for one rendered node card."""
    node_id: NodeId
    stable_key: int
    title: str
    subtitle: str
    fill_color: str
    text_color: str
    x: float
    y: float
    previous_position: Optional[Tuple[float, float]]
    depth: int
    has_children: bool
    is_collapsed: bool
    is_selected: bool
    is_drop_target: bool = False
    is_invalid_target: bool = False


def node_card(
    node: HierarchyNode,
    selected_id: Optional[NodeId] = None,
    drop_target: Optional[Tuple[NodeId, bool]] = None,
) -> NodeCardViewModel:
    record = node.record
    is_target = drop_target is not None and drop_target[0] == node.node_id
    return NodeCardViewModel(
        node_id=node.node_id,
        stable_key=node.stable_key,
        title=record.name,
        subtitle=record.responsible,
        fill_color=record.color,
        text_color=record.text_color,
        x=node.position[0],
        y=node.position[1],
        previous_position=node.previous_position,
        depth=node.depth,
        has_children=not node.is_leaf,
        is_collapsed=node.is_collapsed,
        is_selected=node.node_id == selected_id,
        is_drop_target=is_target and drop_target[1],
        is_invalid_target=is_target and not drop_target[1],
    )
