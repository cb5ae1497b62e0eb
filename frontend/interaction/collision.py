"""
Collision Detection

Axis-aligned rectangle overlap between node cards. Positions are node
centres; edges touching counts as overlap.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from frontend.state.hierarchy import HierarchyNode


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def around(cls, center: Tuple[float, float], size: Tuple[float, float]) -> "Rect":
        (x, y), (w, h) = center, size
        return cls(x - w / 2, y - h / 2, x + w / 2, y + h / 2)


def rects_overlap(a: Rect, b: Rect) -> bool:
    return not (a.right < b.left or a.left > b.right or a.bottom < b.top or a.top > b.bottom)


def node_rect(node: HierarchyNode, default_size: Tuple[float, float]) -> Rect:
    return Rect.around(node.position, node.size or default_size)


def nodes_collide(a: HierarchyNode, b: HierarchyNode, default_size: Tuple[float, float]) -> bool:
    return rects_overlap(node_rect(a, default_size), node_rect(b, default_size))


def first_overlap(
    dragged: HierarchyNode,
    candidates: Iterable[HierarchyNode],
    default_size: Tuple[float, float],
) -> Optional[HierarchyNode]:
    """First candidate (in iteration order) whose rectangle overlaps ``dragged``."""
    rect = node_rect(dragged, default_size)
    for candidate in candidates:
        if candidate is dragged:
            continue
        if rects_overlap(rect, node_rect(candidate, default_size)):
            return candidate
    return None
