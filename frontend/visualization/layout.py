"""
Top-Down Tree Layout

Deterministic placement of the visible nodes of a hierarchy.

RULES:
======
- Root centred at (root_x, root_y)
- Each level sits one node height plus the vertical spacing below its parent
- A node's visible subtree occupies a horizontal slot as wide as the larger
  of the node itself and its children's slots (plus spacing between them)
- Children are centred under their parent
- Collapsed subtrees are not laid out and keep their last positions
- Every placement records the node's previous position for transitions
"""

from typing import Dict

from backend.contracts import NodeId
from frontend.config import SessionConfig
from frontend.state.hierarchy import HierarchyViewModel


def subtree_widths(view_model: HierarchyViewModel, config: SessionConfig) -> Dict[NodeId, float]:
    """Slot width of every visible node's visible subtree."""
    widths: Dict[NodeId, float] = {}
    for node in reversed(view_model.visible_nodes()):
        child_ids = node.visible_child_ids
        if not child_ids:
            widths[node.node_id] = config.layout_node_width
            continue
        total = sum(widths[c] for c in child_ids) + (len(child_ids) - 1) * config.horizontal_spacing
        widths[node.node_id] = max(config.layout_node_width, total)
    return widths


def layout_tree(view_model: HierarchyViewModel, config: SessionConfig = None) -> Dict[NodeId, tuple]:
    """
    Position every visible node. Returns the new positions by id.
    """
    config = config or SessionConfig()
    root = view_model.root
    if root is None:
        return {}

    widths = subtree_widths(view_model, config)
    level_step = config.layout_node_height + config.vertical_spacing
    positions: Dict[NodeId, tuple] = {}

    stack = [(root.node_id, config.root_x)]
    while stack:
        node_id, x = stack.pop()
        node = view_model.require(node_id)
        y = config.root_y + node.depth * level_step
        node.move_to(x, y)
        positions[node_id] = node.position

        child_ids = node.visible_child_ids
        if not child_ids:
            continue
        total = sum(widths[c] for c in child_ids) + (len(child_ids) - 1) * config.horizontal_spacing
        left = x - total / 2
        for child_id in child_ids:
            stack.append((child_id, left + widths[child_id] / 2))
            left += widths[child_id] + config.horizontal_spacing

    return positions
