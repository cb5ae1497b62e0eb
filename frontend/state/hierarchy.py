"""
Hierarchy View-Model

The single mutable in-memory tree of an editing session.

STRUCTURE:
==========
Nodes live in an arena (dict keyed by node id). Each node holds its parent
id and ONE ordered list of child ids, tagged by ``expanded``:

    expanded=True,  child_ids=[...]  -> children (visible)
    expanded=False, child_ids=[...]  -> collapsed children (hidden)
    expanded=True,  child_ids=[]     -> leaf

Because there is only one list, "children" and "collapsed children" can
never both be populated. A node that loses its last child always returns
to the leaf state.

IDENTITY:
=========
``stable_key`` is drawn from a per-view-model counter, assigned once and
never reused. Rebuilding from records keeps the key (and last position)
of every node id that survives the rebuild.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from itertools import count
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Any
import re

from backend.contracts import NodeId, NodeRecord
from backend.core import build_tree, numeric_value


Point = Tuple[float, float]


@dataclass(eq=False)
class HierarchyNode:
    """One arena entry: a record plus its visual state."""
    node_id: NodeId
    record: NodeRecord
    parent_id: Optional[NodeId] = None
    expanded: bool = True
    child_ids: List[NodeId] = field(default_factory=list)
    depth: int = 0
    position: Point = (0.0, 0.0)
    previous_position: Optional[Point] = None
    size: Optional[Tuple[float, float]] = None
    stable_key: int = 0

    @property
    def is_leaf(self) -> bool:
        return not self.child_ids

    @property
    def is_collapsed(self) -> bool:
        return not self.expanded and bool(self.child_ids)

    @property
    def visible_child_ids(self) -> List[NodeId]:
        return self.child_ids if self.expanded else []

    @property
    def hidden_child_ids(self) -> List[NodeId]:
        return [] if self.expanded else self.child_ids

    def move_to(self, x: float, y: float) -> None:
        self.previous_position = self.position
        self.position = (float(x), float(y))


class HierarchyViewModel:
    """
    Mutable tree plus lookup by id.

    All structural operations keep the arena consistent: parent links,
    child lists and depths agree after every call.
    """

    def __init__(self):
        self._nodes: Dict[NodeId, HierarchyNode] = {}
        self._root_id: Optional[NodeId] = None
        self._keys = count(1)

    # =========================================================================
    # CONSTRUCTION
    # =========================================================================

    @classmethod
    def from_records(cls, records: Sequence[NodeRecord]) -> HierarchyViewModel:
        view_model = cls()
        view_model.rebuild(records)
        return view_model

    def rebuild(self, records: Sequence[NodeRecord]) -> None:
        """
        Replace the whole tree from flat records (load / reload).

        Only the first root is used; orphans are left out.
        """
        previous = self._nodes
        self._nodes = {}
        self._root_id = None

        trees = build_tree(records)
        if not trees:
            return

        def add(tree, parent_id: Optional[NodeId], depth: int) -> None:
            old = previous.get(tree.id)
            node = HierarchyNode(
                node_id=tree.id,
                record=tree.record.copy(),
                parent_id=parent_id,
                depth=depth,
                child_ids=[child.id for child in tree.children],
                stable_key=old.stable_key if old else next(self._keys),
            )
            if old:
                node.position = old.position
                node.previous_position = old.previous_position
                node.size = old.size
            self._nodes[node.node_id] = node
            for child in tree.children:
                add(child, node.node_id, depth + 1)

        add(trees[0], None, 0)
        self._root_id = trees[0].id

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: Any) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[HierarchyNode]:
        """All nodes, pre-order, through both expanded and collapsed links."""
        if self._root_id is not None:
            yield from self._walk(self._root_id, visible_only=False)

    def get(self, node_id: NodeId) -> Optional[HierarchyNode]:
        return self._nodes.get(node_id)

    def require(self, node_id: NodeId) -> HierarchyNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise KeyError(node_id)
        return node

    @property
    def root(self) -> Optional[HierarchyNode]:
        return self._nodes.get(self._root_id) if self._root_id is not None else None

    def parent(self, node_id: NodeId) -> Optional[HierarchyNode]:
        parent_id = self.require(node_id).parent_id
        return self._nodes.get(parent_id) if parent_id is not None else None

    def children(self, node_id: NodeId) -> List[HierarchyNode]:
        return [self._nodes[c] for c in self.require(node_id).visible_child_ids]

    def collapsed_children(self, node_id: NodeId) -> List[HierarchyNode]:
        return [self._nodes[c] for c in self.require(node_id).hidden_child_ids]

    def _walk(self, node_id: NodeId, visible_only: bool) -> Iterator[HierarchyNode]:
        stack = [node_id]
        while stack:
            node = self._nodes[stack.pop()]
            yield node
            ids = node.visible_child_ids if visible_only else node.child_ids
            stack.extend(reversed(ids))

    def visible_nodes(self) -> List[HierarchyNode]:
        """Nodes reachable through expanded links only, pre-order."""
        if self._root_id is None:
            return []
        return list(self._walk(self._root_id, visible_only=True))

    def subtree_ids(self, node_id: NodeId) -> List[NodeId]:
        """The node and every descendant (collapsed or not), pre-order."""
        return [node.node_id for node in self._walk(node_id, visible_only=False)]

    def is_descendant(self, ancestor_id: NodeId, node_id: NodeId) -> bool:
        """
        True iff ``node_id`` is ``ancestor_id`` or lies anywhere below it,
        regardless of collapse state.
        """
        if ancestor_id not in self._nodes or node_id not in self._nodes:
            return False
        current: Optional[NodeId] = node_id
        while current is not None:
            if current == ancestor_id:
                return True
            current = self._nodes[current].parent_id
        return False

    def max_numeric_id(self) -> int:
        values = [v for v in (numeric_value(n) for n in self._nodes) if v is not None]
        return max(values, default=0)

    def max_name_suffix(self, prefix: str) -> int:
        """Highest N among names of the form ``"<prefix> N"``, tree-wide."""
        pattern = re.compile(rf"^{re.escape(prefix)} (\d+)$")
        best = 0
        for node in self._nodes.values():
            match = pattern.match(node.record.name or "")
            if match:
                best = max(best, int(match.group(1)))
        return best

    # =========================================================================
    # COLLAPSE / EXPAND
    # =========================================================================

    def toggle_collapse(self, node_id: NodeId) -> bool:
        """Flip a node between expanded and collapsed. Returns False for a leaf."""
        node = self.require(node_id)
        if node.is_leaf:
            return False
        node.expanded = not node.expanded
        return True

    def expand(self, node_id: NodeId) -> None:
        self.require(node_id).expanded = True

    def collapse_all(self) -> None:
        """Collapse every subtree below the root; the root itself is untouched."""
        root = self.root
        if root is None:
            return
        for node in self._walk(root.node_id, visible_only=False):
            if node is not root and not node.is_leaf:
                node.expanded = False

    def expand_all(self) -> None:
        for node in self._nodes.values():
            node.expanded = True

    def collapse_below(self, depth: int) -> None:
        """Collapse every node at ``depth`` or deeper that has children."""
        for node in self._nodes.values():
            if node.depth >= depth and not node.is_leaf:
                node.expanded = False

    # =========================================================================
    # STRUCTURAL EDITS
    # =========================================================================

    def insert_child(self, parent_id: Optional[NodeId], record: NodeRecord) -> HierarchyNode:
        """
        Append a new node under ``parent_id`` (or as the root of an empty
        tree). A collapsed parent is expanded so the new node is visible.
        """
        if record.id in self._nodes:
            raise ValueError(f"Duplicate node id: {record.id}")
        node = HierarchyNode(
            node_id=record.id,
            record=record,
            parent_id=parent_id,
            stable_key=next(self._keys),
        )
        if parent_id is None:
            if self._root_id is not None:
                raise ValueError("Tree already has a root")
            self._root_id = node.node_id
        else:
            parent = self.require(parent_id)
            parent.expanded = True
            parent.child_ids.append(node.node_id)
            node.depth = parent.depth + 1
            node.position = parent.position
        record.parent_id = parent_id
        self._nodes[node.node_id] = node
        return node

    def detach(self, node_id: NodeId) -> None:
        """Unlink a node from its parent's child list (node stays in the arena)."""
        node = self.require(node_id)
        if node.parent_id is None:
            return
        parent = self._nodes[node.parent_id]
        parent.child_ids.remove(node_id)
        if not parent.child_ids:
            parent.expanded = True
        node.parent_id = None

    def attach(self, node_id: NodeId, parent_id: NodeId) -> None:
        """Append a detached node under ``parent_id``, expanding it if collapsed."""
        node = self.require(node_id)
        parent = self.require(parent_id)
        parent.expanded = True
        parent.child_ids.append(node_id)
        node.parent_id = parent_id
        node.record.parent_id = parent_id
        self.fix_depths(node_id)

    def reparent(self, node_id: NodeId, new_parent_id: NodeId) -> int:
        """
        Move a node (with its subtree) under a new parent.

        No validation happens here. Returns the depth delta applied to the
        moved subtree.
        """
        before = self.require(node_id).depth
        self.detach(node_id)
        self.attach(node_id, new_parent_id)
        return self._nodes[node_id].depth - before

    def remove_subtree(self, node_id: NodeId) -> List[NodeId]:
        """Remove a node and all its descendants. Returns removed ids, pre-order."""
        removed = self.subtree_ids(node_id)
        self.detach(node_id)
        for removed_id in removed:
            del self._nodes[removed_id]
        if node_id == self._root_id:
            self._root_id = None
        return removed

    def fix_depths(self, node_id: NodeId) -> None:
        """Recompute depth for a node and everything below it."""
        node = self.require(node_id)
        parent = self._nodes.get(node.parent_id) if node.parent_id is not None else None
        node.depth = parent.depth + 1 if parent else 0
        stack = [node]
        while stack:
            current = stack.pop()
            for child_id in current.child_ids:
                child = self._nodes[child_id]
                child.depth = current.depth + 1
                stack.append(child)

    def rekey(self, old_id: NodeId, new_id: NodeId) -> None:
        """Change a node's id in place (stable key and position are kept)."""
        if old_id == new_id:
            return
        if new_id in self._nodes:
            raise ValueError(f"Duplicate node id: {new_id}")
        node = self._nodes.pop(old_id)
        node.node_id = new_id
        node.record.id = new_id
        self._nodes[new_id] = node
        if node.parent_id is None:
            self._root_id = new_id
        else:
            siblings = self._nodes[node.parent_id].child_ids
            siblings[siblings.index(old_id)] = new_id
        for child_id in node.child_ids:
            child = self._nodes[child_id]
            child.parent_id = new_id
            child.record.parent_id = new_id

    def update_record(self, node_id: NodeId, changes: Mapping[str, Any]) -> NodeRecord:
        """Apply a camelCase partial to the node's record in place."""
        record = self.require(node_id).record
        record.apply({k: v for k, v in changes.items() if k != "parentId"})
        return record

    # =========================================================================
    # FLATTEN
    # =========================================================================

    def records(self) -> List[NodeRecord]:
        """Copies of every record, parent before children."""
        return [node.record.copy() for node in self]

    def structure(self) -> Dict[NodeId, Tuple[Optional[NodeId], Tuple[NodeId, ...], bool]]:
        """Snapshot of the parent/children/expanded shape, for comparisons."""
        return {
            node_id: (node.parent_id, tuple(node.child_ids), node.expanded)
            for node_id, node in self._nodes.items()
        }
