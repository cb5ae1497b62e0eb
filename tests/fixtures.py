"""
Chart Fixtures

Explicit node sets, hypothesis strategies and a spying gateway shared by
the test suites.

RULES:
======
1. Named fixtures are EXPLICIT, not random
2. Random trees always have exactly one root and no cycles
3. The spy gateway records every persistence call in order
"""

from __future__ import annotations
from typing import Any, List, Optional, Sequence, Tuple

from hypothesis import strategies as st
from hypothesis.strategies import composite

from backend.charts import ChartRepository
from backend.contracts import NodeRecord
from backend.storage import InMemoryDocumentStore
from frontend.persistence import GatewayError, LocalNodeGateway, NodeGateway


# =============================================================================
# EXPLICIT NODE SETS
# =============================================================================

def make_records(rows: Sequence[Tuple[Any, Any, str]]) -> List[NodeRecord]:
    """Records from (id, parentId, name) rows."""
    return [NodeRecord(id=node_id, parent_id=parent_id, name=name) for node_id, parent_id, name in rows]


def org_chart() -> List[NodeRecord]:
    """
    CEO(1)
    ├── CTO(2)
    │   ├── Engineering Lead(5)
    │   │   └── Senior Developer(8)
    │   └── Product Manager(6)
    ├── CFO(3)
    │   └── Finance Manager(7)
    └── COO(4)
    """
    return make_records([
        (1, None, "CEO"),
        (2, 1, "CTO"),
        (3, 1, "CFO"),
        (4, 1, "COO"),
        (5, 2, "Engineering Lead"),
        (6, 2, "Product Manager"),
        (7, 3, "Finance Manager"),
        (8, 5, "Senior Developer"),
    ])


def deep_chain(length: int) -> List[NodeRecord]:
    """1 -> 2 -> ... -> length."""
    return make_records([(i, i - 1 if i > 1 else None, f"Level {i}") for i in range(1, length + 1)])


def wide_chart(children: int) -> List[NodeRecord]:
    """A root with ``children`` leaf children."""
    rows = [(1, None, "Root")] + [(i, 1, f"Leaf {i}") for i in range(2, children + 2)]
    return make_records(rows)


# =============================================================================
# STRATEGIES (Generators)
# =============================================================================

@composite
def flat_trees(draw, min_size: int = 1, max_size: int = 30):
    """Single-root record sets in a random order; every parent id exists."""
    size = draw(st.integers(min_value=min_size, max_value=max_size))
    rows = [(1, None, "Root")]
    for node_id in range(2, size + 1):
        parent = draw(st.integers(min_value=1, max_value=node_id - 1))
        rows.append((node_id, parent, f"Node {node_id}"))
    ordered = draw(st.permutations(rows))
    return make_records(ordered)


# =============================================================================
# GATEWAYS
# =============================================================================

def chart_backend(records: Optional[Sequence[NodeRecord]] = None, chart_id: str = "chart-1"):
    """(store, repository, gateway) with one chart holding ``records``."""
    store = InMemoryDocumentStore()
    repository = ChartRepository(store)
    repository.create_chart(title="Test Chart", nodes=list(records if records is not None else org_chart()),
                            chart_id=chart_id)
    return store, repository, LocalNodeGateway(repository, chart_id)


class SpyGateway(NodeGateway):
    """
    Delegates to an inner gateway, recording each call.
    Methods named in ``failing`` raise GatewayError instead.
    """

    def __init__(self, inner: NodeGateway, failing: Sequence[str] = ()):
        self._inner = inner
        self.chart_id = inner.chart_id
        self.calls: List[Tuple[str, tuple]] = []
        self.failing = set(failing)

    def _call(self, name: str, *args):
        self.calls.append((name, args))
        if name in self.failing:
            raise GatewayError(f"{name} unavailable")
        return getattr(self._inner, name)(*args)

    def writes(self) -> List[Tuple[str, tuple]]:
        return [c for c in self.calls if c[0] not in ("list_nodes", "next_id")]

    def list_nodes(self):
        return self._call("list_nodes")

    def next_id(self):
        return self._call("next_id")

    def add_node(self, fields, parent_id, node_id=None):
        return self._call("add_node", fields, parent_id, node_id)

    def update_node(self, node_id, changes):
        return self._call("update_node", node_id, changes)

    def update_nodes(self, changes_by_id):
        return self._call("update_nodes", changes_by_id)

    def update_node_color(self, node_id, color, text_color):
        return self._call("update_node_color", node_id, color, text_color)

    def delete_nodes(self, node_ids):
        return self._call("delete_nodes", list(node_ids))

    def replace_nodes(self, records, next_id=None):
        return self._call("replace_nodes", records, next_id)
