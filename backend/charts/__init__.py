"""
Chart Persistence Layer

RESPONSIBILITY: Chart and node reads/writes over a DocumentStore
ALLOWED INPUTS: NodeRecords, partial camelCase field maps, node id sets
OUTPUTS: NodeRecords, ChartMeta

WHAT THIS LAYER MUST NOT DO:
============================
- Validate node content (any string is accepted)
- Enforce tree invariants (the interaction layer does that)
- Hold per-session UI state
"""

from .repository import (
    ChartRepository, ChartNotFound, NodeNotFound,
    chunked, descendant_ids, DEFAULT_BATCH_SIZE,
)
from .templates import template_records, seed_charts, TEMPLATE_NAMES

__all__ = [
    'ChartRepository', 'ChartNotFound', 'NodeNotFound',
    'chunked', 'descendant_ids', 'DEFAULT_BATCH_SIZE',
    'template_records', 'seed_charts', 'TEMPLATE_NAMES',
]
