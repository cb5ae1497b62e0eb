"""
Contracts Package

Shared, dependency-free types consumed by every layer.
"""

from .base import (
    NodeId, ErrorCode, Error, OperationResult,
    normalize_node_id, numeric_id, utc_now,
)
from .records import (
    NodeRecord, ChartMeta, document_changes,
    DEFAULT_NODE_COLOR, DEFAULT_TEXT_COLOR, IMPORTED_NODE_COLOR,
    EDITABLE_FIELDS, STYLE_FIELDS,
)
from .events import AuditEventType, AuditLogEntry

__all__ = [
    'NodeId', 'ErrorCode', 'Error', 'OperationResult',
    'normalize_node_id', 'numeric_id', 'utc_now',
    'NodeRecord', 'ChartMeta', 'document_changes',
    'DEFAULT_NODE_COLOR', 'DEFAULT_TEXT_COLOR', 'IMPORTED_NODE_COLOR',
    'EDITABLE_FIELDS', 'STYLE_FIELDS',
    'AuditEventType', 'AuditLogEntry',
]
