"""
Audit Event Contracts

Immutable records of what happened to a chart. Every store write and every
rejected or failed editor operation produces one entry; the observability
layer collects them append-only.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple
from enum import Enum


class AuditEventType(Enum):
    """Explicit audit event types."""
    CHART = "chart"
    NODE_WRITE = "node_write"
    STRUCTURE = "structure"
    IMPORT = "import"
    REJECTED = "rejected"
    ERROR = "error"
    SYSTEM = "system"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    timestamp: datetime
    layer: str  # Which layer generated this
    action: str
    entity_id: Optional[str] = None
    chart_id: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def get(self, key: str) -> Optional[str]:
        for k, v in self.metadata:
            if k == key:
                return v
        return None
