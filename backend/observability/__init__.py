"""
Observability & Audit Layer

RESPONSIBILITY: Logging setup and an append-only audit trail of chart writes
ALLOWED INPUTS: Audit entries from the persistence and interaction layers
OUTPUTS: AuditLogEntry sequences, filtered views

WHAT THIS LAYER MUST NOT DO:
============================
- Modify system behavior
- Block or fail the operation being recorded
- Hold references to mutable chart state (metadata is stringified)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional
import logging
import uuid

from ..contracts.base import utc_now
from ..contracts.events import AuditEventType, AuditLogEntry


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass
class ObservabilityConfig:
    """Configuration for logging and audit collection."""
    log_level: str = "INFO"
    max_audit_entries: int = 10_000


def configure_logging(level: str = "INFO") -> None:
    """Install a root handler once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    root.setLevel(level.upper())


# =============================================================================
# AUDIT LOG
# =============================================================================

class AuditLog:
    """
    Append-only audit collector.

    Oldest entries are dropped once ``max_entries`` is reached so a long
    running server does not grow without bound.
    """

    def __init__(self, layer: str = "orgflow", max_entries: int = 10_000):
        self._layer = layer
        self._max_entries = max_entries
        self._entries: List[AuditLogEntry] = []

    def record(
        self,
        event_type: AuditEventType,
        action: str,
        entity_id: Any = None,
        chart_id: Optional[str] = None,
        **metadata: Any,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            entry_id=f"audit_{uuid.uuid4().hex[:12]}",
            event_type=event_type,
            timestamp=utc_now(),
            layer=self._layer,
            action=action,
            entity_id=str(entity_id) if entity_id is not None else None,
            chart_id=chart_id,
            metadata=tuple((k, str(v)) for k, v in sorted(metadata.items())),
        )
        self._entries.append(entry)
        if len(self._entries) > self._max_entries:
            del self._entries[: len(self._entries) - self._max_entries]
        return entry

    def get_entries(
        self,
        event_type: Optional[AuditEventType] = None,
        chart_id: Optional[str] = None,
        action: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        """Get entries, optionally filtered."""
        entries = self._entries
        if event_type:
            entries = [e for e in entries if e.event_type == event_type]
        if chart_id:
            entries = [e for e in entries if e.chart_id == chart_id]
        if action:
            entries = [e for e in entries if e.action == action]
        return list(entries)

    @property
    def layer_name(self) -> str:
        return self._layer

    @property
    def entry_count(self) -> int:
        return len(self._entries)


__all__ = ['ObservabilityConfig', 'configure_logging', 'AuditLog', 'LOG_FORMAT']
