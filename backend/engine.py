"""
Engine Orchestration Module

Wires the backend layers together from one configuration object.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. The engine builds and owns the layer instances; callers get them
   through explicit accessors
3. All writes are traceable through the audit log
4. Configuration comes from dataclasses, overridable from the environment
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional
import logging
import os

from .charts import ChartRepository, DEFAULT_BATCH_SIZE, seed_charts
from .contracts.events import AuditEventType
from .observability import AuditLog, ObservabilityConfig, configure_logging
from .storage import DocumentStore, StorageConfig, create_store


logger = logging.getLogger(__name__)

ENV_PREFIX = "ORGFLOW_"


@dataclass
class ApiConfig:
    """HTTP surface settings."""
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    default_chart_id: str = "acme-corp"
    seed_on_empty: bool = True
    delete_batch_size: int = DEFAULT_BATCH_SIZE


@dataclass
class BackendConfig:
    """Unified configuration for the entire backend."""
    storage: StorageConfig = None
    api: ApiConfig = None
    observability: ObservabilityConfig = None

    def __post_init__(self):
        self.storage = self.storage or StorageConfig()
        self.api = self.api or ApiConfig()
        self.observability = self.observability or ObservabilityConfig()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> BackendConfig:
        """
        Defaults overridden by ORGFLOW_* variables.

        A storage path without an explicit backend selects the file store.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(ENV_PREFIX + name)
            return value.strip() if value and value.strip() else None

        config = cls()
        path = get("STORAGE_PATH")
        backend = get("STORAGE_BACKEND")
        if path:
            config.storage.storage_path = path
            config.storage.backend_type = backend or "file"
        elif backend:
            config.storage.backend_type = backend
        if get("DEFAULT_CHART"):
            config.api.default_chart_id = get("DEFAULT_CHART")
        if get("SEED"):
            config.api.seed_on_empty = get("SEED").lower() in ("1", "true", "yes", "on")
        if get("CORS_ORIGINS"):
            config.api.cors_origins = [o.strip() for o in get("CORS_ORIGINS").split(",") if o.strip()]
        if get("LOG_LEVEL"):
            config.observability.log_level = get("LOG_LEVEL")
        return config


class OrgFlowBackend:
    """
    Backend for the chart editor.

    LAYER FLOW:
    ===========
    1. Storage: documents addressed by path (memory or JSON file)
    2. Charts: chart/node operations over the store
    3. Observability: audit entries for every write
    """

    def __init__(self, config: Optional[BackendConfig] = None, store: Optional[DocumentStore] = None):
        self._config = config or BackendConfig()
        configure_logging(self._config.observability.log_level)
        self._audit = AuditLog(layer="backend", max_entries=self._config.observability.max_audit_entries)
        self._store = store or create_store(self._config.storage)
        self._charts = ChartRepository(
            self._store,
            audit=self._audit,
            batch_size=self._config.api.delete_batch_size,
        )
        if self._config.api.seed_on_empty:
            self.seed_if_empty()

    @property
    def config(self) -> BackendConfig:
        return self._config

    @property
    def charts(self) -> ChartRepository:
        """Direct access to the chart persistence layer."""
        return self._charts

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def audit(self) -> AuditLog:
        return self._audit

    def seed_if_empty(self) -> int:
        """Create the sample charts when the store has no charts. Returns how many."""
        if self._charts.list_charts():
            return 0
        created = 0
        for chart_id, title, records in seed_charts():
            self._charts.create_chart(title=title, nodes=records, chart_id=chart_id)
            created += 1
        self._audit.record(AuditEventType.SYSTEM, "seeded", count=created)
        logger.info("Seeded %d sample charts", created)
        return created

    def get_system_status(self) -> Dict:
        """Storage mode and chart counts."""
        charts = self._charts.list_charts()
        return {
            "status": "online",
            "storage": self._config.storage.backend_type,
            "charts": len(charts),
            "nodes": sum(c.node_count for c in charts),
            "audit_entries": self._audit.entry_count,
        }
