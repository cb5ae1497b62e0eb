"""
Backend configuration and wiring tests.
"""

from backend.engine import ApiConfig, BackendConfig, OrgFlowBackend
from backend.storage import InMemoryDocumentStore, JsonFileDocumentStore, StorageConfig


class TestFromEnv:

    def test_defaults(self):
        config = BackendConfig.from_env({})
        assert config.storage.backend_type == "memory"
        assert config.api.default_chart_id == "acme-corp"
        assert config.api.seed_on_empty
        assert config.api.cors_origins == ["*"]
        assert config.observability.log_level == "INFO"

    def test_storage_path_selects_file_store(self):
        config = BackendConfig.from_env({"ORGFLOW_STORAGE_PATH": "/data/charts.json"})
        assert config.storage.backend_type == "file"
        assert config.storage.storage_path == "/data/charts.json"

    def test_overrides(self):
        config = BackendConfig.from_env({
            "ORGFLOW_SEED": "false",
            "ORGFLOW_CORS_ORIGINS": "http://a.test, http://b.test,",
            "ORGFLOW_LOG_LEVEL": "DEBUG",
            "ORGFLOW_DEFAULT_CHART": "techstart-eng",
        })
        assert not config.api.seed_on_empty
        assert config.api.cors_origins == ["http://a.test", "http://b.test"]
        assert config.observability.log_level == "DEBUG"
        assert config.api.default_chart_id == "techstart-eng"

    def test_blank_values_ignored(self):
        config = BackendConfig.from_env({"ORGFLOW_STORAGE_BACKEND": "  ", "ORGFLOW_SEED": ""})
        assert config.storage.backend_type == "memory"
        assert config.api.seed_on_empty


class TestBackend:

    def test_seeds_empty_store_once(self):
        backend = OrgFlowBackend()
        assert isinstance(backend.store, InMemoryDocumentStore)
        assert [c.id for c in backend.charts.list_charts()] != []
        assert backend.seed_if_empty() == 0
        assert backend.get_system_status()["charts"] == 3

    def test_no_seed(self):
        backend = OrgFlowBackend(BackendConfig(api=ApiConfig(seed_on_empty=False)))
        assert backend.get_system_status()["charts"] == 0

    def test_file_store_survives_restart(self, tmp_path):
        config = BackendConfig(storage=StorageConfig(backend_type="file", storage_path=str(tmp_path / "db.json")))
        first = OrgFlowBackend(config)
        assert isinstance(first.store, JsonFileDocumentStore)
        first.charts.rename_chart("acme-corp", "Renamed")

        second = OrgFlowBackend(config)
        assert second.charts.get_chart("acme-corp").title == "Renamed"
        assert len(second.charts.list_charts()) == 3

    def test_batch_size_from_config(self):
        backend = OrgFlowBackend(BackendConfig(api=ApiConfig(seed_on_empty=False, delete_batch_size=100)))
        assert backend.charts.batch_size == 100
