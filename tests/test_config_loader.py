"""Tests for the unified configuration loader."""

from pathlib import Path

import pytest
import yaml

from consent_ledger.config.config_loader import (
    get_full_config,
    get_ledger_config,
    load_config,
    reload_config,
)
from consent_ledger.core.exceptions import ConfigurationError


ENV_VARS = [
    "CONSENT_LEDGER_CONFIG",
    "CONSENT_LEDGER_ADMINISTRATOR",
    "CONSENT_LEDGER_JOURNAL_BACKEND",
    "CONSENT_LEDGER_JOURNAL_PATH",
    "CONSENT_LEDGER_JOURNAL_BUFFER_SIZE",
    "CONSENT_LEDGER_LOG_LEVEL",
    "CONSENT_LEDGER_LOG_FORMAT",
]

PACKAGED_CONFIG = (
    Path(__file__).parent.parent / "consent_ledger" / "config" / "config.yaml"
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Isolate every test from ambient overrides and the config cache."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    reload_config()
    yield
    reload_config()


def write_config(tmp_path, data):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


class TestLoadConfig:
    """Test config file loading."""

    def test_packaged_config_has_sections(self):
        """The packaged config defines every section."""
        cfg = load_config(str(PACKAGED_CONFIG))
        assert isinstance(cfg, dict)
        assert "registry" in cfg
        assert "journal" in cfg
        assert "logging" in cfg

    def test_load_config_missing_file(self):
        """Missing config should return empty dict."""
        cfg = load_config("/nonexistent/path/config.yaml")
        assert cfg == {}

    def test_load_config_caching(self):
        """Repeated calls should return cached config."""
        cfg1 = load_config()
        cfg2 = load_config()
        assert cfg1 is cfg2

    def test_reload_config(self):
        """reload_config should clear cache."""
        cfg1 = load_config()
        reload_config()
        cfg2 = load_config()
        assert cfg1 is not cfg2
        assert cfg1 == cfg2

    def test_config_env_path(self, tmp_path, monkeypatch):
        """CONSENT_LEDGER_CONFIG points the search at another file."""
        path = write_config(tmp_path, {"registry": {"administrator": "root"}})
        monkeypatch.setenv("CONSENT_LEDGER_CONFIG", path)

        assert get_full_config()["registry"]["administrator"] == "root"

    def test_invalid_yaml(self, tmp_path):
        """Broken YAML raises ConfigurationError."""
        path = tmp_path / "config.yaml"
        path.write_text("registry: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path))


class TestGetLedgerConfig:
    """Test validated ledger configuration."""

    def test_defaults(self):
        """Without overrides the defaults apply."""
        config = get_ledger_config("/nonexistent/config.yaml")
        assert config.administrator is None
        assert config.journal.backend == "memory"
        assert config.journal.buffer_size == 1
        assert config.logging.level == "INFO"
        assert config.logging.format == "json"

    def test_yaml_values(self, tmp_path):
        """YAML values override defaults."""
        path = write_config(
            tmp_path,
            {
                "registry": {"administrator": "root"},
                "journal": {"backend": "sqlite", "path": "data/ledger.db"},
                "logging": {"level": "debug", "format": "console"},
            },
        )
        config = get_ledger_config(path)

        assert config.administrator == "root"
        assert config.journal.backend == "sqlite"
        assert config.journal.path == "data/ledger.db"
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "console"

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        """Environment variables take precedence over YAML."""
        path = write_config(
            tmp_path,
            {"registry": {"administrator": "root"}, "journal": {"backend": "memory"}},
        )
        monkeypatch.setenv("CONSENT_LEDGER_ADMINISTRATOR", "ops-admin")
        monkeypatch.setenv("CONSENT_LEDGER_JOURNAL_BACKEND", "jsonl")
        monkeypatch.setenv("CONSENT_LEDGER_JOURNAL_PATH", "logs/ledger.jsonl")
        monkeypatch.setenv("CONSENT_LEDGER_JOURNAL_BUFFER_SIZE", "50")
        monkeypatch.setenv("CONSENT_LEDGER_LOG_LEVEL", "warning")

        config = get_ledger_config(path)

        assert config.administrator == "ops-admin"
        assert config.journal.backend == "jsonl"
        assert config.journal.path == "logs/ledger.jsonl"
        assert config.journal.buffer_size == 50
        assert config.logging.level == "WARNING"

    def test_invalid_env_value(self, monkeypatch):
        """Unparseable environment values raise ConfigurationError."""
        monkeypatch.setenv("CONSENT_LEDGER_JOURNAL_BUFFER_SIZE", "many")
        with pytest.raises(ConfigurationError) as exc_info:
            get_ledger_config("/nonexistent/config.yaml")
        assert exc_info.value.config_key == "CONSENT_LEDGER_JOURNAL_BUFFER_SIZE"

    def test_invalid_backend(self, tmp_path):
        """Unknown backends fail validation."""
        path = write_config(tmp_path, {"journal": {"backend": "postgres"}})
        with pytest.raises(ConfigurationError) as exc_info:
            get_ledger_config(path)
        assert exc_info.value.config_key == "journal.backend"

    def test_invalid_log_level(self, monkeypatch):
        """Unknown log levels fail validation."""
        monkeypatch.setenv("CONSENT_LEDGER_LOG_LEVEL", "verbose")
        with pytest.raises(ConfigurationError):
            get_ledger_config("/nonexistent/config.yaml")
