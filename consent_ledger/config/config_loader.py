"""
Unified configuration loader for the consent ledger.

Loads config.yaml and turns it into a validated LedgerConfig.

Precedence (lowest to highest):
    1. Hardcoded Python fallbacks (always present)
    2. config.yaml registry/journal/logging sections
    3. Environment variables CONSENT_LEDGER_* (deployment-level overrides)
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from consent_ledger.core.models import LedgerConfig
from consent_ledger.core.exceptions import ConfigurationError


# Search order for config file
def _config_search_paths():
    return [
        os.environ.get("CONSENT_LEDGER_CONFIG", ""),
        "config/config.yaml",
        str(Path(__file__).parent / "config.yaml"),
    ]


_cached_config: Optional[Dict] = None


def _find_config_file() -> Optional[Path]:
    """Find config.yaml from search paths."""
    for path_str in _config_search_paths():
        if not path_str:
            continue
        p = Path(path_str)
        if p.is_file():
            return p
    return None


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and cache the full config.yaml.

    Args:
        config_path: Optional explicit path. If None, uses search order.

    Returns:
        Full parsed YAML dict. Returns empty dict if no config found.

    Raises:
        ConfigurationError: If the file is not valid YAML.
    """
    global _cached_config

    if _cached_config is not None and config_path is None:
        return _cached_config

    if config_path:
        p = Path(config_path)
    else:
        p = _find_config_file()

    if p is None or not p.is_file():
        _cached_config = {}
        return _cached_config

    try:
        with open(p, "r", encoding="utf-8") as f:
            _cached_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {p}: {e}")

    return _cached_config


def reload_config():
    """Force reload of config (clears cache)."""
    global _cached_config
    _cached_config = None


def get_full_config() -> Dict[str, Any]:
    """Return the complete parsed config.yaml as a nested dict."""
    return load_config()


def get_ledger_config(config_path: Optional[str] = None) -> LedgerConfig:
    """
    Return the validated ledger configuration.

    Args:
        config_path: Optional explicit path to a YAML file.

    Returns:
        LedgerConfig with defaults, YAML values and environment overrides.

    Raises:
        ConfigurationError: If a value fails validation.
    """
    cfg = load_config(config_path)

    registry = cfg.get("registry") or {}
    journal = cfg.get("journal") or {}
    logging_cfg = cfg.get("logging") or {}

    # Hardcoded fallback defaults
    settings: Dict[str, Any] = {
        "administrator": None,
        "journal": {"backend": "memory", "path": None, "buffer_size": 1},
        "logging": {"level": "INFO", "format": "json", "file": None},
    }

    # Override from YAML (only keys that exist)
    if registry.get("administrator") is not None:
        settings["administrator"] = str(registry["administrator"])
    for key in ("backend", "path", "buffer_size"):
        if journal.get(key) is not None:
            settings["journal"][key] = journal[key]
    for key in ("level", "format", "file"):
        if logging_cfg.get(key) is not None:
            settings["logging"][key] = logging_cfg[key]

    # Override from environment variables
    env_mapping = {
        "CONSENT_LEDGER_ADMINISTRATOR": (None, "administrator", str),
        "CONSENT_LEDGER_JOURNAL_BACKEND": ("journal", "backend", str),
        "CONSENT_LEDGER_JOURNAL_PATH": ("journal", "path", str),
        "CONSENT_LEDGER_JOURNAL_BUFFER_SIZE": ("journal", "buffer_size", int),
        "CONSENT_LEDGER_LOG_LEVEL": ("logging", "level", str),
        "CONSENT_LEDGER_LOG_FORMAT": ("logging", "format", str),
    }

    for env_var, (section, key, converter) in env_mapping.items():
        val = os.environ.get(env_var)
        if val is None:
            continue
        try:
            converted = converter(val)
        except (ValueError, TypeError):
            raise ConfigurationError(
                f"Invalid value for {env_var}: {val!r}", config_key=env_var
            )
        if section is None:
            settings[key] = converted
        else:
            settings[section][key] = converted

    try:
        return LedgerConfig(**settings)
    except ValidationError as e:
        first = e.errors()[0]
        raise ConfigurationError(
            f"Invalid configuration: {first['msg']}",
            config_key=".".join(str(part) for part in first["loc"]),
        )
