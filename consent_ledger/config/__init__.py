"""Configuration loading for the consent ledger."""

from .config_loader import (
    get_full_config,
    get_ledger_config,
    load_config,
    reload_config,
)

__all__ = [
    "get_full_config",
    "get_ledger_config",
    "load_config",
    "reload_config",
]
