"""Application configuration helpers."""

from __future__ import annotations

from .env import first_env_var
from .errors import ConfigurationError, InvalidRulesError
from .logging import configure_logging, verbosity_level
from .rules import RulesDocument, describe_rules, load_rules, parse_rules, resolve_rules_path
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidRulesError",
    "RulesDocument",
    "StorageConfig",
    "configure_logging",
    "describe_rules",
    "first_env_var",
    "get_database_config",
    "get_storage_config",
    "load_rules",
    "parse_rules",
    "resolve_rules_path",
    "verbosity_level",
]
