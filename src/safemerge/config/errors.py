"""Configuration error definitions."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """Raised when configuration values are invalid."""


class InvalidRulesError(ConfigurationError):
    """Raised when a merge-rules file cannot be read, parsed or validated."""

    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"Invalid merge rules in {source}: {detail}")
