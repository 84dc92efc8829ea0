from __future__ import annotations

import logging
from pathlib import Path  # noqa: TC003

import pytest

from safemerge.config import (
    get_database_config,
    get_storage_config,
    verbosity_level,
)
from safemerge.config import storage


def test_storage_config_prefers_explicit_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv("SAFEMERGE_DATA_DIR", str(custom))

    assert get_storage_config().resolve_data_dir() == custom.resolve()


def test_database_uri_prefers_namespaced_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite:///generic.db")
    monkeypatch.setenv("SAFEMERGE_DATABASE_URI", "sqlite:///specific.db")

    assert get_database_config().uri == "sqlite:///specific.db"

    monkeypatch.setenv("SAFEMERGE_DATABASE_URI", "  ")

    assert get_database_config().uri == "sqlite:///generic.db"


def test_database_uri_falls_back_to_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("SAFEMERGE_DATABASE_URI", raising=False)
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("SAFEMERGE_DATA_DIR", str(tmp_path / "data-dir"))

    uri = get_database_config().uri

    expected_path = (tmp_path / "data-dir" / storage.DEFAULT_DB_FILENAME).resolve()
    assert uri == f"sqlite+pysqlite:///{expected_path}"
    assert expected_path.parent.exists()


@pytest.mark.parametrize(
    ("verbose", "quiet", "level"),
    [
        (0, False, logging.WARNING),
        (1, False, logging.INFO),
        (3, False, logging.DEBUG),
        (2, True, logging.ERROR),
    ],
)
def test_verbosity_level(verbose: int, *, quiet: bool, level: int) -> None:
    assert verbosity_level(verbose=verbose, quiet=quiet) == level
