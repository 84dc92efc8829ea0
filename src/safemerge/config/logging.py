"""Shared logging helpers for safemerge."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: we default
    to INFO level and a terse format suitable for CLI output. Pass ``force=True`` to
    reconfigure during tests or specialised entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )


def verbosity_level(*, verbose: int = 0, quiet: bool = False) -> int:
    """Map ``-v``/``-q`` flags to a logging level (WARNING by default for the CLI)."""

    if quiet:
        return logging.ERROR
    if verbose >= 2:  # noqa: PLR2004
        return logging.DEBUG
    if verbose == 1:
        return logging.INFO
    return logging.WARNING
