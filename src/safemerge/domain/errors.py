"""Exceptions raised by the merge-planning core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class MergeError(RuntimeError):
    """Base class for merge-engine failures."""


class SchemaInconsistencyError(MergeError):
    """Raised when configuration names tables or columns the catalog does not hold."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing: tuple[str, ...] = tuple(sorted(set(missing)))
        super().__init__(f"Schema catalog is missing: {', '.join(self.missing)}")


class PlanInvariantError(MergeError):
    """Raised when a merge plan places one location in more than one bucket."""


class ApplyError(MergeError):
    """Raised when the command batch cannot be applied; the batch is rolled back."""


class AuditError(MergeError):
    """Raised when a post-merge audit note cannot be recorded."""
