"""Merge planner: partition located references into delete/update/examine/block.

Default-deny: a located reference column that no list claims is a blocker, so
a schema that grows a new foreign key stops automatic merges until someone
classifies it. A column claimed by more than one list is also a blocker; the
lists are disjoint by contract and a contradiction is not resolved by guessing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from .errors import SchemaInconsistencyError
from .model import ColumnPattern, MergePlan

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .catalog import SchemaCatalog
    from .model import Location, ReferenceColumn

log = logging.getLogger(__name__)


class PlanBucket(StrEnum):
    DELETE = "delete"
    UPDATE = "update"
    EXAMINE = "examine"


@dataclass(frozen=True, slots=True, kw_only=True)
class Classification:
    """The four configured handling lists."""

    ignore: tuple[ColumnPattern, ...] = ()
    delete: tuple[ColumnPattern, ...] = ()
    update: tuple[ColumnPattern, ...] = ()
    examine: tuple[ColumnPattern, ...] = ()

    @classmethod
    def from_strings(
        cls,
        *,
        ignore: Iterable[str] = (),
        delete: Iterable[str] = (),
        update: Iterable[str] = (),
        examine: Iterable[str] = (),
    ) -> Classification:
        return cls(
            ignore=tuple(ColumnPattern.parse(item) for item in ignore),
            delete=tuple(ColumnPattern.parse(item) for item in delete),
            update=tuple(ColumnPattern.parse(item) for item in update),
            examine=tuple(ColumnPattern.parse(item) for item in examine),
        )

    def is_ignored(self, reference: ReferenceColumn) -> bool:
        return any(pattern.matches(reference) for pattern in self.ignore)

    def buckets_for(self, reference: ReferenceColumn) -> tuple[PlanBucket, ...]:
        lists = (
            (PlanBucket.DELETE, self.delete),
            (PlanBucket.UPDATE, self.update),
            (PlanBucket.EXAMINE, self.examine),
        )
        return tuple(
            bucket
            for bucket, patterns in lists
            if any(pattern.matches(reference) for pattern in patterns)
        )

    def missing_from(self, catalog: SchemaCatalog) -> list[str]:
        """Explicit entries naming tables or columns the catalog does not hold.

        Ignore entries only count when their table exists: ignoring a table the
        store does not have is harmless.
        """

        missing: list[str] = []
        for pattern in (*self.delete, *self.update, *self.examine):
            if not pattern.is_glob:
                missing.extend(catalog.missing_columns(pattern.table, pattern.column))
        for pattern in self.ignore:
            if not pattern.is_glob and catalog.has_table(pattern.table):
                missing.extend(catalog.missing_columns(pattern.table, pattern.column))
        return missing

    def validate(self, catalog: SchemaCatalog) -> None:
        missing = self.missing_from(catalog)
        if missing:
            raise SchemaInconsistencyError(missing)

    def as_dict(self) -> dict[str, list[str]]:
        return {
            "ignore": [str(pattern) for pattern in self.ignore],
            "delete": [str(pattern) for pattern in self.delete],
            "update": [str(pattern) for pattern in self.update],
            "examine": [str(pattern) for pattern in self.examine],
        }


def table_plan(locations: Iterable[Location], classification: Classification) -> MergePlan:
    """Classify every location into exactly one plan bucket."""

    buckets: dict[PlanBucket, set[Location]] = {bucket: set() for bucket in PlanBucket}
    blockers: set[Location] = set()
    for location in locations:
        claimed = classification.buckets_for(location.reference)
        if len(claimed) == 1:
            buckets[claimed[0]].add(location)
            continue
        if claimed:
            log.warning(
                "%s is claimed by several lists (%s); treating as a blocker",
                location.key,
                ", ".join(claimed),
            )
        blockers.add(location)

    return MergePlan(
        delete=frozenset(buckets[PlanBucket.DELETE]),
        update=frozenset(buckets[PlanBucket.UPDATE]),
        examine=frozenset(buckets[PlanBucket.EXAMINE]),
        blockers=frozenset(blockers),
    )
