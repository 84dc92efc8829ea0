"""Column behavior policy: (table, column) -> comparison strategy.

The table itself is domain configuration. The dispatch and the default-deny
fallback are fixed: an unlisted column compares as ``BlockOnDifferentValue``,
and a table with no entries at all is reported as unclassified so reviewers
can tell a missing table entry from a missing column entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

from .model import BehaviorSource, ColumnBehavior

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_BEHAVIOR = ColumnBehavior.BLOCK_ON_DIFFERENT_VALUE


@dataclass(frozen=True, slots=True)
class BehaviorLookup:
    behavior: ColumnBehavior
    source: BehaviorSource


class ColumnBehaviorPolicy:
    """Static lookup of column behaviors with a default-deny fallback."""

    def __init__(
        self,
        table_behaviors: Mapping[str, Mapping[str, ColumnBehavior]] | None = None,
    ) -> None:
        self._behaviors: Mapping[str, Mapping[str, ColumnBehavior]] = MappingProxyType(
            {
                table: MappingProxyType(
                    {column: ColumnBehavior(value) for column, value in columns.items()}
                )
                for table, columns in (table_behaviors or {}).items()
            }
        )

    @property
    def tables(self) -> tuple[str, ...]:
        return tuple(sorted(self._behaviors))

    def classifies_table(self, table: str) -> bool:
        return table in self._behaviors

    def lookup(self, table: str, column: str) -> BehaviorLookup:
        columns = self._behaviors.get(table)
        if columns is None:
            return BehaviorLookup(DEFAULT_BEHAVIOR, BehaviorSource.UNCLASSIFIED_TABLE)
        behavior = columns.get(column)
        if behavior is None:
            return BehaviorLookup(DEFAULT_BEHAVIOR, BehaviorSource.COLUMN_DEFAULT)
        return BehaviorLookup(behavior, BehaviorSource.EXPLICIT)

    def behavior_of(self, table: str, column: str) -> ColumnBehavior:
        return self.lookup(table, column).behavior

    def as_dict(self) -> dict[str, dict[str, str]]:
        return {
            table: {column: str(behavior) for column, behavior in columns.items()}
            for table, columns in self._behaviors.items()
        }
