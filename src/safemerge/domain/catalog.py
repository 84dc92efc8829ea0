"""Schema catalog: the read-only index of reference columns and table layouts.

The catalog is built once per merge run from introspection data plus the
statically configured known references, then passed explicitly into every
stage. It is never mutated mid-merge; recomputation is the caller's concern.

Discovery rules applied by ``build_catalog``:
- candidate columns match an include pattern in a table matching no exclude pattern
- declared foreign keys to the entity id column are always candidates
- known references (simple or compound) are always candidates
- the entity table's own id column is the root reference
- ``entity_id`` columns of custom tables extending excluded entity types are dropped
- ignore-list matches are dropped
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from fnmatch import fnmatchcase
from types import MappingProxyType
from typing import TYPE_CHECKING

from .errors import SchemaInconsistencyError
from .model import ReferenceColumn

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from .model import ColumnPattern
    from .ports import SchemaIntrospection
    from .rules import MergeRules

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SchemaCatalog:
    """Immutable view of the candidate reference columns and table column lists."""

    reference_columns: frozenset[ReferenceColumn]
    table_columns: Mapping[str, tuple[str, ...]]
    entity_tag: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "reference_columns", frozenset(self.reference_columns))
        object.__setattr__(
            self,
            "table_columns",
            MappingProxyType({table: tuple(cols) for table, cols in self.table_columns.items()}),
        )
        missing: list[str] = []
        for reference in self.reference_columns:
            missing.extend(self.missing_columns(reference.table, reference.column))
            if reference.discriminator is not None:
                missing.extend(self.missing_columns(reference.table, reference.discriminator))
                if self.entity_tag is None:
                    raise ValueError(
                        f"Compound reference {reference.key} requires a catalog entity tag"
                    )
        if missing:
            raise SchemaInconsistencyError(missing)

    def references(self) -> tuple[ReferenceColumn, ...]:
        """Reference columns in deterministic (table, column) order."""

        return tuple(sorted(self.reference_columns))

    def has_table(self, table: str) -> bool:
        return table in self.table_columns

    def describe_table(self, table: str) -> tuple[str, ...]:
        try:
            return self.table_columns[table]
        except KeyError:
            raise SchemaInconsistencyError([table]) from None

    def require_column(self, table: str, *columns: str) -> None:
        """Allowlist check for identifiers about to be embedded in a query."""

        missing = self.missing_columns(table, *columns)
        if missing:
            raise SchemaInconsistencyError(missing)

    def missing_columns(self, table: str, *columns: str) -> list[str]:
        missing: list[str] = []
        for column in columns:
            missing.extend(_missing(self.table_columns, table, column))
        return missing

    def tag_for(self, reference: ReferenceColumn) -> str | None:
        """Type tag the discriminator must equal, or ``None`` for simple keys."""

        return self.entity_tag if reference.discriminator is not None else None

    def excluding(self, patterns: Iterable[ColumnPattern]) -> SchemaCatalog:
        selected = tuple(patterns)
        if not selected:
            return self
        kept = frozenset(
            reference
            for reference in self.reference_columns
            if not any(pattern.matches(reference) for pattern in selected)
        )
        return replace(self, reference_columns=kept)


def build_catalog(introspection: SchemaIntrospection, rules: MergeRules) -> SchemaCatalog:
    """Scan the schema and combine it with configured references into a catalog."""

    discovery = rules.discovery
    entity = rules.entity

    table_columns: dict[str, tuple[str, ...]] = {
        table: tuple(introspection.describe_table(table)) for table in introspection.table_names()
    }
    if entity.table not in table_columns:
        raise SchemaInconsistencyError([entity.table])

    candidates: dict[ReferenceColumn, ReferenceColumn] = {}
    for table, columns in table_columns.items():
        if _matches_any(table, discovery.exclude_tables):
            continue
        for column in columns:
            if _matches_any(column, discovery.include_columns):
                reference = ReferenceColumn(table=table, column=column)
                candidates[reference] = reference

    for table, column in introspection.foreign_keys_to(entity.table, entity.id_column):
        reference = ReferenceColumn(table=table, column=column)
        candidates[reference] = reference

    root = ReferenceColumn(table=entity.table, column=entity.id_column)
    candidates[root] = root

    if discovery.custom_groups is not None and discovery.excluded_entity_types:
        source = discovery.custom_groups
        if source.table in table_columns:
            for table in introspection.custom_group_tables(source, discovery.excluded_entity_types):
                excluded = ReferenceColumn(table=table, column=source.reference_column)
                if candidates.pop(excluded, None) is not None:
                    log.debug("Excluding %s (extends a non-entity type)", excluded.key)
        else:
            log.debug("Custom group table %s not present; skipping exclusion", source.table)

    for known in rules.known_references:
        missing = [
            name
            for column in filter(None, (known.column, known.discriminator))
            for name in _missing(table_columns, known.table, column)
        ]
        if missing:
            log.warning("Skipping known reference %s: not in schema", known.key)
            continue
        # replace so the discriminator travels with the reference
        candidates.pop(known, None)
        candidates[known] = known

    for reference in list(candidates):
        if rules.classification.is_ignored(reference):
            del candidates[reference]

    catalog = SchemaCatalog(
        reference_columns=frozenset(candidates.values()),
        table_columns=table_columns,
        entity_tag=entity.effective_tag,
    )
    log.info(
        "Built schema catalog: %s tables, %s reference columns",
        len(table_columns),
        len(catalog.reference_columns),
    )
    return catalog


def _matches_any(name: str, patterns: Sequence[str]) -> bool:
    lowered = name.lower()
    return any(fnmatchcase(lowered, pattern.lower()) for pattern in patterns)


def _missing(table_columns: Mapping[str, tuple[str, ...]], table: str, column: str) -> list[str]:
    if table not in table_columns:
        return [table]
    if column not in table_columns[table]:
        return [f"{table}.{column}"]
    return []
