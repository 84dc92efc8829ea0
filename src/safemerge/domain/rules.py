"""Merge rules: the configuration surface of the engine, expressed as data.

Rules are read-only at call time. ``safemerge.config.rules`` builds them from
a TOML file; tests build them directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from .planner import Classification
from .policy import ColumnBehaviorPolicy

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .model import ReferenceColumn

type Assignments = tuple[tuple[str, object], ...]


@dataclass(frozen=True, slots=True, kw_only=True)
class EntitySettings:
    """Where the mergeable entities live and how supersession is flagged."""

    table: str
    id_column: str = "id"
    superseded_column: str = "is_deleted"
    tag: str | None = None

    @property
    def effective_tag(self) -> str:
        """Type tag compound discriminators must equal; defaults to the table name."""

        return self.tag or self.table


@dataclass(frozen=True, slots=True, kw_only=True)
class CustomGroupSource:
    """Table listing custom-data tables and the entity type each one extends."""

    table: str = "civicrm_custom_group"
    name_column: str = "table_name"
    extends_column: str = "extends"
    reference_column: str = "entity_id"


@dataclass(frozen=True, slots=True, kw_only=True)
class DiscoverySettings:
    """Name patterns (globs, case-insensitive) steering schema discovery."""

    include_columns: tuple[str, ...] = ()
    exclude_tables: tuple[str, ...] = ()
    excluded_entity_types: tuple[str, ...] = ()
    custom_groups: CustomGroupSource | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class AuditSettings:
    """Notes table used to record merges on both participants."""

    table: str
    entity_table_column: str = "entity_table"
    entity_id_column: str = "entity_id"
    note_column: str = "note"
    subject_column: str = "subject"


@dataclass(frozen=True, slots=True, kw_only=True)
class MergeRules:
    entity: EntitySettings
    classification: Classification = field(default_factory=Classification)
    policy: ColumnBehaviorPolicy = field(default_factory=ColumnBehaviorPolicy)
    discovery: DiscoverySettings = field(default_factory=DiscoverySettings)
    known_references: tuple[ReferenceColumn, ...] = ()
    side_effects: Mapping[str, Assignments] = field(default_factory=dict["str", "Assignments"])
    audit: AuditSettings | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "side_effects",
            MappingProxyType({table: tuple(items) for table, items in self.side_effects.items()}),
        )

    def assignments_for(self, table: str) -> Assignments:
        """Extra column assignments applied when references in ``table`` move."""

        return self.side_effects.get(table, ())
