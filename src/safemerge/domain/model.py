"""Value types shared by the merge-planning stages.

The types form the contract between:
- the reference locator (``Location``)
- the planner (``MergePlan``)
- the conflict evaluator (``FieldConflict``)
- the orchestrator (merge commands and terminal results)

Everything here is immutable; a result is never mutated after construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from fnmatch import fnmatchcase
from typing import Literal

from .errors import PlanInvariantError

type EntityId = int

_GLOB_CHARS = frozenset("*?[")


@dataclass(frozen=True, slots=True, order=True)
class ReferenceColumn:
    """One schema location that can hold an entity id.

    ``discriminator`` names a sibling column that must equal the catalog's
    entity tag for a row to count as a reference to the entity (compound key).
    Identity is the ``(table, column)`` pair only.
    """

    table: str
    column: str
    discriminator: str | None = field(default=None, compare=False)

    @classmethod
    def parse(cls, key: str, *, discriminator: str | None = None) -> ReferenceColumn:
        table, separator, column = key.strip().rpartition(".")
        if not separator or not table or not column:
            raise ValueError(f"Expected 'table.column', got {key!r}")
        return cls(table=table, column=column, discriminator=discriminator)

    @property
    def key(self) -> str:
        return f"{self.table}.{self.column}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True, slots=True)
class ColumnPattern:
    """``table.column`` selector used by classification and ignore lists.

    Either part may be a glob (``civicrm_value_*.entity_id``).
    """

    table: str
    column: str

    @classmethod
    def parse(cls, text: str) -> ColumnPattern:
        table, separator, column = text.strip().rpartition(".")
        if not separator or not table or not column:
            raise ValueError(f"Expected 'table.column' pattern, got {text!r}")
        return cls(table=table, column=column)

    @property
    def is_glob(self) -> bool:
        return any(char in _GLOB_CHARS for char in self.table + self.column)

    def matches(self, reference: ReferenceColumn) -> bool:
        return fnmatchcase(reference.table, self.table) and fnmatchcase(
            reference.column, self.column
        )

    def __str__(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass(frozen=True, slots=True, order=True)
class Location:
    """A reference column confirmed to hold ``entity_id`` in at least one row."""

    reference: ReferenceColumn
    entity_id: EntityId
    row_count: int = field(default=1, compare=False)

    @property
    def table(self) -> str:
        return self.reference.table

    @property
    def column(self) -> str:
        return self.reference.column

    @property
    def key(self) -> str:
        return self.reference.key


@dataclass(frozen=True, slots=True, kw_only=True)
class MergePlan:
    """Classification of every location found for the losing id."""

    delete: frozenset[Location] = frozenset()
    update: frozenset[Location] = frozenset()
    examine: frozenset[Location] = frozenset()
    blockers: frozenset[Location] = frozenset()

    def __post_init__(self) -> None:
        buckets = (self.delete, self.update, self.examine, self.blockers)
        seen: set[Location] = set()
        for bucket in buckets:
            overlap = seen & bucket
            if overlap:
                keys = ", ".join(sorted(location.key for location in overlap))
                raise PlanInvariantError(f"Locations classified more than once: {keys}")
            seen |= bucket

    @property
    def locations(self) -> frozenset[Location]:
        return self.delete | self.update | self.examine | self.blockers


class ColumnBehavior(StrEnum):
    """Comparison strategy deciding whether two column values may differ."""

    BLOCK_ON_DIFFERENT_VALUE = "BlockOnDifferentValue"
    BLOCK_IF_GREATER = "BlockIfGreater"
    IGNORE_TRUNCATION = "IgnoreTruncation"
    ALLOW_SINGLE_CHAR_BLANK_OR_MATCH = "AllowSingleCharBlankOrMatch"
    IGNORE_EMAIL_OR_TRUNCATION = "IgnoreEmailOrTruncation"
    IGNORE = "Ignore"


class BehaviorSource(StrEnum):
    """Where a column's behavior came from."""

    EXPLICIT = "explicit"
    COLUMN_DEFAULT = "column_default"
    UNCLASSIFIED_TABLE = "unclassified_table"


# Commands ---------------------------------------------------------------------------


class CommandKind(StrEnum):
    UPDATE_REFERENCE = "update_reference"
    DELETE_RECORD = "delete_record"
    MARK_SUPERSEDED = "mark_superseded"


@dataclass(frozen=True, slots=True, kw_only=True)
class UpdateReference:
    """Repoint every row of ``location`` from the losing id to ``new_id``."""

    location: Location
    new_id: EntityId
    assignments: tuple[tuple[str, object], ...] = ()
    kind: Literal[CommandKind.UPDATE_REFERENCE] = CommandKind.UPDATE_REFERENCE

    @property
    def old_id(self) -> EntityId:
        return self.location.entity_id

    def describe(self) -> str:
        text = f"update {self.location.key}: {self.old_id} -> {self.new_id}"
        if self.assignments:
            extra = ", ".join(f"{column}={value!r}" for column, value in self.assignments)
            text += f" (set {extra})"
        return text


@dataclass(frozen=True, slots=True, kw_only=True)
class DeleteRecord:
    """Delete every row of ``location`` that refers to the losing id."""

    location: Location
    kind: Literal[CommandKind.DELETE_RECORD] = CommandKind.DELETE_RECORD

    def describe(self) -> str:
        location = self.location
        return f"delete from {location.table} where {location.column} = {location.entity_id}"


@dataclass(frozen=True, slots=True, kw_only=True)
class MarkSuperseded:
    """Flag the losing entity as superseded. Always the last command."""

    entity_id: EntityId
    kind: Literal[CommandKind.MARK_SUPERSEDED] = CommandKind.MARK_SUPERSEDED

    def describe(self) -> str:
        return f"mark {self.entity_id} superseded"


type MergeCommand = UpdateReference | DeleteRecord | MarkSuperseded


# Block reasons ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True, kw_only=True)
class UnclassifiedReference:
    """A located reference column with no configured handling."""

    location: Location

    def describe(self) -> str:
        return (
            f"{self.location.key} holds {self.location.entity_id} "
            f"in {self.location.row_count} row(s) and has no merge rule"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class FieldConflict:
    """Two examined records disagree on a column in a way that would lose data."""

    table: str
    column: str
    behavior: ColumnBehavior
    keep_value: object
    lose_value: object
    source: BehaviorSource = BehaviorSource.EXPLICIT

    def describe(self) -> str:
        text = (
            f"{self.table}.{self.column}: keep={self.keep_value!r} "
            f"lose={self.lose_value!r} ({self.behavior})"
        )
        if self.source is BehaviorSource.UNCLASSIFIED_TABLE:
            text += f" [table {self.table} has no column behaviour entries]"
        return text


type BlockReason = UnclassifiedReference | FieldConflict


# Results ----------------------------------------------------------------------------


class MergeStatus(StrEnum):
    """Terminal outcome of a merge attempt."""

    READY = "ready"
    BLOCKED = "blocked"
    NOT_FOUND = "not_found"
    PARTIALLY_FOUND = "partially_found"
    SCHEMA_INCONSISTENCY = "schema_inconsistency"
    EXECUTION_FAILURE = "execution_failure"


@dataclass(frozen=True, slots=True, kw_only=True)
class Ready:
    """Plan is clean; ``commands`` are ready for atomic application."""

    keep: EntityId
    lose: EntityId
    commands: tuple[MergeCommand, ...]
    plan: MergePlan
    status: Literal[MergeStatus.READY] = MergeStatus.READY


@dataclass(frozen=True, slots=True, kw_only=True)
class Blocked:
    """At least one reference or field prevents an automatic merge."""

    keep: EntityId
    lose: EntityId
    reasons: tuple[BlockReason, ...]
    plan: MergePlan | None = None
    status: Literal[MergeStatus.BLOCKED] = MergeStatus.BLOCKED

    def __post_init__(self) -> None:
        if not self.reasons:
            raise ValueError("Blocked result must include at least one reason")


@dataclass(frozen=True, slots=True, kw_only=True)
class NotFound:
    """Neither id resolves to an active entity."""

    keep: EntityId
    lose: EntityId
    status: Literal[MergeStatus.NOT_FOUND] = MergeStatus.NOT_FOUND


@dataclass(frozen=True, slots=True, kw_only=True)
class PartiallyFound:
    """Exactly one of the ids resolves to an active entity."""

    keep: EntityId
    lose: EntityId
    found: EntityId
    status: Literal[MergeStatus.PARTIALLY_FOUND] = MergeStatus.PARTIALLY_FOUND


@dataclass(frozen=True, slots=True, kw_only=True)
class SchemaInconsistency:
    """Configuration names tables or columns absent from the schema catalog."""

    keep: EntityId
    lose: EntityId
    missing: tuple[str, ...]
    status: Literal[MergeStatus.SCHEMA_INCONSISTENCY] = MergeStatus.SCHEMA_INCONSISTENCY


@dataclass(frozen=True, slots=True, kw_only=True)
class ExecutionFailure:
    """The apply facility rejected the batch; nothing was changed."""

    keep: EntityId
    lose: EntityId
    reason: str
    commands: tuple[MergeCommand, ...] = ()
    status: Literal[MergeStatus.EXECUTION_FAILURE] = MergeStatus.EXECUTION_FAILURE


type MergeResult = (
    Ready | Blocked | NotFound | PartiallyFound | SchemaInconsistency | ExecutionFailure
)
