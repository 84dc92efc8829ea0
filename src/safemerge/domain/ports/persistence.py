"""Ports for row queries, command application and audit notes."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from safemerge.domain.model import EntityId, MergeCommand, ReferenceColumn
    from safemerge.domain.rules import EntitySettings

type Row = Mapping[str, object]


@runtime_checkable
class RowQueries(Protocol):
    """Read-only queries the engine issues against the data store.

    Identifiers passed in have already been checked against the schema catalog;
    implementations must bind every value as a query parameter.
    """

    def count_references(
        self,
        reference: ReferenceColumn,
        entity_id: EntityId,
        *,
        tag: str | None = None,
    ) -> int: ...

    def active_entities(
        self,
        entity: EntitySettings,
        ids: Collection[EntityId],
    ) -> frozenset[EntityId]: ...

    def fetch_pair(
        self,
        reference: ReferenceColumn,
        keep_id: EntityId,
        lose_id: EntityId,
        *,
        columns: Sequence[str],
        tag: str | None = None,
    ) -> tuple[Row | None, Row | None]: ...


@runtime_checkable
class CommandApplier(Protocol):
    """Execute merge commands in order inside the caller's transaction.

    Raises ``ApplyError`` when any command fails; the caller rolls back.
    """

    def apply(self, commands: Sequence[MergeCommand]) -> None: ...


@runtime_checkable
class AuditRecorder(Protocol):
    """Attach a note to an entity after a merge has been committed."""

    def record(self, entity_id: EntityId, *, subject: str, message: str) -> None: ...
