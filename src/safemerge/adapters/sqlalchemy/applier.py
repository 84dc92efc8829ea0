"""Execute merge commands inside the caller's transaction."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import delete, true, update
from sqlalchemy.exc import SQLAlchemyError

from safemerge.domain.errors import ApplyError, SchemaInconsistencyError
from safemerge.domain.model import DeleteRecord, MarkSuperseded, UpdateReference

from .tables import reference_criteria, table_clause

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.engine import Connection

    from safemerge.domain.catalog import SchemaCatalog
    from safemerge.domain.model import MergeCommand
    from safemerge.domain.rules import EntitySettings

log = logging.getLogger(__name__)


class SqlAlchemyCommandApplier:
    """Apply commands in order; any failure aborts the whole batch.

    Identifiers are checked against the catalog before a statement is built.
    Marking the losing entity superseded must hit its row. Reference updates
    and deletes may find nothing left when an earlier command or a cascade
    already removed the rows.
    """

    def __init__(
        self,
        connection: Connection,
        catalog: SchemaCatalog,
        entity: EntitySettings,
    ) -> None:
        self.connection = connection
        self.catalog = catalog
        self.entity = entity

    def apply(self, commands: Sequence[MergeCommand]) -> None:
        for position, command in enumerate(commands, start=1):
            try:
                affected = self._execute(command)
            except SchemaInconsistencyError as exc:
                raise ApplyError(f"Command {position} ({command.describe()}): {exc}") from exc
            except SQLAlchemyError as exc:
                raise ApplyError(
                    f"Command {position} ({command.describe()}) failed: {exc}"
                ) from exc
            if affected == 0 and isinstance(command, MarkSuperseded):
                raise ApplyError(f"Command {position} ({command.describe()}) affected no rows")
            log.debug("Applied %s (%s rows)", command.describe(), affected)

    def _execute(self, command: MergeCommand) -> int:
        if isinstance(command, UpdateReference):
            return self._update_reference(command)
        if isinstance(command, DeleteRecord):
            return self._delete_record(command)
        if isinstance(command, MarkSuperseded):
            return self._mark_superseded(command)
        raise ApplyError(f"Unsupported merge command: {command!r}")

    def _update_reference(self, command: UpdateReference) -> int:
        reference = command.location.reference
        assigned = [column for column, _ in command.assignments]
        self._require(reference.table, reference.column, reference.discriminator, *assigned)
        clause = table_clause(reference.table, reference.column, reference.discriminator, *assigned)
        values: dict[str, object] = {reference.column: command.new_id}
        values.update(command.assignments)
        stmt = (
            update(clause)
            .where(
                *reference_criteria(
                    clause, reference, command.old_id, self.catalog.tag_for(reference)
                )
            )
            .values(values)
        )
        return self.connection.execute(stmt).rowcount

    def _delete_record(self, command: DeleteRecord) -> int:
        location = command.location
        reference = location.reference
        self._require(reference.table, reference.column, reference.discriminator)
        clause = table_clause(reference.table, reference.column, reference.discriminator)
        stmt = delete(clause).where(
            *reference_criteria(
                clause, reference, location.entity_id, self.catalog.tag_for(reference)
            )
        )
        return self.connection.execute(stmt).rowcount

    def _mark_superseded(self, command: MarkSuperseded) -> int:
        entity = self.entity
        self._require(entity.table, entity.id_column, entity.superseded_column)
        clause = table_clause(entity.table, entity.id_column, entity.superseded_column)
        stmt = (
            update(clause)
            .where(clause.c[entity.id_column] == command.entity_id)
            .values({entity.superseded_column: true()})
        )
        return self.connection.execute(stmt).rowcount

    def _require(self, table: str, *columns: str | None) -> None:
        self.catalog.require_column(table, *(column for column in columns if column))
