"""Audit notes written after a merge has committed."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError

from safemerge.domain.errors import AuditError

from .tables import table_clause

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from safemerge.domain.catalog import SchemaCatalog
    from safemerge.domain.model import EntityId
    from safemerge.domain.rules import AuditSettings, EntitySettings

log = logging.getLogger(__name__)


class SqlAlchemyNoteRecorder:
    """Insert one row per note into the configured notes table, in its own transaction."""

    def __init__(
        self,
        engine: Engine,
        catalog: SchemaCatalog,
        settings: AuditSettings,
        entity: EntitySettings,
    ) -> None:
        self.engine = engine
        self.catalog = catalog
        self.settings = settings
        self.entity = entity

    def record(self, entity_id: EntityId, *, subject: str, message: str) -> None:
        settings = self.settings
        columns = (
            settings.entity_table_column,
            settings.entity_id_column,
            settings.note_column,
            settings.subject_column,
        )
        missing = self.catalog.missing_columns(settings.table, *columns)
        if missing:
            raise AuditError(f"Notes table is missing: {', '.join(sorted(set(missing)))}")

        clause = table_clause(settings.table, *columns)
        stmt = insert(clause).values(
            {
                settings.entity_table_column: self.entity.table,
                settings.entity_id_column: entity_id,
                settings.note_column: message,
                settings.subject_column: subject,
            }
        )
        try:
            with self.engine.begin() as connection:
                connection.execute(stmt)
        except SQLAlchemyError as exc:
            raise AuditError(f"Could not write note for {entity_id}: {exc}") from exc
        log.debug("Recorded note %r on %s", subject, entity_id)
