"""Read-only row queries issued while planning a merge."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import false, func, select

from .tables import reference_criteria, table_clause

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from sqlalchemy.engine import Connection

    from safemerge.domain.model import EntityId, ReferenceColumn
    from safemerge.domain.ports import Row
    from safemerge.domain.rules import EntitySettings

log = logging.getLogger(__name__)


class SqlAlchemyRowQueries:
    """Row queries bound to one connection (and so to its open transaction)."""

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    def count_references(
        self,
        reference: ReferenceColumn,
        entity_id: EntityId,
        *,
        tag: str | None = None,
    ) -> int:
        clause = table_clause(reference.table, reference.column, reference.discriminator)
        stmt = (
            select(func.count())
            .select_from(clause)
            .where(*reference_criteria(clause, reference, entity_id, tag))
        )
        count = int(self.connection.execute(stmt).scalar_one())
        log.debug("%s rows in %s reference %s", count, reference.key, entity_id)
        return count

    def active_entities(
        self,
        entity: EntitySettings,
        ids: Collection[EntityId],
    ) -> frozenset[EntityId]:
        if not ids:
            return frozenset()
        clause = table_clause(entity.table, entity.id_column, entity.superseded_column)
        id_column = clause.c[entity.id_column]
        stmt = select(id_column).where(
            id_column.in_(list(ids)),
            clause.c[entity.superseded_column] == false(),
        )
        return frozenset(int(value) for value in self.connection.execute(stmt).scalars())

    def fetch_pair(
        self,
        reference: ReferenceColumn,
        keep_id: EntityId,
        lose_id: EntityId,
        *,
        columns: Sequence[str],
        tag: str | None = None,
    ) -> tuple[Row | None, Row | None]:
        return (
            self._first_row(reference, keep_id, columns, tag),
            self._first_row(reference, lose_id, columns, tag),
        )

    def _first_row(
        self,
        reference: ReferenceColumn,
        entity_id: EntityId,
        columns: Sequence[str],
        tag: str | None,
    ) -> Row | None:
        clause = table_clause(reference.table, *columns, reference.column, reference.discriminator)
        stmt = (
            select(*(clause.c[column] for column in columns))
            .where(*reference_criteria(clause, reference, entity_id, tag))
            .order_by(*(clause.c[column] for column in columns))
            .limit(1)
        )
        row = self.connection.execute(stmt).mappings().first()
        return dict(row) if row is not None else None
