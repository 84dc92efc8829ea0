"""Lightweight table constructs for schemas the application does not own.

Names reaching these helpers come from the schema catalog; SQLAlchemy quotes
them on compilation and every value is a bound parameter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import column, table

if TYPE_CHECKING:
    from sqlalchemy.sql.expression import ColumnElement, TableClause

    from safemerge.domain.model import ReferenceColumn


def table_clause(name: str, *columns: str | None) -> TableClause:
    """Return a ``TableClause`` carrying the given (deduplicated) columns."""

    names = list(dict.fromkeys(column_name for column_name in columns if column_name))
    return table(name, *(column(column_name) for column_name in names))


def reference_criteria(
    clause: TableClause,
    reference: ReferenceColumn,
    entity_id: int,
    tag: str | None,
) -> list[ColumnElement[bool]]:
    """WHERE criteria selecting rows of ``reference`` that point at ``entity_id``."""

    criteria: list[ColumnElement[bool]] = [clause.c[reference.column] == entity_id]
    if reference.discriminator is not None and tag is not None:
        criteria.append(clause.c[reference.discriminator] == tag)
    return criteria
