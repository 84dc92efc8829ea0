"""Schema introspection backed by the SQLAlchemy inspector."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import inspect, select

from .tables import table_clause

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.engine import Connection

    from safemerge.domain.rules import CustomGroupSource


class SqlAlchemySchemaIntrospection:
    def __init__(self, connection: Connection, *, schema: str | None = None) -> None:
        self.connection = connection
        self.schema = schema
        self._inspector = inspect(connection)

    def table_names(self) -> list[str]:
        return list(self._inspector.get_table_names(schema=self.schema))

    def describe_table(self, table: str) -> list[str]:
        return [column["name"] for column in self._inspector.get_columns(table, schema=self.schema)]

    def foreign_keys_to(self, table: str, column: str) -> list[tuple[str, str]]:
        found: list[tuple[str, str]] = []
        for source_table in self.table_names():
            for foreign_key in self._inspector.get_foreign_keys(source_table, schema=self.schema):
                if foreign_key["referred_table"] != table:
                    continue
                pairs = zip(
                    foreign_key["constrained_columns"],
                    foreign_key["referred_columns"],
                    strict=False,
                )
                found.extend(
                    (source_table, constrained)
                    for constrained, referred in pairs
                    if referred == column
                )
        return found

    def custom_group_tables(
        self,
        source: CustomGroupSource,
        excluded_types: Sequence[str],
    ) -> list[str]:
        if not excluded_types:
            return []
        groups = table_clause(source.table, source.name_column, source.extends_column)
        stmt = select(groups.c[source.name_column]).where(
            groups.c[source.extends_column].in_(list(excluded_types))
        )
        return [str(name) for name in self.connection.execute(stmt).scalars() if name]
