"""Port for reading schema metadata during catalog discovery."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from safemerge.domain.rules import CustomGroupSource


@runtime_checkable
class SchemaIntrospection(Protocol):
    """Read-only view of the store's tables, columns and declared foreign keys."""

    def table_names(self) -> Sequence[str]: ...

    def describe_table(self, table: str) -> Sequence[str]:
        """Return the table's column names in declaration order."""
        ...

    def foreign_keys_to(self, table: str, column: str) -> Sequence[tuple[str, str]]:
        """Return ``(table, column)`` pairs with a declared foreign key to ``table.column``."""
        ...

    def custom_group_tables(
        self,
        source: CustomGroupSource,
        excluded_types: Sequence[str],
    ) -> Sequence[str]:
        """Return custom-data tables whose rows extend one of ``excluded_types``."""
        ...
