"""Unit-of-work boundary spanning planning reads and command application."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection
    from types import TracebackType

    from safemerge.domain.model import EntityId
    from safemerge.domain.rules import EntitySettings

    from .persistence import CommandApplier, RowQueries


@runtime_checkable
class MergeUnitOfWork(Protocol):
    """One connection and one transaction for a single merge attempt."""

    @property
    def rows(self) -> RowQueries: ...

    @property
    def applier(self) -> CommandApplier: ...

    def __enter__(self) -> MergeUnitOfWork: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def lock_entities(self, entity: EntitySettings, ids: Collection[EntityId]) -> None:
        """Take row locks on both participants where the store supports it."""
        ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
