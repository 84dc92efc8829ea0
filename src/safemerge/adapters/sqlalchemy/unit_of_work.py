"""SQLAlchemy-backed unit of work for a single merge attempt."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError

from safemerge.config.storage import get_database_config
from safemerge.domain.errors import ApplyError

from .applier import SqlAlchemyCommandApplier
from .rows import SqlAlchemyRowQueries
from .tables import table_clause

if TYPE_CHECKING:
    from collections.abc import Collection
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine, RootTransaction

    from safemerge.domain.catalog import SchemaCatalog
    from safemerge.domain.model import EntityId
    from safemerge.domain.rules import EntitySettings


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._engine = value

    def require_engine(self) -> Engine:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call safemerge.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        return self._engine


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Initialise the engine shared by units of work, catalog scans and notes.

    The schema belongs to the application whose records are merged; nothing is
    created or migrated here.
    """

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )
    if _STATE.engine is not None and engine is not _STATE.engine:
        _STATE.engine.dispose()

    resolved_engine = engine or create_engine(database_uri or get_database_config().uri)
    _STATE.engine = resolved_engine
    return resolved_engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class SqlAlchemyMergeUnitOfWork:
    """One connection and one transaction spanning planning reads and writes."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        entity: EntitySettings,
        *,
        engine: Engine | None = None,
    ) -> None:
        self.engine = engine or _STATE.require_engine()
        self.catalog = catalog
        self.entity = entity
        self._connection: Connection | None = None
        self._transaction: RootTransaction | None = None
        self._rows: SqlAlchemyRowQueries | None = None
        self._applier: SqlAlchemyCommandApplier | None = None

    def __enter__(self) -> SqlAlchemyMergeUnitOfWork:
        if self._connection is not None:
            raise StartupError("Unit of work connection already initialised")
        connection = self.engine.connect()
        self._connection = connection
        self._transaction = connection.begin()
        self._rows = SqlAlchemyRowQueries(connection)
        self._applier = SqlAlchemyCommandApplier(connection, self.catalog, self.entity)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        # uncommitted work never survives the block
        self.rollback()
        self.connection.close()
        self._connection = None
        self._transaction = None
        self._rows = None
        self._applier = None
        return False

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise StartupError("Unit of work connection not initialised")
        return self._connection

    @property
    def rows(self) -> SqlAlchemyRowQueries:
        if self._rows is None:
            raise StartupError("Unit of work connection not initialised")
        return self._rows

    @property
    def applier(self) -> SqlAlchemyCommandApplier:
        if self._applier is None:
            raise StartupError("Unit of work connection not initialised")
        return self._applier

    def lock_entities(self, entity: EntitySettings, ids: Collection[EntityId]) -> None:
        clause = table_clause(entity.table, entity.id_column)
        id_column = clause.c[entity.id_column]
        stmt = select(id_column).where(id_column.in_(sorted(ids))).with_for_update()
        self.connection.execute(stmt).all()

    def commit(self) -> None:
        if self._transaction is None:
            raise StartupError("Unit of work transaction not initialised")
        try:
            self._transaction.commit()
        except SQLAlchemyError as exc:
            raise ApplyError(f"Commit failed: {exc}") from exc

    def rollback(self) -> None:
        if self._transaction is not None and self._transaction.is_active:
            self._transaction.rollback()


if TYPE_CHECKING:
    from safemerge.domain.ports import MergeUnitOfWork

    def _uow_check(catalog: SchemaCatalog, entity: EntitySettings) -> MergeUnitOfWork:
        return SqlAlchemyMergeUnitOfWork(catalog, entity)
