"""SQLAlchemy adapter package for safemerge."""

from __future__ import annotations

from .applier import SqlAlchemyCommandApplier
from .notes import SqlAlchemyNoteRecorder
from .rows import SqlAlchemyRowQueries
from .schema import SqlAlchemySchemaIntrospection
from .unit_of_work import (
    SqlAlchemyMergeUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyCommandApplier",
    "SqlAlchemyMergeUnitOfWork",
    "SqlAlchemyNoteRecorder",
    "SqlAlchemyRowQueries",
    "SqlAlchemySchemaIntrospection",
    "StartupError",
    "configured_engine",
    "is_started",
    "shutdown",
    "startup",
]
