"""Ports the merge core depends on; adapters implement them."""

from __future__ import annotations

from .persistence import AuditRecorder, CommandApplier, Row, RowQueries
from .schema import SchemaIntrospection
from .unit_of_work import MergeUnitOfWork

__all__ = [
    "AuditRecorder",
    "CommandApplier",
    "MergeUnitOfWork",
    "Row",
    "RowQueries",
    "SchemaIntrospection",
]
