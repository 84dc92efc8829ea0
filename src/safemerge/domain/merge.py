"""Plan-and-apply service around the merge engine.

Both participants are owned exclusively from the existence check until the
commit, and planning runs inside the same transaction as the writes, so the
plan cannot go stale between check and use.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .engine import MergeEngine, check_ids
from .errors import ApplyError, AuditError
from .locking import DEFAULT_LOCKS, EntityLocks
from .model import ExecutionFailure, Ready, SchemaInconsistency

if TYPE_CHECKING:
    from .catalog import SchemaCatalog
    from .model import EntityId, MergeResult
    from .ports import AuditRecorder, MergeUnitOfWork
    from .rules import MergeRules

log = logging.getLogger(__name__)

type UnitOfWorkFactory = Callable[[], MergeUnitOfWork]


def merge_entities(
    keep: EntityId,
    lose: EntityId,
    *,
    catalog: SchemaCatalog,
    rules: MergeRules,
    unit_of_work_factory: UnitOfWorkFactory,
    audit: AuditRecorder | None = None,
    locks: EntityLocks = DEFAULT_LOCKS,
) -> MergeResult:
    """Plan the merge of ``lose`` into ``keep`` and apply it atomically when clean."""

    check_ids(keep, lose)
    entity = rules.entity
    missing = catalog.missing_columns(entity.table, entity.id_column, entity.superseded_column)
    if missing:
        return SchemaInconsistency(keep=keep, lose=lose, missing=tuple(sorted(set(missing))))

    with locks.holding(keep, lose), unit_of_work_factory() as uow:
        uow.lock_entities(entity, (keep, lose))
        engine = MergeEngine(catalog, rules, uow.rows)
        result = engine.plan_merge(keep, lose)
        if not isinstance(result, Ready):
            uow.rollback()
            return result

        try:
            uow.applier.apply(result.commands)
            uow.commit()
        except ApplyError as exc:
            uow.rollback()
            log.error("Merge of %s into %s rolled back: %s", lose, keep, exc)
            return ExecutionFailure(keep=keep, lose=lose, reason=str(exc), commands=result.commands)

    log.info("Merged %s into %s (%s commands)", lose, keep, len(result.commands))
    if audit is not None:
        _record_audit(audit, result)
    return result


def _record_audit(audit: AuditRecorder, result: Ready) -> None:
    notes = (
        (
            result.keep,
            "Target of automerge",
            f"This entity has been merged from the duplicate {result.lose}",
        ),
        (
            result.lose,
            "Duplicate. Superseded during automerge",
            f"This entity was merged to {result.keep}",
        ),
    )
    for entity_id, subject, message in notes:
        try:
            audit.record(entity_id, subject=subject, message=message)
        except AuditError:
            log.exception("Could not record audit note for %s", entity_id)
