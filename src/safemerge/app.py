"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.engine import make_url

from safemerge.adapters.sqlalchemy import (
    SqlAlchemyMergeUnitOfWork,
    SqlAlchemyNoteRecorder,
    SqlAlchemyRowQueries,
    SqlAlchemySchemaIntrospection,
    configured_engine,
    startup,
)
from safemerge.config import describe_rules, get_database_config, load_rules, resolve_rules_path
from safemerge.domain.catalog import build_catalog
from safemerge.domain.engine import MergeEngine, check_ids
from safemerge.domain.errors import SchemaInconsistencyError
from safemerge.domain.merge import merge_entities
from safemerge.domain.model import ReferenceColumn

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.engine import Connection, Engine

    from safemerge.domain.catalog import SchemaCatalog
    from safemerge.domain.conflicts import PairExamination
    from safemerge.domain.model import EntityId, Location, MergePlan, MergeResult
    from safemerge.domain.ports import AuditRecorder
    from safemerge.domain.rules import MergeRules

log = getLogger(__name__)

USER_WARNING = (
    "Make sure the records you are about to merge are true duplicates. These checks only "
    "concern whether merging can happen automatically without losing valuable data; they "
    "do NOT verify that the two records describe the same entity."
)


@dataclass(frozen=True, slots=True)
class MergeContext:
    """Rules, engine and catalog resolved for one invocation."""

    rules: MergeRules
    engine: Engine
    catalog: SchemaCatalog


@dataclass(frozen=True, slots=True, kw_only=True)
class MergeExplanation:
    """Everything a reviewer needs to see why a merge would or would not proceed."""

    keep: EntityId
    lose: EntityId
    result: MergeResult
    locations: frozenset[Location] = frozenset()
    plan: MergePlan | None = None
    examinations: tuple[PairExamination, ...] = field(default_factory=tuple)


def open_context(
    *,
    rules: MergeRules | None = None,
    rules_path: str | Path | None = None,
    engine: Engine | None = None,
    database_uri: str | None = None,
) -> MergeContext:
    """Resolve rules and engine, then scan the schema into a catalog."""

    effective_rules = rules or load_rules(rules_path)
    effective_engine = engine or configured_engine() or startup(database_uri=database_uri)
    with effective_engine.connect() as connection:
        catalog = build_catalog(SqlAlchemySchemaIntrospection(connection), effective_rules)
    return MergeContext(rules=effective_rules, engine=effective_engine, catalog=catalog)


def plan_merge(
    keep: EntityId,
    lose: EntityId,
    *,
    context: MergeContext | None = None,
) -> MergeResult:
    """Plan a merge without changing anything."""

    check_ids(keep, lose)
    ctx = context or open_context()
    with ctx.engine.connect() as connection:
        result = _engine(ctx, connection).plan_merge(keep, lose)
    return result


def merge(
    keep: EntityId,
    lose: EntityId,
    *,
    context: MergeContext | None = None,
) -> MergeResult:
    """Plan and, when clean, atomically apply a merge of ``lose`` into ``keep``."""

    check_ids(keep, lose)
    ctx = context or open_context()
    log.info("Starting merge of %s into %s", lose, keep)
    result = merge_entities(
        keep,
        lose,
        catalog=ctx.catalog,
        rules=ctx.rules,
        unit_of_work_factory=lambda: SqlAlchemyMergeUnitOfWork(
            ctx.catalog, ctx.rules.entity, engine=ctx.engine
        ),
        audit=_audit_recorder(ctx),
    )
    log.info("Finished merge of %s into %s: %s", lose, keep, result.status)
    return result


def locate(entity_id: EntityId, *, context: MergeContext | None = None) -> frozenset[Location]:
    ctx = context or open_context()
    with ctx.engine.connect() as connection:
        return _engine(ctx, connection).locate(entity_id)


def table_plan(entity_id: EntityId, *, context: MergeContext | None = None) -> MergePlan:
    ctx = context or open_context()
    with ctx.engine.connect() as connection:
        return _engine(ctx, connection).table_plan(entity_id)


def examine(
    key: str,
    keep: EntityId,
    lose: EntityId,
    *,
    context: MergeContext | None = None,
) -> PairExamination:
    """Compare the keep and lose rows behind one ``table.column`` location."""

    check_ids(keep, lose)
    ctx = context or open_context()
    with ctx.engine.connect() as connection:
        return _engine(ctx, connection).examine(ReferenceColumn.parse(key), keep, lose)


def explain(
    keep: EntityId,
    lose: EntityId,
    *,
    context: MergeContext | None = None,
) -> MergeExplanation:
    """Plan a merge and report locations, buckets and per-column verdicts."""

    check_ids(keep, lose)
    ctx = context or open_context()
    with ctx.engine.connect() as connection:
        engine = _engine(ctx, connection)
        result = engine.plan_merge(keep, lose)
        locations = engine.locate(lose)
        try:
            plan = engine.table_plan(lose)
        except SchemaInconsistencyError:
            return MergeExplanation(keep=keep, lose=lose, result=result, locations=locations)
        examinations = tuple(
            engine.examine(location.reference, keep, lose) for location in sorted(plan.examine)
        )
    return MergeExplanation(
        keep=keep,
        lose=lose,
        result=result,
        locations=locations,
        plan=plan,
        examinations=examinations,
    )


def settings(*, rules_path: str | Path | None = None) -> dict[str, object]:
    """Effective configuration as plain data, led by the user warning."""

    resolved = resolve_rules_path(rules_path)
    rules = load_rules(resolved)
    return {
        "user_warning": USER_WARNING,
        "rules_file": str(resolved) if resolved is not None else "<packaged default>",
        "database_uri": _redact(get_database_config().uri),
        **describe_rules(rules),
    }


def _engine(ctx: MergeContext, connection: Connection) -> MergeEngine:
    return MergeEngine(ctx.catalog, ctx.rules, SqlAlchemyRowQueries(connection))


def _audit_recorder(ctx: MergeContext) -> AuditRecorder | None:
    audit = ctx.rules.audit
    if audit is None:
        return None
    if not ctx.catalog.has_table(audit.table):
        log.warning("Notes table %s not present; merges will not be annotated", audit.table)
        return None
    return SqlAlchemyNoteRecorder(ctx.engine, ctx.catalog, audit, ctx.rules.entity)


def _redact(uri: str) -> str:
    return make_url(uri).render_as_string(hide_password=True)
