"""Merge orchestrator: existence check, plan, examine, emit commands.

States: start -> existence checked -> planned -> examined -> ready, with
terminal exits ``NotFound``, ``PartiallyFound``, ``SchemaInconsistency`` and
``Blocked``. Planning only reads; every outcome other than ``Ready`` is a
side-effect free report, and ``Ready`` commands are inert until applied.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .conflicts import examine_pair
from .errors import SchemaInconsistencyError
from .locate import locate
from .model import (
    Blocked,
    DeleteRecord,
    MarkSuperseded,
    NotFound,
    PartiallyFound,
    Ready,
    SchemaInconsistency,
    UnclassifiedReference,
    UpdateReference,
)
from .planner import table_plan

if TYPE_CHECKING:
    from .catalog import SchemaCatalog
    from .conflicts import PairExamination
    from .model import (
        EntityId,
        FieldConflict,
        Location,
        MergeCommand,
        MergePlan,
        MergeResult,
        ReferenceColumn,
    )
    from .ports import RowQueries
    from .rules import MergeRules

log = logging.getLogger(__name__)


def check_ids(keep: EntityId, lose: EntityId) -> None:
    """Reject caller errors before any query is issued."""

    for name, value in (("keep", keep), ("lose", lose)):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"{name} must be a positive integer id, got {value!r}")
    if keep == lose:
        raise ValueError(f"Cannot merge entity {keep} into itself")


class MergeEngine:
    """Plan a merge of ``lose`` into ``keep`` against one row-query snapshot."""

    def __init__(self, catalog: SchemaCatalog, rules: MergeRules, rows: RowQueries) -> None:
        self.rules = rules
        self.catalog = catalog.excluding(rules.classification.ignore)
        self.rows = rows

    # inspection entry points ------------------------------------------------------

    def locate(self, entity_id: EntityId) -> frozenset[Location]:
        return locate(self.catalog, entity_id, self.rows)

    def table_plan(self, entity_id: EntityId) -> MergePlan:
        """Locate ``entity_id`` and classify every location.

        Raises ``SchemaInconsistencyError`` when the classification lists name
        columns the catalog does not hold.
        """

        self.validate()
        return table_plan(self.locate(entity_id), self.rules.classification)

    def examine(
        self,
        reference: ReferenceColumn,
        keep: EntityId,
        lose: EntityId,
    ) -> PairExamination:
        return examine_pair(self.catalog, self.rules.policy, self.rows, reference, keep, lose)

    def validate(self) -> None:
        """Check every configured identifier against the catalog."""

        missing = self.missing_identifiers()
        if missing:
            raise SchemaInconsistencyError(missing)

    def missing_identifiers(self) -> list[str]:
        entity = self.rules.entity
        missing = self.catalog.missing_columns(
            entity.table, entity.id_column, entity.superseded_column
        )
        missing.extend(self.rules.classification.missing_from(self.catalog))
        for table, assignments in self.rules.side_effects.items():
            if self.catalog.has_table(table):
                missing.extend(
                    self.catalog.missing_columns(table, *(column for column, _ in assignments))
                )
        return missing

    # primary entry point ----------------------------------------------------------

    def plan_merge(self, keep: EntityId, lose: EntityId) -> MergeResult:
        check_ids(keep, lose)
        entity = self.rules.entity
        log.info("Planning merge of %s into %s", lose, keep)

        missing = self.missing_identifiers()
        if missing:
            return self._inconsistent(keep, lose, missing)

        active = self.rows.active_entities(entity, (keep, lose))
        if not active:
            log.info("Neither %s nor %s is an active entity", keep, lose)
            return NotFound(keep=keep, lose=lose)
        if len(active) == 1:
            (found,) = active
            log.info("Only %s of (%s, %s) is an active entity", found, keep, lose)
            return PartiallyFound(keep=keep, lose=lose, found=found)

        try:
            plan = self.table_plan(lose)
        except SchemaInconsistencyError as exc:
            return self._inconsistent(keep, lose, exc.missing)
        log.info(
            "Plan for %s: %s update, %s delete, %s examine, %s blockers",
            lose,
            len(plan.update),
            len(plan.delete),
            len(plan.examine),
            len(plan.blockers),
        )

        if plan.blockers:
            reasons = tuple(
                UnclassifiedReference(location=location) for location in sorted(plan.blockers)
            )
            log.warning(
                "Merge of %s into %s blocked by unclassified references: %s",
                lose,
                keep,
                ", ".join(reason.location.key for reason in reasons),
            )
            return Blocked(keep=keep, lose=lose, reasons=reasons, plan=plan)

        conflicts: list[FieldConflict] = []
        for location in sorted(plan.examine):
            try:
                examination = self.examine(location.reference, keep, lose)
            except SchemaInconsistencyError as exc:
                return self._inconsistent(keep, lose, exc.missing)
            conflicts.extend(examination.conflicts)
        if conflicts:
            log.warning(
                "Merge of %s into %s blocked by field conflicts: %s",
                lose,
                keep,
                "; ".join(conflict.describe() for conflict in conflicts),
            )
            return Blocked(keep=keep, lose=lose, reasons=tuple(conflicts), plan=plan)

        commands = self._commands(plan, keep, lose)
        log.info("Merge of %s into %s is ready: %s commands", lose, keep, len(commands))
        return Ready(keep=keep, lose=lose, commands=commands, plan=plan)

    def _commands(
        self,
        plan: MergePlan,
        keep: EntityId,
        lose: EntityId,
    ) -> tuple[MergeCommand, ...]:
        # updates and deletes strictly before the superseded flag
        commands: list[MergeCommand] = [
            UpdateReference(
                location=location,
                new_id=keep,
                assignments=self.rules.assignments_for(location.table),
            )
            for location in sorted(plan.update)
        ]
        commands.extend(DeleteRecord(location=location) for location in sorted(plan.delete))
        commands.append(MarkSuperseded(entity_id=lose))
        return tuple(commands)

    @staticmethod
    def _inconsistent(
        keep: EntityId,
        lose: EntityId,
        missing: list[str] | tuple[str, ...],
    ) -> SchemaInconsistency:
        result = SchemaInconsistency(keep=keep, lose=lose, missing=tuple(sorted(set(missing))))
        log.error("Merge rules do not match the schema; missing: %s", ", ".join(result.missing))
        return result
