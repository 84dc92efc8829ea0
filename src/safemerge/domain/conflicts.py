"""Conflict evaluator: field-by-field comparison of an examined record pair.

For the pair ``(ca, cb)`` = (row at the kept id, row at the losing id) every
column of the table is compared under its behavior. Data in ``cb`` is about to
be discarded, so each rule asks whether discarding it would lose information.

Rules (NULL compares as the empty string, or as 0 for numbers):
- BlockOnDifferentValue: cb non-empty and cb != ca
- BlockIfGreater: cb > ca
- IgnoreTruncation: cb is not a prefix of ca
- AllowSingleCharBlankOrMatch: cb non-empty, cb != ca and cb is not ca's initial
- IgnoreEmailOrTruncation: cb non-empty, cb != ca, cb is no email address and
  cb is not a prefix of ca
- Ignore: never

Evaluation never short-circuits so every conflict can be reported at once.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Final

from .model import BehaviorSource, ColumnBehavior, FieldConflict

if TYPE_CHECKING:
    from .catalog import SchemaCatalog
    from .model import EntityId, ReferenceColumn
    from .policy import ColumnBehaviorPolicy
    from .ports import RowQueries

log = logging.getLogger(__name__)

EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"[0-9a-z_.-]+@(([0-9]{1,3}\.){3}[0-9]{1,3}|([0-9a-z][0-9a-z-]*[0-9a-z]\.)+[a-z]{2,3})",
    re.IGNORECASE,
)


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _number(value: object) -> Decimal | None:
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, int | Decimal):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    text = _text(value).strip()
    if not text:
        return Decimal(0)
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    return None if number.is_nan() else number


def _block_on_different_value(keep: object, lose: object) -> bool:
    kept, lost = _text(keep), _text(lose)
    return lost != "" and lost != kept


def _block_if_greater(keep: object, lose: object) -> bool:
    kept, lost = _number(keep), _number(lose)
    if kept is None or lost is None:
        # not comparable as numbers: any non-blank difference blocks
        return _block_on_different_value(keep, lose)
    return lost > kept


def _ignore_truncation(keep: object, lose: object) -> bool:
    return not _text(keep).startswith(_text(lose))


def _allow_single_char_blank_or_match(keep: object, lose: object) -> bool:
    kept, lost = _text(keep), _text(lose)
    if lost == "" or lost == kept:
        return False
    return kept[:1].upper() != lost.upper()


def _ignore_email_or_truncation(keep: object, lose: object) -> bool:
    kept, lost = _text(keep), _text(lose)
    if lost == "" or lost == kept:
        return False
    if EMAIL_PATTERN.fullmatch(lost):
        return False
    return not kept.startswith(lost)


def _ignore(_keep: object, _lose: object) -> bool:
    return False


_RULES: Final[dict[ColumnBehavior, Callable[[object, object], bool]]] = {
    ColumnBehavior.BLOCK_ON_DIFFERENT_VALUE: _block_on_different_value,
    ColumnBehavior.BLOCK_IF_GREATER: _block_if_greater,
    ColumnBehavior.IGNORE_TRUNCATION: _ignore_truncation,
    ColumnBehavior.ALLOW_SINGLE_CHAR_BLANK_OR_MATCH: _allow_single_char_blank_or_match,
    ColumnBehavior.IGNORE_EMAIL_OR_TRUNCATION: _ignore_email_or_truncation,
    ColumnBehavior.IGNORE: _ignore,
}


def blocks(behavior: ColumnBehavior, keep_value: object, lose_value: object) -> bool:
    """Return whether discarding ``lose_value`` in favour of ``keep_value`` loses data."""

    return _RULES[behavior](keep_value, lose_value)


@dataclass(frozen=True, slots=True, kw_only=True)
class ColumnVerdict:
    column: str
    behavior: ColumnBehavior
    source: BehaviorSource
    keep_value: object
    lose_value: object
    blocked: bool


@dataclass(frozen=True, slots=True, kw_only=True)
class PairExamination:
    """Per-column verdicts for one examined record pair."""

    table: str
    key_column: str
    keep_id: EntityId
    lose_id: EntityId
    verdicts: tuple[ColumnVerdict, ...]
    table_classified: bool

    @property
    def blocked_columns(self) -> frozenset[str]:
        return frozenset(verdict.column for verdict in self.verdicts if verdict.blocked)

    @property
    def conflicts(self) -> tuple[FieldConflict, ...]:
        return tuple(
            FieldConflict(
                table=self.table,
                column=verdict.column,
                behavior=verdict.behavior,
                keep_value=verdict.keep_value,
                lose_value=verdict.lose_value,
                source=verdict.source,
            )
            for verdict in self.verdicts
            if verdict.blocked
        )


def examine_pair(
    catalog: SchemaCatalog,
    policy: ColumnBehaviorPolicy,
    rows: RowQueries,
    reference: ReferenceColumn,
    keep_id: EntityId,
    lose_id: EntityId,
) -> PairExamination:
    """Fetch the record pair keyed by ``reference`` and judge every column.

    A missing kept row compares as all-NULL, so any non-blank losing value
    under a strict behavior blocks.
    """

    columns = catalog.describe_table(reference.table)
    catalog.require_column(reference.table, reference.column)
    keep_row, lose_row = rows.fetch_pair(
        reference,
        keep_id,
        lose_id,
        columns=columns,
        tag=catalog.tag_for(reference),
    )
    keep_values = keep_row or {}
    lose_values = lose_row or {}
    if keep_row is None:
        log.debug("No %s row for kept id %s; comparing against NULLs", reference.key, keep_id)

    verdicts: list[ColumnVerdict] = []
    for column in columns:
        lookup = policy.lookup(reference.table, column)
        keep_value = keep_values.get(column)
        lose_value = lose_values.get(column)
        verdicts.append(
            ColumnVerdict(
                column=column,
                behavior=lookup.behavior,
                source=lookup.source,
                keep_value=keep_value,
                lose_value=lose_value,
                blocked=blocks(lookup.behavior, keep_value, lose_value),
            )
        )

    examination = PairExamination(
        table=reference.table,
        key_column=reference.column,
        keep_id=keep_id,
        lose_id=lose_id,
        verdicts=tuple(verdicts),
        table_classified=policy.classifies_table(reference.table),
    )
    if not examination.table_classified:
        log.warning(
            "Table %s has no column behaviour entries; every column compares strictly",
            reference.table,
        )
    return examination


def evaluate(
    catalog: SchemaCatalog,
    policy: ColumnBehaviorPolicy,
    rows: RowQueries,
    reference: ReferenceColumn,
    keep_id: EntityId,
    lose_id: EntityId,
) -> frozenset[str]:
    """Return the blocked column names for the pair; empty means safe to merge."""

    return examine_pair(catalog, policy, rows, reference, keep_id, lose_id).blocked_columns
