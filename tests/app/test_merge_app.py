from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

from safemerge import app
from safemerge.domain.model import (
    Blocked,
    MarkSuperseded,
    PartiallyFound,
    Ready,
    UnclassifiedReference,
    UpdateReference,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    import pytest
    from sqlalchemy.engine import Engine

    from safemerge.domain.rules import MergeRules


def _context(engine: Engine, rules: MergeRules) -> app.MergeContext:
    return app.open_context(rules=rules, engine=engine)


def _rows(engine: Engine, sql: str) -> list[tuple[object, ...]]:
    with engine.connect() as connection:
        return [tuple(row) for row in connection.execute(text(sql))]


def test_locate_respects_compound_keys_and_ignore_list(
    crm_engine: Engine,
    crm_rules: MergeRules,
    duplicate_pair: tuple[int, int],
) -> None:
    _, lose = duplicate_pair

    locations = app.locate(lose, context=_context(crm_engine, crm_rules))

    assert {(location.key, location.row_count) for location in locations} == {
        ("civicrm_contact.id", 1),
        ("civicrm_email.contact_id", 1),
        ("civicrm_note.entity_id", 1),
    }


def test_plan_merge_is_ready_and_read_only(
    crm_engine: Engine,
    crm_rules: MergeRules,
    duplicate_pair: tuple[int, int],
) -> None:
    keep, lose = duplicate_pair

    result = app.plan_merge(keep, lose, context=_context(crm_engine, crm_rules))

    assert isinstance(result, Ready)
    assert [command.describe() for command in result.commands] == [
        "update civicrm_email.contact_id: 2 -> 1 (set is_primary=0, is_billing=0)",
        "update civicrm_note.entity_id: 2 -> 1",
        "mark 2 superseded",
    ]
    assert _rows(crm_engine, "SELECT is_deleted FROM civicrm_contact WHERE id = 2") == [(0,)]


def test_merge_end_to_end_then_replan_is_partially_found(
    crm_engine: Engine,
    crm_rules: MergeRules,
    duplicate_pair: tuple[int, int],
) -> None:
    keep, lose = duplicate_pair
    context = _context(crm_engine, crm_rules)

    result = app.merge(keep, lose, context=context)

    assert isinstance(result, Ready)
    assert isinstance(result.commands[-1], MarkSuperseded)
    assert all(isinstance(command, UpdateReference) for command in result.commands[:-1])
    assert _rows(crm_engine, "SELECT contact_id, is_primary FROM civicrm_email ORDER BY id") == [
        (1, 1),
        (1, 0),
    ]
    assert _rows(crm_engine, "SELECT is_deleted FROM civicrm_contact ORDER BY id") == [(0,), (1,)]
    assert _rows(crm_engine, "SELECT entity_id FROM civicrm_log") == [(2,)]
    assert _rows(
        crm_engine,
        "SELECT entity_id, subject FROM civicrm_note WHERE subject IS NOT NULL ORDER BY id",
    ) == [
        (1, "Target of automerge"),
        (2, "Duplicate. Superseded during automerge"),
    ]

    again = app.plan_merge(keep, lose, context=context)

    assert again == PartiallyFound(keep=keep, lose=lose, found=keep)


def test_unclassified_foreign_key_blocks_merge(
    crm_engine: Engine,
    crm_rules: MergeRules,
    duplicate_pair: tuple[int, int],
    insert_row: Callable[..., None],
) -> None:
    keep, lose = duplicate_pair
    insert_row("gift_aid_claims", id=1, donor=lose)

    result = app.merge(keep, lose, context=_context(crm_engine, crm_rules))

    assert isinstance(result, Blocked)
    (reason,) = result.reasons
    assert isinstance(reason, UnclassifiedReference)
    assert reason.location.key == "gift_aid_claims.donor"
    assert _rows(crm_engine, "SELECT contact_id FROM civicrm_email ORDER BY id") == [(1,), (2,)]


def test_field_conflict_blocks_merge(
    crm_engine: Engine,
    crm_rules: MergeRules,
    insert_row: Callable[..., None],
) -> None:
    insert_row("civicrm_contact", id=1, first_name="John", do_not_email=0)
    insert_row("civicrm_contact", id=2, first_name="John", do_not_email=1)

    result = app.merge(1, 2, context=_context(crm_engine, crm_rules))

    assert isinstance(result, Blocked)
    assert [reason.describe() for reason in result.reasons] == [
        "civicrm_contact.do_not_email: keep=0 lose=1 (BlockIfGreater)"
    ]
    assert _rows(crm_engine, "SELECT is_deleted FROM civicrm_contact WHERE id = 2") == [(0,)]


def test_explain_reports_verdicts(
    crm_engine: Engine,
    crm_rules: MergeRules,
    duplicate_pair: tuple[int, int],
) -> None:
    keep, lose = duplicate_pair

    explanation = app.explain(keep, lose, context=_context(crm_engine, crm_rules))

    assert isinstance(explanation.result, Ready)
    assert explanation.plan is not None
    (examination,) = explanation.examinations
    assert examination.table == "civicrm_contact"
    verdicts = {verdict.column: verdict for verdict in examination.verdicts}
    assert verdicts["first_name"].keep_value == "John"
    assert verdicts["first_name"].lose_value == "J"
    assert not examination.blocked_columns


def test_settings_lead_with_user_warning(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SAFEMERGE_RULES", raising=False)
    monkeypatch.setenv("SAFEMERGE_DATABASE_URI", "postgresql://merge:secret@db/crm")

    effective = app.settings()

    assert next(iter(effective)) == "user_warning"
    assert effective["user_warning"] == app.USER_WARNING
    assert effective["rules_file"] == "<packaged default>"
    assert "secret" not in str(effective["database_uri"])
    assert effective["entity"] == {
        "table": "civicrm_contact",
        "id_column": "id",
        "superseded_column": "is_deleted",
        "tag": "civicrm_contact",
    }


def test_examine_single_location(
    crm_engine: Engine,
    crm_rules: MergeRules,
    duplicate_pair: tuple[int, int],
) -> None:
    keep, lose = duplicate_pair

    examination = app.examine(
        "civicrm_contact.id", keep, lose, context=_context(crm_engine, crm_rules)
    )

    assert examination.table_classified
    assert examination.blocked_columns == frozenset()
    last_name = next(verdict for verdict in examination.verdicts if verdict.column == "last_name")
    assert (last_name.keep_value, last_name.lose_value) == ("Smithson", "Smith")
