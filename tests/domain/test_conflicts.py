from __future__ import annotations

import pytest

from safemerge.domain.conflicts import EMAIL_PATTERN, blocks, evaluate, examine_pair
from safemerge.domain.model import BehaviorSource, ColumnBehavior, ReferenceColumn
from safemerge.domain.policy import ColumnBehaviorPolicy
from tests.support.fakes import InMemoryRows, make_catalog, make_rules, seed_contacts

CONTACT_ID = ReferenceColumn(table="contact", column="id")


@pytest.mark.parametrize(
    ("keep", "lose", "expected"),
    [
        ("Smith", "Smith", False),
        ("Smith", "", False),
        ("Smith", None, False),
        (None, None, False),
        ("Smith", "Smyth", True),
        (None, "Smyth", True),
        (1, "1", False),
    ],
)
def test_block_on_different_value(keep: object, lose: object, *, expected: bool) -> None:
    assert blocks(ColumnBehavior.BLOCK_ON_DIFFERENT_VALUE, keep, lose) is expected


def test_block_on_different_value_is_asymmetric() -> None:
    assert blocks(ColumnBehavior.BLOCK_ON_DIFFERENT_VALUE, "", "x") is True
    assert blocks(ColumnBehavior.BLOCK_ON_DIFFERENT_VALUE, "x", "") is False


@pytest.mark.parametrize(
    ("keep", "lose", "expected"),
    [
        (1, 0, False),
        (1, 1, False),
        (0, 1, True),
        (None, 1, True),
        (1, None, False),
        ("2", "10", True),
        (True, False, False),
    ],
)
def test_block_if_greater(keep: object, lose: object, *, expected: bool) -> None:
    assert blocks(ColumnBehavior.BLOCK_IF_GREATER, keep, lose) is expected


def test_block_if_greater_never_blocks_when_keep_dominates() -> None:
    for lose in range(5):
        for keep in range(lose, 8):
            assert blocks(ColumnBehavior.BLOCK_IF_GREATER, keep, lose) is False


def test_block_if_greater_falls_back_to_text_comparison() -> None:
    assert blocks(ColumnBehavior.BLOCK_IF_GREATER, "abc", "abd") is True
    assert blocks(ColumnBehavior.BLOCK_IF_GREATER, "abc", "abc") is False


@pytest.mark.parametrize(
    ("keep", "lose", "expected"),
    [
        ("Smithson", "Smith", False),
        ("Smith", "Smith", False),
        ("Smith", "", False),
        ("Smith", None, False),
        ("Smith", "Smithson", True),
        (None, "Smith", True),
        ("smith", "Smith", True),
    ],
)
def test_ignore_truncation(keep: object, lose: object, *, expected: bool) -> None:
    assert blocks(ColumnBehavior.IGNORE_TRUNCATION, keep, lose) is expected


@pytest.mark.parametrize(
    ("keep", "lose", "expected"),
    [
        ("John", "J", False),
        ("John", "j", False),
        ("John", "", False),
        ("John", "John", False),
        ("John", "Jo", True),
        ("John", "K", True),
        ("", "J", True),
        (None, "John", True),
    ],
)
def test_allow_single_char_blank_or_match(keep: object, lose: object, *, expected: bool) -> None:
    assert blocks(ColumnBehavior.ALLOW_SINGLE_CHAR_BLANK_OR_MATCH, keep, lose) is expected


@pytest.mark.parametrize(
    ("keep", "lose", "expected"),
    [
        ("Jane Doe", "jane@example.org", False),
        ("Jane Doe", "JANE@EXAMPLE.ORG", False),
        ("Jane Doe", "Jane", False),
        ("Jane Doe", "", False),
        ("Jane Doe", "Janet", True),
        ("Jane Doe", "jane@example", True),
    ],
)
def test_ignore_email_or_truncation(keep: object, lose: object, *, expected: bool) -> None:
    assert blocks(ColumnBehavior.IGNORE_EMAIL_OR_TRUNCATION, keep, lose) is expected


def test_email_pattern_accepts_dotted_quad_hosts() -> None:
    assert EMAIL_PATTERN.fullmatch("ops@10.0.0.1")
    assert not EMAIL_PATTERN.fullmatch("ops@example.museum")


def test_ignore_never_blocks() -> None:
    assert blocks(ColumnBehavior.IGNORE, None, "anything") is False
    assert blocks(ColumnBehavior.IGNORE, "a", "b") is False


def test_evaluate_reports_every_blocking_column() -> None:
    store = seed_contacts(
        InMemoryRows(),
        {"id": 1, "first_name": "John", "last_name": "Smith", "do_not_email": 0},
        {"id": 2, "first_name": "Jim", "last_name": "Smythe", "do_not_email": 1},
    )
    rules = make_rules()

    blocked = evaluate(make_catalog(), rules.policy, store, CONTACT_ID, 1, 2)

    assert blocked == frozenset({"first_name", "last_name", "do_not_email"})


def test_evaluate_clean_pair() -> None:
    store = seed_contacts(
        InMemoryRows(),
        {"id": 1, "first_name": "John", "middle_name": "Quincy", "last_name": "Smithson"},
        {"id": 2, "first_name": "J", "middle_name": "Q", "last_name": "Smith"},
    )
    rules = make_rules()

    assert evaluate(make_catalog(), rules.policy, store, CONTACT_ID, 1, 2) == frozenset()


def test_missing_keep_row_compares_against_nulls() -> None:
    store = InMemoryRows()
    store.add("email", id=10, contact_id=2, email="b@example.org")
    reference = ReferenceColumn(table="email", column="contact_id")

    examination = examine_pair(
        make_catalog(), ColumnBehaviorPolicy(), store, reference, 1, 2
    )

    assert examination.blocked_columns == frozenset({"id", "contact_id", "email"})
    assert not examination.table_classified
    assert all(
        conflict.source is BehaviorSource.UNCLASSIFIED_TABLE for conflict in examination.conflicts
    )
    assert "no column behaviour entries" in examination.conflicts[0].describe()


def test_unlisted_column_in_classified_table_defaults_to_strict() -> None:
    catalog = make_catalog(tables={"contact": (*make_catalog().describe_table("contact"), "nick")})
    store = seed_contacts(InMemoryRows(), {"id": 1, "nick": "Jo"}, {"id": 2, "nick": "Jay"})
    rules = make_rules()

    examination = examine_pair(catalog, rules.policy, store, CONTACT_ID, 1, 2)

    (conflict,) = examination.conflicts
    assert conflict.column == "nick"
    assert conflict.behavior is ColumnBehavior.BLOCK_ON_DIFFERENT_VALUE
    assert conflict.source is BehaviorSource.COLUMN_DEFAULT
