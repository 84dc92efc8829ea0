from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine, insert

from safemerge.adapters.sqlalchemy import shutdown
from safemerge.domain.model import ReferenceColumn
from safemerge.domain.planner import Classification
from safemerge.domain.policy import ColumnBehaviorPolicy
from safemerge.domain.rules import (
    AuditSettings,
    DiscoverySettings,
    EntitySettings,
    MergeRules,
)
from tests.support.schema import crm_metadata

os.environ.setdefault("SAFEMERGE_DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

    from sqlalchemy.engine import Engine


@pytest.fixture
def crm_engine(tmp_path: Path) -> Iterator[Engine]:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'crm.db'}")
    crm_metadata().create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def insert_row(crm_engine: Engine) -> Callable[..., None]:
    metadata = crm_metadata()

    def insert_(table: str, **values: object) -> None:
        with crm_engine.begin() as connection:
            connection.execute(insert(metadata.tables[table]).values(values))

    return insert_


@pytest.fixture
def crm_rules() -> MergeRules:
    return MergeRules(
        entity=EntitySettings(table="civicrm_contact", tag="civicrm_contact"),
        classification=Classification.from_strings(
            ignore=["civicrm_log.entity_id", "civicrm_log.modified_id"],
            update=["civicrm_email.contact_id", "civicrm_note.entity_id"],
            examine=["civicrm_contact.id"],
        ),
        policy=ColumnBehaviorPolicy(
            {
                "civicrm_contact": {
                    "id": "Ignore",
                    "first_name": "AllowSingleCharBlankOrMatch",
                    "middle_name": "IgnoreTruncation",
                    "last_name": "IgnoreTruncation",
                    "display_name": "Ignore",
                    "do_not_email": "BlockIfGreater",
                    "is_deleted": "Ignore",
                }
            }
        ),
        discovery=DiscoverySettings(include_columns=("*contact_id*", "*entity_id*")),
        known_references=(
            ReferenceColumn.parse("civicrm_note.entity_id", discriminator="entity_table"),
        ),
        side_effects={"civicrm_email": (("is_primary", 0), ("is_billing", 0))},
        audit=AuditSettings(table="civicrm_note"),
    )


@pytest.fixture
def duplicate_pair(insert_row: Callable[..., None]) -> tuple[int, int]:
    """Contacts 1 (kept) and 2 (duplicate) with an email and a note on the duplicate."""

    insert_row("civicrm_contact", id=1, first_name="John", last_name="Smithson")
    insert_row("civicrm_contact", id=2, first_name="J", last_name="Smith")
    insert_row("civicrm_email", id=1, contact_id=1, email="john@example.org", is_primary=1)
    insert_row(
        "civicrm_email", id=2, contact_id=2, email="j.smith@example.org", is_primary=1, is_billing=1
    )
    insert_row("civicrm_note", id=1, entity_table="civicrm_contact", entity_id=2, note="Called")
    insert_row("civicrm_note", id=2, entity_table="civicrm_activity", entity_id=2, note="Other")
    insert_row("civicrm_log", id=1, entity_id=2, modified_id=2)
    return 1, 2


@pytest.fixture(autouse=True)
def reset_adapter_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()
