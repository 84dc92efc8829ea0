"""SQLAlchemy Core schema used by adapter and application tests."""

from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table


def crm_metadata() -> MetaData:
    """A small CiviCRM-shaped schema: contacts plus tables that refer to them."""

    metadata = MetaData()
    Table(
        "civicrm_contact",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("first_name", String(64)),
        Column("middle_name", String(64)),
        Column("last_name", String(64)),
        Column("display_name", String(128)),
        Column("do_not_email", Integer, nullable=False, default=0),
        Column("is_deleted", Integer, nullable=False, default=0),
    )
    Table(
        "civicrm_email",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("contact_id", Integer, ForeignKey("civicrm_contact.id")),
        Column("email", String(254)),
        Column("is_primary", Integer, nullable=False, default=0),
        Column("is_billing", Integer, nullable=False, default=0),
    )
    Table(
        "civicrm_note",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("entity_table", String(64), nullable=False),
        Column("entity_id", Integer, nullable=False),
        Column("note", String(1024)),
        Column("subject", String(255)),
    )
    Table(
        "civicrm_log",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("entity_id", Integer),
        Column("modified_id", Integer),
    )
    Table(
        "gift_aid_claims",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("donor", Integer, ForeignKey("civicrm_contact.id")),
    )
    return metadata
