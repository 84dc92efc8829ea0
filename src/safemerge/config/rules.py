"""Merge-rules files: TOML documents validated into ``MergeRules``.

The file is resolved in order from an explicit path, the ``SAFEMERGE_RULES``
environment variable, and the packaged ``default_rules.toml``.
"""

from __future__ import annotations

import logging
import os
import tomllib
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from safemerge.domain.model import ColumnBehavior, ReferenceColumn
from safemerge.domain.planner import Classification
from safemerge.domain.policy import ColumnBehaviorPolicy
from safemerge.domain.rules import (
    AuditSettings,
    CustomGroupSource,
    DiscoverySettings,
    EntitySettings,
    MergeRules,
)

from .errors import InvalidRulesError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = logging.getLogger(__name__)

RULES_ENV_VAR = "SAFEMERGE_RULES"
DEFAULT_RULES_RESOURCE = "default_rules.toml"

type ScalarValue = bool | int | float | str


class RulesModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class EntitySection(RulesModel):
    table: str
    id_column: str = "id"
    superseded_column: str = "is_deleted"
    tag: str | None = None


class CustomGroupSection(RulesModel):
    table: str = "civicrm_custom_group"
    name_column: str = "table_name"
    extends_column: str = "extends"
    reference_column: str = "entity_id"


class DiscoverySection(RulesModel):
    include_columns: list[str] = Field(default_factory=list)
    exclude_tables: list[str] = Field(default_factory=list)
    excluded_entity_types: list[str] = Field(default_factory=list)
    custom_groups: CustomGroupSection | None = None


class KnownReferenceSection(RulesModel):
    column: str
    discriminator: str | None = None

    @field_validator("column")
    @classmethod
    def _qualified(cls, value: str) -> str:
        ReferenceColumn.parse(value)
        return value


class ClassificationSection(RulesModel):
    ignore: list[str] = Field(default_factory=list)
    delete: list[str] = Field(default_factory=list)
    update: list[str] = Field(default_factory=list)
    examine: list[str] = Field(default_factory=list)


class AuditSection(RulesModel):
    table: str
    entity_table_column: str = "entity_table"
    entity_id_column: str = "entity_id"
    note_column: str = "note"
    subject_column: str = "subject"


class RulesDocument(RulesModel):
    """Top-level layout of a merge-rules file."""

    entity: EntitySection
    discovery: DiscoverySection = Field(default_factory=DiscoverySection)
    known_references: list[KnownReferenceSection] = Field(default_factory=list)
    classification: ClassificationSection = Field(default_factory=ClassificationSection)
    behaviors: dict[str, dict[str, ColumnBehavior]] = Field(default_factory=dict)
    side_effects: dict[str, dict[str, ScalarValue]] = Field(default_factory=dict)
    audit: AuditSection | None = None

    def to_rules(self) -> MergeRules:
        discovery = self.discovery
        custom_groups = (
            CustomGroupSource(**discovery.custom_groups.model_dump())
            if discovery.custom_groups is not None
            else None
        )
        return MergeRules(
            entity=EntitySettings(**self.entity.model_dump()),
            classification=Classification.from_strings(**self.classification.model_dump()),
            policy=ColumnBehaviorPolicy(self.behaviors),
            discovery=DiscoverySettings(
                include_columns=tuple(discovery.include_columns),
                exclude_tables=tuple(discovery.exclude_tables),
                excluded_entity_types=tuple(discovery.excluded_entity_types),
                custom_groups=custom_groups,
            ),
            known_references=tuple(
                ReferenceColumn.parse(known.column, discriminator=known.discriminator)
                for known in self.known_references
            ),
            side_effects={
                table: tuple(assignments.items())
                for table, assignments in self.side_effects.items()
            },
            audit=AuditSettings(**self.audit.model_dump()) if self.audit is not None else None,
        )


def resolve_rules_path(path: str | Path | None = None) -> Path | None:
    """Return the rules file to load, or ``None`` for the packaged defaults."""

    if path is not None:
        return Path(path).expanduser()
    env_path = os.getenv(RULES_ENV_VAR)
    if env_path and env_path.strip():
        return Path(env_path.strip()).expanduser()
    return None


def load_rules(path: str | Path | None = None) -> MergeRules:
    resolved = resolve_rules_path(path)
    if resolved is None:
        source = f"<packaged {DEFAULT_RULES_RESOURCE}>"
        text = resources.files("safemerge.config").joinpath(DEFAULT_RULES_RESOURCE).read_text(
            encoding="utf-8"
        )
    else:
        source = str(resolved)
        try:
            text = resolved.read_text(encoding="utf-8")
        except OSError as exc:
            raise InvalidRulesError(source, f"cannot read file ({exc.strerror or exc})") from exc

    rules = parse_rules(text, source=source)
    log.info("Loaded merge rules from %s", source)
    return rules


def parse_rules(text: str, *, source: str = "<string>") -> MergeRules:
    try:
        payload = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise InvalidRulesError(source, str(exc)) from exc
    return rules_from_mapping(payload, source=source)


def rules_from_mapping(payload: Mapping[str, object], *, source: str = "<mapping>") -> MergeRules:
    try:
        document = RulesDocument.model_validate(payload)
        return document.to_rules()
    except ValidationError as exc:
        raise InvalidRulesError(source, _format_validation_error(exc)) from exc
    except ValueError as exc:
        raise InvalidRulesError(source, str(exc)) from exc


def describe_rules(rules: MergeRules) -> dict[str, object]:
    """Plain-data view of effective rules, suitable for printing."""

    entity = rules.entity
    return {
        "entity": {
            "table": entity.table,
            "id_column": entity.id_column,
            "superseded_column": entity.superseded_column,
            "tag": entity.effective_tag,
        },
        "discovery": {
            "include_columns": list(rules.discovery.include_columns),
            "exclude_tables": list(rules.discovery.exclude_tables),
            "excluded_entity_types": list(rules.discovery.excluded_entity_types),
        },
        "known_references": [
            {"column": reference.key, "discriminator": reference.discriminator}
            for reference in rules.known_references
        ],
        "classification": rules.classification.as_dict(),
        "behaviors": rules.policy.as_dict(),
        "side_effects": {
            table: dict(assignments) for table, assignments in rules.side_effects.items()
        },
        "audit": rules.audit.table if rules.audit is not None else None,
    }


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        problems.append(f"{location}: {error['msg']}")
    return "; ".join(problems)
