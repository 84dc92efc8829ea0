"""Reference locator: which catalog columns currently hold an entity id."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .model import Location

if TYPE_CHECKING:
    from .catalog import SchemaCatalog
    from .model import EntityId
    from .ports import RowQueries

log = logging.getLogger(__name__)


def locate(catalog: SchemaCatalog, entity_id: EntityId, rows: RowQueries) -> frozenset[Location]:
    """Issue one existence count per reference column and keep the non-empty ones.

    Always queries the store; results must not be cached across merge attempts.
    """

    found: set[Location] = set()
    for reference in catalog.references():
        count = rows.count_references(reference, entity_id, tag=catalog.tag_for(reference))
        if count:
            log.debug("Found %s in %s (%s rows)", entity_id, reference.key, count)
            found.add(Location(reference=reference, entity_id=entity_id, row_count=count))
    return frozenset(found)
