"""Process-local exclusive ownership of entity ids during a merge."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .model import EntityId


@dataclass(slots=True)
class _Entry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class EntityLocks:
    """Registry of per-id locks; merges sharing an id are serialized.

    Locks are taken in ascending id order so two merges over the same pair in
    opposite roles cannot deadlock. An id leaves the registry once no merge
    holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[EntityId, _Entry] = {}

    def _checkout(self, entity_id: EntityId) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(entity_id)
            if entry is None:
                entry = self._locks[entity_id] = _Entry()
            entry.users += 1
            return entry.lock

    def _checkin(self, entity_id: EntityId) -> None:
        with self._guard:
            entry = self._locks[entity_id]
            entry.users -= 1
            if entry.users == 0:
                del self._locks[entity_id]

    @contextmanager
    def holding(self, *entity_ids: EntityId) -> Iterator[None]:
        checked_out: list[EntityId] = []
        acquired: list[threading.Lock] = []
        try:
            for entity_id in sorted(set(entity_ids)):
                lock = self._checkout(entity_id)
                checked_out.append(entity_id)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for entity_id in checked_out:
                self._checkin(entity_id)


DEFAULT_LOCKS = EntityLocks()
