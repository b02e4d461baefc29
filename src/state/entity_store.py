"""In-memory, copy-on-write store of scored entities."""
import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable

from src.models.errors import NotFoundError
from src.models.scored_entity import ScoredEntity
from src.state.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)


class EntityStore:
    """Holds the latest ScoredEntity per entity id.

    Entities are immutable and replaced wholesale under a per-entity lock, so
    a reader always sees either the previous or the next version. A short
    table lock guards only structural changes (insert/delete/snapshot).
    """

    def __init__(self) -> None:
        self._entities: dict[str, ScoredEntity] = {}
        self._locks = KeyedLock()
        self._table_lock = threading.Lock()

    def get(self, entity_id: str) -> ScoredEntity | None:
        """Return the current entity or None."""
        return self._entities.get(entity_id)

    def require(self, entity_id: str) -> ScoredEntity:
        """Return the current entity.

        Raises:
            NotFoundError: If the entity is unknown.
        """
        entity = self._entities.get(entity_id)
        if entity is None:
            raise NotFoundError("entity", entity_id)
        return entity

    def update(
        self,
        entity_id: str,
        updater: Callable[[ScoredEntity | None], ScoredEntity],
    ) -> ScoredEntity:
        """Atomically replace an entity with updater(current).

        The updater runs under the entity's lock, so concurrent updates of the
        same entity are serialized while other entities proceed independently.

        Args:
            entity_id: Entity to update.
            updater: Receives the current entity (None if new) and returns the
                replacement.

        Returns:
            The stored replacement.
        """
        with self._locks.hold(entity_id):
            updated = updater(self._entities.get(entity_id))
            if entity_id in self._entities:
                self._entities[entity_id] = updated
            else:
                with self._table_lock:
                    self._entities[entity_id] = updated
            return updated

    def set_rank(self, entity_id: str, rank: int) -> None:
        """Record the leaderboard rank of an entity if it still exists."""
        with self._locks.hold(entity_id):
            entity = self._entities.get(entity_id)
            if entity is not None and entity.rank != rank:
                self._entities[entity_id] = replace(entity, rank=rank)

    def snapshot(self) -> list[ScoredEntity]:
        """Point-in-time list of entities ordered by entity id."""
        with self._table_lock:
            entities = list(self._entities.values())
        return sorted(entities, key=lambda e: e.entity_id)

    def remove(self, entity_id: str) -> bool:
        """Delete an entity. Returns True if it existed."""
        with self._locks.hold(entity_id):
            with self._table_lock:
                existed = self._entities.pop(entity_id, None) is not None
        return existed

    def prune(self, cutoff: datetime) -> list[str]:
        """Delete entities whose last measurement is older than cutoff.

        Returns:
            Ids of removed entities, sorted.
        """
        stale = [e.entity_id for e in self.snapshot() if e.last_updated < cutoff]
        removed = []
        for entity_id in stale:
            with self._locks.hold(entity_id):
                entity = self._entities.get(entity_id)
                # Re-check: a fresh measurement may have arrived meanwhile
                if entity is None or entity.last_updated >= cutoff:
                    continue
                with self._table_lock:
                    del self._entities[entity_id]
                removed.append(entity_id)
        if removed:
            logger.info(f"Pruned {len(removed)} entities not measured since {cutoff:%Y-%m-%d}")
        return removed

    def replace_all(self, entities: list[ScoredEntity]) -> None:
        """Replace the whole table (used when importing persisted state)."""
        with self._table_lock:
            self._entities = {e.entity_id: e for e in entities}
            self._locks.retain(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)
