"""Collects graph entities and relationships produced by a run, then persists them."""

from __future__ import annotations

import logging
from typing import Any, Optional

from auth0_ingestion.db import Database
from auth0_ingestion.errors import DuplicateKeyError

logger = logging.getLogger("ingestion.job_state")


class JobState:
    """Entity/relationship sink shared by the steps of one run.

    Keys must be unique across entities and relationships of a run. With no
    database attached, flush() persists nothing (dry run).
    """

    def __init__(
        self,
        instance_id: str,
        db: Optional[Database] = None,
        batch_size: int = 500,
    ) -> None:
        self.instance_id = instance_id
        self.db = db
        self.batch_size = batch_size
        self.collected_entities: list[dict] = []
        self.collected_relationships: list[dict] = []
        self.encountered_types: set[str] = set()
        self._keys: set[str] = set()
        self._data: dict[str, Any] = {}
        self._flushed_entities = 0
        self._flushed_relationships = 0

    def has_key(self, key: str) -> bool:
        return key in self._keys

    def _track(self, obj: dict) -> None:
        key = obj["_key"]
        if key in self._keys:
            raise DuplicateKeyError(f"Duplicate _key detected: {key}")
        self._keys.add(key)
        self.encountered_types.add(obj["_type"])

    def add_entity(self, entity: dict) -> dict:
        self._track(entity)
        self.collected_entities.append(entity)
        return entity

    def add_entities(self, entities: list[dict]) -> list[dict]:
        return [self.add_entity(e) for e in entities]

    def add_relationship(self, relationship: dict) -> dict:
        self._track(relationship)
        self.collected_relationships.append(relationship)
        return relationship

    def add_relationships(self, relationships: list[dict]) -> list[dict]:
        return [self.add_relationship(r) for r in relationships]

    def get_data(self, key: str) -> Any:
        return self._data.get(key)

    def set_data(self, key: str, value: Any) -> None:
        self._data[key] = value

    def _batches(self, rows: list[dict]) -> list[list[dict]]:
        size = self.batch_size
        return [rows[i : i + size] for i in range(0, len(rows), size)]

    def flush(self) -> dict[str, int]:
        """Upsert everything collected since the last flush. Returns rows written per table."""
        counts = {"graph_entities": 0, "graph_relationships": 0}
        pending_entities = self.collected_entities[self._flushed_entities:]
        pending_relationships = self.collected_relationships[self._flushed_relationships:]

        if self.db is None:
            logger.info(
                "Dry run, not persisting %d entities and %d relationships",
                len(pending_entities),
                len(pending_relationships),
            )
            return counts

        for batch in self._batches(pending_entities):
            counts["graph_entities"] += self.db.upsert_entities(self.instance_id, batch)
        for batch in self._batches(pending_relationships):
            counts["graph_relationships"] += self.db.upsert_relationships(
                self.instance_id, batch
            )
        self._flushed_entities = len(self.collected_entities)
        self._flushed_relationships = len(self.collected_relationships)
        logger.info(
            "Persisted graph objects",
            extra={"records": counts["graph_entities"] + counts["graph_relationships"]},
        )
        return counts
