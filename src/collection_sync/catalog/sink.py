"""Catalog sinks that receive full-replace entity mutations."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class CatalogSink(Protocol):
    """Receiver of entity mutations.

    A full mutation declares the complete entity set for ``location_key``;
    anything previously stored under that key and absent now is removed.
    """

    async def apply_full_mutation(self, location_key: str, entities: list[dict[str, Any]]) -> None: ...


class InMemoryCatalogSink:
    """Keeps the latest entity set per location key in memory."""

    def __init__(self) -> None:
        self._entities: dict[str, list[dict[str, Any]]] = {}
        self.mutation_count = 0

    async def apply_full_mutation(self, location_key: str, entities: list[dict[str, Any]]) -> None:
        self._entities[location_key] = list(entities)
        self.mutation_count += 1
        logger.debug("Applied full mutation for %s with %d entities", location_key, len(entities))

    def get(self, location_key: str) -> list[dict[str, Any]]:
        return list(self._entities.get(location_key, []))

    def all_entities(self) -> list[dict[str, Any]]:
        return [entity for entities in self._entities.values() for entity in entities]


class FileCatalogSink(InMemoryCatalogSink):
    """In-memory sink that persists every mutation to a JSON file.

    The file maps location keys to entity lists and is rewritten in full on
    each mutation.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = path
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.exception("Failed to load catalog from %s, starting empty", self._path)
            return

        self._entities = {key: list(value) for key, value in data.get("locations", {}).items()}
        logger.info("Loaded %d catalog locations from %s", len(self._entities), self._path)

    def save(self) -> None:
        """Persist all locations to disk."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps({"locations": self._entities}, indent=2), encoding="utf-8")
        logger.debug("Saved catalog with %d locations", len(self._entities))

    async def apply_full_mutation(self, location_key: str, entities: list[dict[str, Any]]) -> None:
        await super().apply_full_mutation(location_key, entities)
        self.save()
