"""Registry of source orchestrators, swapped whole on reload."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from collection_sync.nodes.discovery.crawler import create_crawler
from collection_sync.sync.orchestrator import SourceSyncOrchestrator

if TYPE_CHECKING:
    from collection_sync.config import AppConfig
    from collection_sync.scm.factory import ScmClientFactory
    from collection_sync.sync.scheduler import TaskScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceRegistry:
    """Immutable, ordered set of orchestrators keyed by source id."""

    orchestrators: tuple[SourceSyncOrchestrator, ...] = ()

    @classmethod
    def from_orchestrators(cls, orchestrators: list[SourceSyncOrchestrator]) -> SourceRegistry:
        unique: dict[str, SourceSyncOrchestrator] = {}
        for orchestrator in orchestrators:
            if orchestrator.source_id in unique:
                logger.warning("Duplicate source id %s, keeping the first definition", orchestrator.source_id)
                continue
            unique[orchestrator.source_id] = orchestrator
        return cls(tuple(unique.values()))

    def __iter__(self) -> Iterator[SourceSyncOrchestrator]:
        return iter(self.orchestrators)

    def __len__(self) -> int:
        return len(self.orchestrators)

    @property
    def source_ids(self) -> list[str]:
        return [o.source_id for o in self.orchestrators]

    def get(self, source_id: str) -> SourceSyncOrchestrator | None:
        for orchestrator in self.orchestrators:
            if orchestrator.source_id == source_id:
                return orchestrator
        return None


class RegistryHandle:
    """Holds the current registry.

    Readers take ``current`` once per request; ``replace`` swaps the whole
    value so an in-flight dispatch never sees a half-updated set.
    """

    def __init__(self, registry: SourceRegistry | None = None) -> None:
        self._registry = registry or SourceRegistry()

    @property
    def current(self) -> SourceRegistry:
        return self._registry

    def replace(self, registry: SourceRegistry) -> SourceRegistry:
        """Install ``registry`` and return the one it replaced."""
        previous, self._registry = self._registry, registry
        logger.info("Source registry replaced: %d -> %d sources", len(previous), len(registry))
        return previous


def build_registry(
    config: AppConfig,
    client_factory: ScmClientFactory,
    scheduler: TaskScheduler | None = None,
) -> SourceRegistry:
    """Create one orchestrator per enabled source. Disabled sources are skipped."""
    orchestrators: list[SourceSyncOrchestrator] = []
    for source in config.sources:
        if not source.enabled:
            logger.info("Source %s is disabled, skipping", source.source_id)
            continue
        crawler = create_crawler(source, client_factory, max_concurrency=config.crawl_concurrency)
        orchestrators.append(
            SourceSyncOrchestrator(source, crawler, scheduler=scheduler, batch_size=config.batch_size)
        )

    registry = SourceRegistry.from_orchestrators(orchestrators)
    logger.info("Registered %d sources", len(registry))
    return registry
