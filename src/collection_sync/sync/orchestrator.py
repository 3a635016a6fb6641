"""Per-source sync orchestrator: discovery, dedup, mapping and one full mutation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from collection_sync.catalog.entity_mapper import (
    collection_to_entity,
    generate_collection_entity_name,
    repository_to_entity,
)
from collection_sync.exceptions import SyncNotConnectedError
from collection_sync.nodes.discovery.crawler import DiscoveryOptions
from collection_sync.nodes.discovery.identity import create_repository_key, deduplicate
from collection_sync.sync.state import SourceSyncState

if TYPE_CHECKING:
    from collection_sync.catalog.sink import CatalogSink
    from collection_sync.config import SourceConfig
    from collection_sync.entities import DiscoveredItem, RepositoryInfo
    from collection_sync.nodes.discovery.crawler import ScmCrawler
    from collection_sync.sync.scheduler import TaskScheduler

logger = logging.getLogger(__name__)

PROVIDER_NAME_PREFIX = "AnsibleGitContentsProvider"
DEFAULT_BATCH_SIZE = 20
NOT_CONNECTED_ERROR = "Provider not connected"


@dataclass
class SyncRunResult:
    """Outcome of one ``run()`` call."""

    success: bool
    skipped: bool = False
    collection_count: int = 0
    error: str | None = None


@dataclass
class StartSyncResult:
    """Outcome of a non-blocking ``start_sync()`` call."""

    started: bool
    skipped: bool
    error: str | None = None


class SourceSyncOrchestrator:
    """Owns one source's sync state and runs its discovery cycles.

    At most one cycle runs per source. A second request while one is in flight
    is reported as skipped, never queued.
    """

    def __init__(
        self,
        source: SourceConfig,
        crawler: ScmCrawler,
        scheduler: TaskScheduler | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.source = source
        self.state = SourceSyncState()
        self._crawler = crawler
        self._scheduler = scheduler
        self._batch_size = max(1, batch_size)
        self._sink: CatalogSink | None = None
        self._background: set[asyncio.Task[SyncRunResult]] = set()

    @property
    def source_id(self) -> str:
        return self.source.source_id

    @property
    def provider_name(self) -> str:
        """Catalog location key for everything this source emits."""
        return f"{PROVIDER_NAME_PREFIX}:{self.source_id}"

    @property
    def is_connected(self) -> bool:
        return self._sink is not None

    async def connect(self, sink: CatalogSink) -> None:
        """Attach the catalog sink and register the periodic schedule."""
        self._sink = sink
        logger.info("[%s] Connected", self.provider_name)

        if self._scheduler is not None:
            schedule = self.source.schedule
            self._scheduler.run_on_schedule(
                self.provider_name,
                self.run,
                frequency=schedule.frequency.total_seconds(),
                timeout=schedule.timeout.total_seconds(),
                initial_delay=schedule.initial_delay.total_seconds() if schedule.initial_delay else 0.0,
            )

    async def run(self) -> SyncRunResult:
        """Run one cycle to completion, or skip if one is already in flight.

        Raises:
            SyncNotConnectedError: If ``connect`` has not been called.
        """
        if self._sink is None:
            raise SyncNotConnectedError(f"{self.provider_name} is not connected to a catalog sink")
        if not self.state.begin():
            logger.info("[%s] Sync already in progress, skipping", self.provider_name)
            return SyncRunResult(success=False, skipped=True)
        return await self._run_cycle()

    def start_sync(self) -> StartSyncResult:
        """Launch a cycle in the background and return immediately.

        The syncing flag is set before this returns, so a second call in the
        same tick is reported as skipped.
        """
        if self.state.is_syncing:
            return StartSyncResult(started=False, skipped=True)
        if self._sink is None:
            return StartSyncResult(started=False, skipped=False, error=NOT_CONNECTED_ERROR)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            return StartSyncResult(started=False, skipped=False, error=str(e))

        self.state.begin()
        task = loop.create_task(self._run_cycle(), name=f"sync:{self.source_id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        logger.info("[%s] Sync started", self.provider_name)
        return StartSyncResult(started=True, skipped=False)

    async def wait_for_background(self) -> None:
        """Wait for cycles launched by ``start_sync`` to finish."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def detach_state(self) -> SourceSyncState:
        """Hand this source's state to a successor orchestrator.

        Cycles still in flight here report into a fresh, unshared state from
        now on, so cancelling them leaves the handed-over state untouched.
        """
        state = self.state
        self.state = SourceSyncState()
        state.is_syncing = False
        return state

    async def close(self) -> None:
        """Cancel background cycles and release the SCM client."""
        for task in list(self._background):
            task.cancel()
        await self.wait_for_background()
        await self._crawler.client.aclose()

    async def _run_cycle(self) -> SyncRunResult:
        assert self._sink is not None
        loop = asyncio.get_running_loop()
        started_at = loop.time()

        try:
            items = await self._discover()
            unique = deduplicate(self.source, items)
            entities = self._build_entities(unique)
            await self._sink.apply_full_mutation(self.provider_name, entities)
        except asyncio.CancelledError:
            self.state.record_failure()
            logger.warning("[%s] Sync cancelled", self.provider_name)
            raise
        except Exception as e:
            self.state.record_failure()
            logger.exception("[%s] Sync failed", self.provider_name)
            return SyncRunResult(success=False, error=str(e))
        finally:
            self.state.is_syncing = False

        self.state.record_success(len(unique))
        logger.info(
            "[%s] Sync complete: %d collections (delta %+d, %d duplicates removed) in %.1fs",
            self.provider_name,
            len(unique),
            self.state.collections_delta,
            len(items) - len(unique),
            loop.time() - started_at,
        )
        return SyncRunResult(success=True, collection_count=len(unique))

    async def _discover(self) -> list[DiscoveredItem]:
        repos = await self._crawler.list_repositories()
        logger.info(
            "[%s] Found %d %s in %s",
            self.provider_name,
            len(repos),
            self._crawler.profile.repo_label,
            self.source.organization,
        )

        options = DiscoveryOptions.from_source(self.source)
        items: list[DiscoveredItem] = []
        for start in range(0, len(repos), self._batch_size):
            batch = repos[start : start + self._batch_size]
            items.extend(await self._crawler.discover_in_repos(batch, options))
            logger.debug(
                "[%s] Processed %d/%d %s",
                self.provider_name,
                min(start + self._batch_size, len(repos)),
                len(repos),
                self._crawler.profile.repo_label,
            )
        return items

    def _build_entities(self, items: list[DiscoveredItem]) -> list[dict[str, Any]]:
        """Collection entities first, then one entity per repository holding any."""
        entities: list[dict[str, Any]] = []
        repos: dict[str, RepositoryInfo] = {}
        names_by_repo: dict[str, list[str]] = {}

        for item in items:
            location = self._crawler.build_source_location(item.repository, item.ref, item.path)
            entities.append(collection_to_entity(item, self.source, location))
            key = create_repository_key(item.repository, self.source)
            repos.setdefault(key, item.repository)
            names_by_repo.setdefault(key, []).append(generate_collection_entity_name(item, self.source))

        for key, repo in repos.items():
            names = names_by_repo[key]
            entities.append(repository_to_entity(repo, self.source, len(names), names))

        return entities
