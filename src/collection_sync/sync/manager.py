"""Sync manager that wires sources, schedules, the catalog sink and the HTTP API."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from collection_sync.catalog.sink import FileCatalogSink, InMemoryCatalogSink
from collection_sync.scm.factory import ScmClientFactory
from collection_sync.sync.registry import RegistryHandle, SourceRegistry, build_registry
from collection_sync.sync.scheduler import TaskScheduler
from collection_sync.sync.server import SyncServer

if TYPE_CHECKING:
    from collection_sync.catalog.sink import CatalogSink
    from collection_sync.config import AppConfig
    from collection_sync.sync.orchestrator import SyncRunResult

logger = logging.getLogger(__name__)

# Configure logging to stderr
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class SyncManager:
    """Runs collection discovery for every configured source.

    Orchestrates:
    - One orchestrator per enabled source, held in a swappable registry
    - Periodic syncs on each source's schedule
    - The HTTP API for on-demand syncs and status
    """

    def __init__(
        self,
        config: AppConfig,
        sink: CatalogSink | None = None,
        client_factory: ScmClientFactory | None = None,
        schedule: bool = True,
    ) -> None:
        """Initialize sync manager.

        Args:
            config: Resolved application configuration.
            sink: Catalog sink; defaults to a file sink when ``catalog.sinkPath``
                is set, in-memory otherwise.
            client_factory: SCM client factory; built from ``config.integrations``
                when omitted.
            schedule: Register periodic syncs when sources are connected.
        """
        self._config = config
        self._client_factory = client_factory or ScmClientFactory(config.integrations)
        if sink is not None:
            self._sink = sink
        elif config.sink_path is not None:
            self._sink = FileCatalogSink(config.sink_path)
        else:
            self._sink = InMemoryCatalogSink()

        self._scheduler = TaskScheduler() if schedule else None
        self._registry = RegistryHandle(build_registry(config, self._client_factory, self._scheduler))
        self._server = SyncServer(config.server, self._registry, self._client_factory)
        self._connected = False

    @property
    def registry(self) -> RegistryHandle:
        return self._registry

    @property
    def sink(self) -> CatalogSink:
        return self._sink

    @property
    def server(self) -> SyncServer:
        return self._server

    async def connect(self) -> None:
        """Connect every orchestrator to the sink (and to the scheduler, if any)."""
        if self._connected:
            return
        await self._connect_all(self._registry.current)
        self._connected = True

    async def _connect_all(self, registry: SourceRegistry) -> None:
        for orchestrator in registry:
            await orchestrator.connect(self._sink)

    async def start(self) -> None:
        """Connect sources and start the HTTP API."""
        await self.connect()
        await self._server.start()
        logger.info("Sync manager started with %d sources", len(self._registry.current))

    async def stop(self) -> None:
        """Stop schedules, in-flight background syncs, and the HTTP API."""
        if self._scheduler is not None:
            await self._scheduler.stop()
        for orchestrator in self._registry.current:
            await orchestrator.close()
        await self._server.stop()
        logger.info("Sync manager stopped")

    async def reload(self, config: AppConfig) -> None:
        """Swap in sources from a new configuration.

        The new registry is fully connected before it becomes visible. Sources
        present in both keep their sync state; in-flight cycles of the old
        orchestrators are cancelled without being recorded as failures, and
        schedules of removed sources stop.
        """
        new_registry = build_registry(config, self._client_factory, self._scheduler)
        previous_registry = self._registry.current
        for orchestrator in new_registry:
            old = previous_registry.get(orchestrator.source_id)
            if old is not None:
                orchestrator.state = old.detach_state()

        await self._connect_all(new_registry)
        self._registry.replace(new_registry)
        self._config = config

        kept = set(new_registry.source_ids)
        for orchestrator in previous_registry:
            if orchestrator.source_id not in kept and self._scheduler is not None:
                await self._scheduler.cancel(orchestrator.provider_name)
            await orchestrator.close()

    async def sync_now(self, source_id: str | None = None) -> dict[str, SyncRunResult]:
        """Run one blocking cycle for one source, or for all of them concurrently.

        Raises:
            KeyError: If ``source_id`` is not registered.
        """
        await self.connect()
        registry = self._registry.current
        if source_id is not None:
            orchestrator = registry.get(source_id)
            if orchestrator is None:
                raise KeyError(f"Source {source_id} not registered")
            targets = [orchestrator]
        else:
            targets = list(registry)

        results = await asyncio.gather(*(o.run() for o in targets))
        return {o.source_id: result for o, result in zip(targets, results, strict=True)}

    async def run_forever(self) -> None:
        """Start everything and run until cancelled."""
        await self.start()
        try:
            while True:
                await asyncio.sleep(3600)
        except asyncio.CancelledError:
            await self.stop()
