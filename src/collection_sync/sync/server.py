"""HTTP API for triggering and observing SCM content syncs."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

from aiohttp import web

from collection_sync.entities import RepositoryInfo
from collection_sync.exceptions import ConfigurationError, ScmNotFoundError
from collection_sync.scm.factory import ScmClientFactory
from collection_sync.sync.dispatch import SyncDispatcher
from collection_sync.sync.registry import RegistryHandle

if TYPE_CHECKING:
    from collection_sync.config import ServerConfig
    from collection_sync.sync.orchestrator import SourceSyncOrchestrator

logger = logging.getLogger(__name__)

# Configure logging to stderr
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

SYNC_ROUTE = "/ansible/sync/from-scm/content"
STATUS_ROUTE = "/ansible/sync/status"
README_ROUTE = "/git_readme_content"

README_PARAMS = ("provider", "host", "owner", "repo", "filePath")

REGISTRY_KEY = web.AppKey("registry", RegistryHandle)
DISPATCHER_KEY = web.AppKey("dispatcher", SyncDispatcher)
CLIENT_FACTORY_KEY = web.AppKey("client_factory", ScmClientFactory)


def _isoformat(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def provider_status(orchestrator: SourceSyncOrchestrator) -> dict[str, Any]:
    """Status row for one source, as served by the status route."""
    source = orchestrator.source
    state = orchestrator.state
    return {
        "sourceId": orchestrator.source_id,
        "provider": source.provider.value,
        "host": source.host,
        "organization": source.organization,
        "providerName": orchestrator.provider_name,
        "enabled": source.enabled,
        "syncInProgress": state.is_syncing,
        "lastSyncTime": _isoformat(state.last_sync_time),
        "lastFailedSyncTime": _isoformat(state.last_failed_sync_time),
        "lastSyncStatus": state.last_sync_status.value if state.last_sync_status else None,
        "collectionsFound": state.current_count,
        "collectionsDelta": state.collections_delta,
    }


async def _handle_sync(request: web.Request) -> web.Response:
    """Trigger syncs for the sources selected by the request filters."""
    filters: Any = None
    if request.can_read_body:
        try:
            body = await request.json()
        except json.JSONDecodeError as e:
            logger.warning("Rejecting unparseable sync request body: %s", e)
            return web.json_response({"error": f"Invalid JSON body: {e}"}, status=400)
        if not isinstance(body, dict):
            return web.json_response({"error": "request body must be a JSON object"}, status=400)
        filters = body.get("filters")

    if filters is not None and not isinstance(filters, list):
        return web.json_response({"error": "filters must be a list"}, status=400)

    response = request.app[DISPATCHER_KEY].dispatch(filters)
    return web.json_response(response.to_dict(), status=response.status_code)


async def _handle_status(request: web.Request) -> web.Response:
    providers = [provider_status(o) for o in request.app[REGISTRY_KEY].current]
    return web.json_response(
        {
            "content": {
                "syncInProgress": any(p["syncInProgress"] for p in providers),
                "providers": providers,
            }
        }
    )


async def _handle_readme(request: web.Request) -> web.Response:
    """Serve raw README markdown from a repository."""
    params = request.query
    missing = [name for name in README_PARAMS if not params.get(name)]
    if missing:
        return web.json_response({"error": f"Missing required parameters: {', '.join(missing)}"}, status=400)

    factory = request.app[CLIENT_FACTORY_KEY]
    owner, repo_name = params["owner"], params["repo"]
    ref = params.get("ref") or "HEAD"

    try:
        client = factory.create_client(params["provider"], owner, params["host"])
    except ConfigurationError as e:
        return web.json_response({"error": str(e)}, status=400)

    repo = RepositoryInfo(name=repo_name, full_path=f"{owner}/{repo_name}", default_branch=ref)
    try:
        content = await client.read_file(repo, ref, params["filePath"])
    except ScmNotFoundError as e:
        return web.json_response({"error": str(e)}, status=404)
    except Exception as e:
        logger.exception("Failed to fetch %s from %s/%s", params["filePath"], owner, repo_name)
        return web.json_response({"error": f"Failed to fetch README: {e}"}, status=500)
    finally:
        await client.aclose()

    return web.Response(text=content, content_type="text/markdown")


async def _handle_health(_request: web.Request) -> web.Response:
    """Health check endpoint."""
    return web.json_response({"status": "ok"})


def create_app(registry: RegistryHandle, client_factory: ScmClientFactory | None = None) -> web.Application:
    """Build the aiohttp application serving the sync routes."""
    app = web.Application()
    app[REGISTRY_KEY] = registry
    app[DISPATCHER_KEY] = SyncDispatcher(registry)
    app[CLIENT_FACTORY_KEY] = client_factory or ScmClientFactory()

    app.router.add_post(SYNC_ROUTE, _handle_sync)
    app.router.add_get(STATUS_ROUTE, _handle_status)
    app.router.add_get(README_ROUTE, _handle_readme)
    app.router.add_get("/health", _handle_health)
    return app


class SyncServer:
    """Runs the sync API on a TCP site."""

    def __init__(
        self,
        config: ServerConfig,
        registry: RegistryHandle,
        client_factory: ScmClientFactory | None = None,
    ) -> None:
        self._config = config
        self._app = create_app(registry, client_factory)
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    @property
    def app(self) -> web.Application:
        return self._app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await self._site.start()

        logger.info("Sync API started on %s:%d", self._config.host, self._config.port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

        logger.info("Sync API stopped")

    async def run_forever(self) -> None:
        """Start server and run until cancelled."""
        await self.start()
        try:
            while True:
                await asyncio.sleep(3600)
        except asyncio.CancelledError:
            await self.stop()
