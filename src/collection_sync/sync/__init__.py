"""Per-source sync orchestration, dispatch, scheduling and the HTTP API."""

from collection_sync.sync.dispatch import DispatchResponse, SyncDispatcher, SyncResult, SyncResultStatus
from collection_sync.sync.filters import SyncFilter, parse_source_id, validate_sync_filter
from collection_sync.sync.manager import SyncManager
from collection_sync.sync.orchestrator import SourceSyncOrchestrator, StartSyncResult, SyncRunResult
from collection_sync.sync.registry import RegistryHandle, SourceRegistry, build_registry
from collection_sync.sync.scheduler import TaskScheduler
from collection_sync.sync.server import SyncServer, create_app
from collection_sync.sync.state import SourceSyncState, SyncStatus

__all__ = [
    "DispatchResponse",
    "RegistryHandle",
    "SourceRegistry",
    "SourceSyncOrchestrator",
    "SourceSyncState",
    "StartSyncResult",
    "SyncDispatcher",
    "SyncFilter",
    "SyncManager",
    "SyncResult",
    "SyncResultStatus",
    "SyncRunResult",
    "SyncServer",
    "SyncStatus",
    "TaskScheduler",
    "build_registry",
    "create_app",
    "parse_source_id",
    "validate_sync_filter",
]
