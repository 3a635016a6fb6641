"""Per-source sync state and its transitions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum


class SyncStatus(StrEnum):
    """Outcome of the most recent completed cycle."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class SourceSyncState:
    """Mutable sync bookkeeping for one source.

    Only the owning orchestrator mutates this. ``is_syncing`` is true only
    while a cycle is in flight, and every completed cycle refreshes exactly one
    of the two timestamps. Counts move only on success, so a failed cycle
    never disturbs the delta reported after the next successful one.
    """

    is_syncing: bool = False
    last_sync_time: datetime | None = None
    last_failed_sync_time: datetime | None = None
    last_sync_status: SyncStatus | None = None
    current_count: int = 0
    previous_count: int = 0

    @property
    def collections_delta(self) -> int:
        return self.current_count - self.previous_count

    def begin(self) -> bool:
        """Enter the syncing state. Returns False if a cycle is already in flight."""
        if self.is_syncing:
            return False
        self.is_syncing = True
        return True

    def record_success(self, count: int) -> None:
        self.last_sync_time = datetime.now(tz=UTC)
        self.last_sync_status = SyncStatus.SUCCESS
        self.previous_count = self.current_count
        self.current_count = count
        self.is_syncing = False

    def record_failure(self) -> None:
        self.last_failed_sync_time = datetime.now(tz=UTC)
        self.last_sync_status = SyncStatus.FAILURE
        self.is_syncing = False
