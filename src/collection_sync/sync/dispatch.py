"""Filter-based dispatch of sync requests to registered sources."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from collection_sync.sync.filters import (
    SyncFilter,
    find_matching_orchestrators,
    parse_source_id,
    validate_sync_filter,
)

if TYPE_CHECKING:
    from collection_sync.sync.registry import RegistryHandle

logger = logging.getLogger(__name__)

INVALID_FILTER = "INVALID_FILTER"
SYNC_START_FAILED = "SYNC_START_FAILED"


class SyncResultStatus(StrEnum):
    SYNC_STARTED = "sync_started"
    ALREADY_SYNCING = "already_syncing"
    FAILED = "failed"
    INVALID = "invalid"


@dataclass
class SyncResult:
    """Per-source (or per-invalid-filter) outcome of a dispatch."""

    status: SyncResultStatus
    provider: str | None = None
    host: str | None = None
    organization: str | None = None
    provider_name: str | None = None
    error_code: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "provider": self.provider,
            "host": self.host,
            "organization": self.organization,
            "status": self.status.value,
        }
        if self.provider_name:
            data["providerName"] = self.provider_name
        if self.error_code:
            data["error"] = {"code": self.error_code, "message": self.error_message}
        return data


@dataclass
class DispatchResponse:
    status_code: int
    summary: dict[str, int]
    results: list[SyncResult]

    def to_dict(self) -> dict[str, Any]:
        return {"summary": self.summary, "results": [r.to_dict() for r in self.results]}


def summarize(results: Sequence[SyncResult]) -> dict[str, int]:
    summary = {"total": len(results)}
    for status in SyncResultStatus:
        summary[status.value] = sum(1 for r in results if r.status == status)
    return summary


def compute_status_code(results: Sequence[SyncResult]) -> int:
    """Pick one HTTP status for a batch of outcomes.

    Whether the request made sense is decided before whether the system
    succeeded: 400, then 500, 202, 200, and 207 for any other mix.
    """
    statuses = [r.status for r in results]
    has_started = SyncResultStatus.SYNC_STARTED in statuses
    has_failed = SyncResultStatus.FAILED in statuses
    has_invalid = SyncResultStatus.INVALID in statuses

    def every(status: SyncResultStatus) -> bool:
        return bool(statuses) and all(s == status for s in statuses)

    if not statuses or every(SyncResultStatus.INVALID) or (has_invalid and has_failed and not has_started):
        return 400
    if every(SyncResultStatus.FAILED):
        return 500
    if every(SyncResultStatus.SYNC_STARTED):
        return 202
    if every(SyncResultStatus.ALREADY_SYNCING):
        return 200
    return 207


def _invalid_result(raw: Any, message: str) -> SyncResult:
    fields = raw if isinstance(raw, dict) else {}

    def text(key: str) -> str | None:
        value = fields.get(key)
        return value if isinstance(value, str) else None

    return SyncResult(
        status=SyncResultStatus.INVALID,
        provider=text("provider"),
        host=text("host"),
        organization=text("organization"),
        error_code=INVALID_FILTER,
        error_message=message,
    )


class SyncDispatcher:
    """Resolves filters against the registry and starts non-blocking syncs."""

    def __init__(self, registry: RegistryHandle) -> None:
        self._registry = registry

    def dispatch(self, filters: Sequence[Any] | None = None) -> DispatchResponse:
        """Start a sync for every source matched by ``filters``.

        No filters means every registered source. Must be called from a
        running event loop.
        """
        registry = self._registry.current
        results: list[SyncResult] = []
        invalid: list[SyncResult] = []
        valid_filters: list[SyncFilter] = []

        for raw in filters or []:
            try:
                sync_filter = raw if isinstance(raw, SyncFilter) else SyncFilter.model_validate(raw)
            except ValidationError as e:
                message = "; ".join(f"{'.'.join(map(str, d['loc'])) or 'filter'}: {d['msg']}" for d in e.errors())
                invalid.append(_invalid_result(raw, message))
                continue

            error = validate_sync_filter(sync_filter)
            if error:
                logger.warning("Rejecting sync filter %s: %s", sync_filter.model_dump(exclude_none=True), error)
                invalid.append(_invalid_result(sync_filter.model_dump(), error))
                continue
            valid_filters.append(sync_filter)

        if filters:
            targets = find_matching_orchestrators(registry, valid_filters)
        else:
            targets = list(registry)

        logger.info(
            "Starting SCM content sync for %d source(s): %s",
            len(targets),
            ", ".join(o.source_id for o in targets) or "none",
        )

        for orchestrator in targets:
            info = parse_source_id(orchestrator.source_id)
            base = {
                "provider": info.provider,
                "host": info.host,
                "organization": info.organization,
                "provider_name": orchestrator.provider_name,
            }
            outcome = orchestrator.start_sync()
            if outcome.skipped:
                logger.info("Skipping sync for %s: sync already in progress", orchestrator.source_id)
                results.append(SyncResult(status=SyncResultStatus.ALREADY_SYNCING, **base))
            elif not outcome.started:
                logger.error(
                    "Failed to start sync for %s: %s", orchestrator.source_id, outcome.error or "unknown error"
                )
                results.append(
                    SyncResult(
                        status=SyncResultStatus.FAILED,
                        error_code=SYNC_START_FAILED,
                        error_message=outcome.error or "Failed to initiate sync for provider",
                        **base,
                    )
                )
            else:
                results.append(SyncResult(status=SyncResultStatus.SYNC_STARTED, **base))

        results.extend(invalid)
        return DispatchResponse(
            status_code=compute_status_code(results),
            summary=summarize(results),
            results=results,
        )
