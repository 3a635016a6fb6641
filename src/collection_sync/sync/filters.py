"""Hierarchical sync filters and matching against registered sources."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collection_sync.sync.orchestrator import SourceSyncOrchestrator

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


class SyncFilter(BaseModel):
    """Selects sources by provider, then host, then organization.

    Absent fields are wildcards. ``host`` requires ``provider`` and
    ``organization`` requires both.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    provider: str | None = Field(default=None, min_length=1)
    host: str | None = Field(default=None, min_length=1)
    organization: str | None = Field(default=None, min_length=1)


@dataclass(frozen=True)
class ParsedSourceInfo:
    env: str
    provider: str
    host: str
    organization: str


def validate_sync_filter(sync_filter: SyncFilter) -> str | None:
    """Return an error message if the filter breaks the hierarchy, else None."""
    if not sync_filter.provider and not sync_filter.host and not sync_filter.organization:
        return None

    if sync_filter.host and not sync_filter.provider:
        return "host requires provider to be specified"

    if sync_filter.organization:
        if not sync_filter.provider:
            return "organization requires provider to be specified"
        if not sync_filter.host:
            return "organization requires host to be specified"

    return None


def parse_source_id(source_id: str) -> ParsedSourceInfo:
    """Split ``env:provider:host:organization``.

    Everything after the third colon is the organization. Malformed ids are
    logged and padded with ``unknown``.
    """
    parts = source_id.split(":")
    if len(parts) < 4:
        logger.warning("Invalid source id format: %s, expected 4 parts separated by ':'", source_id)

    def part(index: int) -> str:
        return parts[index] if len(parts) > index and parts[index] else UNKNOWN

    return ParsedSourceInfo(
        env=part(0),
        provider=part(1),
        host=part(2),
        organization=":".join(parts[3:]) or UNKNOWN,
    )


def provider_matches_filter(info: ParsedSourceInfo, sync_filter: SyncFilter) -> bool:
    if sync_filter.provider and info.provider != sync_filter.provider:
        return False
    if sync_filter.host and info.host != sync_filter.host:
        return False
    if sync_filter.organization and info.organization != sync_filter.organization:
        return False
    return True


def find_matching_orchestrators(
    orchestrators: Iterable[SourceSyncOrchestrator],
    filters: Sequence[SyncFilter],
) -> list[SourceSyncOrchestrator]:
    """Orchestrators matched by any filter, each once, in registry order."""
    matched: list[SourceSyncOrchestrator] = []
    seen: set[str] = set()
    for orchestrator in orchestrators:
        if orchestrator.source_id in seen:
            continue
        info = parse_source_id(orchestrator.source_id)
        if any(provider_matches_filter(info, f) for f in filters):
            seen.add(orchestrator.source_id)
            matched.append(orchestrator)
    return matched
