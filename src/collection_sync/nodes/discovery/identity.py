"""Collection identity keys and deduplication of discovered manifests."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from collection_sync.entities import CollectionIdentifier

if TYPE_CHECKING:
    from collection_sync.config import SourceConfig
    from collection_sync.entities import DiscoveredItem, RepositoryInfo

logger = logging.getLogger(__name__)

_NON_NAME_CHARS = re.compile(r"[^a-z0-9-]")


def create_collection_identifier(source: SourceConfig, item: DiscoveredItem) -> CollectionIdentifier:
    return CollectionIdentifier(
        provider=source.provider,
        host=source.host,
        organization=source.organization,
        namespace=item.metadata.namespace,
        name=item.metadata.name,
        version=item.metadata.version,
    )


def create_collection_key(identifier: CollectionIdentifier) -> str:
    """Dedup key: ``provider:host:organization:namespace.name@version``."""
    return (
        f"{identifier.provider.value}:{identifier.host}:{identifier.organization}:"
        f"{identifier.namespace}.{identifier.name}@{identifier.version}"
    )


def deduplicate(source: SourceConfig, items: list[DiscoveredItem]) -> list[DiscoveredItem]:
    """Keep the first item seen for each collection key, preserving order.

    The same collection at the same version found on several refs or paths
    collapses to one; different versions are always kept.
    """
    seen: set[str] = set()
    unique: list[DiscoveredItem] = []
    for item in items:
        key = create_collection_key(create_collection_identifier(source, item))
        if key in seen:
            logger.debug(
                "Duplicate collection %s in %s/%s@%s, keeping first occurrence",
                key,
                item.repository.full_path,
                item.path,
                item.ref,
            )
            continue
        seen.add(key)
        unique.append(item)
    return unique


def generate_source_id(source: SourceConfig) -> str:
    """Entity-safe discovery id, e.g. ``github-github-com-ansible``."""
    return _NON_NAME_CHARS.sub("-", f"{source.provider.value}-{source.host}-{source.organization}".lower())


def create_repository_key(repo: RepositoryInfo, source: SourceConfig) -> str:
    return f"{source.provider.value}:{source.host}:{repo.full_path}"


def create_dependency_relations(dependencies: dict[str, str] | None) -> list[str]:
    """Catalog refs for each dependency, e.g. ``component:default/community-general``."""
    if not dependencies:
        return []
    return [f"component:default/{full_name.lower().replace('.', '-')}" for full_name in dependencies]
