"""Manifest discovery: ref resolution, tree walking, manifest parsing and dedup."""

from __future__ import annotations

from collection_sync.nodes.discovery.crawler import DiscoveryOptions, ScmCrawler, SkippedRepository, create_crawler
from collection_sync.nodes.discovery.identity import (
    create_collection_identifier,
    create_collection_key,
    deduplicate,
)
from collection_sync.nodes.discovery.manifest import ManifestProcessor, ManifestValidation, validate_manifest
from collection_sync.nodes.discovery.refs import resolve_refs
from collection_sync.nodes.discovery.walker import DirectoryWalker

__all__ = [
    "DirectoryWalker",
    "DiscoveryOptions",
    "ManifestProcessor",
    "ManifestValidation",
    "ScmCrawler",
    "SkippedRepository",
    "create_collection_identifier",
    "create_collection_key",
    "create_crawler",
    "deduplicate",
    "resolve_refs",
    "validate_manifest",
]
