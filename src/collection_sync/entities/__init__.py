"""Entity models for the collection-sync domain layer."""

from collection_sync.entities.models import (
    GALAXY_NAME_PATTERN,
    README_NOT_AVAILABLE,
    VERSION_NOT_AVAILABLE,
    CollectionIdentifier,
    CollectionMetadata,
    DirectoryEntry,
    DiscoveredItem,
    EntryType,
    RefSpec,
    RefType,
    RepositoryInfo,
    ScmProvider,
)

__all__ = [
    "GALAXY_NAME_PATTERN",
    "README_NOT_AVAILABLE",
    "VERSION_NOT_AVAILABLE",
    "CollectionIdentifier",
    "CollectionMetadata",
    "DirectoryEntry",
    "DiscoveredItem",
    "EntryType",
    "RefSpec",
    "RefType",
    "RepositoryInfo",
    "ScmProvider",
]
