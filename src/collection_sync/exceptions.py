"""Exception hierarchy for collection-sync."""

from __future__ import annotations


class CollectionSyncError(Exception):
    """Base error for collection-sync."""


class ConfigurationError(CollectionSyncError):
    """Static configuration is missing or invalid; raised at startup."""


class ScmClientError(CollectionSyncError):
    """An SCM API call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ScmNotFoundError(ScmClientError):
    """The requested repository, ref or path does not exist."""


class SyncNotConnectedError(CollectionSyncError):
    """A sync cycle was requested before a catalog sink was connected."""


class ManifestValidationError(CollectionSyncError):
    """A manifest could not be turned into collection metadata."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors
