"""Shared test fixtures for collection-sync."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest
import yaml

from collection_sync.config import ScheduleConfig, SourceConfig
from collection_sync.entities import DirectoryEntry, EntryType, RepositoryInfo, ScmProvider
from collection_sync.exceptions import ScmClientError, ScmNotFoundError

SCHEDULE = {"frequency": {"minutes": 30}, "timeout": {"minutes": 10}}


class FakeScmClient:
    """In-memory SCM client.

    Files are stored per (repository full path, ref). Directories are implied
    by file paths. Failures can be injected per directory or per repository.
    """

    def __init__(self, repos: list[RepositoryInfo] | None = None) -> None:
        self.repos = list(repos or [])
        self.files: dict[tuple[str, str], dict[str, str]] = {}
        self.branches: dict[str, list[str]] = {}
        self.tags: dict[str, list[str]] = {}
        self.failing_dirs: set[tuple[str, str]] = set()
        self.failing_repos: set[str] = set()
        self.fail_listing = False
        self.listed_dirs: list[tuple[str, str, str]] = []
        self.closed = False

    def add_repo(self, name: str, default_branch: str = "main", org: str = "acme") -> RepositoryInfo:
        repo = RepositoryInfo(
            name=name,
            full_path=f"{org}/{name}",
            default_branch=default_branch,
            url=f"https://github.com/{org}/{name}",
        )
        self.repos.append(repo)
        return repo

    def add_file(self, repo: RepositoryInfo, ref: str, path: str, content: str) -> None:
        self.files.setdefault((repo.full_path, ref), {})[path] = content

    async def list_repositories(self) -> list[RepositoryInfo]:
        if self.fail_listing:
            raise ScmClientError("repository listing failed", 500)
        return list(self.repos)

    async def list_branches(self, repo: RepositoryInfo) -> list[str]:
        if repo.full_path in self.failing_repos:
            raise ScmClientError(f"branch listing failed for {repo.full_path}", 502)
        return self.branches.get(repo.full_path, [repo.default_branch])

    async def list_tags(self, repo: RepositoryInfo) -> list[str]:
        if repo.full_path in self.failing_repos:
            raise ScmClientError(f"tag listing failed for {repo.full_path}", 502)
        return self.tags.get(repo.full_path, [])

    async def list_directory(self, repo: RepositoryInfo, ref: str, path: str) -> list[DirectoryEntry]:
        self.listed_dirs.append((repo.full_path, ref, path))
        if (repo.full_path, path) in self.failing_dirs:
            raise ScmClientError(f"listing failed for {repo.full_path}/{path}", 500)

        prefix = f"{path}/" if path else ""
        entries: dict[str, DirectoryEntry] = {}
        for file_path in self.files.get((repo.full_path, ref), {}):
            if not file_path.startswith(prefix):
                continue
            head, sep, _ = file_path[len(prefix) :].partition("/")
            child = prefix + head
            if child not in entries:
                entries[child] = DirectoryEntry(
                    name=head,
                    path=child,
                    type=EntryType.DIR if sep else EntryType.FILE,
                )
        if path and not entries:
            raise ScmNotFoundError(f"{path} not found", 404)
        return list(entries.values())

    async def read_file(self, repo: RepositoryInfo, ref: str, path: str) -> str:
        try:
            return self.files[(repo.full_path, ref)][path]
        except KeyError:
            raise ScmNotFoundError(f"{repo.full_path}/{path}@{ref} not found", 404) from None

    async def aclose(self) -> None:
        self.closed = True


class FailingSink:
    """Catalog sink whose every mutation fails."""

    def __init__(self) -> None:
        self.calls = 0

    async def apply_full_mutation(self, location_key: str, entities: list[dict[str, Any]]) -> None:
        self.calls += 1
        raise RuntimeError("catalog unavailable")


def galaxy_yml(namespace: str = "acme", name: str = "tools", version: Any = "1.0.0", **extra: Any) -> str:
    """Render a minimal valid galaxy.yml."""
    data: dict[str, Any] = {
        "namespace": namespace,
        "name": name,
        "version": version,
        "readme": "README.md",
        "authors": ["Jane Doe <jane@example.com>"],
    }
    data.update(extra)
    return yaml.safe_dump(data, sort_keys=False)


@pytest.fixture
def make_client() -> type[FakeScmClient]:
    """The in-memory SCM client class."""
    return FakeScmClient


@pytest.fixture
def scm() -> FakeScmClient:
    """A fresh, empty in-memory SCM client."""
    return FakeScmClient()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()


@pytest.fixture
def manifest() -> Callable[..., str]:
    """Factory rendering galaxy.yml text."""
    return galaxy_yml


@pytest.fixture
def make_source() -> Callable[..., SourceConfig]:
    """Factory for SourceConfig with sensible defaults."""

    def _make(**overrides: Any) -> SourceConfig:
        values: dict[str, Any] = {
            "env": "development",
            "provider": ScmProvider.GITHUB,
            "host": "github.com",
            "organization": "acme",
            "schedule": ScheduleConfig.model_validate(SCHEDULE),
        }
        values.update(overrides)
        return SourceConfig(**values)

    return _make


@pytest.fixture
def raw_config() -> dict[str, Any]:
    """A parsed config file with two environments and both providers."""
    return {
        "server": {"host": "127.0.0.1", "port": 8080},
        "catalog": {"sinkPath": "catalog.json"},
        "integrations": {
            "github": [{"host": "github.com", "token": "gh-token"}],
            "gitlab": [{"host": "gitlab.example.com", "tokenEnv": "CUSTOM_GITLAB_TOKEN"}],
        },
        "sync": {"crawlConcurrency": 3, "batchSize": 10},
        "environments": {
            "development": {
                "schedule": SCHEDULE,
                "providers": {
                    "github": [
                        {
                            "name": "public",
                            "host": "github.com",
                            "orgs": [
                                {
                                    "name": "acme",
                                    "branches": ["main", "devel"],
                                    "tags": ["v1.*"],
                                    "galaxyFilePaths": ["collections"],
                                    "crawlDepth": 3,
                                },
                                {"name": "other", "enabled": False},
                            ],
                        }
                    ],
                    "gitlab": [
                        {
                            "host": "gitlab.example.com",
                            "schedule": {"frequency": {"hours": 1}, "timeout": {"minutes": 20}},
                            "orgs": [{"name": "platform/ansible"}],
                        },
                        {"host": "gitlab.com", "orgs": []},
                    ],
                },
            },
            "staging": {"enabled": False, "providers": {"github": [{"orgs": [{"name": "x"}]}]}},
        },
    }
