"""GitHub REST API client."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from collection_sync.entities import DirectoryEntry, EntryType, RepositoryInfo, ScmProvider
from collection_sync.exceptions import ScmNotFoundError
from collection_sync.scm.base import DEFAULT_TIMEOUT_SECONDS, HttpScmClient

logger = logging.getLogger(__name__)

_ENTRY_TYPES = {"file": EntryType.FILE, "dir": EntryType.DIR}


def github_api_base(host: str) -> str:
    """github.com uses api.github.com; GitHub Enterprise serves the API under /api/v3."""
    if host == "github.com":
        return "https://api.github.com"
    return f"https://{host}/api/v3"


class GithubClient(HttpScmClient):
    """Lists repositories and reads content for one GitHub organization (or user)."""

    provider = ScmProvider.GITHUB

    def __init__(
        self,
        host: str,
        organization: str,
        token: str | None = None,
        api_base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        super().__init__(
            host,
            organization,
            api_base_url or github_api_base(host),
            headers,
            transport=transport,
            timeout=timeout,
        )

    @staticmethod
    def _to_repository(data: dict[str, Any]) -> RepositoryInfo:
        return RepositoryInfo(
            name=data["name"],
            full_path=data["full_name"],
            default_branch=data.get("default_branch") or "main",
            url=data.get("html_url") or "",
            description=data.get("description"),
        )

    async def list_repositories(self) -> list[RepositoryInfo]:
        org = quote(self.organization, safe="")
        try:
            raw = await self._paginate(f"/orgs/{org}/repos", params={"type": "all"})
        except ScmNotFoundError:
            # Not an organization; fall back to a user account.
            logger.debug("%s is not a GitHub organization, listing user repositories", self.organization)
            raw = await self._paginate(f"/users/{org}/repos", params={"type": "owner"})
        return [self._to_repository(r) for r in raw if not r.get("archived", False)]

    async def list_branches(self, repo: RepositoryInfo) -> list[str]:
        raw = await self._paginate(f"/repos/{repo.full_path}/branches")
        return [b["name"] for b in raw]

    async def list_tags(self, repo: RepositoryInfo) -> list[str]:
        raw = await self._paginate(f"/repos/{repo.full_path}/tags")
        return [t["name"] for t in raw]

    async def list_directory(self, repo: RepositoryInfo, ref: str, path: str) -> list[DirectoryEntry]:
        data = await self._get_json(
            f"/repos/{repo.full_path}/contents/{quote(path, safe='/')}",
            params={"ref": ref},
        )
        if isinstance(data, dict):
            # The contents API returns a single object when ``path`` is a file.
            data = [data]
        return [
            DirectoryEntry(name=e["name"], path=e["path"], type=_ENTRY_TYPES[e["type"]])
            for e in data
            if e.get("type") in _ENTRY_TYPES
        ]

    async def read_file(self, repo: RepositoryInfo, ref: str, path: str) -> str:
        response = await self._get(
            f"/repos/{repo.full_path}/contents/{quote(path, safe='/')}",
            params={"ref": ref},
            headers={"Accept": "application/vnd.github.raw+json"},
        )
        return response.text
