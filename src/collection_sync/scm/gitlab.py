"""GitLab REST API (v4) client."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from collection_sync.entities import DirectoryEntry, EntryType, RepositoryInfo, ScmProvider
from collection_sync.exceptions import ScmNotFoundError
from collection_sync.scm.base import DEFAULT_TIMEOUT_SECONDS, HttpScmClient

logger = logging.getLogger(__name__)

_ENTRY_TYPES = {"blob": EntryType.FILE, "tree": EntryType.DIR}


class GitlabClient(HttpScmClient):
    """Lists projects and reads content for one GitLab group (or user namespace)."""

    provider = ScmProvider.GITLAB

    def __init__(
        self,
        host: str,
        organization: str,
        token: str | None = None,
        api_base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["PRIVATE-TOKEN"] = token
        super().__init__(
            host,
            organization,
            api_base_url or f"https://{host}/api/v4",
            headers,
            transport=transport,
            timeout=timeout,
        )

    @staticmethod
    def _project_ref(repo: RepositoryInfo) -> str:
        if repo.project_id is not None:
            return str(repo.project_id)
        return quote(repo.full_path, safe="")

    @staticmethod
    def _to_repository(data: dict[str, Any]) -> RepositoryInfo:
        return RepositoryInfo(
            name=data.get("path") or data["name"],
            full_path=data["path_with_namespace"],
            default_branch=data.get("default_branch") or "main",
            url=data.get("web_url") or "",
            description=data.get("description") or None,
            project_id=data.get("id"),
        )

    async def list_repositories(self) -> list[RepositoryInfo]:
        group = quote(self.organization, safe="")
        try:
            raw = await self._paginate(
                f"/groups/{group}/projects",
                params={"include_subgroups": "true", "archived": "false"},
            )
        except ScmNotFoundError:
            logger.debug("%s is not a GitLab group, listing user projects", self.organization)
            raw = await self._paginate(f"/users/{group}/projects", params={"archived": "false"})
        return [self._to_repository(p) for p in raw]

    async def list_branches(self, repo: RepositoryInfo) -> list[str]:
        raw = await self._paginate(f"/projects/{self._project_ref(repo)}/repository/branches")
        return [b["name"] for b in raw]

    async def list_tags(self, repo: RepositoryInfo) -> list[str]:
        raw = await self._paginate(f"/projects/{self._project_ref(repo)}/repository/tags")
        return [t["name"] for t in raw]

    async def list_directory(self, repo: RepositoryInfo, ref: str, path: str) -> list[DirectoryEntry]:
        params: dict[str, Any] = {"ref": ref}
        if path:
            params["path"] = path
        raw = await self._paginate(f"/projects/{self._project_ref(repo)}/repository/tree", params=params)
        return [
            DirectoryEntry(name=e["name"], path=e["path"], type=_ENTRY_TYPES[e["type"]])
            for e in raw
            if e.get("type") in _ENTRY_TYPES
        ]

    async def read_file(self, repo: RepositoryInfo, ref: str, path: str) -> str:
        response = await self._get(
            f"/projects/{self._project_ref(repo)}/repository/files/{quote(path, safe='')}/raw",
            params={"ref": ref},
        )
        return response.text
