"""SCM client contract and the shared httpx plumbing behind the REST clients."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from collection_sync.entities import DirectoryEntry, RepositoryInfo, ScmProvider
from collection_sync.exceptions import ScmClientError, ScmNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
PER_PAGE = 100
MAX_PAGES = 50


@runtime_checkable
class ScmClient(Protocol):
    """Read-only access to the repositories of one organization on one host."""

    async def list_repositories(self) -> list[RepositoryInfo]: ...

    async def list_branches(self, repo: RepositoryInfo) -> list[str]: ...

    async def list_tags(self, repo: RepositoryInfo) -> list[str]: ...

    async def list_directory(self, repo: RepositoryInfo, ref: str, path: str) -> list[DirectoryEntry]: ...

    async def read_file(self, repo: RepositoryInfo, ref: str, path: str) -> str: ...

    async def aclose(self) -> None: ...


class HttpScmClient:
    """Base for REST-backed SCM clients.

    Owns one ``httpx.AsyncClient`` and maps transport and status failures to
    ``ScmClientError`` / ``ScmNotFoundError`` so callers never see httpx types.
    """

    provider: ScmProvider

    def __init__(
        self,
        host: str,
        organization: str,
        base_url: str,
        headers: dict[str, str],
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.host = host
        self.organization = organization
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            transport=transport,
            timeout=timeout,
            follow_redirects=True,
        )

    async def _get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                raise ScmNotFoundError(f"{path} not found on {self.host}", status) from e
            raise ScmClientError(f"{self.provider.value} API error {status} for {path}", status) from e
        except httpx.HTTPError as e:
            raise ScmClientError(f"{self.provider.value} request to {self.host} failed for {path}: {e}") from e
        return response

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._get(path, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise ScmClientError(f"Invalid JSON from {self.host} for {path}") from e

    async def _paginate(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        """Collect every page of a list endpoint using ``page``/``per_page``."""
        items: list[Any] = []
        for page in range(1, MAX_PAGES + 1):
            batch = await self._get_json(path, params={**(params or {}), "per_page": PER_PAGE, "page": page})
            if not isinstance(batch, list):
                raise ScmClientError(f"Expected a list from {self.host} for {path}")
            items.extend(batch)
            if len(batch) < PER_PAGE:
                break
        else:
            logger.warning("Stopped paginating %s on %s after %d pages", path, self.host, MAX_PAGES)
        return items

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpScmClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
