"""Depth-bounded traversal of a repository tree looking for galaxy manifests."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from collection_sync.entities import EntryType, RepositoryInfo

if TYPE_CHECKING:
    from collection_sync.scm.base import ScmClient

logger = logging.getLogger(__name__)

MANIFEST_FILENAMES = frozenset({"galaxy.yml", "galaxy.yaml"})

# Directories never descended into, whatever depth remains
SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        ".github",
        ".gitlab",
        "__pycache__",
        ".tox",
        ".venv",
        "venv",
        ".cache",
        "dist",
        "build",
        "docs",
        "tests",
        "test",
    }
)


def is_manifest_file(filename: str) -> bool:
    return filename.lower() in MANIFEST_FILENAMES


def should_skip_directory(name: str) -> bool:
    return name.lower() in SKIP_DIRS


class DirectoryWalker:
    """Collect manifest candidate paths below a starting directory.

    ``depth`` counts directory listings, not path segments: depth 1 lists the
    starting directory only, depth 0 lists nothing.
    """

    def __init__(self, client: ScmClient, crawler_name: str = "ScmCrawler") -> None:
        self._client = client
        self._crawler_name = crawler_name

    async def walk(self, repo: RepositoryInfo, ref: str, path: str, depth: int) -> list[str]:
        if depth <= 0:
            return []

        try:
            entries = await self._client.list_directory(repo, ref, path)
        except Exception as e:
            if path == "":
                logger.warning(
                    "[%s] Failed to fetch contents for %s@%s: %s", self._crawler_name, repo.full_path, ref, e
                )
            else:
                logger.debug(
                    "[%s] Error crawling %s/%s@%s: %s", self._crawler_name, repo.full_path, path, ref, e
                )
            return []

        if path == "" and not entries:
            logger.warning(
                "[%s] Empty contents returned for %s@%s root directory", self._crawler_name, repo.full_path, ref
            )

        candidates: list[str] = []
        for entry in entries:
            if entry.type == EntryType.FILE:
                if is_manifest_file(entry.name):
                    logger.debug(
                        "[%s] Found galaxy file: %s/%s@%s", self._crawler_name, repo.full_path, entry.path, ref
                    )
                    candidates.append(entry.path)
            elif not should_skip_directory(entry.name):
                candidates.extend(await self.walk(repo, ref, entry.path, depth - 1))

        return candidates
