"""Organization crawler that discovers galaxy manifests across repositories."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from collection_sync.nodes.discovery.manifest import ManifestProcessor
from collection_sync.nodes.discovery.refs import resolve_refs
from collection_sync.nodes.discovery.walker import DirectoryWalker
from collection_sync.scm.profiles import ProviderProfile, get_profile

if TYPE_CHECKING:
    from collection_sync.config import SourceConfig
    from collection_sync.entities import DiscoveredItem, RefSpec, RepositoryInfo
    from collection_sync.scm.base import ScmClient
    from collection_sync.scm.factory import ScmClientFactory

logger = logging.getLogger(__name__)

NO_MANIFESTS_REASON = "no valid galaxy.yml/yaml files found"
DEFAULT_MAX_CONCURRENCY = 5


@dataclass(frozen=True)
class DiscoveryOptions:
    """Per-crawl search settings derived from a source."""

    crawl_depth: int
    branches: tuple[str, ...] = ()
    tag_patterns: tuple[str, ...] = ()
    manifest_paths: tuple[str, ...] = ()

    @classmethod
    def from_source(cls, source: SourceConfig) -> DiscoveryOptions:
        return cls(
            crawl_depth=source.crawl_depth,
            branches=source.branches,
            tag_patterns=source.tag_patterns,
            manifest_paths=source.manifest_paths,
        )


@dataclass
class SkippedRepository:
    """A repository that contributed nothing to a crawl, and why."""

    repo: str
    reason: str


class ScmCrawler:
    """Discover collections in every repository of one source.

    Provider differences (log vocabulary, URL layout) come from the
    ``ProviderProfile``; the traversal itself is shared. Repositories are
    crawled concurrently up to ``max_concurrency`` and results keep the input
    repository order.
    """

    def __init__(
        self,
        source: SourceConfig,
        client: ScmClient,
        profile: ProviderProfile | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        self.source = source
        self.client = client
        self.profile = profile or get_profile(source.provider)
        self._max_concurrency = max(1, max_concurrency)
        self._walker = DirectoryWalker(client, self.profile.crawler_name)
        self._processor = ManifestProcessor(client, self.profile.crawler_name)

    @property
    def crawler_name(self) -> str:
        return self.profile.crawler_name

    async def list_repositories(self) -> list[RepositoryInfo]:
        return await self.client.list_repositories()

    def build_source_location(self, repo: RepositoryInfo, ref: str, path: str) -> str:
        return self.profile.source_location(self.source.host, repo.full_path, ref, path)

    async def discover(self, options: DiscoveryOptions) -> list[DiscoveredItem]:
        repos = await self.list_repositories()
        logger.info(
            "[%s] Starting galaxy.yml discovery in %d %s",
            self.crawler_name,
            len(repos),
            self.profile.repo_label,
        )
        return await self.discover_in_repos(repos, options)

    async def discover_in_repos(
        self,
        repos: list[RepositoryInfo],
        options: DiscoveryOptions,
    ) -> list[DiscoveredItem]:
        """Crawl ``repos`` and return every valid manifest found.

        A failing repository is recorded as skipped and never aborts the
        others.
        """
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(repo: RepositoryInfo) -> tuple[list[DiscoveredItem], SkippedRepository | None]:
            async with semaphore:
                return await self._discover_repo(repo, options)

        outcomes = await asyncio.gather(*(bounded(repo) for repo in repos))

        discovered: list[DiscoveredItem] = []
        skipped: list[SkippedRepository] = []
        for items, skip in outcomes:
            discovered.extend(items)
            if skip is not None:
                skipped.append(skip)

        if skipped:
            logger.info(
                "[%s] Skipped %d %s with no collections:",
                self.crawler_name,
                len(skipped),
                self.profile.repo_label,
            )
            for skip in skipped:
                logger.info("[%s]   - %s: %s", self.crawler_name, skip.repo, skip.reason)

        logger.info(
            "[%s] Discovered %d galaxy.yml files in %d %s",
            self.crawler_name,
            len(discovered),
            len(repos),
            self.profile.repo_label,
        )
        return discovered

    async def _discover_repo(
        self,
        repo: RepositoryInfo,
        options: DiscoveryOptions,
    ) -> tuple[list[DiscoveredItem], SkippedRepository | None]:
        try:
            refs = await resolve_refs(self.client, repo, options.branches, options.tag_patterns)
            items: list[DiscoveredItem] = []
            for ref_spec in refs:
                items.extend(await self.find_in_repo(repo, ref_spec, options))
        except Exception as e:
            logger.warning(
                "[%s] Error discovering collections in %s: %s", self.crawler_name, repo.full_path, e
            )
            return [], SkippedRepository(repo=repo.full_path, reason=f"error: {e}")

        if not items:
            return [], SkippedRepository(repo=repo.full_path, reason=NO_MANIFESTS_REASON)
        return items, None

    async def find_in_repo(
        self,
        repo: RepositoryInfo,
        ref_spec: RefSpec,
        options: DiscoveryOptions,
    ) -> list[DiscoveredItem]:
        """Find manifests at one ref, under each configured base path or the root."""
        logger.debug(
            "[%s] Searching %s on %s '%s' (default branch: %s)",
            self.crawler_name,
            repo.full_path,
            ref_spec.ref_type,
            ref_spec.ref,
            repo.default_branch,
        )
        base_paths = options.manifest_paths or ("",)

        discovered: list[DiscoveredItem] = []
        for base_path in base_paths:
            candidates = await self._walker.walk(repo, ref_spec.ref, base_path, options.crawl_depth)
            if not candidates and not options.manifest_paths:
                logger.debug(
                    "[%s] No galaxy.yml files found in %s@%s after crawling",
                    self.crawler_name,
                    repo.full_path,
                    ref_spec.ref,
                )
            for path in candidates:
                item = await self._processor.process(repo, ref_spec.ref, ref_spec.ref_type, path)
                if item is not None:
                    discovered.append(item)
        return discovered


def create_crawler(
    source: SourceConfig,
    client_factory: ScmClientFactory,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> ScmCrawler:
    """Build a crawler for ``source`` with a client from ``client_factory``."""
    client = client_factory.create_client(source.provider, source.organization, source.host)
    logger.debug("Created %s for %s", get_profile(source.provider).crawler_name, source.source_id)
    return ScmCrawler(source, client, max_concurrency=max_concurrency)
