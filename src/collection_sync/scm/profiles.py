"""Per-provider vocabulary and URL layout used by the shared crawl engine."""

from __future__ import annotations

from dataclasses import dataclass

from collection_sync.entities import ScmProvider


@dataclass(frozen=True)
class ProviderProfile:
    """Everything that differs between GitHub-like and GitLab-like hosts.

    The crawl algorithm itself is provider-agnostic; only log vocabulary and
    web URL layout come from here.
    """

    provider: ScmProvider
    crawler_name: str
    repo_label: str
    blob_segment: str
    tree_segment: str
    icon: str

    def file_url(self, host: str, repo_path: str, ref: str, file_path: str) -> str:
        return f"https://{host}/{repo_path}/{self.blob_segment}/{ref}/{file_path}"

    def tree_url(self, host: str, repo_path: str, ref: str, dir_path: str = "") -> str:
        base = f"https://{host}/{repo_path}/{self.tree_segment}/{ref}"
        return f"{base}/{dir_path}" if dir_path else base

    def source_location(self, host: str, repo_path: str, ref: str, file_path: str) -> str:
        """Catalog source-location annotation for the directory holding ``file_path``."""
        directory = file_path.rsplit("/", 1)[0] if "/" in file_path else ""
        return f"url:{self.tree_url(host, repo_path, ref, directory)}"


GITHUB_PROFILE = ProviderProfile(
    provider=ScmProvider.GITHUB,
    crawler_name="GithubCrawler",
    repo_label="repositories",
    blob_segment="blob",
    tree_segment="tree",
    icon="github",
)

GITLAB_PROFILE = ProviderProfile(
    provider=ScmProvider.GITLAB,
    crawler_name="GitlabCrawler",
    repo_label="projects",
    blob_segment="-/blob",
    tree_segment="-/tree",
    icon="gitlab",
)

PROFILES: dict[ScmProvider, ProviderProfile] = {
    ScmProvider.GITHUB: GITHUB_PROFILE,
    ScmProvider.GITLAB: GITLAB_PROFILE,
}


def get_profile(provider: ScmProvider | str) -> ProviderProfile:
    return PROFILES[ScmProvider(provider)]
