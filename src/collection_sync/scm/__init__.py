"""SCM access: client contract, REST clients and per-provider profiles."""

from collection_sync.scm.base import HttpScmClient, ScmClient
from collection_sync.scm.factory import ScmClientFactory
from collection_sync.scm.github import GithubClient
from collection_sync.scm.gitlab import GitlabClient
from collection_sync.scm.profiles import GITHUB_PROFILE, GITLAB_PROFILE, ProviderProfile, get_profile

__all__ = [
    "GITHUB_PROFILE",
    "GITLAB_PROFILE",
    "GithubClient",
    "GitlabClient",
    "HttpScmClient",
    "ProviderProfile",
    "ScmClient",
    "ScmClientFactory",
    "get_profile",
]
