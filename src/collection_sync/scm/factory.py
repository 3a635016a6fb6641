"""Builds provider-specific SCM clients from integration config."""

from __future__ import annotations

import logging

import httpx

from collection_sync.config import IntegrationConfig, get_default_host
from collection_sync.entities import ScmProvider
from collection_sync.exceptions import ConfigurationError
from collection_sync.scm.base import HttpScmClient
from collection_sync.scm.github import GithubClient
from collection_sync.scm.gitlab import GitlabClient

logger = logging.getLogger(__name__)

_CLIENT_CLASSES: dict[ScmProvider, type[GithubClient] | type[GitlabClient]] = {
    ScmProvider.GITHUB: GithubClient,
    ScmProvider.GITLAB: GitlabClient,
}


class ScmClientFactory:
    """Creates one client per (provider, host, organization).

    Credentials come from the ``integrations`` section matched by host; a host
    with no integration gets an anonymous client.
    """

    def __init__(
        self,
        integrations: dict[ScmProvider, list[IntegrationConfig]] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._integrations = integrations or {}
        self._transport = transport

    def _find_integration(self, provider: ScmProvider, host: str) -> IntegrationConfig | None:
        for integration in self._integrations.get(provider, []):
            if integration.host == host:
                return integration
        return None

    def create_client(
        self,
        provider: ScmProvider | str,
        organization: str,
        host: str | None = None,
    ) -> HttpScmClient:
        try:
            scm_provider = ScmProvider(provider)
        except ValueError as e:
            raise ConfigurationError(f"Unsupported SCM provider: {provider}") from e

        resolved_host = host or get_default_host(scm_provider)
        integration = self._find_integration(scm_provider, resolved_host)
        if integration is None:
            logger.debug("No %s integration for %s, using anonymous access", scm_provider.value, resolved_host)

        client_cls = _CLIENT_CLASSES[scm_provider]
        return client_cls(
            host=resolved_host,
            organization=organization,
            token=integration.resolve_token(scm_provider) if integration else None,
            api_base_url=integration.api_base_url if integration else None,
            transport=self._transport,
        )
