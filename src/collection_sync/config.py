"""Configuration models and the YAML config reader."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from collection_sync.entities import ScmProvider
from collection_sync.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_HOSTS: dict[ScmProvider, str] = {
    ScmProvider.GITHUB: "github.com",
    ScmProvider.GITLAB: "gitlab.com",
}

DEFAULT_TOKEN_ENV: dict[ScmProvider, str] = {
    ScmProvider.GITHUB: "GITHUB_TOKEN",
    ScmProvider.GITLAB: "GITLAB_TOKEN",
}

DEFAULT_CRAWL_DEPTH = 5


def get_default_host(provider: ScmProvider | str) -> str:
    """Public host of a provider, used when a source omits ``host``."""
    return DEFAULT_HOSTS[ScmProvider(provider)]


class DurationConfig(BaseModel):
    """A human-friendly duration, e.g. ``{minutes: 30}``."""

    model_config = ConfigDict(frozen=True)

    days: int = Field(default=0, ge=0)
    hours: int = Field(default=0, ge=0)
    minutes: int = Field(default=0, ge=0)
    seconds: int = Field(default=0, ge=0)

    def total_seconds(self) -> float:
        return float(((self.days * 24 + self.hours) * 60 + self.minutes) * 60 + self.seconds)


class ScheduleConfig(BaseModel):
    """How often a source is crawled and how long one cycle may take."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    frequency: DurationConfig
    timeout: DurationConfig
    initial_delay: DurationConfig | None = Field(default=None, alias="initialDelay")

    @field_validator("frequency", "timeout")
    @classmethod
    def require_positive(cls, v: DurationConfig) -> DurationConfig:
        if v.total_seconds() <= 0:
            raise ValueError("duration must be greater than zero")
        return v


class SourceConfig(BaseModel):
    """One crawlable unit: an organization on a host of a provider, in one environment."""

    model_config = ConfigDict(frozen=True)

    env: str
    provider: ScmProvider
    host: str
    organization: str
    host_label: str
    enabled: bool = True
    branches: tuple[str, ...] = ()
    tag_patterns: tuple[str, ...] = ()
    manifest_paths: tuple[str, ...] = ()
    crawl_depth: int = Field(default=DEFAULT_CRAWL_DEPTH, ge=1)
    schedule: ScheduleConfig

    @model_validator(mode="before")
    @classmethod
    def fill_host_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        provider = data.get("provider")
        if not data.get("host") and provider in set(ScmProvider):
            data["host"] = get_default_host(provider)
        if not data.get("host_label"):
            data["host_label"] = data.get("host")
        return data

    @property
    def source_id(self) -> str:
        """Stable identifier: ``env:provider:host_label:organization``."""
        return f"{self.env}:{self.provider.value}:{self.host_label}:{self.organization}"


class IntegrationConfig(BaseModel):
    """Credentials and API endpoint for one SCM host."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host: str
    token: str | None = None
    token_env: str | None = Field(default=None, alias="tokenEnv")
    api_base_url: str | None = Field(default=None, alias="apiBaseUrl")

    def resolve_token(self, provider: ScmProvider) -> str | None:
        """Inline token first, then the named env var, then the provider default env var."""
        if self.token:
            return self.token
        env_name = self.token_env or DEFAULT_TOKEN_ENV[provider]
        return os.environ.get(env_name) or None


class ServerConfig(BaseModel):
    """HTTP API settings."""

    host: str = Field(default="0.0.0.0", description="Bind address for the sync API")
    port: int = Field(default=7007, description="Port for the sync API")


class AppConfig(BaseModel):
    """Fully resolved application configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    integrations: dict[ScmProvider, list[IntegrationConfig]] = Field(default_factory=dict)
    sources: list[SourceConfig] = Field(default_factory=list)
    sink_path: Path | None = Field(default=None, description="JSON file for catalog entities; in-memory when unset")
    crawl_concurrency: int = Field(default=5, ge=1, description="Repositories crawled in parallel per source")
    batch_size: int = Field(default=20, ge=1, description="Repositories handed to the crawler per batch")


# Default configuration
SERVER_CONFIG = ServerConfig()


def _read_org(
    env: str,
    provider: ScmProvider,
    host: str | None,
    host_label: str,
    org: dict[str, Any],
    fallback_schedule: Any,
) -> SourceConfig:
    name = org.get("name")
    if not name:
        raise ConfigurationError(f"Organization without a name under {env}/{provider.value}/{host_label}")

    schedule = org.get("schedule") or fallback_schedule
    if not schedule:
        raise ConfigurationError(
            f"Schedule is required for source {env}/{provider.value}/{host_label}/{name}: "
            "set it on the org, the host or the environment"
        )

    try:
        source = SourceConfig(
            env=env,
            provider=provider,
            host=host or "",
            host_label=host_label,
            organization=str(name),
            enabled=org.get("enabled", True),
            branches=org.get("branches") or (),
            tag_patterns=org.get("tags") or (),
            manifest_paths=org.get("galaxyFilePaths") or (),
            crawl_depth=org.get("crawlDepth", DEFAULT_CRAWL_DEPTH),
            schedule=schedule,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid source config {env}/{provider.value}/{host_label}/{name}: {e}") from e

    logger.debug(
        "Source config: provider=%s, org=%s, branches=%s, tags=%s, crawlDepth=%d",
        source.provider,
        source.organization,
        list(source.branches),
        list(source.tag_patterns),
        source.crawl_depth,
    )
    return source


def read_source_configs(raw: dict[str, Any]) -> list[SourceConfig]:
    """Resolve every configured source from the ``environments`` section.

    Raises:
        ConfigurationError: On an unknown provider, a nameless org, a source with
            no resolvable schedule, or any field that fails validation.
    """
    environments = raw.get("environments") or {}
    if not environments:
        logger.info("No environments configured")
        return []

    sources: list[SourceConfig] = []
    for env, env_config in environments.items():
        env_config = env_config or {}
        if not env_config.get("enabled", True):
            logger.info("Environment '%s' is disabled, skipping", env)
            continue

        providers = env_config.get("providers") or {}
        for provider_name, hosts in providers.items():
            try:
                provider = ScmProvider(provider_name)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid provider: {provider_name}. Must be 'github' or 'gitlab'."
                ) from e

            for host_config in hosts or []:
                host = host_config.get("host")
                host_label = host_config.get("name") or host or get_default_host(provider)
                orgs = host_config.get("orgs") or []
                if not orgs:
                    logger.info("Host '%s' in '%s' has no orgs configured, skipping", host_label, env)
                    continue

                host_schedule = host_config.get("schedule") or env_config.get("schedule")
                for org in orgs:
                    sources.append(_read_org(str(env), provider, host, str(host_label), org, host_schedule))

    logger.info("Resolved %d sources from %d environments", len(sources), len(environments))
    return sources


def _read_integrations(raw: dict[str, Any]) -> dict[ScmProvider, list[IntegrationConfig]]:
    integrations: dict[ScmProvider, list[IntegrationConfig]] = {}
    for provider_name, entries in (raw.get("integrations") or {}).items():
        try:
            provider = ScmProvider(provider_name)
        except ValueError as e:
            raise ConfigurationError(f"Invalid integration provider: {provider_name}") from e
        try:
            integrations[provider] = [IntegrationConfig.model_validate(entry) for entry in entries or []]
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {provider_name} integration: {e}") from e
    return integrations


def parse_config(raw: dict[str, Any]) -> AppConfig:
    """Build an AppConfig from an already-parsed config mapping."""
    catalog = raw.get("catalog") or {}
    sync = raw.get("sync") or {}
    try:
        return AppConfig(
            server=ServerConfig.model_validate(raw.get("server") or {}),
            integrations=_read_integrations(raw),
            sources=read_source_configs(raw),
            sink_path=catalog.get("sinkPath"),
            crawl_concurrency=sync.get("crawlConcurrency", 5),
            batch_size=sync.get("batchSize", 20),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(path: Path) -> AppConfig:
    """Load and resolve a YAML config file."""
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    config = parse_config(raw)
    logger.info("Loaded config from %s with %d sources", path, len(config.sources))
    return config
