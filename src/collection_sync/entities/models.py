"""Domain models for repositories, manifests and discovered collections."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Namespaces and names start with a letter; dots and underscores are allowed after.
GALAXY_NAME_PATTERN = r"^[A-Za-z][A-Za-z0-9_.]*$"

VERSION_NOT_AVAILABLE = "N/A"
README_NOT_AVAILABLE = "Not Available."


class ScmProvider(StrEnum):
    """Supported source-control hosting providers."""

    GITHUB = "github"
    GITLAB = "gitlab"


class RefType(StrEnum):
    """Kind of git reference a repository snapshot was read from."""

    BRANCH = "branch"
    TAG = "tag"


class EntryType(StrEnum):
    """Kind of row in a directory listing."""

    FILE = "file"
    DIR = "dir"


class RepositoryInfo(BaseModel):
    """A repository as reported by the SCM client. Read-only to the crawler."""

    model_config = ConfigDict(frozen=True)

    name: str
    full_path: str = Field(description="Owner-qualified path, e.g. 'org/repo' or 'group/sub/project'")
    default_branch: str
    url: str = ""
    description: str | None = None
    project_id: int | None = Field(default=None, description="Numeric project id (GitLab only)")


class DirectoryEntry(BaseModel):
    """One row of a repository directory listing."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    type: EntryType


class RefSpec(BaseModel):
    """A ref to search, tagged with its type."""

    model_config = ConfigDict(frozen=True)

    ref: str
    ref_type: RefType


class CollectionMetadata(BaseModel):
    """Validated contents of a galaxy.yml manifest.

    Serves as the manifest schema: construction through ``model_validate``
    applies the same defaulting rules the Galaxy tooling does (null version
    becomes ``N/A``, missing readme and authors get placeholders).
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    namespace: str = Field(pattern=GALAXY_NAME_PATTERN)
    name: str = Field(pattern=GALAXY_NAME_PATTERN)
    version: str
    readme: str = README_NOT_AVAILABLE
    authors: list[str] = Field(default_factory=lambda: [VERSION_NOT_AVAILABLE])
    description: str | None = None
    license: str | list[str] | None = None
    tags: list[str] | None = None
    dependencies: dict[str, str] | None = None
    repository: str | None = None
    documentation: str | None = None
    homepage: str | None = None
    issues: str | None = None

    @field_validator("version", mode="before")
    @classmethod
    def normalize_version(cls, v: Any) -> Any:
        """Null versions are reported as N/A; numeric YAML scalars become strings."""
        if v is None:
            return VERSION_NOT_AVAILABLE
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("readme", mode="before")
    @classmethod
    def normalize_readme(cls, v: Any) -> Any:
        return README_NOT_AVAILABLE if v is None else v

    @field_validator("authors", mode="before")
    @classmethod
    def normalize_authors(cls, v: Any) -> Any:
        if v is None:
            return [VERSION_NOT_AVAILABLE]
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [str(t) for t in v if t is not None]
        return v

    @field_validator("dependencies", mode="before")
    @classmethod
    def normalize_dependencies(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k): "*" if dep is None else str(dep) for k, dep in v.items()}
        return v

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}"


class DiscoveredItem(BaseModel):
    """One valid manifest found in a repository at a given ref."""

    model_config = ConfigDict(frozen=True)

    repository: RepositoryInfo
    ref: str
    ref_type: RefType
    path: str
    raw_content: str
    metadata: CollectionMetadata


class CollectionIdentifier(BaseModel):
    """Logical identity of a collection within one source."""

    model_config = ConfigDict(frozen=True)

    provider: ScmProvider
    host: str
    organization: str
    namespace: str
    name: str
    version: str
