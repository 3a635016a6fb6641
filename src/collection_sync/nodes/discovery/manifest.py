"""Reading, parsing and validating galaxy.yml manifests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from collection_sync.entities import CollectionMetadata, DiscoveredItem, RefType, RepositoryInfo
from collection_sync.exceptions import ManifestValidationError

if TYPE_CHECKING:
    from collection_sync.scm.base import ScmClient

logger = logging.getLogger(__name__)

NOT_AN_OBJECT_ERROR = "galaxy.yml content is empty or not a valid object"
EMPTY_CONTENT_ERROR = "galaxy.yml content is empty"


@dataclass
class ManifestValidation:
    """Outcome of validating parsed manifest data."""

    success: bool
    data: CollectionMetadata | None = None
    errors: list[str] | None = None


def _format_errors(error: ValidationError) -> list[str]:
    messages: list[str] = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "content"
        messages.append(f"{location}: {detail['msg']}")
    return messages


def validate_manifest(content: Any) -> ManifestValidation:
    """Validate parsed YAML against the collection manifest schema."""
    if not isinstance(content, dict):
        return ManifestValidation(success=False, errors=[NOT_AN_OBJECT_ERROR])
    if not content:
        return ManifestValidation(success=False, errors=[EMPTY_CONTENT_ERROR])

    try:
        metadata = CollectionMetadata.model_validate(content)
    except ValidationError as e:
        return ManifestValidation(success=False, errors=_format_errors(e))
    return ManifestValidation(success=True, data=metadata)


def has_required_fields(content: Any) -> bool:
    """Quick structural check used before full validation.

    ``version`` may be null but the key must exist.
    """
    if not isinstance(content, dict):
        return False
    return (
        bool(content.get("namespace"))
        and bool(content.get("name"))
        and "version" in content
        and "authors" in content
        and "readme" in content
    )


class ManifestProcessor:
    """Turn one candidate path into a DiscoveredItem, or nothing.

    Every failure (read, YAML parse, schema) is logged and swallowed so a single
    bad file never aborts a crawl.
    """

    def __init__(self, client: ScmClient, crawler_name: str = "ScmCrawler") -> None:
        self._client = client
        self._crawler_name = crawler_name

    async def process(
        self,
        repo: RepositoryInfo,
        ref: str,
        ref_type: RefType,
        path: str,
    ) -> DiscoveredItem | None:
        location = f"{repo.full_path}/{path}@{ref}"
        try:
            content = await self._client.read_file(repo, ref, path)
        except Exception as e:
            logger.warning("[%s] Error reading %s: %s", self._crawler_name, location, e)
            return None

        try:
            parsed = yaml.safe_load(content)
        except yaml.YAMLError as e:
            logger.warning("[%s] Invalid YAML in %s: %s", self._crawler_name, location, e)
            return None

        validation = validate_manifest(parsed)
        if not validation.success or validation.data is None:
            logger.debug(
                "[%s] Invalid galaxy.yml in %s: %s",
                self._crawler_name,
                location,
                ", ".join(validation.errors or []),
            )
            return None

        try:
            return DiscoveredItem(
                repository=repo,
                ref=ref,
                ref_type=ref_type,
                path=path,
                raw_content=content,
                metadata=validation.data,
            )
        except ValidationError as e:
            logger.warning("[%s] Error processing %s: %s", self._crawler_name, location, e)
            return None


def load_manifest(text: str) -> CollectionMetadata:
    """Parse and validate manifest text.

    Raises:
        ManifestValidationError: If the text is not YAML or fails validation.
    """
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestValidationError([f"invalid YAML: {e}"]) from e

    validation = validate_manifest(parsed)
    if not validation.success or validation.data is None:
        raise ManifestValidationError(validation.errors or [])
    return validation.data
