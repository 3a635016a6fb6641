"""Map discovered collections and their repositories to catalog entities.

Everything here is pure: no I/O, no logging. Entities are plain JSON-ready
dicts in the Backstage ``Component`` shape.
"""

from __future__ import annotations

import hashlib
import json
import re
from typing import TYPE_CHECKING, Any

from collection_sync.entities import VERSION_NOT_AVAILABLE, RefType
from collection_sync.nodes.discovery.identity import create_dependency_relations, generate_source_id
from collection_sync.scm.profiles import get_profile

if TYPE_CHECKING:
    from collection_sync.config import SourceConfig
    from collection_sync.entities import DiscoveredItem, RepositoryInfo

Entity = dict[str, Any]

API_VERSION = "backstage.io/v1alpha1"
ENTITY_NAMESPACE = "default"
MAX_ENTITY_NAME_LENGTH = 63
_NAME_DIGEST_LENGTH = 8

COLLECTION_TYPE = "ansible-collection"
REPOSITORY_TYPE = "git-repository"

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]")
_DASH_RUNS = re.compile(r"-+")

# (manifest field, link title, icon)
_COLLECTION_LINKS = (
    ("repository", "Repository", "github"),
    ("documentation", "Documentation", "docs"),
    ("homepage", "Homepage", "web"),
    ("issues", "Issues", "bug"),
)


def sanitize_entity_name(value: str) -> str:
    """Reduce ``value`` to a valid catalog entity name (``[a-z0-9-]``, max 63 chars).

    Names over the limit keep a prefix and end in a digest of the whole value,
    so inputs differing only past the cut still map to distinct names.
    """
    name = _INVALID_NAME_CHARS.sub("-", value.lower())
    name = _DASH_RUNS.sub("-", name).strip("-")
    if len(name) <= MAX_ENTITY_NAME_LENGTH:
        return name
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:_NAME_DIGEST_LENGTH]
    prefix = name[: MAX_ENTITY_NAME_LENGTH - _NAME_DIGEST_LENGTH - 1].rstrip("-")
    return f"{prefix}-{digest}"


def _sanitize_tag(tag: str) -> str:
    return _INVALID_NAME_CHARS.sub("-", tag.lower())


def _entity_ref(name: str) -> str:
    return f"component:{ENTITY_NAMESPACE}/{name}"


def _directory_of(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def generate_collection_entity_name(item: DiscoveredItem, source: SourceConfig) -> str:
    metadata = item.metadata
    return sanitize_entity_name(
        f"{metadata.namespace}-{metadata.name}-{metadata.version}-{source.provider.value}-{source.host}"
    )


def generate_repository_entity_name(repo: RepositoryInfo, source: SourceConfig) -> str:
    return sanitize_entity_name(f"{repo.full_path}-{source.provider.value}-{source.host}")


def collection_to_entity(item: DiscoveredItem, source: SourceConfig, source_location: str) -> Entity:
    """Build the catalog entity for one discovered collection.

    Tags produce ``lifecycle: production``; branches produce ``development``.
    """
    metadata = item.metadata
    profile = get_profile(source.provider)
    repo_path = item.repository.full_path
    file_url = profile.file_url(source.host, repo_path, item.ref, item.path)

    if metadata.version and metadata.version != VERSION_NOT_AVAILABLE:
        title = f"{metadata.full_name} v{metadata.version}"
    else:
        title = metadata.full_name

    annotations: dict[str, str] = {
        "backstage.io/source-location": source_location,
        "backstage.io/view-url": file_url,
        "backstage.io/managed-by-location": f"url:{file_url}",
        "backstage.io/managed-by-origin-location": f"url:{file_url}",
        "ansible.io/scm-provider": source.provider.value,
        "ansible.io/scm-host": source.host,
        "ansible.io/scm-organization": source.organization,
        "ansible.io/scm-repository": repo_path,
        "ansible.io/galaxy-namespace": metadata.namespace,
        "ansible.io/galaxy-name": metadata.name,
        "ansible.io/galaxy-version": metadata.version,
        "ansible.io/galaxy-full-name": metadata.full_name,
        "ansible.io/galaxy-ref": item.ref,
        "ansible.io/galaxy-ref-type": item.ref_type.value,
        "ansible.io/galaxy-file-path": item.path,
        "ansible.io/discovery-source-id": generate_source_id(source),
    }
    if metadata.dependencies:
        annotations["ansible.io/galaxy-dependencies"] = json.dumps(metadata.dependencies)
    if metadata.authors:
        annotations["ansible.io/galaxy-authors"] = json.dumps(metadata.authors)
    if metadata.license:
        annotations["ansible.io/galaxy-license"] = (
            ", ".join(metadata.license) if isinstance(metadata.license, list) else metadata.license
        )
    if metadata.readme:
        directory = _directory_of(item.path)
        readme_path = f"{directory}/{metadata.readme}" if directory else metadata.readme
        annotations["ansible.io/galaxy-readme-url"] = profile.file_url(
            source.host, repo_path, item.ref, readme_path
        )

    tags = [_sanitize_tag(t) for t in metadata.tags or []]
    tags.extend([source.provider.value, COLLECTION_TYPE])

    entity_metadata: dict[str, Any] = {
        "name": generate_collection_entity_name(item, source),
        "namespace": ENTITY_NAMESPACE,
        "title": title,
        "description": metadata.description or f"Ansible Collection: {metadata.full_name}",
        "annotations": annotations,
        "tags": list(dict.fromkeys(tags)),
    }
    links = [
        {"url": getattr(metadata, field), "title": link_title, "icon": icon}
        for field, link_title, icon in _COLLECTION_LINKS
        if getattr(metadata, field)
    ]
    if links:
        entity_metadata["links"] = links

    spec: dict[str, Any] = {
        "type": COLLECTION_TYPE,
        "lifecycle": "production" if item.ref_type == RefType.TAG else "development",
        "owner": metadata.namespace,
        "system": f"{metadata.namespace}-collections",
        "subcomponentOf": _entity_ref(generate_repository_entity_name(item.repository, source)),
    }
    depends_on = create_dependency_relations(metadata.dependencies)
    if depends_on:
        spec["dependsOn"] = depends_on

    return {
        "apiVersion": API_VERSION,
        "kind": "Component",
        "metadata": entity_metadata,
        "spec": spec,
    }


def repository_to_entity(
    repo: RepositoryInfo,
    source: SourceConfig,
    collection_count: int,
    collection_entity_names: list[str] | None = None,
) -> Entity:
    """Build the catalog entity for a repository that holds collections."""
    profile = get_profile(source.provider)
    repo_url = repo.url or f"https://{source.host}/{repo.full_path}"

    annotations: dict[str, str] = {
        "backstage.io/source-location": f"url:{repo_url}",
        "backstage.io/view-url": repo_url,
        "backstage.io/managed-by-location": f"url:{repo_url}",
        "backstage.io/managed-by-origin-location": f"url:{repo_url}",
        "ansible.io/scm-provider": source.provider.value,
        "ansible.io/scm-host": source.host,
        "ansible.io/scm-organization": source.organization,
        "ansible.io/scm-repository": repo.full_path,
        "ansible.io/repository-name": repo.name,
        "ansible.io/repository-default-branch": repo.default_branch,
        "ansible.io/repository-collection-count": str(collection_count),
    }
    if collection_entity_names:
        annotations["ansible.io/repository-collections"] = json.dumps(collection_entity_names)
    annotations["ansible.io/discovery-source-id"] = generate_source_id(source)

    spec: dict[str, Any] = {
        "type": REPOSITORY_TYPE,
        "lifecycle": "production",
        "owner": source.organization,
        "system": f"{source.organization}-repositories",
    }
    if collection_entity_names:
        spec["dependsOn"] = [_entity_ref(name) for name in collection_entity_names]

    return {
        "apiVersion": API_VERSION,
        "kind": "Component",
        "metadata": {
            "name": generate_repository_entity_name(repo, source),
            "namespace": ENTITY_NAMESPACE,
            "title": repo.full_path,
            "description": repo.description
            or f"Git repository containing Ansible collections: {repo.full_path}",
            "annotations": annotations,
            "tags": [REPOSITORY_TYPE, source.provider.value, "ansible-collections-source"],
            "links": [{"url": repo_url, "title": "Repository", "icon": profile.icon}],
        },
        "spec": spec,
    }
