"""Tests for collection identity keys and deduplication."""

from __future__ import annotations

from collection_sync.entities import CollectionMetadata, DiscoveredItem, RefType, RepositoryInfo, ScmProvider
from collection_sync.nodes.discovery.identity import (
    create_collection_identifier,
    create_collection_key,
    create_dependency_relations,
    create_repository_key,
    deduplicate,
    generate_source_id,
)

REPO = RepositoryInfo(name="tools", full_path="acme/tools", default_branch="main")


def _item(
    version: str = "1.0.0",
    ref: str = "main",
    ref_type: RefType = RefType.BRANCH,
    path: str = "galaxy.yml",
    name: str = "tools",
    repo: RepositoryInfo = REPO,
) -> DiscoveredItem:
    metadata = CollectionMetadata.model_validate({"namespace": "acme", "name": name, "version": version})
    return DiscoveredItem(
        repository=repo,
        ref=ref,
        ref_type=ref_type,
        path=path,
        raw_content="",
        metadata=metadata,
    )


class TestCollectionKey:
    def test_key_format(self, make_source) -> None:
        identifier = create_collection_identifier(make_source(), _item(version="2.1.0"))
        assert create_collection_key(identifier) == "github:github.com:acme:acme.tools@2.1.0"

    def test_key_uses_source_host(self, make_source) -> None:
        source = make_source(provider=ScmProvider.GITLAB, host="gitlab.example.com", organization="platform")
        identifier = create_collection_identifier(source, _item())
        assert identifier.host == "gitlab.example.com"
        assert create_collection_key(identifier).startswith("gitlab:gitlab.example.com:platform:")


class TestDeduplicate:
    def test_same_version_on_several_refs_collapses(self, make_source) -> None:
        first = _item(ref="main")
        items = [first, _item(ref="devel"), _item(ref="v1.0.0", ref_type=RefType.TAG)]

        unique = deduplicate(make_source(), items)

        assert unique == [first]

    def test_same_version_in_several_paths_collapses(self, make_source) -> None:
        other_repo = RepositoryInfo(name="fork", full_path="acme/fork", default_branch="main")
        items = [_item(path="a/galaxy.yml"), _item(path="b/galaxy.yml"), _item(repo=other_repo)]

        unique = deduplicate(make_source(), items)

        assert len(unique) == 1
        assert unique[0].path == "a/galaxy.yml"

    def test_different_versions_kept(self, make_source) -> None:
        items = [_item(version="1.0.0"), _item(version="1.1.0"), _item(version="2.0.0")]
        unique = deduplicate(make_source(), items)
        assert [i.metadata.version for i in unique] == ["1.0.0", "1.1.0", "2.0.0"]

    def test_order_preserved(self, make_source) -> None:
        items = [_item(name="b"), _item(name="a"), _item(name="b"), _item(name="c")]
        unique = deduplicate(make_source(), items)
        assert [i.metadata.name for i in unique] == ["b", "a", "c"]

    def test_empty(self, make_source) -> None:
        assert deduplicate(make_source(), []) == []


class TestSourceIds:
    def test_generate_source_id(self, make_source) -> None:
        source = make_source(provider=ScmProvider.GITLAB, host="gitlab.example.com", organization="Platform/Ansible")
        assert generate_source_id(source) == "gitlab-gitlab-example-com-platform-ansible"

    def test_repository_key(self, make_source) -> None:
        assert create_repository_key(REPO, make_source()) == "github:github.com:acme/tools"


def test_dependency_relations() -> None:
    assert create_dependency_relations({"community.general": ">=5.0.0", "Ansible.Utils": "*"}) == [
        "component:default/community-general",
        "component:default/ansible-utils",
    ]
    assert create_dependency_relations(None) == []
