"""Tests for the per-source sync orchestrator."""

from __future__ import annotations

import asyncio

import pytest

from collection_sync.catalog.sink import InMemoryCatalogSink
from collection_sync.exceptions import SyncNotConnectedError
from collection_sync.nodes.discovery.crawler import ScmCrawler
from collection_sync.sync.orchestrator import NOT_CONNECTED_ERROR, SourceSyncOrchestrator
from collection_sync.sync.scheduler import TaskScheduler
from collection_sync.sync.state import SyncStatus


class RecordingCrawler(ScmCrawler):
    """Crawler that remembers the size of every batch it is handed."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.batches: list[int] = []

    async def discover_in_repos(self, repos, options):
        self.batches.append(len(repos))
        return await super().discover_in_repos(repos, options)


def _orchestrator(scm, source, **kwargs) -> SourceSyncOrchestrator:
    return SourceSyncOrchestrator(source, ScmCrawler(source, scm), **kwargs)


class TestIdentity:
    def test_provider_name(self, scm, make_source) -> None:
        orchestrator = _orchestrator(scm, make_source(host_label="public"))
        assert orchestrator.source_id == "development:github:public:acme"
        assert orchestrator.provider_name == "AnsibleGitContentsProvider:development:github:public:acme"


class TestRun:
    def test_requires_connection(self, scm, make_source) -> None:
        orchestrator = _orchestrator(scm, make_source())
        with pytest.raises(SyncNotConnectedError):
            asyncio.run(orchestrator.run())

    def test_end_to_end(self, scm, make_source, manifest) -> None:
        repo = scm.add_repo("ansible-things")
        scm.tags[repo.full_path] = ["v1.0.0"]
        scm.add_file(repo, "main", "collections/foo/galaxy.yml", manifest(name="foo", version="1.1.0"))
        scm.add_file(repo, "v1.0.0", "collections/foo/galaxy.yml", manifest(name="foo", version="1.0.0"))
        source = make_source(crawl_depth=3, tag_patterns=("v*",))
        orchestrator = _orchestrator(scm, source)
        sink = InMemoryCatalogSink()

        async def go():
            await orchestrator.connect(sink)
            return await orchestrator.run()

        result = asyncio.run(go())

        assert result.success
        assert result.collection_count == 2
        entities = sink.get(orchestrator.provider_name)
        assert [e["spec"]["type"] for e in entities] == ["ansible-collection", "ansible-collection", "git-repository"]
        assert [e["spec"]["lifecycle"] for e in entities[:2]] == ["development", "production"]
        repository = entities[2]
        assert repository["metadata"]["annotations"]["ansible.io/repository-collection-count"] == "2"
        assert repository["spec"]["dependsOn"] == [
            "component:default/acme-foo-1-1-0-github-github-com",
            "component:default/acme-foo-1-0-0-github-github-com",
        ]
        assert sink.mutation_count == 1
        assert orchestrator.state.last_sync_status == SyncStatus.SUCCESS
        assert not orchestrator.state.is_syncing

    def test_long_names_at_two_versions_get_distinct_entities(self, scm, make_source, manifest) -> None:
        namespace, name = "n" * 31, "c" * 31
        repo = scm.add_repo("long")
        scm.tags[repo.full_path] = ["v1.0.0"]
        scm.add_file(repo, "main", "galaxy.yml", manifest(namespace=namespace, name=name, version="2.0.0"))
        scm.add_file(repo, "v1.0.0", "galaxy.yml", manifest(namespace=namespace, name=name, version="1.0.0"))
        orchestrator = _orchestrator(scm, make_source(tag_patterns=("v*",)))
        sink = InMemoryCatalogSink()

        async def go():
            await orchestrator.connect(sink)
            return await orchestrator.run()

        assert asyncio.run(go()).collection_count == 2
        names = [e["metadata"]["name"] for e in sink.get(orchestrator.provider_name)]
        assert len(names) == 3
        assert len(set(names)) == 3
        assert all(len(n) <= 63 for n in names)

    def test_duplicates_removed_before_mapping(self, scm, make_source, manifest) -> None:
        repo = scm.add_repo("tools")
        scm.branches[repo.full_path] = ["main", "devel"]
        scm.add_file(repo, "main", "galaxy.yml", manifest())
        scm.add_file(repo, "devel", "galaxy.yml", manifest())
        orchestrator = _orchestrator(scm, make_source(branches=("devel",)))
        sink = InMemoryCatalogSink()

        async def go():
            await orchestrator.connect(sink)
            return await orchestrator.run()

        assert asyncio.run(go()).collection_count == 1
        collections = [e for e in sink.get(orchestrator.provider_name) if e["spec"]["type"] == "ansible-collection"]
        assert len(collections) == 1
        assert collections[0]["metadata"]["annotations"]["ansible.io/galaxy-ref"] == "main"

    def test_empty_organization_still_mutates(self, scm, make_source) -> None:
        orchestrator = _orchestrator(scm, make_source())
        sink = InMemoryCatalogSink()

        async def go():
            await orchestrator.connect(sink)
            return await orchestrator.run()

        result = asyncio.run(go())

        assert result.success
        assert result.collection_count == 0
        assert sink.mutation_count == 1
        assert sink.get(orchestrator.provider_name) == []

    def test_already_syncing_is_skipped(self, scm, make_source) -> None:
        orchestrator = _orchestrator(scm, make_source())
        orchestrator.state.is_syncing = True

        async def go():
            await orchestrator.connect(InMemoryCatalogSink())
            return await orchestrator.run()

        result = asyncio.run(go())

        assert result.skipped
        assert not result.success
        assert orchestrator.state.last_sync_time is None
        assert orchestrator.state.last_failed_sync_time is None

    def test_failure_keeps_counts(self, scm, make_source, manifest, failing_sink) -> None:
        first = scm.add_repo("one")
        scm.add_file(first, "main", "galaxy.yml", manifest(name="one"))
        scm.add_file(first, "main", "sub/galaxy.yml", manifest(name="two"))
        orchestrator = _orchestrator(scm, make_source())
        sink = InMemoryCatalogSink()

        async def go():
            await orchestrator.connect(sink)
            assert (await orchestrator.run()).success
            success_time = orchestrator.state.last_sync_time

            await orchestrator.connect(failing_sink)
            failed = await orchestrator.run()
            assert not failed.success
            assert failed.error == "catalog unavailable"
            assert orchestrator.state.last_sync_time == success_time
            assert orchestrator.state.last_failed_sync_time is not None
            assert orchestrator.state.last_sync_status == SyncStatus.FAILURE
            assert (orchestrator.state.current_count, orchestrator.state.previous_count) == (2, 0)

            second = scm.add_repo("two")
            scm.add_file(second, "main", "galaxy.yml", manifest(name="three"))
            await orchestrator.connect(sink)
            assert (await orchestrator.run()).success

        asyncio.run(go())

        assert failing_sink.calls == 1
        assert orchestrator.state.current_count == 3
        assert orchestrator.state.collections_delta == 1

    def test_listing_failure_is_recorded(self, scm, make_source) -> None:
        scm.fail_listing = True
        orchestrator = _orchestrator(scm, make_source())

        async def go():
            await orchestrator.connect(InMemoryCatalogSink())
            return await orchestrator.run()

        result = asyncio.run(go())

        assert not result.success
        assert "repository listing failed" in result.error
        assert orchestrator.state.last_sync_status == SyncStatus.FAILURE
        assert not orchestrator.state.is_syncing

    def test_cancellation_is_recorded_as_failure(self, make_client, make_source) -> None:
        class SlowClient(make_client):
            async def list_repositories(self):
                await asyncio.Event().wait()
                return []

        orchestrator = _orchestrator(SlowClient(), make_source())

        async def go():
            await orchestrator.connect(InMemoryCatalogSink())
            with pytest.raises(TimeoutError):
                await asyncio.wait_for(orchestrator.run(), timeout=0.05)

        asyncio.run(go())

        assert orchestrator.state.last_sync_status == SyncStatus.FAILURE
        assert orchestrator.state.last_failed_sync_time is not None
        assert not orchestrator.state.is_syncing

    def test_repositories_processed_in_batches(self, scm, make_source, manifest) -> None:
        for i in range(7):
            repo = scm.add_repo(f"r{i}")
            scm.add_file(repo, "main", "galaxy.yml", manifest(name=f"c{i}"))
        source = make_source()
        crawler = RecordingCrawler(source, scm)
        orchestrator = SourceSyncOrchestrator(source, crawler, batch_size=3)

        async def go():
            await orchestrator.connect(InMemoryCatalogSink())
            return await orchestrator.run()

        result = asyncio.run(go())

        assert crawler.batches == [3, 3, 1]
        assert result.collection_count == 7


class TestStartSync:
    def test_not_connected(self, scm, make_source) -> None:
        orchestrator = _orchestrator(scm, make_source())

        async def go():
            return orchestrator.start_sync()

        outcome = asyncio.run(go())

        assert not outcome.started
        assert not outcome.skipped
        assert outcome.error == NOT_CONNECTED_ERROR

    def test_second_call_is_skipped(self, scm, make_source, manifest) -> None:
        repo = scm.add_repo("tools")
        scm.add_file(repo, "main", "galaxy.yml", manifest())
        orchestrator = _orchestrator(scm, make_source())
        sink = InMemoryCatalogSink()

        async def go():
            await orchestrator.connect(sink)
            first = orchestrator.start_sync()
            second = orchestrator.start_sync()
            assert orchestrator.state.is_syncing
            await orchestrator.wait_for_background()
            return first, second

        first, second = asyncio.run(go())

        assert (first.started, first.skipped) == (True, False)
        assert (second.started, second.skipped) == (False, True)
        assert sink.mutation_count == 1
        assert orchestrator.state.current_count == 1

    def test_syncing_state_untouched_by_skip(self, scm, make_source) -> None:
        orchestrator = _orchestrator(scm, make_source())
        orchestrator.state.is_syncing = True

        async def go():
            await orchestrator.connect(InMemoryCatalogSink())
            return orchestrator.start_sync()

        outcome = asyncio.run(go())

        assert (outcome.started, outcome.skipped) == (False, True)
        assert orchestrator.state.is_syncing
        assert orchestrator.state.last_sync_time is None
        assert orchestrator.state.last_failed_sync_time is None

    def test_without_running_loop(self, scm, make_source) -> None:
        orchestrator = _orchestrator(scm, make_source())
        asyncio.run(orchestrator.connect(InMemoryCatalogSink()))

        outcome = orchestrator.start_sync()

        assert not outcome.started
        assert outcome.error
        assert not orchestrator.state.is_syncing


class TestLifecycle:
    def test_connect_registers_schedule(self, scm, make_source) -> None:
        scheduler = TaskScheduler()
        orchestrator = _orchestrator(scm, make_source(), scheduler=scheduler)

        async def go():
            await orchestrator.connect(InMemoryCatalogSink())
            ids = scheduler.task_ids
            await scheduler.stop()
            return ids

        assert asyncio.run(go()) == [orchestrator.provider_name]

    def test_close_releases_client(self, scm, make_source) -> None:
        orchestrator = _orchestrator(scm, make_source())
        asyncio.run(orchestrator.close())
        assert scm.closed
