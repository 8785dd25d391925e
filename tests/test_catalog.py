"""
Tests for module catalog resolution (toolchain_probe/catalog.py).
"""

import json

import pytest

from toolchain_probe import catalog
from toolchain_probe.catalog import (
    SOURCE_CACHE,
    SOURCE_FALLBACK,
    SOURCE_LIVE,
    CatalogCacheStore,
    CatalogResolver,
    ModuleCatalogDocument,
    ModuleRecord,
    cache_filename,
    workspace_hash,
)
from toolchain_probe.config import Config
from toolchain_probe.errors import CacheCorrupt, CatalogUnavailable
from toolchain_probe.fallback_modules import FALLBACK_MODULES
from toolchain_probe.resolver import ExecutableResolver

from conftest import fail, ok


LIVE_DOCUMENT = {
    "schema_version": 1,
    "generated_at": "2026-01-01T00:00:00Z",
    "filters": {"category": None},
    "stats": {"total": 1, "returned": 1, "invalid": 0},
    "modules": [
        {
            "name": "auth_core",
            "display_name": "Authentication Core",
            "version": "0.2.0",
            "category": "auth",
            "slug": "free/auth/core",
            "status": "beta",
        },
    ],
}

LEGACY_LIST = [
    {"name": "Redis Cache", "version": "0.1.1", "category": "cache", "slug": "free/cache/redis"},
    {"slug": "free/database/db_postgres"},
]


class CountingStore(CatalogCacheStore):
    def __init__(self, storage_dir):
        super().__init__(storage_dir)
        self.loads = 0

    def load(self, workspace=None):
        self.loads += 1
        return super().load(workspace)


@pytest.fixture
def store(tmp_path):
    return CountingStore(tmp_path / "storage")


@pytest.fixture
def workspace(tmp_path):
    path = tmp_path / "app"
    cli = path / ".rapidkit" / "bin" / "rapidkit"
    cli.parent.mkdir(parents=True)
    cli.write_text("#!/bin/sh\n")
    return path


def cli_args(workspace, *args):
    return (str(workspace / ".rapidkit" / "bin" / "rapidkit"), "modules", "list", *args)


def make_resolver(runner, store, clock, fallback=FALLBACK_MODULES):
    config = Config()
    return CatalogResolver(
        config=config,
        executable_resolver=ExecutableResolver(config, runner=runner, which=lambda name: None),
        runner=runner,
        store=store,
        clock=clock,
        fallback=fallback,
    )


def cached_document(fetched_at, name="cached_module"):
    return ModuleCatalogDocument(modules=[{"name": name, "version": "0.0.1"}], fetched_at=fetched_at)


class TestCatalogTiers:
    """Tier ordering: fresh cache, live, legacy live, stale cache, fallback."""

    @pytest.mark.asyncio
    async def test_fresh_cache_spawns_nothing(self, runner, store, clock, workspace):
        store.save(cached_document(clock()), workspace)
        clock.advance(599)

        result = await make_resolver(runner, store, clock).resolve(workspace)

        assert result.source == SOURCE_CACHE
        assert [e.id for e in result.entries] == ["cached_module"]
        assert runner.calls == []

    @pytest.mark.asyncio
    async def test_live_document_is_persisted(self, runner, store, clock, workspace):
        runner.add(cli_args(workspace, "--json-schema"), ok(json.dumps(LIVE_DOCUMENT)))

        result = await make_resolver(runner, store, clock).resolve(workspace)

        assert result.source == SOURCE_LIVE
        assert result.entries[0].name == "Authentication Core"
        assert result.entries[0].status == "beta"
        assert runner.calls == [cli_args(workspace, "--json-schema", "1")]
        assert runner.cwds == [str(workspace)]
        assert runner.timeouts == [Config().timeouts.catalog_seconds]

        saved = store.load(workspace)
        assert saved.fetched_at == clock()
        assert saved.generated_at == "2026-01-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_legacy_list_is_wrapped(self, runner, store, clock, workspace):
        runner.add(cli_args(workspace, "--json-schema"), fail(2, stderr="no such option"))
        runner.add(cli_args(workspace, "--json"), ok(json.dumps(LEGACY_LIST)))

        result = await make_resolver(runner, store, clock).resolve(workspace)

        assert result.source == SOURCE_LIVE
        assert result.document.source == "legacy-json"
        assert result.document.stats == {"total": 2, "returned": 2, "invalid": 0}
        assert [e.id for e in result.entries] == ["redis_cache", "db_postgres"]
        assert store.load(workspace).fetched_at == clock()

    @pytest.mark.asyncio
    async def test_non_schema_output_falls_to_legacy(self, runner, store, clock, workspace):
        runner.add(cli_args(workspace, "--json-schema"), ok(json.dumps({"schema_version": 2, "modules": []})))
        runner.add(cli_args(workspace, "--json"), ok(json.dumps(LEGACY_LIST)))

        result = await make_resolver(runner, store, clock).resolve(workspace)

        assert result.document.source == "legacy-json"

    @pytest.mark.asyncio
    async def test_stale_cache_when_live_fails(self, runner, store, clock, workspace):
        fetched_at = clock()
        store.save(cached_document(fetched_at), workspace)
        clock.advance(601)

        result = await make_resolver(runner, store, clock).resolve(workspace)

        assert result.source == SOURCE_CACHE
        assert result.document.fetched_at == fetched_at
        assert runner.count(*cli_args(workspace)) == 2

    @pytest.mark.asyncio
    async def test_stale_cache_is_refreshed(self, runner, store, clock, workspace):
        store.save(cached_document(clock()), workspace)
        clock.advance(601)
        runner.add(cli_args(workspace, "--json-schema"), ok(json.dumps(LIVE_DOCUMENT)))

        result = await make_resolver(runner, store, clock).resolve(workspace)

        assert result.source == SOURCE_LIVE
        assert store.load(workspace).fetched_at == clock()

    @pytest.mark.asyncio
    async def test_fallback_is_not_persisted(self, runner, store, clock, workspace):
        result = await make_resolver(runner, store, clock).resolve(workspace)

        assert result.source == SOURCE_FALLBACK
        assert result.document is None
        assert len(result.entries) == len(FALLBACK_MODULES)
        assert not store.path_for(workspace).exists()

    @pytest.mark.asyncio
    async def test_empty_fallback_raises(self, runner, store, clock, workspace):
        with pytest.raises(CatalogUnavailable):
            await make_resolver(runner, store, clock, fallback=()).resolve(workspace)

    @pytest.mark.asyncio
    async def test_cache_read_once_per_resolve(self, runner, store, clock, workspace):
        store.save(cached_document(clock()), workspace)
        clock.advance(601)

        await make_resolver(runner, store, clock).resolve(workspace)

        assert store.loads == 1

    @pytest.mark.asyncio
    async def test_corrupt_cache_is_a_miss(self, runner, store, clock, workspace):
        path = store.path_for(workspace)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        runner.add(cli_args(workspace, "--json-schema"), ok(json.dumps(LIVE_DOCUMENT)))

        result = await make_resolver(runner, store, clock).resolve(workspace)

        assert result.source == SOURCE_LIVE
        assert store.load(workspace).modules == LIVE_DOCUMENT["modules"]

    @pytest.mark.asyncio
    async def test_repeat_resolve_within_ttl_is_stable(self, runner, store, clock, workspace):
        runner.add(cli_args(workspace, "--json-schema"), ok(json.dumps(LIVE_DOCUMENT)))
        resolver = make_resolver(runner, store, clock)

        first = await resolver.resolve(workspace)
        spawned = len(runner.calls)
        clock.advance(30)
        second = await resolver.resolve(workspace)
        third = await resolver.resolve(workspace)

        assert first.source == SOURCE_LIVE
        assert second.source == SOURCE_CACHE
        assert second.entries == first.entries
        assert third.to_dict() == second.to_dict()
        assert store.loads == 3
        assert len(runner.calls) == spawned

    @pytest.mark.asyncio
    async def test_future_fetched_at_is_not_fresh(self, runner, store, clock, workspace):
        store.save(cached_document(clock() + 3_600_000), workspace)
        runner.add(cli_args(workspace, "--json-schema"), ok(json.dumps(LIVE_DOCUMENT)))

        result = await make_resolver(runner, store, clock).resolve(workspace)

        assert result.source == SOURCE_LIVE
        assert store.load(workspace).fetched_at == clock()

    @pytest.mark.asyncio
    async def test_cli_resolved_once_for_both_live_tiers(self, runner, store, clock, tmp_path):
        app = tmp_path / "plain"
        app.mkdir()
        runner.add(("rapidkit", "--version"), ok("RapidKit Version 0.9.0"))

        result = await make_resolver(runner, store, clock).resolve(app)

        assert result.source == SOURCE_FALLBACK
        assert runner.count("rapidkit", "--version") == 1
        assert runner.calls[1:] == [
            ("rapidkit", "modules", "list", "--json-schema", "1"),
            ("rapidkit", "modules", "list", "--json"),
        ]


class TestWorkspaceIsolation:
    """Each workspace has its own cache file."""

    @pytest.mark.asyncio
    async def test_other_workspace_cache_is_not_used(self, runner, store, clock, tmp_path):
        first, second = tmp_path / "one", tmp_path / "two"
        first.mkdir()
        second.mkdir()
        store.save(cached_document(clock(), name="first_only"), first)

        result = await make_resolver(runner, store, clock).resolve(second)

        assert result.source == SOURCE_FALLBACK

    def test_invalidate_only_touches_one_workspace(self, runner, store, clock, tmp_path):
        first, second = tmp_path / "one", tmp_path / "two"
        store.save(cached_document(clock()), first)
        store.save(cached_document(clock()), second)

        resolver = make_resolver(runner, store, clock)
        assert resolver.invalidate(first) is True
        assert resolver.invalidate(first) is False

        assert not store.path_for(first).exists()
        assert store.path_for(second).exists()

    @pytest.mark.asyncio
    async def test_invalidation_leaves_other_workspace_cached(self, runner, store, clock, tmp_path):
        first, second = tmp_path / "one", tmp_path / "two"
        first.mkdir()
        second.mkdir()
        store.save(cached_document(clock(), name="first_only"), first)
        store.save(cached_document(clock(), name="second_only"), second)
        resolver = make_resolver(runner, store, clock)

        assert resolver.invalidate(first) is True
        first_result = await resolver.resolve(first)
        second_result = await resolver.resolve(second)

        assert first_result.source == SOURCE_FALLBACK
        assert second_result.source == SOURCE_CACHE
        assert [e.id for e in second_result.entries] == ["second_only"]

    def test_cache_filenames(self):
        assert cache_filename(None) == "modules-catalog.json"
        digest = workspace_hash("/srv/app")
        assert len(digest) == 8
        assert cache_filename("/srv/app") == f"modules-catalog-{digest}.json"
        assert workspace_hash("/srv/app") != workspace_hash("/srv/app2")


class TestCacheStore:
    """Load and save of catalog documents."""

    def test_round_trip_keeps_unknown_keys(self, tmp_path):
        store = CatalogCacheStore(tmp_path)
        document = ModuleCatalogDocument.from_dict({**LIVE_DOCUMENT, "producer": "rapidkit 0.9.0"})
        document.fetched_at = 123
        store.save(document)

        loaded = store.load()
        assert loaded.extra == {"producer": "rapidkit 0.9.0"}
        assert loaded.fetched_at == 123
        assert list(tmp_path.glob("*.tmp")) == []

    def test_failed_write_leaves_no_temp_file(self, tmp_path, monkeypatch):
        store = CatalogCacheStore(tmp_path)
        store.save(cached_document(1, name="previous"))

        def disk_full(*args, **kwargs):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(catalog.json, "dump", disk_full)
        with pytest.raises(IOError, match="Failed to write catalog cache"):
            store.save(cached_document(2))
        monkeypatch.undo()

        assert list(tmp_path.glob("*.tmp")) == []
        assert [e.id for e in store.load().entries] == ["previous"]

    def test_wrong_schema_is_corrupt(self, tmp_path):
        store = CatalogCacheStore(tmp_path)
        store.path_for().write_text(json.dumps({"schema_version": 2, "modules": []}))
        with pytest.raises(CacheCorrupt):
            store.load()

    def test_missing_file(self, tmp_path):
        assert CatalogCacheStore(tmp_path / "nope").load() is None


class TestModuleRecord:
    """Normalization of raw catalog entries."""

    def test_display_name_and_defaults(self):
        record = ModuleRecord.from_raw({
            "name": "Auth Core",
            "display_name": "Authentication Core",
            "slug": "free/auth/core",
            "status": "retired",
            "tags": ["auth", 3],
        })
        assert record.id == "auth_core"
        assert record.name == "Authentication Core"
        assert record.version == "0.0.0"
        assert record.category == "unknown"
        assert record.status == "stable"
        assert record.tags == ("auth",)

    def test_name_from_slug(self):
        record = ModuleRecord.from_raw({"slug": "free/essentials/settings/"})
        assert record.name == "settings"
        assert record.id == "settings"

    def test_empty_record(self):
        record = ModuleRecord.from_raw({})
        assert record.id == "unknown"
        assert record.name == "unknown"

    def test_fallback_entries_are_unique(self):
        ids = [ModuleRecord.from_raw(r).id for r in FALLBACK_MODULES]
        assert len(ids) == len(set(ids))
