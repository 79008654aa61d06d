"""Tests for the registry store, refresh carry-forward and the installation ledger."""

import json

import httpx
import pytest
import pytest_asyncio

from mcpkit.core.ledger import InstallationLedger
from mcpkit.core.registry_sources import (
    CacheSource,
    MirrorSource,
    OfficialRegistrySource,
    RegistryChain,
)
from mcpkit.core.registry_store import RegistryStore, carry_forward
from mcpkit.lib.typed_errors import ConfigWriteError, RegistryWriteError
from mcpkit.models.plugin import Catalog, PluginRecord

BASE = "https://registry.test"
MIRROR = "https://mirror.test/mcp-registry.json"


def _write_cache(path, records):
    path.write_text(json.dumps({"mcps": records}))


@pytest_asyncio.fixture
async def build_store(tmp_path):
    clients = []
    cache_path = tmp_path / "mcp-registry.json"

    def factory(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        chain = RegistryChain([
            OfficialRegistrySource(client, BASE),
            MirrorSource(client, MIRROR),
            CacheSource(cache_path),
        ])
        return RegistryStore(cache_path, chain)

    yield factory

    for client in clients:
        await client.aclose()


class TestPluginRecordInvariants:
    def test_installed_follows_agents(self):
        record = PluginRecord(id="a", installed=True, installation_date="2025-01-01T00:00:00+00:00")
        assert record.installed is False
        assert record.installation_date is None

    def test_duplicate_agents_removed(self):
        record = PluginRecord(
            id="a",
            installed_agents=["cursor", "cursor", "windsurf"],
            installation_date="2025-01-01T00:00:00+00:00",
        )
        assert record.installed_agents == ["cursor", "windsurf"]
        assert record.installed is True

    def test_unknown_keys_preserved(self):
        record = PluginRecord.model_validate({"id": "a", "tags": ["fs"]})
        assert record.model_dump()["tags"] == ["fs"]


class TestCarryForward:
    def test_copies_install_state_by_id(self):
        previous = Catalog(mcps=[
            PluginRecord(id="a", installed_agents=["cursor"], installation_date="2025-01-01T00:00:00+00:00"),
            PluginRecord(id="gone", installed_agents=["cursor"], installation_date="2025-01-01T00:00:00+00:00"),
        ])
        fresh = Catalog(mcps=[
            PluginRecord(id="a", description="updated upstream"),
            PluginRecord(id="b"),
        ])

        merged = carry_forward(previous, fresh)

        a = merged.find("a")
        assert a.description == "updated upstream"
        assert a.installed is True
        assert a.installed_agents == ["cursor"]
        assert a.installation_date == "2025-01-01T00:00:00+00:00"
        assert merged.find("b").installed is False
        assert merged.find("gone") is None


class TestRegistryStore:
    @pytest.mark.asyncio
    async def test_load_reads_cache_only(self, build_store, make_handler, tmp_path):
        _write_cache(tmp_path / "mcp-registry.json", [{"id": "cached"}])

        def handler(request):
            raise AssertionError("network should not be used")

        store = build_store(handler)
        catalog = await store.load()

        assert [r.id for r in catalog.mcps] == ["cached"]

    @pytest.mark.asyncio
    async def test_get_catalog_refreshes_when_cache_empty(self, build_store, make_server, make_handler, tmp_path):
        store = build_store(make_handler([[make_server("a", "pkg-a")]]))

        catalog = await store.get_catalog()

        assert catalog.find("a") is not None
        assert store.last_source == "official"
        cached = json.loads((tmp_path / "mcp-registry.json").read_text())
        assert cached["mcps"][0]["id"] == "a"

    @pytest.mark.asyncio
    async def test_refresh_carries_forward_install_state(self, build_store, make_server, make_handler, tmp_path):
        _write_cache(tmp_path / "mcp-registry.json", [{
            "id": "fs-mcp",
            "description": "old",
            "installed": True,
            "installed_agents": ["cursor"],
            "installation_date": "2025-01-01T00:00:00+00:00",
        }])
        store = build_store(make_handler([[make_server("fs-mcp", "@x/fs", version="2.0.0")]]))

        result = await store.refresh()

        assert result.source == "official"
        assert result.count == 1
        record = store.catalog.find("fs-mcp")
        assert record.command == "npx @x/fs@2.0.0"
        assert record.installed_agents == ["cursor"]
        assert record.installation_date == "2025-01-01T00:00:00+00:00"

        cached = json.loads((tmp_path / "mcp-registry.json").read_text())
        assert cached["mcps"][0]["installed_agents"] == ["cursor"]

    @pytest.mark.asyncio
    async def test_refresh_from_cache_does_not_rewrite(self, build_store, make_handler, tmp_path):
        cache = tmp_path / "mcp-registry.json"
        _write_cache(cache, [{"id": "cached"}])
        before = cache.read_bytes()

        store = build_store(make_handler([], fail_registry=True))
        result = await store.refresh()

        assert result.source == "cache"
        assert cache.read_bytes() == before

    @pytest.mark.asyncio
    async def test_refresh_twice_converges(self, build_store, make_server, make_handler, tmp_path):
        store = build_store(make_handler([[make_server("a", "pkg-a"), make_server("b")]]))

        await store.refresh()
        first = (tmp_path / "mcp-registry.json").read_text()
        await store.refresh()
        second = (tmp_path / "mcp-registry.json").read_text()

        assert first == second


class TestInstallationLedger:
    @pytest_asyncio.fixture
    async def ledger(self, build_store, make_handler, tmp_path):
        _write_cache(tmp_path / "mcp-registry.json", [{"id": "fs-mcp", "command": "npx @x/fs"}])
        store = build_store(make_handler([], fail_registry=True))
        await store.load()
        return InstallationLedger(store)

    def _cached(self, tmp_path):
        data = json.loads((tmp_path / "mcp-registry.json").read_text())
        return {r["id"]: r for r in data["mcps"]}

    @pytest.mark.asyncio
    async def test_first_install_stamps_date(self, ledger, tmp_path):
        assert await ledger.mark_installed("fs-mcp", "cursor") is True

        record = self._cached(tmp_path)["fs-mcp"]
        assert record["installed"] is True
        assert record["installed_agents"] == ["cursor"]
        assert record["installation_date"]

    @pytest.mark.asyncio
    async def test_second_agent_keeps_date(self, ledger, tmp_path):
        await ledger.mark_installed("fs-mcp", "cursor")
        first_date = self._cached(tmp_path)["fs-mcp"]["installation_date"]
        await ledger.mark_installed("fs-mcp", "windsurf")

        record = self._cached(tmp_path)["fs-mcp"]
        assert record["installed_agents"] == ["cursor", "windsurf"]
        assert record["installation_date"] == first_date

    @pytest.mark.asyncio
    async def test_idempotent(self, ledger, tmp_path):
        await ledger.mark_installed("fs-mcp", "cursor")
        await ledger.mark_installed("fs-mcp", "cursor")
        assert ledger.agents_for("fs-mcp") == ["cursor"]

    @pytest.mark.asyncio
    async def test_last_uninstall_clears(self, ledger, tmp_path):
        await ledger.mark_installed("fs-mcp", "cursor")
        await ledger.mark_installed("fs-mcp", "windsurf")
        await ledger.mark_uninstalled("fs-mcp", "cursor")
        assert self._cached(tmp_path)["fs-mcp"]["installed"] is True

        await ledger.mark_uninstalled("fs-mcp", "windsurf")
        record = self._cached(tmp_path)["fs-mcp"]
        assert record["installed"] is False
        assert record["installed_agents"] == []
        assert record["installation_date"] is None

    @pytest.mark.asyncio
    async def test_uninstall_unknown_agent_is_noop(self, ledger, tmp_path):
        before = (tmp_path / "mcp-registry.json").read_text()
        assert await ledger.mark_uninstalled("fs-mcp", "cursor") is True
        assert (tmp_path / "mcp-registry.json").read_text() == before

    @pytest.mark.asyncio
    async def test_unknown_plugin(self, ledger, tmp_path):
        before = (tmp_path / "mcp-registry.json").read_text()
        assert await ledger.mark_installed("nope", "cursor") is False
        assert await ledger.mark_uninstalled("nope", "cursor") is False
        assert (tmp_path / "mcp-registry.json").read_text() == before

    @pytest.mark.asyncio
    async def test_failed_flush_leaves_memory_unchanged(self, ledger, tmp_path, monkeypatch):
        async def fail(*args, **kwargs):
            raise ConfigWriteError("disk full", config_path=tmp_path / "mcp-registry.json")

        monkeypatch.setattr(ledger.registry.store, "write", fail)

        with pytest.raises(RegistryWriteError):
            await ledger.mark_installed("fs-mcp", "cursor")

        record = ledger.registry.catalog.find("fs-mcp")
        assert record.installed is False
        assert record.installed_agents == []
        assert record.installation_date is None

    @pytest.mark.asyncio
    async def test_failed_uninstall_flush_keeps_install(self, ledger, tmp_path, monkeypatch):
        await ledger.mark_installed("fs-mcp", "cursor")

        async def fail(*args, **kwargs):
            raise ConfigWriteError("disk full", config_path=tmp_path / "mcp-registry.json")

        monkeypatch.setattr(ledger.registry.store, "write", fail)

        with pytest.raises(RegistryWriteError):
            await ledger.mark_uninstalled("fs-mcp", "cursor")

        assert ledger.agents_for("fs-mcp") == ["cursor"]
        assert ledger.registry.catalog.find("fs-mcp").installed is True
