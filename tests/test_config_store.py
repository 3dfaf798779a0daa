"""
Test the cached per-user configuration store
"""
import asyncio

import pytest

from app.core.error_handlers import ConfigurationLoadError, ConfigurationSaveError


class TestConfigurationStore:
    @pytest.mark.asyncio
    async def test_missing_configuration_is_none(self, config_store):
        assert await config_store.load("u1", "markup-blocks") is None

    @pytest.mark.asyncio
    async def test_reads_are_cached_within_ttl(self, config_store, config_collection, clock):
        await config_store.save("u1", "revenue-history", [1, 2])
        config_store.invalidate()
        assert await config_store.load("u1", "revenue-history") == [1, 2]
        clock.advance(29)
        assert await config_store.load("u1", "revenue-history") == [1, 2]
        assert config_collection.read_count == 1

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self, config_store, config_collection, clock):
        await config_store.load("u1", "markup-blocks")
        clock.advance(31)
        await config_store.load("u1", "markup-blocks")
        assert config_collection.read_count == 2

    @pytest.mark.asyncio
    async def test_write_repopulates_cache(self, config_store, config_collection):
        """A read right after a write returns the written value without a round-trip"""
        await config_store.load("u1", "selection-state-b1")
        await config_store.save("u1", "selection-state-b1", {"r1": True})
        assert await config_store.load("u1", "selection-state-b1") == {"r1": True}
        assert config_collection.read_count == 1

    @pytest.mark.asyncio
    async def test_upsert_keeps_one_document_per_key(self, config_store, config_collection):
        await config_store.save("u1", "markup-blocks", [])
        await config_store.save("u1", "markup-blocks", [{"id": "b1"}])
        await config_store.save("u2", "markup-blocks", [])
        assert len(config_collection.docs) == 2

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_one_read(self, config_store, config_collection):
        config_collection.read_delay = 0.01
        first, second = await asyncio.gather(
            config_store.load("u1", "markup-blocks"),
            config_store.load("u1", "markup-blocks"),
        )
        assert first is None and second is None
        assert config_collection.read_count == 1

    @pytest.mark.asyncio
    async def test_write_during_read_wins(self, config_store, config_collection):
        """A read that started before a write must not cache the older value"""
        config_collection.read_delay = 0.05
        pending = asyncio.ensure_future(config_store.load("u1", "markup-blocks"))
        await asyncio.sleep(0.01)
        await config_store.save("u1", "markup-blocks", [{"id": "new"}])
        await pending

        config_collection.read_delay = 0
        assert await config_store.load("u1", "markup-blocks") == [{"id": "new"}]
        assert config_collection.read_count == 1

    @pytest.mark.asyncio
    async def test_load_failure(self, config_store, config_collection):
        config_collection.fail_reads = True
        with pytest.raises(ConfigurationLoadError):
            await config_store.load("u1", "markup-blocks")

        config_collection.fail_reads = False
        assert await config_store.load("u1", "markup-blocks") is None

    @pytest.mark.asyncio
    async def test_save_failure_leaves_no_stale_cache(self, config_store, config_collection):
        await config_store.save("u1", "markup-blocks", ["old"])
        config_collection.fail_writes = True
        with pytest.raises(ConfigurationSaveError):
            await config_store.save("u1", "markup-blocks", ["new"])

        config_collection.fail_writes = False
        assert await config_store.load("u1", "markup-blocks") == ["old"]
        assert config_collection.read_count == 1

    @pytest.mark.asyncio
    async def test_delete(self, config_store, config_collection):
        await config_store.save("u1", "period-filter-b1", {"kind": "all"})
        await config_store.delete("u1", "period-filter-b1")
        assert await config_store.load("u1", "period-filter-b1") is None
        assert config_collection.docs == []

    def test_invalidate_by_user(self, config_store):
        config_store._cache = {"u1:a": (1, 0), "u1:b": (2, 0), "u2:a": (3, 0)}
        config_store.invalidate("u1")
        assert list(config_store._cache) == ["u2:a"]
