"""Tests for metal_ticker.engine.engine: MetalTickerEngine."""

from __future__ import annotations

import logging

import pytest

from metal_ticker.core.config import RefreshConfig
from metal_ticker.core.exceptions import RegistryError, SettingsError
from metal_ticker.core.models import CUSTOM_METALS_KEY, VISIBLE_METALS_KEY
from metal_ticker.engine.engine import MetalTickerEngine
from metal_ticker.settings.store import MemorySettingsStore
from tests.conftest import GOLD_URL, PLATINUM_URL, SILVER_URL, FakePriceSource, custom_entry


class ReadOnlySettingsStore(MemorySettingsStore):
    """Rejects every write until ``writable`` is set."""

    writable = False

    def _persist(self) -> None:
        if not self.writable:
            raise SettingsError("settings are read-only", context={"path": None, "key": None})


@pytest.fixture
def quiet_config() -> RefreshConfig:
    """No startup refresh, so every fetch in a test is one it asked for."""
    return RefreshConfig(interval_seconds=3600, refresh_on_start=False)


@pytest.fixture
async def engine(memory_store, fake_source, quiet_config):
    eng = MetalTickerEngine(memory_store, fake_source, quiet_config)
    await eng.start()
    yield eng
    await eng.close()


class TestStartup:
    async def test_initial_snapshot(self, engine):
        assert [m.id for m in engine.metals] == ["gold", "silver"]
        assert engine.visible_ids == ("gold", "silver")
        assert engine.snapshot.version == 1
        assert engine.started

    async def test_startup_refresh_fetches_every_metal(self, memory_store, fake_source, refresh_config):
        async with MetalTickerEngine(memory_store, fake_source, refresh_config) as eng:
            await eng.drain()
            assert eng.price("gold") == "2345.10"
            assert eng.price("silver") == "29.87"
            assert sorted(fake_source.calls) == sorted([GOLD_URL, SILVER_URL])

    async def test_sanitizes_persisted_visibility(self, fake_source, quiet_config):
        store = MemorySettingsStore(
            {CUSTOM_METALS_KEY: [], VISIBLE_METALS_KEY: ["silver", "silver", "bogus"]}
        )
        async with MetalTickerEngine(store, fake_source, quiet_config) as eng:
            assert eng.visible_ids == ("silver",)
            assert store.get_strv(VISIBLE_METALS_KEY) == ["silver"]
            assert eng.toggle_states() == {"gold": True, "silver": False}
            assert not eng.is_toggle_enabled("silver")

    async def test_empty_visibility_falls_back_to_first_metal(self, fake_source, quiet_config):
        store = MemorySettingsStore()
        async with MetalTickerEngine(store, fake_source, quiet_config) as eng:
            assert eng.visible_ids == ("gold",)
            assert store.get_strv(VISIBLE_METALS_KEY) == ["gold"]

    async def test_registry_listener_fires_once_despite_write_back(self, fake_source, quiet_config):
        store = MemorySettingsStore({VISIBLE_METALS_KEY: ["bogus"]})
        eng = MetalTickerEngine(store, fake_source, quiet_config)
        calls: list[int] = []
        eng.add_registry_listener(lambda: calls.append(eng.snapshot.version))
        await eng.start()
        assert calls == [1]
        await eng.close()

    async def test_malformed_custom_entries_skipped(self, fake_source, quiet_config):
        store = MemorySettingsStore(
            {
                CUSTOM_METALS_KEY: [
                    "not json",
                    custom_entry("custom-platinum", "Platinum", PLATINUM_URL),
                ],
                VISIBLE_METALS_KEY: ["gold"],
            }
        )
        async with MetalTickerEngine(store, fake_source, quiet_config) as eng:
            assert [m.id for m in eng.metals] == ["gold", "silver", "custom-platinum"]

    async def test_start_twice_is_noop(self, engine):
        await engine.start()
        assert engine.snapshot.version == 1

    async def test_failed_write_back_leaves_engine_stopped(self, fake_source, quiet_config):
        store = ReadOnlySettingsStore({VISIBLE_METALS_KEY: ["bogus"]})
        eng = MetalTickerEngine(store, fake_source, quiet_config)

        with pytest.raises(SettingsError):
            await eng.start()

        assert not eng.started
        assert not eng.orchestrator.running

        store.writable = True
        store.set_strv(
            CUSTOM_METALS_KEY, [custom_entry("custom-platinum", "Platinum", PLATINUM_URL)]
        )
        await eng.drain()
        assert fake_source.calls == []
        assert eng.metal("custom-platinum") is None


class TestVisibility:
    async def test_hide(self, engine, memory_store):
        assert engine.set_visible("silver", False) is True
        assert engine.visible_ids == ("gold",)
        assert memory_store.get_strv(VISIBLE_METALS_KEY) == ["gold"]
        assert not engine.is_toggle_enabled("gold")

    async def test_show_keeps_registry_order(self, engine):
        engine.set_visible("gold", False)
        engine.set_visible("gold", True)
        assert engine.visible_ids == ("gold", "silver")

    async def test_hiding_last_visible_is_refused(self, engine, memory_store):
        engine.set_visible("silver", False)
        assert engine.set_visible("gold", False) is False
        assert engine.visible_ids == ("gold",)
        assert memory_store.get_strv(VISIBLE_METALS_KEY) == ["gold"]

    async def test_unknown_metal_raises(self, engine):
        with pytest.raises(RegistryError) as exc_info:
            engine.set_visible("bogus", True)
        assert exc_info.value.context["metal_id"] == "bogus"

    async def test_visibility_change_does_not_fetch(self, engine, fake_source):
        engine.set_visible("silver", False)
        await engine.drain()
        assert fake_source.calls == []

    async def test_outside_edit_is_sanitized(self, engine, memory_store):
        memory_store.set_strv(VISIBLE_METALS_KEY, [])
        assert engine.visible_ids == ("gold",)
        assert memory_store.get_strv(VISIBLE_METALS_KEY) == ["gold"]


class TestCustomMetals:
    async def test_add_fetches_only_new_metal(self, engine, fake_source, memory_store):
        metal = engine.add_custom_metal("Platinum", PLATINUM_URL)
        await engine.drain()

        assert metal.id == "custom-platinum"
        assert metal.is_custom
        assert fake_source.calls == [PLATINUM_URL]
        assert engine.price("custom-platinum") == "1012.40"
        assert [m.id for m in engine.metals] == ["gold", "silver", "custom-platinum"]
        assert len(memory_store.get_strv(CUSTOM_METALS_KEY)) == 1

    async def test_outside_add_triggers_same_refresh(self, engine, fake_source, memory_store):
        memory_store.set_strv(
            CUSTOM_METALS_KEY, [custom_entry("custom-platinum", "Platinum", PLATINUM_URL)]
        )
        await engine.drain()
        assert fake_source.calls == [PLATINUM_URL]
        assert engine.metal("custom-platinum") is not None

    async def test_duplicate_names_get_unique_ids(self, engine):
        first = engine.add_custom_metal("Platinum", PLATINUM_URL)
        second = engine.add_custom_metal("Platinum", PLATINUM_URL)
        assert first.id != second.id

    async def test_add_rejects_blank_name(self, engine, memory_store):
        with pytest.raises(RegistryError):
            engine.add_custom_metal("  ", PLATINUM_URL)
        assert memory_store.get_strv(CUSTOM_METALS_KEY) == []

    async def test_remove_keeps_stale_price(self, engine, memory_store):
        metal = engine.add_custom_metal("Platinum", PLATINUM_URL)
        engine.set_visible(metal.id, True)
        await engine.drain()

        assert engine.remove_custom_metal(metal.id) is True
        assert engine.metal(metal.id) is None
        assert metal.id not in engine.visible_ids
        assert metal.id not in memory_store.get_strv(VISIBLE_METALS_KEY)
        assert engine.cache.read(metal.id) == "1012.40"

    async def test_remove_builtin_refused(self, engine):
        assert engine.remove_custom_metal("gold") is False
        assert engine.metal("gold") is not None

    async def test_remove_only_visible_metal_falls_back(self, engine):
        metal = engine.add_custom_metal("Platinum", PLATINUM_URL)
        engine.set_visible(metal.id, True)
        engine.set_visible("gold", False)
        engine.set_visible("silver", False)
        assert engine.visible_ids == (metal.id,)

        engine.remove_custom_metal(metal.id)
        assert engine.visible_ids == ("gold",)


class TestRefreshAndListeners:
    async def test_refresh_now_subset(self, engine, fake_source):
        scheduled = engine.refresh_now(["silver", "bogus"])
        await engine.drain()
        assert [m.id for m in scheduled] == ["silver"]
        assert fake_source.calls == [SILVER_URL]

    async def test_refresh_now_all(self, engine, fake_source):
        scheduled = engine.refresh_now()
        await engine.drain()
        assert [m.id for m in scheduled] == ["gold", "silver"]

    async def test_price_listener(self, engine):
        updates: list[tuple[str, str | None]] = []
        engine.add_price_listener(lambda mid: updates.append((mid, engine.price(mid))))
        engine.refresh_now(["gold"])
        await engine.drain()
        assert updates == [("gold", "2345.10")]

    async def test_removed_price_listener_not_called(self, engine):
        updates: list[str] = []
        engine.add_price_listener(updates.append)
        engine.remove_price_listener(updates.append)
        engine.refresh_now()
        await engine.drain()
        assert updates == []

    async def test_failing_listener_is_logged(self, engine, caplog):
        def broken(_: str) -> None:
            raise RuntimeError("render failed")

        engine.add_price_listener(broken)
        with caplog.at_level(logging.ERROR, logger="metal_ticker"):
            engine.refresh_now(["gold"])
            await engine.drain()
        assert engine.price("gold") == "2345.10"
        assert "Price listener failed" in caplog.text

    async def test_unrelated_key_ignored(self, engine, memory_store):
        version = engine.snapshot.version
        memory_store.set_strv("theme", ["dark"])
        assert engine.snapshot.version == version


class TestClose:
    async def test_close_clears_state(self, memory_store, fake_source, quiet_config):
        eng = MetalTickerEngine(memory_store, fake_source, quiet_config)
        await eng.start()
        eng.refresh_now()
        await eng.drain()
        await eng.close()

        assert len(eng.cache) == 0
        assert eng.metals == ()
        assert not eng.started
        assert not eng.orchestrator.running

    async def test_no_notifications_after_close(self, memory_store, fake_source, quiet_config):
        eng = MetalTickerEngine(memory_store, fake_source, quiet_config)
        await eng.start()
        await eng.close()
        memory_store.set_strv(
            CUSTOM_METALS_KEY, [custom_entry("custom-platinum", "Platinum", PLATINUM_URL)]
        )
        assert fake_source.calls == []
        assert eng.metals == ()
