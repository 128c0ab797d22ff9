"""Tests for the stale-while-revalidate directory cache.

Tests coverage for:
- src/termdeck/cache/resource_cache.py
"""

from __future__ import annotations

import asyncio
import gc
import itertools

import pytest

from termdeck.cache.resource_cache import ResourceCache
from termdeck.config.schema import CacheConfig
from termdeck.errors import ProviderError
from termdeck.files.types import ResourceDescriptor

from tests.utils import FakeFileProvider, make_entry


def names(entries: list[ResourceDescriptor]) -> list[str]:
    return [entry.name for entry in entries]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def provider():
    return FakeFileProvider(
        {
            "/root": [
                make_entry("a.txt"),
                make_entry("c.txt"),
                make_entry("b", is_dir=True),
            ],
        }
    )


@pytest.fixture
def renders():
    return []


@pytest.fixture
async def cache(provider, renders):
    ticks = itertools.count(1)
    cache = ResourceCache(
        provider,
        listener=lambda data, path: renders.append((path, data)),
        preload_enabled=False,
        clock=lambda: float(next(ticks)),
    )
    yield cache
    cache.cancel_pending()


# =============================================================================
# Loading
# =============================================================================


class TestGetOrLoad:
    """Tests for cache misses, hits and in-flight de-duplication."""

    async def test_miss_fetches_and_caches(self, cache, provider):
        data = await cache.get_or_load("s1", "/root")

        assert names(data) == ["b", "a.txt", "c.txt"]
        assert cache.is_cached("s1", "/root")
        assert provider.calls_for("/root") == 1

    async def test_concurrent_callers_share_one_fetch(self, cache, provider):
        first, second = await asyncio.gather(
            cache.get_or_load("s1", "/root"),
            cache.get_or_load("s1", "/root"),
        )

        assert provider.calls_for("/root") == 1
        assert first == second
        assert first is not second

    async def test_sessions_are_cached_separately(self, cache, provider):
        await cache.get_or_load("s1", "/root")
        await cache.get_or_load("s2", "/root")

        assert provider.calls_for("/root") == 2
        assert cache.is_cached("s1", "/root")
        assert cache.is_cached("s2", "/root")

    async def test_hit_returns_cached_and_revalidates(self, cache, provider):
        await cache.get_or_load("s1", "/root")
        provider.listings["/root"] = [make_entry("new.txt")]

        data = await cache.get_or_load("s1", "/root")

        assert names(data) == ["b", "a.txt", "c.txt"]
        assert cache.is_loading("s1", "/root")
        await cache.wait_idle()
        assert names(cache.peek("s1", "/root").data) == ["new.txt"]
        assert provider.calls_for("/root") == 2

    async def test_hit_does_not_stack_revalidations(self, cache, provider):
        await cache.get_or_load("s1", "/root")

        await cache.get_or_load("s1", "/root")
        await cache.get_or_load("s1", "/root")
        await cache.wait_idle()

        assert provider.calls_for("/root") == 2

    async def test_returned_list_is_a_copy(self, cache):
        data = await cache.get_or_load("s1", "/root")
        data.clear()

        assert len(cache.peek("s1", "/root").data) == 3

    async def test_failed_first_fetch_caches_nothing(self, cache, provider):
        provider.errors["/root"] = ProviderError("Permission denied", "/root")

        with pytest.raises(ProviderError, match="Permission denied"):
            await cache.get_or_load("s1", "/root")

        assert not cache.is_cached("s1", "/root")
        assert not cache.is_loading("s1", "/root")

    async def test_concurrent_callers_share_failure(self, cache, provider):
        provider.errors["/root"] = ProviderError("boom", "/root")

        first, second = await asyncio.gather(
            cache.get_or_load("s1", "/root"),
            cache.get_or_load("s1", "/root"),
            return_exceptions=True,
        )

        assert isinstance(first, ProviderError)
        assert first is second
        assert provider.calls_for("/root") == 1

    async def test_refresh_waits_for_in_flight_fetch(self, cache, provider):
        await cache.get_or_load("s1", "/root")
        provider.gate = asyncio.Event()
        await cache.get_or_load("s1", "/root")
        await asyncio.sleep(0)
        provider.listings["/root"] = [make_entry("new.txt")]

        refresh = asyncio.create_task(cache.refresh("s1", "/root"))
        await asyncio.sleep(0)
        provider.gate.set()
        data = await refresh

        assert names(data) == ["new.txt"]
        assert names(cache.peek("s1", "/root").data) == ["new.txt"]
        assert provider.calls_for("/root") == 3

    async def test_refresh_discards_and_refetches(self, cache, provider):
        await cache.get_or_load("s1", "/root")
        provider.listings["/root"] = [make_entry("only.txt")]

        data = await cache.refresh("s1", "/root")

        assert names(data) == ["only.txt"]
        assert provider.calls_for("/root") == 2

    async def test_show_hidden_getter_consulted_per_fetch(self, provider):
        provider.listings["/root"].append(make_entry(".bashrc"))
        flag = {"show": False}
        cache = ResourceCache(provider, show_hidden=lambda: flag["show"], preload_enabled=False)

        hidden_off = await cache.get_or_load("s1", "/root")
        flag["show"] = True
        hidden_on = await cache.refresh("s1", "/root")

        assert ".bashrc" not in names(hidden_off)
        assert ".bashrc" in names(hidden_on)
        assert [call[2] for call in provider.calls] == [False, True]

    async def test_get_stats(self, cache):
        await cache.get_or_load("s1", "/root")

        assert cache.get_stats() == {
            "cache_size": 1,
            "loading_count": 0,
            "preload_queue_length": 0,
            "preloading": False,
        }

    def test_from_config(self, provider):
        config = CacheConfig(preload_limit=2, preload_enabled=False, show_hidden=True)
        cache = ResourceCache.from_config(provider, config)

        assert cache.preloader.limit == 2
        assert cache.preloader.enabled is False
        assert cache.show_hidden is True


# =============================================================================
# Revalidation
# =============================================================================


class TestRevalidation:
    """Tests for background revalidation and render suppression."""

    async def test_unchanged_listing_keeps_reference_and_skips_render(self, cache, renders):
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")
        entry = cache.peek("s1", "/root")
        data_before, timestamp_before = entry.data, entry.timestamp

        await cache.revalidate_in_background("s1", "/root")

        entry = cache.peek("s1", "/root")
        assert entry.data is data_before
        assert entry.timestamp > timestamp_before
        assert renders == []

    async def test_size_only_change_is_not_detected(self, cache, provider, renders):
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")
        provider.listings["/root"] = [
            make_entry("a.txt", size=999),
            make_entry("c.txt"),
            make_entry("b", is_dir=True),
        ]

        await cache.revalidate_in_background("s1", "/root")

        assert renders == []
        assert cache.peek("s1", "/root").data[1].size == 0

    async def test_changed_listing_renders_once_when_viewed(self, cache, provider, renders):
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")
        provider.listings["/root"] = [make_entry("a.txt", mtime=60)]

        await cache.revalidate_in_background("s1", "/root")

        assert len(renders) == 1
        path, data = renders[0]
        assert path == "/root"
        assert names(data) == ["a.txt"]
        assert names(cache.peek("s1", "/root").data) == ["a.txt"]

    async def test_changed_listing_not_rendered_when_viewing_other_path(
        self, cache, provider, renders
    ):
        await cache.get_or_load("s1", "/root")
        cache.set_current_path("s1", "/srv")
        provider.listings["/root"] = [make_entry("z.txt")]

        await cache.revalidate_in_background("s1", "/root")

        assert renders == []
        assert names(cache.peek("s1", "/root").data) == ["z.txt"]

    async def test_changed_listing_not_rendered_for_other_session(
        self, cache, provider, renders
    ):
        await cache.get_or_load("s1", "/root")
        cache.set_current_path("s2", "/root")
        provider.listings["/root"] = [make_entry("z.txt")]

        await cache.revalidate_in_background("s1", "/root")

        assert renders == []

    async def test_failure_keeps_cached_listing(self, cache, provider, caplog):
        await cache.get_or_load("s1", "/root")
        provider.errors["/root"] = ProviderError("connection lost", "/root")

        await cache.revalidate_in_background("s1", "/root")

        assert names(cache.peek("s1", "/root").data) == ["b", "a.txt", "c.txt"]
        assert "Background refresh failed" in caplog.text

    async def test_listener_receives_copy(self, cache, provider):
        received = []

        def listener(data, path):
            received.append(data)
            data.clear()

        cache.set_listener(listener)
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")
        provider.listings["/root"] = [make_entry("z.txt")]

        await cache.revalidate_in_background("s1", "/root")

        assert len(received) == 1
        assert names(cache.peek("s1", "/root").data) == ["z.txt"]

    async def test_failing_listener_is_logged(self, cache, provider, caplog):
        def listener(data, path):
            raise RuntimeError("view gone")

        cache.set_listener(listener)
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")
        provider.listings["/root"] = [make_entry("z.txt")]

        await cache.revalidate_in_background("s1", "/root")

        assert "Render listener failed" in caplog.text

    async def test_revalidation_requested_mid_fetch_runs_again(self, cache, provider, renders):
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")
        provider.gate = asyncio.Event()
        cache.schedule_revalidation("s1", "/root")
        await asyncio.sleep(0)
        provider.listings["/root"] = [make_entry("z.txt")]

        assert cache.schedule_revalidation("s1", "/root") is None
        provider.gate.set()
        await cache.wait_idle()

        assert names(cache.peek("s1", "/root").data) == ["z.txt"]
        assert [(path, names(data)) for path, data in renders] == [("/root", ["z.txt"])]
        assert provider.calls_for("/root") == 3

    async def test_bound_method_listener_held_weakly(self, cache, provider):
        class View:
            calls = 0

            def render(self, data, path):
                View.calls += 1

        view = View()
        cache.set_listener(view.render)
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")
        del view
        gc.collect()
        provider.listings["/root"] = [make_entry("z.txt")]

        await cache.revalidate_in_background("s1", "/root")

        assert View.calls == 0
        assert names(cache.peek("s1", "/root").data) == ["z.txt"]


# =============================================================================
# Optimistic mutation and rollback
# =============================================================================


class TestOptimisticMutation:
    """Tests for optimistic create/delete/rename and rollback."""

    async def test_create_inserts_in_sorted_position(self, cache):
        await cache.get_or_load("s1", "/root")

        assert cache.optimistic_create("s1", "/root", make_entry("bb.txt"))
        assert cache.optimistic_create("s1", "/root", make_entry("a", is_dir=True))

        assert names(cache.peek("s1", "/root").data) == ["a", "b", "a.txt", "bb.txt", "c.txt"]

    async def test_create_replaces_same_name(self, cache):
        await cache.get_or_load("s1", "/root")

        cache.optimistic_create("s1", "/root", make_entry("a.txt", size=42))

        data = cache.peek("s1", "/root").data
        assert names(data) == ["b", "a.txt", "c.txt"]
        assert data[1].size == 42

    async def test_create_on_uncached_parent_is_noop(self, cache):
        assert cache.optimistic_create("s1", "/nowhere", make_entry("x", "/nowhere")) is False
        assert not cache.is_cached("s1", "/nowhere")

    async def test_create_renders_when_viewed(self, cache, renders):
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")

        cache.optimistic_create("s1", "/root", make_entry("new.txt"))

        assert len(renders) == 1
        assert "new.txt" in names(renders[0][1])

    async def test_delete_removes_entry(self, cache):
        await cache.get_or_load("s1", "/root")

        assert cache.optimistic_delete("s1", "/root", "/root/a.txt")
        assert cache.optimistic_delete("s1", "/root", "/root/a.txt") is False

        assert names(cache.peek("s1", "/root").data) == ["b", "c.txt"]

    async def test_rename_keeps_position(self, cache):
        await cache.get_or_load("s1", "/root")

        assert cache.optimistic_rename("s1", "/root", "/root/a.txt", "/root/z.txt", "z.txt")

        data = cache.peek("s1", "/root").data
        assert names(data) == ["b", "z.txt", "c.txt"]
        assert data[1].path == "/root/z.txt"

    async def test_rename_missing_entry(self, cache):
        await cache.get_or_load("s1", "/root")
        assert cache.optimistic_rename("s1", "/root", "/root/nope", "/root/x", "x") is False

    async def test_mutation_does_not_touch_previous_copies(self, cache):
        before = await cache.get_or_load("s1", "/root")
        entry_data = cache.peek("s1", "/root").data

        cache.optimistic_delete("s1", "/root", "/root/a.txt")

        assert names(before) == ["b", "a.txt", "c.txt"]
        assert names(entry_data) == ["b", "a.txt", "c.txt"]

    async def test_rollback_restores_server_listing_when_viewed(self, cache, renders):
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")
        cache.optimistic_create("s1", "/root", make_entry("ghost.txt"))

        data = await cache.rollback("s1", "/root")

        assert names(data) == ["b", "a.txt", "c.txt"]
        assert names(cache.peek("s1", "/root").data) == ["b", "a.txt", "c.txt"]
        assert names(renders[-1][1]) == ["b", "a.txt", "c.txt"]

    async def test_rollback_when_not_viewed_just_drops(self, cache, provider):
        await cache.get_or_load("s1", "/root")
        cache.optimistic_delete("s1", "/root", "/root/a.txt")

        assert await cache.rollback("s1", "/root") is None
        assert not cache.is_cached("s1", "/root")
        assert provider.calls_for("/root") == 1


# =============================================================================
# Clearing
# =============================================================================


class TestClearing:
    """Tests for clear_all and clear_for_session."""

    async def test_clear_for_session(self, cache):
        cache.set_current_path("s1", "/root")
        await cache.get_or_load("s1", "/root")
        await cache.get_or_load("s2", "/root")

        cache.clear_for_session("s1")

        assert not cache.is_cached("s1", "/root")
        assert cache.is_cached("s2", "/root")
        assert cache.current_path is None

    async def test_clear_all(self, cache):
        await cache.get_or_load("s1", "/root")
        await cache.get_or_load("s2", "/root")

        cache.clear_all()

        assert cache.get_stats()["cache_size"] == 0

    async def test_in_flight_result_dropped_after_clear(self, cache, provider):
        provider.gate = asyncio.Event()
        load = asyncio.create_task(cache.get_or_load("s1", "/root"))
        await asyncio.sleep(0)
        assert cache.is_loading("s1", "/root")

        cache.clear_for_session("s1")
        provider.gate.set()
        data = await load

        assert names(data) == ["b", "a.txt", "c.txt"]
        assert not cache.is_cached("s1", "/root")
