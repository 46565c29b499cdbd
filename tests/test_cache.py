"""
Tests for JsonHomeCache

Coverage includes:
- Unpopulated / Populated / Stopped states
- Stale-but-available behaviour after failed fetches
- Kind mismatch lookups
- Scheduling through an injected scheduler
- Single fetch in flight
- Statistics and event emission
"""
import asyncio
import time

import pytest

from json_home_client.cache import JsonHomeCache, create_json_home_cache
from json_home_client.config import JsonHomeCacheConfig
from json_home_client.errors import ConfigurationError
from json_home_client.scheduler import AsyncioScheduler
from json_home_client.types import (
    DirectLinkRelationType,
    JsonHomeCacheEvent,
    TemplateLinkRelationType,
)

from conftest import ManualScheduler, ScriptedFetcher, fetch_error


class TestConstructor:
    """Tests for JsonHomeCache construction."""

    def test_defaults_from_settings(self, host, settings):
        cache = JsonHomeCache(host, ScriptedFetcher({}), settings=settings)
        assert cache.config.update_interval_seconds == 60.0
        assert cache.config.start_delay_seconds == 0.0

    def test_explicit_config(self, host, settings):
        config = JsonHomeCacheConfig(update_interval_seconds=5.0, start_delay_seconds=1.0)
        cache = JsonHomeCache(host, ScriptedFetcher({}), config=config, settings=settings)
        assert cache.config.update_interval_seconds == 5.0
        assert cache.config.start_delay_seconds == 1.0

    def test_rejects_zero_interval(self, host, settings):
        with pytest.raises(ConfigurationError):
            JsonHomeCache(
                host,
                ScriptedFetcher({}),
                config=JsonHomeCacheConfig(update_interval_seconds=0.0),
                settings=settings,
            )

    def test_starts_unpopulated(self, host, settings):
        cache = JsonHomeCache(host, ScriptedFetcher({}), settings=settings)
        assert not cache.is_populated
        assert cache.snapshot is None
        assert cache.lookup_direct("profile") is None
        assert cache.lookup_template("search") is None

    def test_factory(self, host):
        cache = create_json_home_cache(host, ScriptedFetcher({}))
        assert isinstance(cache, JsonHomeCache)


class TestRefresh:
    """Tests for refresh() and lookups."""

    @pytest.mark.asyncio
    async def test_successful_refresh_populates(self, host, document, settings):
        cache = JsonHomeCache(host, ScriptedFetcher(document), settings=settings)

        assert await cache.refresh() is True

        assert cache.is_populated
        assert cache.lookup_direct("profile") == "/api/profile"
        assert cache.lookup_template("search") == "/search?q={query}"

    @pytest.mark.asyncio
    async def test_unknown_relation(self, host, document, settings):
        cache = JsonHomeCache(host, ScriptedFetcher(document), settings=settings)
        await cache.refresh()

        assert cache.lookup_direct("unknown") is None
        assert cache.lookup_template("unknown") is None

    @pytest.mark.asyncio
    async def test_kind_mismatch_is_a_miss(self, host, document, settings):
        cache = JsonHomeCache(host, ScriptedFetcher(document), settings=settings)
        await cache.refresh()

        assert cache.lookup_direct("search") is None
        assert cache.lookup_template("profile") is None

    @pytest.mark.asyncio
    async def test_get_url_dispatches_on_kind(self, host, document, settings):
        cache = JsonHomeCache(host, ScriptedFetcher(document), settings=settings)
        await cache.refresh()

        assert cache.get_url(DirectLinkRelationType("profile")) == "/api/profile"
        assert cache.get_url(TemplateLinkRelationType("search")) == "/search?q={query}"
        assert cache.get_url(TemplateLinkRelationType("profile")) is None

    def test_get_url_rejects_other_types(self, host, settings):
        cache = JsonHomeCache(host, ScriptedFetcher({}), settings=settings)
        with pytest.raises(TypeError):
            cache.get_url("profile")  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_failure_before_first_success_stays_unpopulated(self, host, settings):
        cache = JsonHomeCache(host, ScriptedFetcher(fetch_error()), settings=settings)

        assert await cache.refresh() is False

        assert not cache.is_populated
        assert cache.lookup_direct("profile") is None

    @pytest.mark.asyncio
    async def test_failure_after_success_serves_last_snapshot(self, host, document, settings):
        fetcher = ScriptedFetcher(document, fetch_error(status_code=500))
        cache = JsonHomeCache(host, fetcher, settings=settings)

        await cache.refresh()
        snapshot = cache.snapshot
        assert await cache.refresh() is False

        assert cache.snapshot is snapshot
        assert cache.lookup_direct("profile") == "/api/profile"
        assert cache.lookup_template("search") == "/search?q={query}"

    @pytest.mark.asyncio
    async def test_unexpected_fetcher_errors_are_contained(self, host, document, settings):
        cache = JsonHomeCache(host, ScriptedFetcher(document, RuntimeError("bug")), settings=settings)

        await cache.refresh()
        assert await cache.refresh() is False
        assert cache.lookup_direct("profile") == "/api/profile"

    @pytest.mark.asyncio
    async def test_new_snapshot_replaces_old_entirely(self, host, settings):
        first = {"profile": {"href": "/v1/profile"}, "orders": {"href": "/v1/orders"}}
        second = {"profile": {"href": "/v2/profile"}}
        cache = JsonHomeCache(host, ScriptedFetcher(first, second), settings=settings)

        await cache.refresh()
        assert cache.lookup_direct("orders") == "/v1/orders"

        await cache.refresh()
        assert cache.lookup_direct("profile") == "/v2/profile"
        assert cache.lookup_direct("orders") is None

    @pytest.mark.asyncio
    async def test_fetcher_called_once_per_attempt(self, host, document, settings):
        fetcher = ScriptedFetcher(document)
        cache = JsonHomeCache(host, fetcher, settings=settings)

        await cache.refresh()
        await cache.refresh()

        assert fetcher.calls == [host, host]

    @pytest.mark.asyncio
    async def test_only_one_fetch_in_flight(self, host, document, settings):
        fetcher = ScriptedFetcher(document, delay_seconds=0.02)
        cache = JsonHomeCache(host, fetcher, settings=settings)

        results = await asyncio.gather(*(cache.refresh() for _ in range(5)))

        assert all(results)
        assert fetcher.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_readers_see_whole_snapshots(self, host, settings):
        """Concurrent readers never observe a mix of two documents"""
        documents = [
            {"a": {"href": f"/a/{i}"}, "b": {"href": f"/b/{i}"}} for i in range(20)
        ]
        fetcher = ScriptedFetcher(*documents)
        cache = JsonHomeCache(host, fetcher, settings=settings)
        await cache.refresh()

        mismatches = 0

        async def reader():
            nonlocal mismatches
            for _ in range(50):
                snapshot = cache.snapshot
                a, b = snapshot.get("a").href, snapshot.get("b").href
                if a.split("/")[-1] != b.split("/")[-1]:
                    mismatches += 1
                await asyncio.sleep(0)

        async def writer():
            for _ in range(19):
                await cache.refresh()
                await asyncio.sleep(0)

        await asyncio.gather(reader(), reader(), writer())
        assert mismatches == 0


class TestScheduling:
    """Tests for start()/stop() with an injected scheduler."""

    def test_start_schedules_refresh(self, host, settings, manual_scheduler):
        config = JsonHomeCacheConfig(update_interval_seconds=30.0, start_delay_seconds=2.0)
        cache = JsonHomeCache(host, ScriptedFetcher({}), manual_scheduler, config, settings)

        cache.start()

        assert len(manual_scheduler.scheduled) == 1
        delay, interval, task, _ = manual_scheduler.scheduled[0]
        assert (delay, interval) == (2.0, 30.0)
        assert task == cache.refresh
        assert cache.is_running

    def test_start_is_idempotent(self, host, settings, manual_scheduler):
        cache = JsonHomeCache(host, ScriptedFetcher({}), manual_scheduler, settings=settings)
        cache.start()
        cache.start()
        assert len(manual_scheduler.scheduled) == 1

    def test_start_without_scheduler(self, host, settings):
        cache = JsonHomeCache(host, ScriptedFetcher({}), settings=settings)
        with pytest.raises(ConfigurationError):
            cache.start()

    @pytest.mark.asyncio
    async def test_scheduled_task_populates(self, host, document, settings, manual_scheduler):
        cache = JsonHomeCache(host, ScriptedFetcher(document), manual_scheduler, settings=settings)
        cache.start()

        await manual_scheduler.run_all()

        assert cache.lookup_direct("profile") == "/api/profile"

    def test_stop_cancels_handle(self, host, settings, manual_scheduler):
        cache = JsonHomeCache(host, ScriptedFetcher({}), manual_scheduler, settings=settings)
        cache.start()
        cache.stop()
        cache.stop()

        handle = manual_scheduler.scheduled[0][3]
        assert handle.cancelled()
        assert cache.is_stopped
        assert not cache.is_running

    def test_start_after_stop(self, host, settings, manual_scheduler):
        cache = JsonHomeCache(host, ScriptedFetcher({}), manual_scheduler, settings=settings)
        cache.stop()
        with pytest.raises(RuntimeError):
            cache.start()

    @pytest.mark.asyncio
    async def test_stopped_cache_keeps_last_snapshot(self, host, document, settings):
        fetcher = ScriptedFetcher(document, {})
        cache = JsonHomeCache(host, fetcher, settings=settings)
        await cache.refresh()

        cache.stop()

        assert await cache.refresh() is False
        assert len(fetcher.calls) == 1
        assert cache.lookup_direct("profile") == "/api/profile"

    @pytest.mark.asyncio
    async def test_result_landing_after_stop_is_discarded(self, host, document, settings):
        fetcher = ScriptedFetcher(document, delay_seconds=0.05)
        cache = JsonHomeCache(host, fetcher, settings=settings)

        refresh = asyncio.create_task(cache.refresh())
        await asyncio.sleep(0.01)
        cache.stop()

        assert await refresh is False
        assert not cache.is_populated

    @pytest.mark.asyncio
    async def test_first_fetch_immediate_then_after_interval(self, host, settings):
        """start_delay=0: first fetch on start; second no earlier than the interval after it completes"""
        fetch_times = []

        class TimedFetcher(ScriptedFetcher):
            async def fetch(self, h):
                result = await super().fetch(h)
                fetch_times.append(time.monotonic())
                return result

        config = JsonHomeCacheConfig(update_interval_seconds=0.1, start_delay_seconds=0.0)
        cache = JsonHomeCache(host, TimedFetcher({"p": {"href": "/p"}}), AsyncioScheduler(), config, settings)

        started_at = time.monotonic()
        cache.start()
        await asyncio.sleep(0.25)
        await cache.close()

        assert len(fetch_times) >= 2
        assert fetch_times[0] - started_at < 0.05
        assert fetch_times[1] - fetch_times[0] >= 0.095

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_fetch(self, host, document, settings):
        fetcher = ScriptedFetcher(document, delay_seconds=1.0)
        cache = JsonHomeCache(host, fetcher, AsyncioScheduler(), settings=settings)

        cache.start()
        await asyncio.sleep(0.02)
        await asyncio.wait_for(cache.close(), timeout=0.5)

        assert fetcher.in_flight == 0
        assert not cache.is_populated


class TestStatsAndEvents:
    """Tests for get_stats() and event listeners."""

    @pytest.mark.asyncio
    async def test_stats(self, host, document, settings):
        cache = JsonHomeCache(host, ScriptedFetcher(document, fetch_error("down")), settings=settings)

        await cache.refresh()
        await cache.refresh()
        stats = cache.get_stats()

        assert stats.url == host.url
        assert stats.populated is True
        assert stats.fetch_attempts == 2
        assert stats.fetch_successes == 1
        assert stats.fetch_failures == 1
        assert stats.relation_count == 2
        assert stats.last_error == "down"
        assert stats.last_success_at is not None
        assert stats.last_failure_at is not None

    @pytest.mark.asyncio
    async def test_events(self, host, document, settings):
        events: list[JsonHomeCacheEvent] = []
        cache = JsonHomeCache(host, ScriptedFetcher(document, fetch_error()), settings=settings)
        cache.on(events.append)

        await cache.refresh()
        await cache.refresh()
        cache.stop()

        assert [e.type for e in events] == [
            "fetch:start",
            "fetch:success",
            "fetch:start",
            "fetch:error",
            "cache:stopped",
        ]
        assert events[1].data["relation_count"] == 2
        assert events[3].data["populated"] is True

    @pytest.mark.asyncio
    async def test_unsubscribe(self, host, document, settings):
        events = []
        cache = JsonHomeCache(host, ScriptedFetcher(document), settings=settings)
        unsubscribe = cache.on(events.append)
        unsubscribe()

        await cache.refresh()
        assert events == []

    @pytest.mark.asyncio
    async def test_listener_errors_are_ignored(self, host, document, settings):
        def broken(event):
            raise ValueError("listener bug")

        cache = JsonHomeCache(host, ScriptedFetcher(document), settings=settings)
        cache.on(broken)

        assert await cache.refresh() is True
