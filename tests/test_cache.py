"""
Snapshot Cache Tests
"""
import asyncio
from datetime import datetime, timedelta

import pytest

from contract_sla.core.cache import SnapshotCache
from tests.conftest import FakeClock


class CountingLoader:
    """Loader returning a configurable mapping and counting calls."""

    def __init__(self, entries):
        self.entries = dict(entries)
        self.calls = 0
        self.error = None

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return dict(self.entries)


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 14, 12, 0))


class TestSnapshotCache:
    """Tests for snapshot refresh and expiry."""

    @pytest.mark.asyncio
    async def test_lazy_first_load(self, clock):
        loader = CountingLoader({"a": 1})
        cache = SnapshotCache("test", loader, clock=clock)

        assert cache.snapshot is None
        assert cache.get("a") is None
        assert await cache.get_or_refresh("a") == 1
        assert await cache.get_or_refresh("b") is None
        assert loader.calls == 1

    @pytest.mark.asyncio
    async def test_without_ttl_never_expires(self, clock):
        loader = CountingLoader({"a": 1})
        cache = SnapshotCache("test", loader, clock=clock)
        await cache.refresh()

        clock.advance(days=365)
        assert cache.is_stale() is False
        await cache.get_or_refresh("a")
        assert loader.calls == 1

    @pytest.mark.asyncio
    async def test_ttl_expiry_reloads(self, clock):
        loader = CountingLoader({"a": 1})
        cache = SnapshotCache("test", loader, ttl=timedelta(minutes=10), clock=clock)
        await cache.refresh()

        loader.entries = {"a": 2}
        clock.advance(minutes=10)
        assert await cache.get_or_refresh("a") == 1

        clock.advance(seconds=1)
        assert cache.is_stale() is True
        assert await cache.get_or_refresh("a") == 2
        assert loader.calls == 2

    @pytest.mark.asyncio
    async def test_ttl_override(self, clock):
        cache = SnapshotCache("test", CountingLoader({}), clock=clock)
        await cache.refresh()
        clock.advance(minutes=5)
        assert cache.is_stale(timedelta(minutes=1)) is True
        assert cache.is_stale() is False

    @pytest.mark.asyncio
    async def test_refresh_replaces_whole_snapshot(self, clock):
        loader = CountingLoader({"a": 1, "b": 2})
        cache = SnapshotCache("test", loader, clock=clock)
        old = await cache.refresh()

        loader.entries = {"c": 3}
        new = await cache.refresh()

        assert new is cache.snapshot
        assert dict(old.entries) == {"a": 1, "b": 2}
        assert dict(new.entries) == {"c": 3}
        assert cache.get("a") is None

    @pytest.mark.asyncio
    async def test_snapshot_entries_are_read_only(self, clock):
        cache = SnapshotCache("test", CountingLoader({"a": 1}), clock=clock)
        snapshot = await cache.refresh()
        with pytest.raises(TypeError):
            snapshot.entries["a"] = 2

    @pytest.mark.asyncio
    async def test_readers_see_old_snapshot_during_refresh(self, clock):
        release = asyncio.Event()
        entries = {"a": 1, "b": 1}

        async def slow_loader():
            await release.wait()
            return dict(entries)

        cache = SnapshotCache("test", slow_loader, clock=clock)
        release.set()
        await cache.refresh()

        release.clear()
        entries = {"a": 2, "b": 2}
        pending = asyncio.create_task(cache.refresh())
        await asyncio.sleep(0)

        assert (cache.get("a"), cache.get("b")) == (1, 1)

        release.set()
        await pending
        assert (cache.get("a"), cache.get("b")) == (2, 2)

    @pytest.mark.asyncio
    async def test_loader_error_keeps_previous_snapshot(self, clock):
        loader = CountingLoader({"a": 1})
        cache = SnapshotCache("test", loader, ttl=timedelta(minutes=10), clock=clock)
        previous = await cache.refresh()

        loader.error = RuntimeError("backing store down")
        clock.advance(minutes=11)
        with pytest.raises(RuntimeError):
            await cache.refresh()

        assert cache.snapshot is previous
        assert cache.get("a") == 1

    @pytest.mark.asyncio
    async def test_clear_and_stats(self, clock):
        cache = SnapshotCache("groups", CountingLoader({"a": 1}), ttl=timedelta(minutes=10), clock=clock)
        assert cache.stats() == {"name": "groups", "entries": 0, "loaded_at": None, "ttl_seconds": 600.0}

        await cache.refresh()
        assert cache.stats()["entries"] == 1
        assert cache.stats()["loaded_at"] == "2025-03-14T12:00:00"

        cache.clear()
        assert cache.snapshot is None
        assert cache.is_stale() is True
