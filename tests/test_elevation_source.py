"""Tests for chuk_mcp_viewshed.core.elevation_source."""

import asyncio
import threading

import pytest

from chuk_mcp_viewshed.core.elevation_source import ElevationSource, report_progress
from chuk_mcp_viewshed.core.geodesy import Coordinate
from chuk_mcp_viewshed.core.terrain_rgb import encode_terrain_rgb
from chuk_mcp_viewshed.core.tile_cache import MemoryByteStore, TileCache, TileKey
from chuk_mcp_viewshed.core.tile_math import pixel_offset

from conftest import SCENIC, FakeTileSource

ZOOM = 14


@pytest.fixture
def observer():
    return Coordinate(*SCENIC)


def _source(tile_source, max_concurrent=4, store=None):
    return ElevationSource(
        tile_source, TileCache(store), zoom=ZOOM, max_concurrent_fetches=max_concurrent
    )


# ===================================================================
# Point lookup
# ===================================================================


class TestElevations:
    """Tests for elevation() / elevations()."""

    async def test_flat_terrain(self, flat_source, observer):
        source = _source(flat_source)
        assert await source.elevation(observer) == pytest.approx(0.0, abs=1e-3)

    async def test_bilinear_on_ramp(self, ramp_grid, observer):
        fake = FakeTileSource(default=encode_terrain_rgb(ramp_grid))
        source = _source(fake)
        _, _, px, py = pixel_offset(observer.latitude, observer.longitude, ZOOM, 512)
        expected = 100.0 + px + 0.5 * py
        assert await source.elevation(observer) == pytest.approx(expected, abs=0.1)

    async def test_each_tile_fetched_once(self, flat_source, observer):
        source = _source(flat_source)
        coords = [observer.destination(d, b) for d in (50.0, 200.0) for b in range(0, 360, 30)]
        coords += [Coordinate(observer.latitude + 0.3, observer.longitude)]
        await source.elevations(coords)
        distinct = {source.key_for(c) for c in coords}
        assert len(flat_source.calls) == len(distinct)
        assert len(set(flat_source.calls)) == len(flat_source.calls)

    async def test_order_preserved(self, ramp_grid, observer):
        fake = FakeTileSource(default=encode_terrain_rgb(ramp_grid))
        source = _source(fake)
        coords = [observer.destination(float(d), 45.0) for d in range(0, 2000, 250)]
        together = await source.elevations(coords)
        one_by_one = [await source.elevation(c) for c in coords]
        assert together == pytest.approx(one_by_one)

    async def test_empty_input(self, flat_source):
        assert await _source(flat_source).elevations([]) == []

    async def test_second_lookup_served_from_cache(self, flat_source, observer):
        source = _source(flat_source)
        await source.elevation(observer)
        await source.elevation(observer)
        assert len(flat_source.calls) == 1

    async def test_persistent_tier_shared(self, flat_tile_bytes, observer):
        store = MemoryByteStore()
        first_fake = FakeTileSource(default=flat_tile_bytes)
        first = _source(first_fake, store=store)
        await first.elevation(observer)
        first.cache.flush()

        second_fake = FakeTileSource(default=None)
        second = _source(second_fake, store=store)
        assert await second.elevation(observer) == pytest.approx(0.0, abs=1e-3)
        assert second_fake.calls == []


class TestMissingTiles:
    """A tile that cannot be fetched or decoded yields None, never an exception."""

    async def test_fetch_failure(self, observer):
        source = _source(FakeTileSource(default=None))
        assert await source.elevation(observer) is None
        assert source.stats()["failures"] == 1

    async def test_decode_failure(self, observer):
        source = _source(FakeTileSource(default=b"not a png"))
        assert await source.elevation(observer) is None
        assert not source.cache.has_tile(source.key_for(observer))

    async def test_partial_failure(self, flat_tile_bytes, observer):
        fake = FakeTileSource(default=flat_tile_bytes)
        source = _source(fake)
        far = Coordinate(observer.latitude + 0.5, observer.longitude)
        source_key = source.key_for(far)
        failing = (source_key.zoom, source_key.x, source_key.y)
        fake.fail_keys.add(failing)

        values = await source.elevations([observer, far])
        assert values[0] == pytest.approx(0.0, abs=1e-3)
        assert values[1] is None

    async def test_failed_tile_retried_later(self, flat_tile_bytes, observer):
        fake = FakeTileSource(default=None)
        source = _source(fake)
        assert await source.elevation(observer) is None
        fake.default = flat_tile_bytes
        assert await source.elevation(observer) == pytest.approx(0.0, abs=1e-3)


class TestConcurrency:
    """In-flight de-duplication and the fetch gate."""

    async def test_concurrent_requests_share_fetch(self, flat_tile_bytes, observer):
        fake = FakeTileSource(default=flat_tile_bytes, delay=0.05)
        source = _source(fake)
        key = source.key_for(observer)
        grids = await asyncio.gather(*(source.get_grid(key) for _ in range(5)))
        assert len(fake.calls) == 1
        assert all(g is grids[0] for g in grids)

    async def test_gate_bounds_in_flight(self, flat_tile_bytes):
        fake = FakeTileSource(default=flat_tile_bytes, delay=0.02)
        source = _source(fake, max_concurrent=2)
        keys = [TileKey(ZOOM, 2700 + i, 5700) for i in range(8)]
        await asyncio.gather(*(source.get_grid(k) for k in keys))
        assert len(fake.calls) == 8
        assert fake.max_in_flight <= 2

    async def test_gate_of_one(self, flat_tile_bytes):
        fake = FakeTileSource(default=flat_tile_bytes, delay=0.01)
        source = _source(fake, max_concurrent=1)
        keys = [TileKey(ZOOM, 100, 100 + i) for i in range(4)]
        await asyncio.gather(*(source.get_grid(k) for k in keys))
        assert fake.max_in_flight == 1

    async def test_in_flight_cleared(self, flat_source, observer):
        source = _source(flat_source)
        await source.elevation(observer)
        assert source.stats()["in_flight"] == 0


# ===================================================================
# Regions
# ===================================================================


class TestRegion:
    """Tests for tiles_for_region() / download_region()."""

    def test_zero_radius_single_tile(self, flat_source, observer):
        source = _source(flat_source)
        assert source.tiles_for_region(observer, 0.0) == [
            (source.key_for(observer).x, source.key_for(observer).y)
        ]

    def test_rectangle_contains_edges(self, flat_source, observer):
        source = _source(flat_source)
        tiles = set(source.tiles_for_region(observer, 5000.0))
        for bearing in (0.0, 90.0, 180.0, 270.0):
            key = source.key_for(observer.destination(5000.0, bearing))
            assert (key.x, key.y) in tiles
        xs = sorted({x for x, _ in tiles})
        ys = sorted({y for _, y in tiles})
        assert len(tiles) == len(xs) * len(ys)

    async def test_download_single_tile(self, flat_source, observer):
        source = _source(flat_source)
        assert await source.download_region(observer, 0.0) is True
        assert await source.cached_tile_count(observer, 0.0) == (1, 1)

    async def test_progress_sequence(self, flat_source, observer):
        source = _source(flat_source)
        seen = []
        await source.download_region(observer, 3000.0, on_progress=lambda c, t: seen.append((c, t)))
        total = len(source.tiles_for_region(observer, 3000.0))
        assert seen[0] == (0, total)
        assert seen[-1] == (total, total)
        completed = [c for c, _ in seen]
        assert completed == sorted(completed)

    async def test_cached_tiles_count_as_completed(self, flat_source, observer):
        source = _source(flat_source)
        await source.download_region(observer, 0.0)
        flat_source.calls.clear()
        seen = []
        assert await source.download_region(observer, 0.0, on_progress=lambda c, t: seen.append((c, t))) is True
        assert flat_source.calls == []
        assert seen == [(0, 1), (1, 1)]

    async def test_cancel_before_start(self, flat_source, observer):
        source = _source(flat_source)
        cancel = asyncio.Event()
        cancel.set()
        assert await source.download_region(observer, 2000.0, cancel=cancel) is False
        assert flat_source.calls == []

    async def test_failed_tiles_still_complete(self, observer):
        source = _source(FakeTileSource(default=None))
        seen = []
        assert await source.download_region(observer, 0.0, on_progress=lambda c, t: seen.append((c, t))) is True
        assert seen[-1] == (1, 1)
        assert await source.cached_tile_count(observer, 0.0) == (0, 1)

    async def test_download_respects_gate(self, flat_tile_bytes, observer):
        fake = FakeTileSource(default=flat_tile_bytes, delay=0.01)
        source = _source(fake, max_concurrent=3)
        await source.download_region(observer, 4000.0)
        assert fake.max_in_flight <= 3

    async def test_cache_lookups_run_off_event_loop(self, flat_source, observer):
        loop_thread = threading.get_ident()
        seen = []

        class RecordingStore(MemoryByteStore):
            def exists(self, key):
                seen.append(threading.get_ident())
                return super().exists(key)

        source = _source(flat_source, store=RecordingStore())
        await source.cached_tile_count(observer, 2000.0)
        await source.download_region(observer, 2000.0)
        assert seen
        assert loop_thread not in seen


# ===================================================================
# Progress helper
# ===================================================================


class TestReportProgress:
    """Tests for report_progress()."""

    async def test_none_channel(self):
        await report_progress(None, 1, 2)

    async def test_sync_callable(self):
        seen = []
        await report_progress(lambda *v: seen.append(v), 1, 2)
        assert seen == [(1, 2)]

    async def test_async_callable(self):
        seen = []

        async def callback(value):
            seen.append(value)

        await report_progress(callback, 0.5)
        assert seen == [0.5]

    async def test_queue_single_value(self):
        queue = asyncio.Queue()
        await report_progress(queue, 0.25)
        assert queue.get_nowait() == 0.25

    async def test_queue_tuple(self):
        queue = asyncio.Queue()
        await report_progress(queue, 3, 4)
        assert queue.get_nowait() == (3, 4)
