"""
Elevation source: coordinate to elevation lookup over cached Terrain-RGB tiles.

Resolves coordinates to tiles, serves grids from the TileCache and falls
back to fetch + decode on a miss. Network fetches pass through a counting
gate so at most max_concurrent_fetches downloads are in flight. A missing
tile never raises: the affected samples come back as None.
"""

import asyncio
import inspect
import logging
from collections.abc import Sequence
from typing import Any

import httpx
import numpy as np

from ..constants import (
    DEFAULT_MAX_CONCURRENT_FETCHES,
    DEFAULT_TILE_ZOOM,
    REGION_EDGE_STEP_DEG,
    TILE_SIZE_PX,
)
from .errors import TileFetchError
from .geodesy import Coordinate
from .terrain_rgb import ElevationGrid, interpolated_elevations
from .tile_cache import TileCache, TileKey
from .tile_math import pixel_offset, tile_index
from .tile_source import TileSource

logger = logging.getLogger(__name__)

ProgressChannel = Any  # callable(*values) or asyncio.Queue


async def report_progress(channel: ProgressChannel | None, *values: Any) -> None:
    """Deliver a progress update to a callback (sync or async) or an asyncio.Queue."""
    if channel is None:
        return
    if isinstance(channel, asyncio.Queue):
        channel.put_nowait(values if len(values) > 1 else values[0])
        return
    result = channel(*values)
    if inspect.isawaitable(result):
        await result


class ElevationSource:
    """Tile-backed elevation lookup with bounded-concurrency downloads."""

    def __init__(
        self,
        tile_source: TileSource,
        cache: TileCache,
        zoom: int = DEFAULT_TILE_ZOOM,
        max_concurrent_fetches: int = DEFAULT_MAX_CONCURRENT_FETCHES,
        tile_size: int = TILE_SIZE_PX,
    ) -> None:
        self.tile_source = tile_source
        self.cache = cache
        self.zoom = zoom
        self.tile_size = tile_size
        self.max_concurrent_fetches = max(1, max_concurrent_fetches)

        self._gate = asyncio.Semaphore(self.max_concurrent_fetches)
        self._inflight: dict[TileKey, asyncio.Future] = {}
        self._fetches = 0
        self._failures = 0

    # ------------------------------------------------------------------
    # Point lookup
    # ------------------------------------------------------------------

    def key_for(self, coord: Coordinate) -> TileKey:
        x, y = tile_index(coord.latitude, coord.longitude, self.zoom)
        return TileKey(self.zoom, x, y)

    async def elevation(self, coord: Coordinate) -> float | None:
        """Interpolated elevation at a coordinate, or None if its tile is unavailable."""
        return (await self.elevations([coord]))[0]

    async def elevations(self, coords: Sequence[Coordinate]) -> list[float | None]:
        """Elevations for many coordinates, in input order.

        Coordinates are grouped by tile so each distinct tile is loaded once;
        the distinct tiles are loaded concurrently.
        """
        results: list[float | None] = [None] * len(coords)
        if not coords:
            return results

        groups: dict[TileKey, tuple[list[int], list[float], list[float]]] = {}
        for i, coord in enumerate(coords):
            tx, ty, px, py = pixel_offset(
                coord.latitude, coord.longitude, self.zoom, self.tile_size
            )
            idx, xs, ys = groups.setdefault(TileKey(self.zoom, tx, ty), ([], [], []))
            idx.append(i)
            xs.append(px)
            ys.append(py)

        keys = list(groups)
        grids = await asyncio.gather(*(self.get_grid(key) for key in keys))

        for key, grid in zip(keys, grids):
            if grid is None:
                continue
            idx, xs, ys = groups[key]
            values = interpolated_elevations(grid, np.asarray(xs), np.asarray(ys))
            for i, value in zip(idx, values):
                results[i] = float(value)
        return results

    # ------------------------------------------------------------------
    # Tile resolution
    # ------------------------------------------------------------------

    async def get_grid(self, key: TileKey) -> ElevationGrid | None:
        """Grid for a tile from cache or network; concurrent callers share one load."""
        future = self._inflight.get(key)
        if future is None:
            future = asyncio.ensure_future(self._load(key))
            self._inflight[key] = future
            future.add_done_callback(lambda _: self._inflight.pop(key, None))
        # A cancelled caller must not cancel the load other callers are awaiting
        return await asyncio.shield(future)

    async def _load(self, key: TileKey) -> ElevationGrid | None:
        if self.cache.store is None:
            grid = self.cache.get(key)
        else:
            grid = await asyncio.to_thread(self.cache.get, key)
        if grid is not None:
            return grid

        async with self._gate:
            try:
                payload = await self.tile_source.fetch(key.zoom, key.x, key.y)
                self._fetches += 1
            except (TileFetchError, httpx.HTTPError) as e:
                self._failures += 1
                logger.warning(f"Tile {key.storage_key} unavailable: {e}")
                return None

        grid = await asyncio.to_thread(self.cache.store_raw_tile, key, payload)
        if grid is None:
            self._failures += 1
        return grid

    # ------------------------------------------------------------------
    # Region planning / pre-fetch
    # ------------------------------------------------------------------

    def tiles_for_region(self, center: Coordinate, radius_m: float) -> list[tuple[int, int]]:
        """Bounding rectangle of the tiles touched by the circle's edge and centre.

        The rectangle over-covers the circle near its corners.
        """
        samples = [center] + [
            center.destination(radius_m, float(bearing))
            for bearing in range(0, 361, REGION_EDGE_STEP_DEG)
        ]
        indices = [tile_index(p.latitude, p.longitude, self.zoom) for p in samples]
        xs = [x for x, _ in indices]
        ys = [y for _, y in indices]
        return [
            (x, y)
            for x in range(min(xs), max(xs) + 1)
            for y in range(min(ys), max(ys) + 1)
        ]

    def _cached_flags(self, keys: list[TileKey]) -> list[bool]:
        return [self.cache.has_tile(key) for key in keys]

    async def cached_tile_count(self, center: Coordinate, radius_m: float) -> tuple[int, int]:
        """(cached, total) tiles for a region."""
        keys = [TileKey(self.zoom, x, y) for x, y in self.tiles_for_region(center, radius_m)]
        flags = await asyncio.to_thread(self._cached_flags, keys)
        return sum(flags), len(keys)

    async def download_region(
        self,
        center: Coordinate,
        radius_m: float,
        on_progress: ProgressChannel | None = None,
        cancel: asyncio.Event | None = None,
    ) -> bool:
        """Pre-fetch every uncached tile of a region.

        Progress is reported as (completed, total) once up front and after
        each tile settles; failed tiles count as completed. Returns False only
        when cancelled before all tiles were scheduled.
        """
        keys = [TileKey(self.zoom, x, y) for x, y in self.tiles_for_region(center, radius_m)]
        total = len(keys)
        completed = 0
        await report_progress(on_progress, completed, total)

        flags = await asyncio.to_thread(self._cached_flags, keys)
        queue: list[TileKey] = []
        for key, cached in zip(keys, flags):
            if cached:
                completed += 1
                await report_progress(on_progress, completed, total)
            else:
                queue.append(key)

        logger.info(
            f"Region download: {total} tiles, {len(queue)} to fetch "
            f"(zoom {self.zoom}, radius {radius_m:.0f}m)"
        )
        queue.reverse()
        cancelled = False

        async def worker() -> None:
            nonlocal completed, cancelled
            while queue:
                if cancel is not None and cancel.is_set():
                    cancelled = True
                    return
                key = queue.pop()
                await self.get_grid(key)
                completed += 1
                await report_progress(on_progress, completed, total)

        workers = min(self.max_concurrent_fetches, len(queue))
        await asyncio.gather(*(worker() for _ in range(workers)))

        if cancelled:
            logger.info(f"Region download cancelled after {completed}/{total} tiles")
            return False
        return True

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear()

    def stats(self) -> dict:
        return {
            "zoom": self.zoom,
            "fetches": self._fetches,
            "failures": self._failures,
            "in_flight": len(self._inflight),
            **self.cache.stats(),
        }
