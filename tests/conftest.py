"""Shared test fixtures for chuk-mcp-viewshed."""

import asyncio

import numpy as np
import pytest
from unittest.mock import AsyncMock, MagicMock

from chuk_mcp_viewshed.core.config import ViewshedConfig
from chuk_mcp_viewshed.core.errors import TileFetchError
from chuk_mcp_viewshed.core.terrain_rgb import encode_terrain_rgb


# Observer used across scenarios (Scenic, WA)
SCENIC = (47.7126, -121.1477)


class FakeTileSource:
    """In-memory tile source recording every fetch.

    `tiles` maps (zoom, x, y) to payload bytes; `default` is served for any
    other key (None means a fetch failure). `delay` lets tests observe
    concurrency.
    """

    def __init__(self, tiles=None, default=None, delay=0.0, fail_keys=()):
        self.tiles = dict(tiles or {})
        self.default = default
        self.delay = delay
        self.fail_keys = set(fail_keys)
        self.calls: list[tuple[int, int, int]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, zoom, x, y):
        key = (zoom, x, y)
        self.calls.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if key in self.fail_keys:
                raise TileFetchError(f"tile {key} unavailable")
            payload = self.tiles.get(key, self.default)
            if payload is None:
                raise TileFetchError(f"tile {key} not found")
            return payload
        finally:
            self.in_flight -= 1


@pytest.fixture(scope="session")
def flat_grid():
    """512x512 grid at sea level."""
    return np.zeros((512, 512), dtype=np.float32)


@pytest.fixture(scope="session")
def flat_tile_bytes(flat_grid):
    """Terrain-RGB PNG of flat terrain at 0m."""
    return encode_terrain_rgb(flat_grid)


@pytest.fixture(scope="session")
def ramp_grid():
    """512x512 grid rising 1m per column, 0.5m per row, from 100m."""
    cols = np.arange(512, dtype=np.float64)[None, :]
    rows = np.arange(512, dtype=np.float64)[:, None]
    return (100.0 + cols + 0.5 * rows).astype(np.float32)


@pytest.fixture
def flat_source(flat_tile_bytes):
    """Tile source serving flat terrain for every tile."""
    return FakeTileSource(default=flat_tile_bytes)


@pytest.fixture
def small_config():
    """Four rays, ten samples per ray, no disk cache."""
    return ViewshedConfig(
        max_distance_m=1000.0,
        sample_interval_m=100.0,
        angular_resolution_deg=90.0,
    )


@pytest.fixture
def mock_artifact_store():
    """Mock artifact store."""
    store = AsyncMock()
    store.store = AsyncMock(return_value=None)
    store.retrieve = AsyncMock(return_value=b"{}")
    return store


@pytest.fixture
def mock_manager(mock_artifact_store, flat_source, small_config):
    """ViewshedManager over flat terrain with in-memory stores and a mocked artifact store."""
    from chuk_mcp_viewshed.core.tile_cache import MemoryByteStore
    from chuk_mcp_viewshed.core.viewshed_manager import ViewshedManager

    manager = ViewshedManager(
        config=small_config,
        tile_source=flat_source,
        store=MemoryByteStore(),
        coverage_store=MemoryByteStore(),
    )
    manager._get_store = MagicMock(return_value=mock_artifact_store)
    return manager


@pytest.fixture
def mock_mcp():
    """Mock ChukMCPServer."""
    mcp = MagicMock()
    mcp.tool = MagicMock(return_value=lambda fn: fn)
    return mcp


def capture_tools(register, manager):
    """Run a register_* function and return {tool name: coroutine function}."""
    tools = {}
    mcp = MagicMock()

    def capture_tool(**kwargs):
        def decorator(fn):
            tools[fn.__name__] = fn
            return fn

        return decorator

    mcp.tool = capture_tool
    register(mcp, manager)
    return tools
