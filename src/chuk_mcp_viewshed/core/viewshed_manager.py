"""
Viewshed Manager: composition root for elevation, viewshed and coverage operations.

Owns one tile cache, elevation source, engine and session coverage area;
nothing in the core is a process-wide singleton. Blocking cache maintenance
is wrapped in asyncio.to_thread().
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..constants import (
    COVERAGE_ARTIFACT_PREFIX,
    DEFAULT_ROUTE_STEPS,
    GEOJSON_MIME_TYPE,
    MAX_MERCATOR_LAT,
    MAX_REGION_RADIUS_M,
    MAX_VIEWSHED_DISTANCE_M,
    EnvVar,
    ErrorMessages,
)
from .config import ViewshedConfig
from .coverage import CoverageArea, to_grid, to_geojson
from .elevation_source import ElevationSource
from .geodesy import Coordinate
from .simulation import HIGHWAY_2_ROUTE, CoverageTracker, interpolate_path, simulate_route
from .tile_cache import ByteStore, FileByteStore, MemoryByteStore, TileCache
from .tile_math import meters_per_pixel
from .tile_source import HttpTileSource, TileSource
from .viewshed_engine import ViewshedEngine, max_visible_distance

logger = logging.getLogger(__name__)

COVERAGE_KEY = "session"


@dataclass
class RegionPlan:
    """Tile cover of a circular region."""

    tiles: list[tuple[int, int]]
    cached: int
    total: int
    zoom: int
    meters_per_pixel: float


@dataclass
class DownloadResult:
    """Result of a region pre-fetch."""

    completed: bool
    cached: int
    total: int


@dataclass
class PointResult:
    elevation_m: float


@dataclass
class MultiPointResult:
    elevations: list[float | None]
    elevation_range: list[float]


@dataclass
class CalculationResult:
    """One viewshed folded (or not) into the session coverage."""

    observer_elevation_m: float
    visible_points: int
    cells: int
    new_cells: int
    max_visible_distance_m: float
    calculation_time_s: float
    total_rays: int
    completed_rays: int
    cancelled: bool
    geojson: str


@dataclass
class SimulationResult:
    positions: int
    calculated: int
    total_cells: int
    total_area_km2: float


class ViewshedManager:
    """Central manager for viewshed operations."""

    def __init__(
        self,
        config: ViewshedConfig | None = None,
        tile_source: TileSource | None = None,
        store: ByteStore | None = None,
        coverage_store: ByteStore | None = None,
        progress_callback: object | None = None,
    ) -> None:
        self.config = config or ViewshedConfig.from_env()
        self.progress_callback = progress_callback

        if store is None:
            store = (
                FileByteStore(self.config.cache_dir) if self.config.cache_dir else MemoryByteStore()
            )
        if coverage_store is None:
            coverage_store = (
                FileByteStore(Path(self.config.cache_dir) / "coverage", suffix=".json")
                if self.config.cache_dir
                else MemoryByteStore()
            )
        if tile_source is None:
            tile_source = HttpTileSource(
                url_template=self.config.tile_url_template,
                access_token=os.environ.get(EnvVar.ACCESS_TOKEN),
                timeout_s=self.config.request_timeout_s,
                retries=self.config.max_retry_attempts,
            )

        self.cache = TileCache(store, max_entries=self.config.memory_cache_max_tiles)
        self.source = ElevationSource(
            tile_source,
            self.cache,
            zoom=self.config.tile_zoom_level,
            max_concurrent_fetches=self.config.max_concurrent_fetches,
        )
        self.engine = ViewshedEngine(self.source, self.config)
        self.coverage_store = coverage_store
        self.coverage = CoverageArea.load(
            coverage_store, COVERAGE_KEY, cell_size_m=self.config.grid_cell_size_m
        )
        self.tracker = CoverageTracker(self.engine, self.coverage)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Planning (no network)
    # ------------------------------------------------------------------

    async def region_tiles(self, lat: float, lon: float, radius_m: float) -> RegionPlan:
        center = self._validate_coordinate(lat, lon)
        self._validate_radius(radius_m)
        tiles = self.source.tiles_for_region(center, radius_m)
        cached, total = await self.source.cached_tile_count(center, radius_m)
        return RegionPlan(
            tiles=tiles,
            cached=cached,
            total=total,
            zoom=self.source.zoom,
            meters_per_pixel=meters_per_pixel(lat, self.source.zoom),
        )

    # ------------------------------------------------------------------
    # Elevation (async)
    # ------------------------------------------------------------------

    async def download_region(
        self,
        lat: float,
        lon: float,
        radius_m: float,
        cancel: asyncio.Event | None = None,
    ) -> DownloadResult:
        center = self._validate_coordinate(lat, lon)
        self._validate_radius(radius_m)
        completed = await self.source.download_region(
            center, radius_m, on_progress=self.progress_callback, cancel=cancel
        )
        cached, total = await self.source.cached_tile_count(center, radius_m)
        return DownloadResult(completed=completed, cached=cached, total=total)

    async def fetch_point(self, lat: float, lon: float) -> PointResult:
        coord = self._validate_coordinate(lat, lon)
        value = await self.source.elevation(coord)
        if value is None:
            raise ValueError(ErrorMessages.NO_ELEVATION.format(lat, lon))
        return PointResult(elevation_m=value)

    async def fetch_points(self, points: list[list[float]]) -> MultiPointResult:
        if not points:
            raise ValueError(ErrorMessages.INVALID_POINTS)
        coords = []
        for p in points:
            if len(p) != 2:
                raise ValueError(ErrorMessages.INVALID_POINTS)
            coords.append(self._validate_coordinate(p[0], p[1]))

        values = await self.source.elevations(coords)
        valid = [v for v in values if v is not None]
        elev_range = [min(valid), max(valid)] if valid else [0.0, 0.0]
        return MultiPointResult(elevations=values, elevation_range=elev_range)

    async def clear_tile_cache(self) -> int:
        """Drop every cached tile; returns the persistent bytes released."""
        await asyncio.to_thread(self.cache.flush)
        freed = await asyncio.to_thread(self.cache.total_cached_bytes)
        await asyncio.to_thread(self.source.clear_cache)
        return freed

    def cache_stats(self) -> dict:
        return self.source.stats()

    # ------------------------------------------------------------------
    # Viewshed (async)
    # ------------------------------------------------------------------

    async def calculate(
        self,
        lat: float,
        lon: float,
        max_distance_m: float | None = None,
        angular_resolution_deg: float | None = None,
        sample_interval_m: float | None = None,
        observer_height_m: float | None = None,
        accumulate: bool = True,
        cancel: asyncio.Event | None = None,
    ) -> CalculationResult:
        """Compute a viewshed and optionally fold it into the session coverage."""
        observer = self._validate_coordinate(lat, lon)
        cfg = self._config_with(
            max_distance_m=max_distance_m,
            angular_resolution_deg=angular_resolution_deg,
            sample_interval_m=sample_interval_m,
            observer_height_m=observer_height_m,
        )

        async with self._lock:
            result = await self.engine.calculate(
                observer, progress=self.progress_callback, cancel=cancel, config=cfg
            )
            cells = to_grid(result, self.coverage.cell_size_m)
            new_cells = 0
            if accumulate and not result.cancelled:
                new_cells = self.coverage.add_result(result)
                self.tracker.last_position = observer
                await asyncio.to_thread(self.coverage.save, self.coverage_store, COVERAGE_KEY)

        return CalculationResult(
            observer_elevation_m=result.observer_elevation_m,
            visible_points=len(result.visible_points),
            cells=len(cells),
            new_cells=new_cells,
            max_visible_distance_m=max_visible_distance(result),
            calculation_time_s=result.calculation_time_s,
            total_rays=result.total_rays,
            completed_rays=result.completed_rays,
            cancelled=result.cancelled,
            geojson=to_geojson(cells, self.coverage.cell_size_m),
        )

    async def simulate_route(
        self,
        route: list[list[float]] | None = None,
        steps: int = DEFAULT_ROUTE_STEPS,
        reset: bool = True,
        step_delay_s: float = 0.0,
        cancel: asyncio.Event | None = None,
    ) -> SimulationResult:
        """Accumulate viewsheds along a route (defaults to US Highway 2)."""
        if steps < 1:
            raise ValueError(ErrorMessages.INVALID_STEPS.format(steps))
        if route is None:
            waypoints = HIGHWAY_2_ROUTE
        else:
            if len(route) < 2:
                raise ValueError(ErrorMessages.INVALID_ROUTE)
            waypoints = [self._validate_coordinate(p[0], p[1]) for p in route]

        path = interpolate_path(waypoints, steps)
        calculated = 0

        def _count(step) -> None:
            nonlocal calculated
            if step.calculated:
                calculated += 1

        async with self._lock:
            if reset:
                self.tracker.reset()
            positions = await simulate_route(
                path, self.tracker, cancel=cancel, step_delay_s=step_delay_s, on_step=_count
            )
            await asyncio.to_thread(self.coverage.save, self.coverage_store, COVERAGE_KEY)

        return SimulationResult(
            positions=positions,
            calculated=calculated,
            total_cells=len(self.coverage),
            total_area_km2=self.coverage.total_area_km2,
        )

    # ------------------------------------------------------------------
    # Coverage
    # ------------------------------------------------------------------

    def coverage_summary(self) -> dict:
        stats = self.coverage.statistics()
        return {
            "total_cells": stats.total_cells,
            "total_area_km2": stats.total_area_km2,
            "total_viewsheds": stats.total_viewsheds,
            "first_viewed": stats.first_viewed.isoformat() if stats.first_viewed else None,
            "last_viewed": stats.last_viewed.isoformat() if stats.last_viewed else None,
            "cell_size_m": self.coverage.cell_size_m,
        }

    def coverage_geojson(self) -> str:
        return self.coverage.to_geojson()

    def is_viewed(self, lat: float, lon: float) -> bool:
        return self.coverage.is_viewed(self._validate_coordinate(lat, lon))

    async def clear_coverage(self) -> int:
        async with self._lock:
            removed = self.tracker.area.clear()
            self.tracker.last_position = None
            await asyncio.to_thread(self.coverage.save, self.coverage_store, COVERAGE_KEY)
        return removed

    async def export_coverage(self) -> str:
        """Store the coverage GeoJSON in the artifact store; returns its reference."""
        summary = self.coverage_summary()
        return await self._store_artifact(
            self.coverage_geojson().encode("utf-8"),
            {
                "schema_version": "1.0",
                "type": "viewshed_coverage",
                "total_cells": summary["total_cells"],
                "total_area_km2": summary["total_area_km2"],
                "cell_size_m": summary["cell_size_m"],
            },
            suffix=".geojson",
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _config_with(self, **overrides: Any) -> ViewshedConfig:
        values = {k: v for k, v in overrides.items() if v is not None}
        cfg = self.config.model_copy(update=values) if values else self.config
        # model_copy skips validation
        cfg = ViewshedConfig.model_validate(cfg.model_dump())
        if cfg.max_distance_m > MAX_VIEWSHED_DISTANCE_M:
            raise ValueError(
                ErrorMessages.DISTANCE_TOO_LARGE.format(cfg.max_distance_m, MAX_VIEWSHED_DISTANCE_M)
            )
        return cfg

    def _validate_coordinate(self, lat: float, lon: float) -> Coordinate:
        if not -MAX_MERCATOR_LAT < lat < MAX_MERCATOR_LAT:
            raise ValueError(
                ErrorMessages.INVALID_LATITUDE.format(lat, MAX_MERCATOR_LAT, MAX_MERCATOR_LAT)
            )
        if not -180.0 <= lon <= 180.0:
            raise ValueError(ErrorMessages.INVALID_LONGITUDE.format(lon))
        return Coordinate(float(lat), float(lon))

    def _validate_radius(self, radius_m: float) -> None:
        if radius_m < 0:
            raise ValueError(ErrorMessages.INVALID_RADIUS.format(radius_m))
        if radius_m > MAX_REGION_RADIUS_M:
            raise ValueError(ErrorMessages.RADIUS_TOO_LARGE.format(radius_m, MAX_REGION_RADIUS_M))

    def _get_store(self) -> Any:
        """Get the artifact store instance."""
        from chuk_mcp_server import get_artifact_store

        store = get_artifact_store()
        if store is None:
            raise RuntimeError(ErrorMessages.NO_ARTIFACT_STORE)
        return store

    async def _store_artifact(self, data: bytes, metadata: dict, suffix: str) -> str:
        """Store bytes in the artifact store."""
        try:
            store = self._get_store()
            ref = f"{COVERAGE_ARTIFACT_PREFIX}/{uuid.uuid4().hex[:12]}{suffix}"
            await store.store(
                ref,
                data,
                mime_type=GEOJSON_MIME_TYPE,
                metadata=metadata,
                summary=f"Viewshed data ({metadata.get('type', 'unknown')})",
            )
            return ref
        except Exception as e:
            logger.error(f"Failed to store artifact: {e}")
            raise
