"""
Viewshed engine: radial horizon ray casting.

For each bearing the engine samples the terrain at fixed intervals, then
walks the samples outward keeping the steepest elevation angle seen so far.
A sample is visible iff its angle strictly exceeds that running maximum.
Rays run as asyncio tasks behind a bounded gate; the per-ray horizon walk is pure
numpy and runs via asyncio.to_thread().
"""

import asyncio
import logging
import math
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import numpy as np
from numpy.typing import NDArray

from ..constants import EARTH_RADIUS_M
from .config import ViewshedConfig
from .elevation_source import ElevationSource, ProgressChannel, report_progress
from .geodesy import Coordinate

logger = logging.getLogger(__name__)

# Engine states
IDLE = "idle"
RUNNING = "running"
COMPLETE = "complete"


@dataclass(frozen=True)
class VisiblePoint:
    """A terrain sample with clear line of sight to the observer."""

    coordinate: Coordinate
    distance_m: float
    bearing_deg: float
    elevation_m: float


@dataclass
class ViewshedResult:
    """Outcome of one viewshed calculation."""

    observer: Coordinate
    observer_elevation_m: float
    visible_points: list[VisiblePoint]
    calculation_time_s: float
    config: ViewshedConfig
    cancelled: bool = False
    completed_rays: int = 0
    total_rays: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def visible_area_km2(self) -> float:
        return len(self.visible_points) * self.config.cell_area_km2


# ---------------------------------------------------------------------------
# Pure ray math
# ---------------------------------------------------------------------------


def curvature_drop(distance_m: Any, earth_radius_m: float = EARTH_RADIUS_M) -> Any:
    """Apparent height loss d^2 / 2R at a distance."""
    return np.square(distance_m) / (2.0 * earth_radius_m)


def ray_distances(max_distance_m: float, interval_m: float) -> NDArray[np.float64]:
    """Sample distances interval, 2*interval, ... up to max_distance_m."""
    count = int(max_distance_m // interval_m)
    return np.arange(1, count + 1, dtype=np.float64) * interval_m


def ray_sample_coordinates(
    origin: Coordinate,
    bearing_deg: float,
    distances: Sequence[float],
    earth_radius_m: float = EARTH_RADIUS_M,
) -> list[Coordinate]:
    return [origin.destination(float(d), bearing_deg, earth_radius_m) for d in distances]


def trace_ray(
    distances: NDArray[np.float64],
    elevations: NDArray[np.float64],
    observer_elevation_m: float,
    *,
    curvature: bool = True,
    earth_radius_m: float = EARTH_RADIUS_M,
) -> NDArray[np.bool_]:
    """
    Visibility mask for samples ordered by increasing distance.

    NaN elevations are skipped: they are never visible and never move the
    running horizon.

    Args:
        distances: Sample distances in metres, strictly increasing
        elevations: Ground elevation per sample (NaN where unavailable)
        observer_elevation_m: Eye elevation of the observer
        curvature: Subtract the curvature drop before computing angles
        earth_radius_m: Sphere radius for the curvature drop

    Returns:
        Boolean array, True where the sample is visible
    """
    heights = np.asarray(elevations, dtype=np.float64)
    if curvature:
        heights = heights - curvature_drop(distances, earth_radius_m)

    angles = np.arctan2(heights - observer_elevation_m, distances)
    valid = ~np.isnan(angles)
    if not valid.any():
        return np.zeros(len(angles), dtype=bool)

    # Horizon before each sample: running max over earlier valid samples
    masked = np.where(valid, angles, -np.inf)
    horizon = np.concatenate(([-np.inf], np.maximum.accumulate(masked)[:-1]))
    return valid & (angles > horizon)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ViewshedEngine:
    """Computes viewsheds against an ElevationSource."""

    def __init__(self, source: ElevationSource, config: ViewshedConfig | None = None) -> None:
        self.source = source
        self.config = config or ViewshedConfig()
        self.state = IDLE

    async def calculate(
        self,
        observer: Coordinate,
        progress: ProgressChannel | None = None,
        cancel: asyncio.Event | None = None,
        config: ViewshedConfig | None = None,
    ) -> ViewshedResult:
        """
        Run a full viewshed from observer.

        Args:
            observer: Observer ground position
            progress: Callable or asyncio.Queue receiving completed/total after each ray
            cancel: Event; once set, rays still waiting for a slot are skipped
            config: Override for this calculation only

        Returns:
            ViewshedResult; cancelled=True if the cancel event was set before returning
        """
        cfg = config or self.config
        self.state = RUNNING
        started = time.perf_counter()

        ground = await self.source.elevation(observer)
        if ground is None:
            logger.warning(
                f"No elevation at observer ({observer.latitude}, {observer.longitude}), using 0m"
            )
            ground = 0.0
        observer_elevation = ground + cfg.observer_height_m

        total = cfg.ray_count
        distances = ray_distances(cfg.max_distance_m, cfg.sample_interval_m)
        completed = 0
        gate = asyncio.Semaphore(cfg.max_concurrent_rays)

        async def run_ray(index: int) -> list[VisiblePoint]:
            nonlocal completed
            async with gate:
                # Rays queued behind the gate observe a cancel set by earlier ones
                if cancel is not None and cancel.is_set():
                    return []
                bearing = index * cfg.angular_resolution_deg
                points = await self._cast_ray(
                    observer, bearing, distances, observer_elevation, cfg
                )
                completed += 1
                await report_progress(progress, completed / total if total else 1.0)
                return points

        per_ray = await asyncio.gather(*(run_ray(i) for i in range(total)))
        visible = [p for points in per_ray for p in points]

        elapsed = time.perf_counter() - started
        self.state = COMPLETE
        cancelled = cancel is not None and cancel.is_set()
        logger.info(
            f"Viewshed at ({observer.latitude:.5f}, {observer.longitude:.5f}): "
            f"{len(visible)} visible points, {completed}/{total} rays in {elapsed:.2f}s"
        )

        return ViewshedResult(
            observer=observer,
            observer_elevation_m=observer_elevation,
            visible_points=visible,
            calculation_time_s=elapsed,
            config=cfg,
            cancelled=cancelled,
            completed_rays=completed,
            total_rays=total,
        )

    def points_to_grid(self, result: ViewshedResult) -> set:
        """Coverage cells of a result, sized by the config it was computed with."""
        from .coverage import to_grid

        return to_grid(result)

    async def _cast_ray(
        self,
        observer: Coordinate,
        bearing: float,
        distances: NDArray[np.float64],
        observer_elevation: float,
        cfg: ViewshedConfig,
    ) -> list[VisiblePoint]:
        coords = ray_sample_coordinates(observer, bearing, distances, cfg.earth_radius_m)
        samples = await self.source.elevations(coords)
        elevations = np.array([np.nan if v is None else v for v in samples], dtype=np.float64)

        mask = await asyncio.to_thread(
            trace_ray,
            distances,
            elevations,
            observer_elevation,
            curvature=cfg.account_for_curvature,
            earth_radius_m=cfg.earth_radius_m,
        )

        return [
            VisiblePoint(
                coordinate=coords[i],
                distance_m=float(distances[i]),
                bearing_deg=bearing,
                elevation_m=float(elevations[i]),
            )
            for i in np.flatnonzero(mask)
        ]


def visible_fraction(result: ViewshedResult) -> float:
    """Share of sampled points that were visible."""
    sampled = result.total_rays * result.config.samples_per_ray
    if sampled == 0:
        return 0.0
    return len(result.visible_points) / sampled


def max_visible_distance(result: ViewshedResult) -> float:
    if not result.visible_points:
        return 0.0
    return max(p.distance_m for p in result.visible_points)


def horizon_angle_deg(result: ViewshedResult, bearing_deg: float) -> float | None:
    """Elevation angle of the farthest visible point on one bearing, as traced."""
    on_ray = [p for p in result.visible_points if math.isclose(p.bearing_deg, bearing_deg)]
    if not on_ray:
        return None
    far = max(on_ray, key=lambda p: p.distance_m)
    height = far.elevation_m
    if result.config.account_for_curvature:
        height -= float(curvature_drop(far.distance_m, result.config.earth_radius_m))
    return math.degrees(math.atan2(height - result.observer_elevation_m, far.distance_m))
