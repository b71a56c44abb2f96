"""
Engine configuration.

ViewshedConfig is immutable; a ViewshedResult keeps the exact instance it
was computed with.
"""

import os

from pydantic import BaseModel, ConfigDict, Field

from ..constants import (
    DEFAULT_ACCOUNT_FOR_CURVATURE,
    DEFAULT_ANGULAR_RESOLUTION_DEG,
    DEFAULT_GRID_CELL_SIZE_M,
    DEFAULT_MAX_CONCURRENT_FETCHES,
    DEFAULT_MAX_CONCURRENT_RAYS,
    DEFAULT_MAX_DISTANCE_M,
    DEFAULT_OBSERVER_HEIGHT_M,
    DEFAULT_SAMPLE_INTERVAL_M,
    DEFAULT_TILE_ZOOM,
    EARTH_RADIUS_M,
    REQUEST_TIMEOUT_S,
    RETRY_ATTEMPTS,
    TERRAIN_RGB_URL_TEMPLATE,
    TILE_CACHE_MAX_ENTRIES,
    EnvVar,
)

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ViewshedConfig(BaseModel):
    """Options recognised by the elevation source and the viewshed engine."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_distance_m: float = Field(DEFAULT_MAX_DISTANCE_M, gt=0, description="Scan distance")
    angular_resolution_deg: float = Field(
        DEFAULT_ANGULAR_RESOLUTION_DEG, gt=0, le=360, description="Bearing step between rays"
    )
    sample_interval_m: float = Field(
        DEFAULT_SAMPLE_INTERVAL_M, gt=0, description="Spacing of samples along a ray"
    )
    observer_height_m: float = Field(
        DEFAULT_OBSERVER_HEIGHT_M, ge=0, description="Eye height above ground"
    )
    account_for_curvature: bool = Field(
        DEFAULT_ACCOUNT_FOR_CURVATURE, description="Apply the d^2/2R curvature drop"
    )
    earth_radius_m: float = Field(EARTH_RADIUS_M, gt=0, description="Sphere radius")
    grid_cell_size_m: float = Field(
        DEFAULT_GRID_CELL_SIZE_M, gt=0, description="Coverage grid cell edge"
    )
    tile_zoom_level: int = Field(DEFAULT_TILE_ZOOM, ge=0, le=22, description="Tile zoom")
    max_concurrent_fetches: int = Field(
        DEFAULT_MAX_CONCURRENT_FETCHES, ge=1, description="Simultaneous tile downloads"
    )
    max_concurrent_rays: int = Field(
        DEFAULT_MAX_CONCURRENT_RAYS, ge=1, description="Rays traced at the same time"
    )
    tile_url_template: str = Field(TERRAIN_RGB_URL_TEMPLATE, description="Tile URL template")
    request_timeout_s: float = Field(REQUEST_TIMEOUT_S, gt=0, description="HTTP timeout")
    max_retry_attempts: int = Field(RETRY_ATTEMPTS, ge=1, description="Fetch attempts per tile")
    memory_cache_max_tiles: int = Field(
        TILE_CACHE_MAX_ENTRIES, ge=1, description="Decoded tiles kept in memory"
    )
    cache_dir: str | None = Field(None, description="Persistent tile cache directory")

    @property
    def ray_count(self) -> int:
        return int(360.0 / self.angular_resolution_deg)

    @property
    def samples_per_ray(self) -> int:
        return int(self.max_distance_m // self.sample_interval_m)

    @property
    def cell_area_km2(self) -> float:
        return (self.grid_cell_size_m / 1000.0) ** 2

    @classmethod
    def from_env(cls, **overrides) -> "ViewshedConfig":
        """Build a config from VIEWSHED_* environment variables plus explicit overrides."""
        env = os.environ
        values: dict = {}

        floats = {
            EnvVar.MAX_DISTANCE_M: "max_distance_m",
            EnvVar.ANGULAR_RESOLUTION_DEG: "angular_resolution_deg",
            EnvVar.SAMPLE_INTERVAL_M: "sample_interval_m",
            EnvVar.OBSERVER_HEIGHT_M: "observer_height_m",
            EnvVar.GRID_CELL_SIZE_M: "grid_cell_size_m",
            EnvVar.REQUEST_TIMEOUT_S: "request_timeout_s",
        }
        for var, field in floats.items():
            if env.get(var):
                values[field] = float(env[var])

        ints = {
            EnvVar.TILE_ZOOM: "tile_zoom_level",
            EnvVar.MAX_CONCURRENT_FETCHES: "max_concurrent_fetches",
            EnvVar.MAX_CONCURRENT_RAYS: "max_concurrent_rays",
        }
        for var, field in ints.items():
            if env.get(var):
                values[field] = int(env[var])

        if env.get(EnvVar.ACCOUNT_FOR_CURVATURE):
            values["account_for_curvature"] = (
                env[EnvVar.ACCOUNT_FOR_CURVATURE].strip().lower() in _TRUE_VALUES
            )
        if env.get(EnvVar.TILE_URL_TEMPLATE):
            values["tile_url_template"] = env[EnvVar.TILE_URL_TEMPLATE]
        if env.get(EnvVar.CACHE_DIR):
            values["cache_dir"] = env[EnvVar.CACHE_DIR]

        values.update(overrides)
        return cls(**values)
