"""
Response models for chuk-mcp-viewshed tools.

All tool responses are Pydantic models for type safety and consistent API.
"""

from pydantic import BaseModel, ConfigDict, Field


def format_response(model: BaseModel, output_mode: str = "json") -> str:
    """Format a response model as JSON or human-readable text.

    Args:
        model: Pydantic response model instance
        output_mode: "json" (default) or "text"

    Returns:
        Formatted string
    """
    if output_mode == "text" and hasattr(model, "to_text"):
        return str(model.to_text())
    return str(model.model_dump_json())


class ErrorResponse(BaseModel):
    """Error response model for tool failures."""

    model_config = ConfigDict(extra="forbid")

    error: str = Field(..., description="Error message describing what went wrong")

    def to_text(self) -> str:
        return f"Error: {self.error}"


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class StatusResponse(BaseModel):
    """Response model for server status."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(..., description="Server name")
    version: str = Field(..., description="Server version")
    tile_zoom: int = Field(..., description="Tile zoom level used for elevation lookups")
    storage_provider: str = Field(..., description="Artifact storage provider")
    artifact_store_available: bool = Field(..., description="Whether an artifact store is set")
    memory_tiles: int = Field(..., description="Decoded tiles held in memory", ge=0)
    memory_cache_mb: float = Field(..., description="Memory tier size in megabytes")
    disk_cache_mb: float = Field(..., description="Persistent tier size in megabytes")
    coverage_cells: int = Field(..., description="Cells in the session coverage", ge=0)

    def to_text(self) -> str:
        store = "available" if self.artifact_store_available else "not configured"
        lines = [
            f"{self.server} v{self.version}",
            f"Tile zoom: {self.tile_zoom}",
            f"Storage: {self.storage_provider} ({store})",
            f"Tile cache: {self.memory_tiles} in memory ({self.memory_cache_mb:.1f} MB), "
            f"{self.disk_cache_mb:.1f} MB on disk",
            f"Coverage: {self.coverage_cells} cells",
        ]
        return "\n".join(lines)


class CapabilitiesResponse(BaseModel):
    """Response model for server capabilities."""

    model_config = ConfigDict(extra="forbid")

    server: str = Field(..., description="Server name")
    version: str = Field(..., description="Server version")
    defaults: dict = Field(..., description="Engine configuration in effect")
    tools: list[str] = Field(..., description="Available tool names")
    tool_count: int = Field(..., description="Number of tools", ge=0)
    llm_guidance: str = Field(..., description="LLM-friendly usage guidance")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [self.message, "", "Defaults:"]
        for key, value in self.defaults.items():
            lines.append(f"  {key}: {value}")
        lines.append("")
        lines.append(f"Tools ({self.tool_count}): {', '.join(self.tools)}")
        lines.append("")
        lines.append(self.llm_guidance)
        return "\n".join(lines)


class RegionTilesResponse(BaseModel):
    """Response model for the tile cover of a region."""

    model_config = ConfigDict(extra="forbid")

    center: list[float] = Field(..., description="Region centre [lat, lon]")
    radius_m: float = Field(..., description="Region radius in metres", ge=0)
    zoom: int = Field(..., description="Tile zoom level")
    tiles: list[list[int]] = Field(..., description="Tile indices [x, y]")
    tile_count: int = Field(..., description="Number of tiles", ge=0)
    cached_count: int = Field(..., description="Tiles already cached", ge=0)
    meters_per_pixel: float = Field(..., description="Ground resolution at the centre")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"Region: ({self.center[0]:.6f}, {self.center[1]:.6f}) r={self.radius_m:.0f}m",
            f"Zoom {self.zoom}, {self.meters_per_pixel:.2f} m/pixel",
            f"Tiles: {self.tile_count} ({self.cached_count} cached)",
        ]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------


class DownloadRegionResponse(BaseModel):
    """Response model for a region pre-fetch."""

    model_config = ConfigDict(extra="forbid")

    center: list[float] = Field(..., description="Region centre [lat, lon]")
    radius_m: float = Field(..., description="Region radius in metres", ge=0)
    completed: bool = Field(..., description="False if the download was cancelled")
    cached: int = Field(..., description="Tiles cached after the download", ge=0)
    total: int = Field(..., description="Tiles in the region", ge=0)
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        status = "complete" if self.completed else "cancelled"
        return (
            f"Region download {status}: {self.cached}/{self.total} tiles cached "
            f"around ({self.center[0]:.6f}, {self.center[1]:.6f})"
        )


class PointElevationResponse(BaseModel):
    """Response model for a single-point elevation query."""

    model_config = ConfigDict(extra="forbid")

    lat: float = Field(..., description="Latitude")
    lon: float = Field(..., description="Longitude")
    elevation_m: float = Field(..., description="Interpolated elevation in metres")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        return f"Elevation at ({self.lat:.6f}, {self.lon:.6f}): {self.elevation_m:.1f}m"


class PointInfo(BaseModel):
    """Elevation for one point of a batch query."""

    model_config = ConfigDict(extra="forbid")

    lat: float = Field(..., description="Latitude")
    lon: float = Field(..., description="Longitude")
    elevation_m: float | None = Field(None, description="Elevation, null if unavailable")


class MultiPointResponse(BaseModel):
    """Response model for a batch elevation query."""

    model_config = ConfigDict(extra="forbid")

    point_count: int = Field(..., description="Number of points queried", ge=0)
    points: list[PointInfo] = Field(..., description="Per-point elevations in input order")
    elevation_range: list[float] = Field(..., description="[min, max] of available elevations")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            self.message,
            f"Range: {self.elevation_range[0]:.1f}m to {self.elevation_range[1]:.1f}m",
        ]
        for p in self.points:
            value = f"{p.elevation_m:.1f}m" if p.elevation_m is not None else "n/a"
            lines.append(f"  ({p.lat:.6f}, {p.lon:.6f}): {value}")
        return "\n".join(lines)


class CacheClearedResponse(BaseModel):
    """Response model for clearing the tile cache."""

    model_config = ConfigDict(extra="forbid")

    freed_mb: float = Field(..., description="Persistent cache size released in megabytes")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


class ViewshedResponse(BaseModel):
    """Response model for a single viewshed calculation."""

    model_config = ConfigDict(extra="forbid")

    observer: list[float] = Field(..., description="Observer position [lat, lon]")
    observer_elevation_m: float = Field(..., description="Eye elevation incl. observer height")
    max_distance_m: float = Field(..., description="Scan distance in metres")
    angular_resolution_deg: float = Field(..., description="Bearing step in degrees")
    sample_interval_m: float = Field(..., description="Sample spacing along rays")
    visible_points: int = Field(..., description="Visible terrain samples", ge=0)
    cells: int = Field(..., description="Distinct grid cells seen", ge=0)
    new_cells: int = Field(..., description="Cells added to the session coverage", ge=0)
    max_visible_distance_m: float = Field(..., description="Farthest visible sample")
    calculation_time_s: float = Field(..., description="Wall-clock duration in seconds")
    total_rays: int = Field(..., description="Rays requested", ge=0)
    completed_rays: int = Field(..., description="Rays traced", ge=0)
    cancelled: bool = Field(..., description="Whether the calculation was cancelled")
    coverage_cells: int = Field(..., description="Cells in the session coverage", ge=0)
    coverage_area_km2: float = Field(..., description="Session coverage area")
    geojson: str | None = Field(None, description="FeatureCollection of this viewshed's cells")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            f"Viewshed at ({self.observer[0]:.6f}, {self.observer[1]:.6f})",
            f"Observer elevation: {self.observer_elevation_m:.1f}m",
            f"Scan: {self.max_distance_m:.0f}m, every {self.sample_interval_m:.0f}m, "
            f"{self.angular_resolution_deg:g} deg bearings",
            f"Rays: {self.completed_rays}/{self.total_rays}",
            f"Visible: {self.visible_points} points in {self.cells} cells "
            f"(farthest {self.max_visible_distance_m:.0f}m)",
            f"Coverage: {self.coverage_cells} cells, {self.coverage_area_km2:.2f} km² "
            f"(+{self.new_cells})",
            f"Time: {self.calculation_time_s:.2f}s",
        ]
        if self.cancelled:
            lines.append("WARNING: calculation was cancelled, result is partial")
        return "\n".join(lines)


class SimulationResponse(BaseModel):
    """Response model for a route simulation."""

    model_config = ConfigDict(extra="forbid")

    positions: int = Field(..., description="Route positions processed", ge=0)
    calculated: int = Field(..., description="Positions that triggered a calculation", ge=0)
    total_cells: int = Field(..., description="Cells in the session coverage", ge=0)
    total_area_km2: float = Field(..., description="Session coverage area")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        return "\n".join(
            [
                self.message,
                f"Positions: {self.positions} ({self.calculated} calculated)",
                f"Coverage: {self.total_cells} cells, {self.total_area_km2:.2f} km²",
            ]
        )


class CoverageResponse(BaseModel):
    """Response model for the session coverage."""

    model_config = ConfigDict(extra="forbid")

    total_cells: int = Field(..., description="Cells viewed", ge=0)
    total_area_km2: float = Field(..., description="Area viewed in square kilometres")
    total_viewsheds: int = Field(..., description="Viewsheds folded in", ge=0)
    first_viewed: str | None = Field(None, description="ISO timestamp of the first viewshed")
    last_viewed: str | None = Field(None, description="ISO timestamp of the latest update")
    cell_size_m: float = Field(..., description="Grid cell edge in metres")
    artifact_ref: str | None = Field(None, description="Artifact reference of the GeoJSON")
    geojson: str | None = Field(None, description="FeatureCollection of viewed cells")
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        lines = [
            self.message,
            f"Viewsheds: {self.total_viewsheds}",
            f"Cell size: {self.cell_size_m:.0f}m",
        ]
        if self.first_viewed:
            lines.append(f"First viewed: {self.first_viewed}")
        if self.last_viewed:
            lines.append(f"Last viewed: {self.last_viewed}")
        if self.artifact_ref:
            lines.append(f"Artifact: {self.artifact_ref}")
        return "\n".join(lines)


class CoverageClearedResponse(BaseModel):
    """Response model for clearing the session coverage."""

    model_config = ConfigDict(extra="forbid")

    removed_cells: int = Field(..., description="Cells removed", ge=0)
    message: str = Field(..., description="Operation result message")

    def to_text(self) -> str:
        return self.message
