"""
Analysis tools: viewshed calculation, route simulation, and cumulative coverage.
"""

import logging

from ...constants import (
    DEFAULT_ROUTE_STEPS,
    SuccessMessages,
)
from ...models.responses import (
    CoverageClearedResponse,
    CoverageResponse,
    ErrorResponse,
    SimulationResponse,
    ViewshedResponse,
    format_response,
)

logger = logging.getLogger(__name__)


def register_analysis_tools(mcp, manager):
    """Register analysis tools with the MCP server."""

    @mcp.tool()
    async def viewshed_calculate(
        lat: float,
        lon: float,
        max_distance_m: float | None = None,
        angular_resolution_deg: float | None = None,
        sample_interval_m: float | None = None,
        observer_height_m: float | None = None,
        accumulate: bool = True,
        include_geojson: bool = False,
        output_mode: str = "json",
    ) -> str:
        """Compute the terrain visible from an observer by radial line-of-sight ray casting,
        with Earth-curvature correction. Visible points are binned into 100m grid cells
        and, unless accumulate is false, merged into the session coverage.

        Args:
            lat: Observer latitude
            lon: Observer longitude
            max_distance_m: Scan distance (default 3000)
            angular_resolution_deg: Degrees between rays (default 1.0, i.e. 360 rays)
            sample_interval_m: Distance between samples along a ray (default 10)
            observer_height_m: Eye height above ground (default 1.7)
            accumulate: Merge the result into the session coverage
            include_geojson: Include this viewshed's cells as a GeoJSON FeatureCollection
            output_mode: "json" or "text"

        Returns:
            Visible point and cell counts, observer elevation, and timing
        """
        try:
            result = await manager.calculate(
                lat,
                lon,
                max_distance_m=max_distance_m,
                angular_resolution_deg=angular_resolution_deg,
                sample_interval_m=sample_interval_m,
                observer_height_m=observer_height_m,
                accumulate=accumulate,
            )
            cfg = manager.config

            response = ViewshedResponse(
                observer=[lat, lon],
                observer_elevation_m=round(result.observer_elevation_m, 2),
                max_distance_m=max_distance_m or cfg.max_distance_m,
                angular_resolution_deg=angular_resolution_deg or cfg.angular_resolution_deg,
                sample_interval_m=sample_interval_m or cfg.sample_interval_m,
                visible_points=result.visible_points,
                cells=result.cells,
                new_cells=result.new_cells,
                max_visible_distance_m=result.max_visible_distance_m,
                calculation_time_s=round(result.calculation_time_s, 3),
                total_rays=result.total_rays,
                completed_rays=result.completed_rays,
                cancelled=result.cancelled,
                coverage_cells=len(manager.coverage),
                coverage_area_km2=round(manager.coverage.total_area_km2, 4),
                geojson=result.geojson if include_geojson else None,
                message=SuccessMessages.VIEWSHED_COMPLETE.format(
                    result.visible_points, result.cells, result.calculation_time_s
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_calculate failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def viewshed_simulate_route(
        route: list[list[float]] | None = None,
        steps: int = DEFAULT_ROUTE_STEPS,
        reset: bool = True,
        output_mode: str = "json",
    ) -> str:
        """Accumulate viewsheds along a route. Waypoints are densified to roughly
        `steps` positions; positions closer than 100m to the last calculated one
        are skipped. Defaults to US Highway 2 (Scenic to Berne, WA).

        Args:
            route: Waypoints as [lat, lon] pairs (None = US Highway 2)
            steps: Approximate number of positions along the route
            reset: Clear the session coverage before simulating
            output_mode: "json" or "text"

        Returns:
            Positions processed and the resulting coverage size
        """
        try:
            result = await manager.simulate_route(route=route, steps=steps, reset=reset)

            response = SimulationResponse(
                positions=result.positions,
                calculated=result.calculated,
                total_cells=result.total_cells,
                total_area_km2=round(result.total_area_km2, 4),
                message=SuccessMessages.SIMULATION_COMPLETE.format(
                    result.positions, result.total_cells, result.total_area_km2
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_simulate_route failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def viewshed_coverage(
        include_geojson: bool = False,
        store_artifact: bool = False,
        output_mode: str = "json",
    ) -> str:
        """Get the cumulative session coverage: viewed cells, area, and timestamps.
        Optionally returns the cells as GeoJSON and/or stores the GeoJSON in the
        artifact store.

        Args:
            include_geojson: Include the FeatureCollection inline
            store_artifact: Store the FeatureCollection as an artifact
            output_mode: "json" or "text"

        Returns:
            Coverage statistics with optional GeoJSON / artifact reference
        """
        try:
            summary = manager.coverage_summary()
            artifact_ref = await manager.export_coverage() if store_artifact else None

            response = CoverageResponse(
                total_cells=summary["total_cells"],
                total_area_km2=round(summary["total_area_km2"], 4),
                total_viewsheds=summary["total_viewsheds"],
                first_viewed=summary["first_viewed"],
                last_viewed=summary["last_viewed"],
                cell_size_m=summary["cell_size_m"],
                artifact_ref=artifact_ref,
                geojson=manager.coverage_geojson() if include_geojson else None,
                message=SuccessMessages.COVERAGE.format(
                    summary["total_cells"], summary["total_area_km2"]
                ),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_coverage failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def viewshed_clear_coverage(output_mode: str = "json") -> str:
        """Clear the cumulative session coverage.

        Args:
            output_mode: "json" or "text"

        Returns:
            Number of cells removed
        """
        try:
            removed = await manager.clear_coverage()

            response = CoverageClearedResponse(
                removed_cells=removed,
                message=SuccessMessages.COVERAGE_CLEARED.format(removed),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_clear_coverage failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)
