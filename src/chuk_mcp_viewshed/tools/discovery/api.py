"""
Discovery tools: server status, capabilities, and region tile planning.

These tools perform no network I/O.
"""

import logging
import os

from ...constants import (
    ServerConfig,
    StorageProvider,
    EnvVar,
    SuccessMessages,
)
from ...models.responses import (
    CapabilitiesResponse,
    ErrorResponse,
    RegionTilesResponse,
    StatusResponse,
    format_response,
)

logger = logging.getLogger(__name__)

TOOL_NAMES = [
    "viewshed_status",
    "viewshed_capabilities",
    "viewshed_region_tiles",
    "viewshed_download_region",
    "viewshed_fetch_point",
    "viewshed_fetch_points",
    "viewshed_clear_tile_cache",
    "viewshed_calculate",
    "viewshed_simulate_route",
    "viewshed_coverage",
    "viewshed_clear_coverage",
]


def register_discovery_tools(mcp, manager):
    """Register discovery tools with the MCP server."""

    @mcp.tool()
    async def viewshed_status(output_mode: str = "json") -> str:
        """Get server status including tile cache usage, storage configuration,
        and the size of the session coverage.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Server status information
        """
        try:
            provider = os.environ.get(EnvVar.ARTIFACTS_PROVIDER, StorageProvider.MEMORY)

            store_available = False
            try:
                manager._get_store()
                store_available = True
            except Exception:
                pass

            stats = manager.cache_stats()

            response = StatusResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                tile_zoom=stats["zoom"],
                storage_provider=provider,
                artifact_store_available=store_available,
                memory_tiles=stats["memory_entries"],
                memory_cache_mb=round(stats["memory_bytes"] / (1024 * 1024), 1),
                disk_cache_mb=round(stats["persistent_bytes"] / (1024 * 1024), 1),
                coverage_cells=len(manager.coverage),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_status failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def viewshed_capabilities(output_mode: str = "json") -> str:
        """Get server capabilities: engine defaults (scan distance, angular resolution,
        sample interval, observer height, curvature, grid cell size, tile zoom)
        and the available tools.

        Args:
            output_mode: "json" for structured data, "text" for human-readable summary

        Returns:
            Complete server capabilities
        """
        try:
            defaults = manager.config.model_dump(exclude={"tile_url_template", "cache_dir"})

            response = CapabilitiesResponse(
                server=ServerConfig.NAME,
                version=ServerConfig.VERSION,
                defaults=defaults,
                tools=TOOL_NAMES,
                tool_count=len(TOOL_NAMES),
                llm_guidance=(
                    "Use viewshed_region_tiles to see how many elevation tiles an area needs. "
                    "Use viewshed_download_region to pre-fetch them before calculating. "
                    "Use viewshed_calculate for the terrain visible from a point; results "
                    "accumulate into the session coverage. "
                    "Use viewshed_simulate_route to accumulate coverage along a route. "
                    "Use viewshed_coverage to get the cumulative area as GeoJSON."
                ),
                message=f"{ServerConfig.NAME} v{ServerConfig.VERSION} capabilities",
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_capabilities failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def viewshed_region_tiles(
        lat: float,
        lon: float,
        radius_m: float,
        output_mode: str = "json",
    ) -> str:
        """List the elevation tiles covering a circular region and how many are cached.

        Args:
            lat: Centre latitude
            lon: Centre longitude
            radius_m: Region radius in metres
            output_mode: "json" or "text"

        Returns:
            Tile indices, cached count, and ground resolution
        """
        try:
            plan = await manager.region_tiles(lat, lon, radius_m)

            response = RegionTilesResponse(
                center=[lat, lon],
                radius_m=radius_m,
                zoom=plan.zoom,
                tiles=[[x, y] for x, y in plan.tiles],
                tile_count=plan.total,
                cached_count=plan.cached,
                meters_per_pixel=round(plan.meters_per_pixel, 3),
                message=SuccessMessages.REGION_TILES.format(plan.total, radius_m, plan.cached),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_region_tiles failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)
