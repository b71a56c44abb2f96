"""
Download tools: region pre-fetch, point elevation, and tile cache maintenance.

These tools perform network I/O to fetch Terrain-RGB tiles into the tile cache.
"""

import logging

from ...constants import SuccessMessages
from ...models.responses import (
    CacheClearedResponse,
    DownloadRegionResponse,
    ErrorResponse,
    MultiPointResponse,
    PointElevationResponse,
    PointInfo,
    format_response,
)

logger = logging.getLogger(__name__)


def register_download_tools(mcp, manager):
    """Register download tools with the MCP server."""

    @mcp.tool()
    async def viewshed_download_region(
        lat: float,
        lon: float,
        radius_m: float,
        output_mode: str = "json",
    ) -> str:
        """Pre-fetch all elevation tiles for a circular region into the tile cache.
        Individual tile failures do not abort the download.

        Args:
            lat: Centre latitude
            lon: Centre longitude
            radius_m: Region radius in metres
            output_mode: "json" or "text"

        Returns:
            Cached and total tile counts for the region
        """
        try:
            result = await manager.download_region(lat, lon, radius_m)

            template = (
                SuccessMessages.DOWNLOAD_COMPLETE
                if result.completed
                else SuccessMessages.DOWNLOAD_CANCELLED
            )
            response = DownloadRegionResponse(
                center=[lat, lon],
                radius_m=radius_m,
                completed=result.completed,
                cached=result.cached,
                total=result.total,
                message=template.format(result.cached, result.total),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_download_region failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def viewshed_fetch_point(
        lat: float,
        lon: float,
        output_mode: str = "json",
    ) -> str:
        """Get the bilinear-interpolated elevation at a single point.

        Args:
            lat: Latitude
            lon: Longitude
            output_mode: "json" or "text"

        Returns:
            Elevation in metres
        """
        try:
            result = await manager.fetch_point(lat, lon)

            response = PointElevationResponse(
                lat=lat,
                lon=lon,
                elevation_m=round(result.elevation_m, 2),
                message=SuccessMessages.POINT_ELEVATION.format(result.elevation_m),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_fetch_point failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def viewshed_fetch_points(
        points: list[list[float]],
        output_mode: str = "json",
    ) -> str:
        """Get elevations for many points at once. Points sharing a tile are
        resolved with a single tile load.

        Args:
            points: List of [lat, lon] pairs
            output_mode: "json" or "text"

        Returns:
            Per-point elevations (null where no data) and the elevation range
        """
        try:
            result = await manager.fetch_points(points)

            infos = [
                PointInfo(
                    lat=p[0],
                    lon=p[1],
                    elevation_m=round(v, 2) if v is not None else None,
                )
                for p, v in zip(points, result.elevations)
            ]
            available = sum(1 for v in result.elevations if v is not None)

            response = MultiPointResponse(
                point_count=len(points),
                points=infos,
                elevation_range=[round(v, 2) for v in result.elevation_range],
                message=SuccessMessages.POINTS_ELEVATION.format(available, len(points)),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_fetch_points failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)

    @mcp.tool()
    async def viewshed_clear_tile_cache(output_mode: str = "json") -> str:
        """Remove every cached elevation tile from memory and disk.

        Args:
            output_mode: "json" or "text"

        Returns:
            Amount of cache released
        """
        try:
            freed = await manager.clear_tile_cache()
            freed_mb = freed / (1024 * 1024)

            response = CacheClearedResponse(
                freed_mb=round(freed_mb, 2),
                message=SuccessMessages.CACHE_CLEARED.format(freed_mb),
            )
            return format_response(response, output_mode)

        except Exception as e:
            logger.error(f"viewshed_clear_tile_cache failed: {e}")
            return format_response(ErrorResponse(error=str(e)), output_mode)
