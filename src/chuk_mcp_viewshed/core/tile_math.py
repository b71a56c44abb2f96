"""
Spherical Web-Mercator tile arithmetic.

Pure functions mapping (lat, lon, zoom) to tile indices, sub-tile pixel
offsets and tile bounds. Latitudes beyond +/-85.0511 degrees are outside
the projection and are not guarded: tan() diverges near the poles and the
resulting tile rows are meaningless.
"""

import math

from ..constants import EARTH_CIRCUMFERENCE_M, TILE_SIZE_PX


def _projected(lat: float, lon: float, zoom: int) -> tuple[float, float]:
    """Fractional tile coordinates (x, y) for a point."""
    n = 2.0**zoom
    lat_rad = math.radians(lat)
    x = (lon + 180.0) / 360.0 * n
    y = (1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n
    return x, y


def tile_index(lat: float, lon: float, zoom: int) -> tuple[int, int]:
    """Tile (x, y) containing the point at the given zoom."""
    x, y = _projected(lat, lon, zoom)
    return int(math.floor(x)), int(math.floor(y))


def pixel_offset(
    lat: float, lon: float, zoom: int, tile_size_px: int = TILE_SIZE_PX
) -> tuple[int, int, float, float]:
    """Tile index plus fractional pixel position inside that tile.

    Returns:
        (tile_x, tile_y, pixel_x, pixel_y) with pixel_* in [0, tile_size_px)
    """
    x, y = _projected(lat, lon, zoom)
    tile_x = int(math.floor(x))
    tile_y = int(math.floor(y))
    return tile_x, tile_y, (x - tile_x) * tile_size_px, (y - tile_y) * tile_size_px


def tile_origin(x: int, y: int, zoom: int) -> tuple[float, float]:
    """(lat, lon) of the north-west corner of a tile."""
    n = 2.0**zoom
    lon = x / n * 360.0 - 180.0
    lat = math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * y / n))))
    return lat, lon


def tile_bounds(x: int, y: int, zoom: int) -> tuple[float, float, float, float]:
    """Geographic bounds of a tile as (min_lat, max_lat, min_lon, max_lon)."""
    max_lat, min_lon = tile_origin(x, y, zoom)
    min_lat, max_lon = tile_origin(x + 1, y + 1, zoom)
    return min_lat, max_lat, min_lon, max_lon


def meters_per_pixel(lat: float, zoom: int, tile_size_px: int = TILE_SIZE_PX) -> float:
    """Ground resolution at a latitude, for planning and reporting."""
    return EARTH_CIRCUMFERENCE_M * math.cos(math.radians(lat)) / (2.0**zoom * tile_size_px)
