"""
Terrain-RGB raster decoding and sampling.

All functions are synchronous and CPU-bound. Callers on the event loop
wrap decode_terrain_rgb in asyncio.to_thread().
Each pixel encodes elevation as -10000 + (R*65536 + G*256 + B) * 0.1 metres.
"""

import io
import logging
import math
from typing import Any

import numpy as np
from numpy.typing import NDArray
from PIL import Image, UnidentifiedImageError

from ..constants import TILE_SIZE_PX, ErrorMessages
from .errors import TileDecodeError

logger = logging.getLogger(__name__)

# Type aliases
FloatArray = NDArray[np.floating[Any]]
ElevationGrid = NDArray[np.float32]

TERRAIN_RGB_BASE = -10000.0
TERRAIN_RGB_STEP = 0.1


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_terrain_rgb(data: bytes, expected_size: int = TILE_SIZE_PX) -> ElevationGrid:
    """
    Decode a Terrain-RGB image payload into an elevation grid.

    Args:
        data: Compressed image bytes (PNG/WebP)
        expected_size: Required square tile dimension in pixels

    Returns:
        Read-only float32 array of shape (expected_size, expected_size)

    Raises:
        TileDecodeError: payload is not an image, has fewer than three
            colour channels, or has the wrong dimensions
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, EOFError) as e:
        raise TileDecodeError(ErrorMessages.DECODE_ERROR.format(e)) from e

    if img.mode == "P":
        img = img.convert("RGBA" if "transparency" in img.info else "RGB")

    bands = len(img.getbands())
    if bands < 3:
        raise TileDecodeError(ErrorMessages.CHANNEL_COUNT.format(bands))

    width, height = img.size
    if width != expected_size or height != expected_size:
        raise TileDecodeError(
            ErrorMessages.DIMENSION_MISMATCH.format(width, height, expected_size, expected_size)
        )

    rgb = np.asarray(img.convert("RGB"), dtype=np.float64)
    grid = rgb_to_elevation(rgb[..., 0], rgb[..., 1], rgb[..., 2])
    grid.setflags(write=False)
    return grid


def rgb_to_elevation(r: FloatArray, g: FloatArray, b: FloatArray) -> ElevationGrid:
    """Apply the Terrain-RGB formula channel-wise."""
    value = TERRAIN_RGB_BASE + (r * 65536.0 + g * 256.0 + b) * TERRAIN_RGB_STEP
    return np.asarray(value, dtype=np.float32)


def encode_terrain_rgb(grid: FloatArray) -> bytes:
    """
    Encode an elevation array as a Terrain-RGB PNG.

    Values are quantised to 0.1 m and clipped to the representable range.
    """
    code = np.rint((np.asarray(grid, dtype=np.float64) - TERRAIN_RGB_BASE) / TERRAIN_RGB_STEP)
    code = np.clip(code, 0, 2**24 - 1).astype(np.uint32)
    rgb = np.stack(
        [(code >> 16) & 0xFF, (code >> 8) & 0xFF, code & 0xFF],
        axis=-1,
    ).astype(np.uint8)

    buf = io.BytesIO()
    Image.fromarray(rgb).save(buf, format="PNG")
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------


def elevation_at(grid: FloatArray, x: int, y: int) -> float:
    """Raw sample at pixel column x, row y; 0.0 outside the grid."""
    h, w = grid.shape
    if x < 0 or y < 0 or x >= w or y >= h:
        return 0.0
    return float(grid[y, x])


def interpolated_elevation(grid: FloatArray, x: float, y: float) -> float:
    """Bilinear sample at fractional pixel position (x = column, y = row)."""
    h, w = grid.shape
    x0 = min(max(int(math.floor(x)), 0), w - 1)
    y0 = min(max(int(math.floor(y)), 0), h - 1)
    x1 = min(x0 + 1, w - 1)
    y1 = min(y0 + 1, h - 1)

    dx = min(max(x - x0, 0.0), 1.0)
    dy = min(max(y - y0, 0.0), 1.0)

    v00 = float(grid[y0, x0])
    v10 = float(grid[y0, x1])
    v01 = float(grid[y1, x0])
    v11 = float(grid[y1, x1])

    top = v00 * (1 - dx) + v10 * dx
    bottom = v01 * (1 - dx) + v11 * dx
    return top * (1 - dy) + bottom * dy


def interpolated_elevations(grid: FloatArray, xs: FloatArray, ys: FloatArray) -> FloatArray:
    """Vectorised bilinear sampling for many pixel positions in one tile."""
    h, w = grid.shape
    xs = np.asarray(xs, dtype=np.float64)
    ys = np.asarray(ys, dtype=np.float64)

    x0 = np.clip(np.floor(xs).astype(np.int64), 0, w - 1)
    y0 = np.clip(np.floor(ys).astype(np.int64), 0, h - 1)
    x1 = np.minimum(x0 + 1, w - 1)
    y1 = np.minimum(y0 + 1, h - 1)

    dx = np.clip(xs - x0, 0.0, 1.0)
    dy = np.clip(ys - y0, 0.0, 1.0)

    g = np.asarray(grid, dtype=np.float64)
    top = g[y0, x0] * (1 - dx) + g[y0, x1] * dx
    bottom = g[y1, x0] * (1 - dx) + g[y1, x1] * dx
    return top * (1 - dy) + bottom * dy
