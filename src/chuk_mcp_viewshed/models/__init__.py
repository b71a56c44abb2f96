"""Response models for chuk-mcp-viewshed."""

from .geojson import Feature, FeatureCollection, PolygonGeometry
from .responses import (
    CacheClearedResponse,
    CapabilitiesResponse,
    CoverageClearedResponse,
    CoverageResponse,
    DownloadRegionResponse,
    ErrorResponse,
    MultiPointResponse,
    PointElevationResponse,
    PointInfo,
    RegionTilesResponse,
    SimulationResponse,
    StatusResponse,
    ViewshedResponse,
    format_response,
)

__all__ = [
    "ErrorResponse",
    "StatusResponse",
    "CapabilitiesResponse",
    "RegionTilesResponse",
    "DownloadRegionResponse",
    "PointElevationResponse",
    "PointInfo",
    "MultiPointResponse",
    "CacheClearedResponse",
    "ViewshedResponse",
    "SimulationResponse",
    "CoverageResponse",
    "CoverageClearedResponse",
    "Feature",
    "FeatureCollection",
    "PolygonGeometry",
    "format_response",
]
