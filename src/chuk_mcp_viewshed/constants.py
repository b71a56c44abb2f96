"""
Constants for chuk-mcp-viewshed server.

All magic strings, engine defaults, and configuration values live here.
"""


class ServerConfig:
    NAME = "chuk-mcp-viewshed"
    VERSION = "0.1.0"
    DESCRIPTION = "Terrain Viewshed & Cumulative Coverage MCP Server"


class StorageProvider:
    MEMORY = "memory"
    S3 = "s3"
    FILESYSTEM = "filesystem"


class SessionProvider:
    MEMORY = "memory"
    REDIS = "redis"


class EnvVar:
    ARTIFACTS_PROVIDER = "CHUK_ARTIFACTS_PROVIDER"
    BUCKET_NAME = "BUCKET_NAME"
    REDIS_URL = "REDIS_URL"
    ARTIFACTS_PATH = "CHUK_ARTIFACTS_PATH"
    AWS_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
    AWS_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"
    AWS_ENDPOINT_URL_S3 = "AWS_ENDPOINT_URL_S3"
    MCP_STDIO = "MCP_STDIO"

    # Engine configuration
    MAX_DISTANCE_M = "VIEWSHED_MAX_DISTANCE_M"
    ANGULAR_RESOLUTION_DEG = "VIEWSHED_ANGULAR_RESOLUTION_DEG"
    SAMPLE_INTERVAL_M = "VIEWSHED_SAMPLE_INTERVAL_M"
    OBSERVER_HEIGHT_M = "VIEWSHED_OBSERVER_HEIGHT_M"
    ACCOUNT_FOR_CURVATURE = "VIEWSHED_ACCOUNT_FOR_CURVATURE"
    GRID_CELL_SIZE_M = "VIEWSHED_GRID_CELL_SIZE_M"
    TILE_ZOOM = "VIEWSHED_TILE_ZOOM"
    MAX_CONCURRENT_FETCHES = "VIEWSHED_MAX_CONCURRENT_FETCHES"
    MAX_CONCURRENT_RAYS = "VIEWSHED_MAX_CONCURRENT_RAYS"
    TILE_URL_TEMPLATE = "VIEWSHED_TILE_URL_TEMPLATE"
    ACCESS_TOKEN = "MAPBOX_ACCESS_TOKEN"
    CACHE_DIR = "VIEWSHED_CACHE_DIR"
    REQUEST_TIMEOUT_S = "VIEWSHED_REQUEST_TIMEOUT_S"


# Viewshed defaults
DEFAULT_MAX_DISTANCE_M = 3000.0
DEFAULT_ANGULAR_RESOLUTION_DEG = 1.0
DEFAULT_SAMPLE_INTERVAL_M = 10.0
DEFAULT_OBSERVER_HEIGHT_M = 1.7
DEFAULT_ACCOUNT_FOR_CURVATURE = True
EARTH_RADIUS_M = 6_371_000.0
MAX_VIEWSHED_DISTANCE_M = 50000.0  # 50 km max scan distance

# Coverage grid
DEFAULT_GRID_CELL_SIZE_M = 100.0
METERS_PER_DEGREE_LAT = 111320.0

# Tiling
DEFAULT_TILE_ZOOM = 14
TILE_SIZE_PX = 512
EARTH_CIRCUMFERENCE_M = 40075016.686
MAX_MERCATOR_LAT = 85.0511
TERRAIN_RGB_URL_TEMPLATE = (
    "https://api.mapbox.com/v4/mapbox.terrain-rgb/{z}/{x}/{y}@2x.pngraw?access_token={token}"
)

# Region download
DEFAULT_MAX_CONCURRENT_FETCHES = 4
DEFAULT_MAX_CONCURRENT_RAYS = 8
REGION_EDGE_STEP_DEG = 10
MAX_REGION_RADIUS_M = 25000.0

# Cache & retry
TILE_CACHE_MAX_ENTRIES = 100
TILE_CACHE_MAX_BYTES = 100 * TILE_SIZE_PX * TILE_SIZE_PX * 4  # ~100 decoded tiles
TILE_CACHE_SHARDS = 16
TILE_FILE_SUFFIX = ".terrain"
REQUEST_TIMEOUT_S = 30.0
RETRY_ATTEMPTS = 3
RETRY_WAIT_MIN = 1
RETRY_WAIT_MAX = 10

# Simulation
MIN_RECALCULATION_DISTANCE_M = 100.0
DEFAULT_ROUTE_STEPS = 100
DEFAULT_STEP_DELAY_S = 0.0

# Output
GEOJSON_MIME_TYPE = "application/geo+json"
COVERAGE_ARTIFACT_PREFIX = "viewshed"


class ErrorMessages:
    NO_ARTIFACT_STORE = (
        "No artifact store available. Configure CHUK_ARTIFACTS_PROVIDER "
        "environment variable (memory, filesystem, or s3)."
    )
    INVALID_LATITUDE = "Latitude {} outside supported range (-{}, {})"
    INVALID_LONGITUDE = "Longitude {} outside range (-180, 180)"
    INVALID_RADIUS = "radius_m must be >= 0, got {}"
    RADIUS_TOO_LARGE = "radius_m ({:.0f}) exceeds maximum ({:.0f})"
    DISTANCE_TOO_LARGE = "max_distance_m ({:.0f}) exceeds maximum ({:.0f})"
    INVALID_POINTS = "points must be a non-empty list of [lat, lon] pairs"
    INVALID_ROUTE = "route must contain at least 2 [lat, lon] waypoints"
    INVALID_STEPS = "steps must be >= 1, got {}"
    NETWORK_ERROR = "Failed to fetch tile {} after {} attempts: {}"
    HTTP_STATUS = "Tile {} request returned HTTP {}"
    DECODE_ERROR = "Tile payload could not be decoded: {}"
    DIMENSION_MISMATCH = "Tile is {}x{} pixels, expected {}x{}"
    CHANNEL_COUNT = "Tile has {} colour channel(s), at least 3 required"
    NO_ELEVATION = "No elevation available at ({}, {})"


class SuccessMessages:
    REGION_TILES = "{} tile(s) cover a {:.0f}m radius, {} cached"
    DOWNLOAD_COMPLETE = "Downloaded region: {}/{} tiles cached"
    DOWNLOAD_CANCELLED = "Region download cancelled: {}/{} tiles cached"
    POINT_ELEVATION = "Elevation at point: {:.1f}m"
    POINTS_ELEVATION = "Retrieved elevation for {} of {} points"
    CACHE_CLEARED = "Tile cache cleared ({:.1f} MB released)"
    VIEWSHED_COMPLETE = "Viewshed computed: {} visible points, {} cells in {:.2f}s"
    SIMULATION_COMPLETE = "Route simulated: {} positions, {} cells ({:.2f} km²)"
    COVERAGE = "Coverage: {} cells, {:.2f} km²"
    COVERAGE_CLEARED = "Coverage cleared ({} cells removed)"
