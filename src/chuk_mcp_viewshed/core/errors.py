"""Exception types raised along the tile path."""


class ViewshedError(Exception):
    """Base class for chuk-mcp-viewshed errors."""


class TileDecodeError(ViewshedError):
    """Tile payload is not a usable Terrain-RGB image."""


class TileFetchError(ViewshedError):
    """Tile bytes could not be retrieved from the tile source."""
