"""
chuk-mcp-viewshed: Terrain Viewshed & Cumulative Coverage MCP Server

Computes line-of-sight viewsheds over Terrain-RGB elevation tiles with
Earth-curvature correction, caches decoded tiles in memory and on disk,
and accumulates visible terrain into a 100m coverage grid exported as GeoJSON.
"""
