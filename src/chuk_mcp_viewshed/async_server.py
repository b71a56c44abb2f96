#!/usr/bin/env python3
"""
Async Viewshed MCP Server using chuk-mcp-server

Line-of-sight viewshed analysis over Terrain-RGB elevation tiles.
Decoded tiles are cached in memory and on disk; visible terrain accumulates
into a session coverage grid that can be exported to chuk-artifacts as GeoJSON.

Storage is managed through chuk-mcp-server's built-in artifact store context.
"""

import logging

from chuk_mcp_server import ChukMCPServer

from .core.viewshed_manager import ViewshedManager
from .tools.analysis import register_analysis_tools
from .tools.discovery import register_discovery_tools
from .tools.download import register_download_tools

logging.basicConfig(level=logging.INFO)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

# Create the MCP server instance
mcp = ChukMCPServer("chuk-mcp-viewshed")

# Create viewshed manager instance
manager = ViewshedManager()

# Register all tool modules
register_discovery_tools(mcp, manager)
register_download_tools(mcp, manager)
register_analysis_tools(mcp, manager)

# Run the server
if __name__ == "__main__":
    logger.info("Starting Viewshed MCP Server...")
    logger.info("Storage: Using chuk-mcp-server artifact store context")
    mcp.run(stdio=True)
