"""MCP tool modules for chuk-mcp-viewshed."""
