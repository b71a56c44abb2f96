"""
Shared helper for running chuk-mcp-viewshed MCP tools directly from Python.

Registers every tool against a ViewshedManager and an in-memory artifact
store so demo scripts can call tools as plain async functions, without an
MCP transport.

Usage:
    from tool_runner import ToolRunner

    async def main():
        runner = ToolRunner()
        result = await runner.run("viewshed_capabilities")
        print(result)
"""

from __future__ import annotations

import json
import os
from typing import Any

from chuk_mcp_viewshed.core.config import ViewshedConfig
from chuk_mcp_viewshed.core.viewshed_manager import ViewshedManager
from chuk_mcp_viewshed.tools.analysis import register_analysis_tools
from chuk_mcp_viewshed.tools.discovery import register_discovery_tools
from chuk_mcp_viewshed.tools.download import register_download_tools


class _MiniMCP:
    """Captures tools registered via @mcp.tool()."""

    def __init__(self) -> None:
        self._tools: dict[str, Any] = {}

    def tool(self) -> Any:
        def decorator(fn: Any) -> Any:
            self._tools[fn.__name__] = fn
            return fn

        return decorator

    def get_tool(self, name: str) -> Any:
        return self._tools[name]


def _init_artifact_store() -> None:
    os.environ.setdefault("CHUK_ARTIFACTS_PROVIDER", "memory")
    try:
        from chuk_artifacts import ArtifactStore
        from chuk_mcp_server import set_global_artifact_store

        store = ArtifactStore(storage_provider="memory", session_provider="memory")
        set_global_artifact_store(store)
    except ImportError as e:
        print(f"Warning: could not init artifact store: {e}")
        print("  Coverage export will fail. Install chuk-artifacts and chuk-mcp-server.")


class ToolRunner:
    """
    Run chuk-mcp-viewshed MCP tools directly from Python.

    run() returns parsed JSON, run_text() the human-readable rendering.
    Engine options not given here come from VIEWSHED_* environment variables.
    """

    def __init__(self, **config_overrides: Any) -> None:
        _init_artifact_store()
        self._mcp = _MiniMCP()
        self.manager = ViewshedManager(ViewshedConfig.from_env(**config_overrides))
        register_discovery_tools(self._mcp, self.manager)
        register_download_tools(self._mcp, self.manager)
        register_analysis_tools(self._mcp, self.manager)

    @property
    def tool_names(self) -> list[str]:
        return list(self._mcp._tools.keys())

    async def run(self, tool_name: str, **kwargs: Any) -> dict[str, Any]:
        """Call a tool by name and return parsed JSON."""
        fn = self._mcp.get_tool(tool_name)
        return json.loads(await fn(**kwargs))

    async def run_text(self, tool_name: str, **kwargs: Any) -> str:
        """Call a tool by name with output_mode='text'."""
        fn = self._mcp.get_tool(tool_name)
        return await fn(output_mode="text", **kwargs)
