#!/usr/bin/env python3
"""
Viewshed MCP Server - Entry Point

Configures artifact storage, the tile cache directory and engine options from
the environment (and .env), then runs the async MCP server over stdio
(for Claude Desktop) or HTTP (for API access).
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .constants import EnvVar, SessionProvider, StorageProvider

# Load environment variables from .env file
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "chuk-mcp-viewshed" / "tiles"


def _artifact_store_kwargs() -> dict[str, Any] | None:
    """ArtifactStore arguments for the configured provider, None if unusable."""
    provider = os.environ.get(EnvVar.ARTIFACTS_PROVIDER, StorageProvider.MEMORY)
    bucket = os.environ.get(EnvVar.BUCKET_NAME)
    redis_url = os.environ.get(EnvVar.REDIS_URL)
    artifacts_path = os.environ.get(EnvVar.ARTIFACTS_PATH)

    kwargs: dict[str, Any] = {
        "session_provider": SessionProvider.REDIS if redis_url else SessionProvider.MEMORY,
    }

    if provider == StorageProvider.S3:
        if not all(
            [
                bucket,
                os.environ.get(EnvVar.AWS_ACCESS_KEY_ID),
                os.environ.get(EnvVar.AWS_SECRET_ACCESS_KEY),
            ]
        ):
            logger.warning(
                "S3 provider configured but missing credentials. "
                f"Set {EnvVar.AWS_ACCESS_KEY_ID}, {EnvVar.AWS_SECRET_ACCESS_KEY}, "
                f"and {EnvVar.BUCKET_NAME}."
            )
            return None
        logger.info(
            f"S3 artifact storage (bucket: {bucket}, "
            f"endpoint: {os.environ.get(EnvVar.AWS_ENDPOINT_URL_S3)})"
        )
        kwargs["bucket"] = bucket

    elif provider == StorageProvider.FILESYSTEM:
        if not artifacts_path:
            logger.warning(
                f"Filesystem provider configured but {EnvVar.ARTIFACTS_PATH} not set. "
                "Defaulting to memory provider."
            )
            provider = StorageProvider.MEMORY
        else:
            Path(artifacts_path).mkdir(parents=True, exist_ok=True)
            kwargs["bucket"] = artifacts_path

    kwargs["storage_provider"] = provider
    return kwargs


def _init_artifact_store() -> bool:
    """
    Initialize the artifact store used for coverage GeoJSON exports.

    Returns:
        True if artifact store was initialized, False otherwise
    """
    kwargs = _artifact_store_kwargs()
    if kwargs is None:
        return False

    try:
        from chuk_artifacts import ArtifactStore
        from chuk_mcp_server import set_global_artifact_store

        set_global_artifact_store(ArtifactStore(**kwargs))
        logger.info(f"Artifact store initialized (provider: {kwargs['storage_provider']})")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize artifact store: {e}")
        return False


def _init_tile_cache_dir(cache_dir: str | None = None) -> str | None:
    """Resolve and create the persistent tile cache directory.

    An explicit argument wins over VIEWSHED_CACHE_DIR; the string "memory"
    disables the persistent tier.
    """
    value = cache_dir or os.environ.get(EnvVar.CACHE_DIR) or str(DEFAULT_CACHE_DIR)
    if value == StorageProvider.MEMORY:
        os.environ.pop(EnvVar.CACHE_DIR, None)
        logger.info("Tile cache: memory only")
        return None

    try:
        Path(value).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Tile cache directory {value} unusable ({e}), using memory only")
        os.environ.pop(EnvVar.CACHE_DIR, None)
        return None

    os.environ[EnvVar.CACHE_DIR] = value
    logger.info(f"Tile cache directory: {value}")
    return value


def main() -> None:
    """Main entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Viewshed MCP Server")
    parser.add_argument(
        "mode",
        nargs="?",
        choices=["stdio", "http"],
        default=None,
        help="Transport mode (stdio for Claude Desktop, http for API)",
    )
    parser.add_argument(
        "--host", default="localhost", help="Host for HTTP mode (default: localhost)"
    )
    parser.add_argument("--port", type=int, default=8004, help="Port for HTTP mode (default: 8004)")
    parser.add_argument(
        "--cache-dir", default=None, help="Tile cache directory ('memory' to disable)"
    )
    parser.add_argument("--zoom", type=int, default=None, help="Elevation tile zoom level")
    parser.add_argument(
        "--max-distance", type=float, default=None, help="Default viewshed scan distance (m)"
    )

    args = parser.parse_args()

    # Engine options are read when the manager is built, so set them first
    if args.zoom is not None:
        os.environ[EnvVar.TILE_ZOOM] = str(args.zoom)
    if args.max_distance is not None:
        os.environ[EnvVar.MAX_DISTANCE_M] = str(args.max_distance)
    _init_tile_cache_dir(args.cache_dir)
    _init_artifact_store()

    from .async_server import mcp

    stdio = args.mode == "stdio" or (
        args.mode is None and (os.environ.get(EnvVar.MCP_STDIO) or not sys.stdin.isatty())
    )
    if stdio:
        print("Viewshed MCP Server starting in STDIO mode", file=sys.stderr)
        mcp.run(stdio=True)
    else:
        print(
            f"Viewshed MCP Server starting in HTTP mode on {args.host}:{args.port}",
            file=sys.stderr,
        )
        mcp.run(host=args.host, port=args.port, stdio=False)


if __name__ == "__main__":
    main()
