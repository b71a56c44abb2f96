"""Tests for server.py entry point helpers."""

import os
import sys
import types
from unittest.mock import MagicMock, patch

import pytest

from chuk_mcp_viewshed import server
from chuk_mcp_viewshed.server import (
    _artifact_store_kwargs,
    _init_artifact_store,
    _init_tile_cache_dir,
    main,
)


def _run_init(env):
    """Run _init_artifact_store under env with ArtifactStore and the global setter mocked."""
    mock_store_cls = MagicMock(name="ArtifactStore")
    mock_set_global = MagicMock(name="set_global_artifact_store")
    with patch.dict(os.environ, env, clear=True):
        with (
            patch("chuk_artifacts.ArtifactStore", mock_store_cls),
            patch("chuk_mcp_server.set_global_artifact_store", mock_set_global),
        ):
            result = _init_artifact_store()
    return result, mock_store_cls, mock_set_global


# =====================================================================
# _init_artifact_store
# =====================================================================


class TestInitArtifactStore:
    def test_default_memory_provider(self):
        result, store_cls, set_global = _run_init({})
        assert result is True
        store_cls.assert_called_once_with(storage_provider="memory", session_provider="memory")
        set_global.assert_called_once_with(store_cls.return_value)

    def test_s3_provider(self):
        env = {
            "CHUK_ARTIFACTS_PROVIDER": "s3",
            "BUCKET_NAME": "my-bucket",
            "AWS_ACCESS_KEY_ID": "AKID",
            "AWS_SECRET_ACCESS_KEY": "SECRET",
        }
        result, store_cls, _ = _run_init(env)
        assert result is True
        store_cls.assert_called_once_with(
            storage_provider="s3", session_provider="memory", bucket="my-bucket"
        )

    def test_s3_with_redis_session(self):
        env = {
            "CHUK_ARTIFACTS_PROVIDER": "s3",
            "BUCKET_NAME": "bucket",
            "AWS_ACCESS_KEY_ID": "AKID",
            "AWS_SECRET_ACCESS_KEY": "SECRET",
            "REDIS_URL": "redis://localhost:6379",
        }
        _, store_cls, _ = _run_init(env)
        assert store_cls.call_args.kwargs["session_provider"] == "redis"

    @pytest.mark.parametrize(
        "missing", ["BUCKET_NAME", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"]
    )
    def test_s3_missing_setting(self, missing):
        env = {
            "CHUK_ARTIFACTS_PROVIDER": "s3",
            "BUCKET_NAME": "bucket",
            "AWS_ACCESS_KEY_ID": "AKID",
            "AWS_SECRET_ACCESS_KEY": "SECRET",
        }
        del env[missing]
        result, store_cls, set_global = _run_init(env)
        assert result is False
        store_cls.assert_not_called()
        set_global.assert_not_called()

    def test_filesystem_provider(self, tmp_path):
        path = tmp_path / "artifacts"
        env = {"CHUK_ARTIFACTS_PROVIDER": "filesystem", "CHUK_ARTIFACTS_PATH": str(path)}
        result, store_cls, _ = _run_init(env)
        assert result is True
        assert path.is_dir()
        store_cls.assert_called_once_with(
            storage_provider="filesystem", session_provider="memory", bucket=str(path)
        )

    def test_filesystem_without_path_falls_back(self):
        result, store_cls, _ = _run_init({"CHUK_ARTIFACTS_PROVIDER": "filesystem"})
        assert result is True
        assert store_cls.call_args.kwargs["storage_provider"] == "memory"

    def test_store_construction_error(self):
        with patch.dict(os.environ, {}, clear=True):
            with (
                patch("chuk_artifacts.ArtifactStore", side_effect=RuntimeError("boom")),
                patch("chuk_mcp_server.set_global_artifact_store", MagicMock()),
            ):
                assert _init_artifact_store() is False

    def test_kwargs_none_for_bad_s3(self):
        with patch.dict(os.environ, {"CHUK_ARTIFACTS_PROVIDER": "s3"}, clear=True):
            assert _artifact_store_kwargs() is None


# =====================================================================
# _init_tile_cache_dir
# =====================================================================


class TestInitTileCacheDir:
    def test_explicit_directory(self, tmp_path):
        target = tmp_path / "tiles"
        with patch.dict(os.environ, {}, clear=True):
            assert _init_tile_cache_dir(str(target)) == str(target)
            assert os.environ["VIEWSHED_CACHE_DIR"] == str(target)
        assert target.is_dir()

    def test_env_directory(self, tmp_path):
        target = tmp_path / "from-env"
        with patch.dict(os.environ, {"VIEWSHED_CACHE_DIR": str(target)}, clear=True):
            assert _init_tile_cache_dir() == str(target)
        assert target.is_dir()

    def test_memory_disables(self):
        with patch.dict(os.environ, {"VIEWSHED_CACHE_DIR": "/somewhere"}, clear=True):
            assert _init_tile_cache_dir("memory") is None
            assert "VIEWSHED_CACHE_DIR" not in os.environ

    def test_default_directory(self, tmp_path):
        with patch.dict(os.environ, {}, clear=True):
            with patch.object(server, "DEFAULT_CACHE_DIR", tmp_path / "default"):
                assert _init_tile_cache_dir() == str(tmp_path / "default")

    def test_unusable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with patch.dict(os.environ, {}, clear=True):
            assert _init_tile_cache_dir(str(blocker / "tiles")) is None
            assert "VIEWSHED_CACHE_DIR" not in os.environ


# =====================================================================
# main()
# =====================================================================


@pytest.fixture
def fake_async_server():
    """Stand-in for the async_server module so main() never builds a real server."""
    module = types.ModuleType("chuk_mcp_viewshed.async_server")
    module.mcp = MagicMock(name="mcp")
    with patch.dict(sys.modules, {"chuk_mcp_viewshed.async_server": module}):
        yield module.mcp


class TestMain:
    def test_http_mode(self, fake_async_server):
        argv = ["chuk-mcp-viewshed", "http", "--port", "9000", "--cache-dir", "memory"]
        with patch.dict(os.environ, {}, clear=True):
            with (
                patch.object(sys, "argv", argv),
                patch.object(server, "_init_artifact_store", return_value=True),
            ):
                main()
        fake_async_server.run.assert_called_once_with(host="localhost", port=9000, stdio=False)

    def test_stdio_mode(self, fake_async_server):
        argv = ["chuk-mcp-viewshed", "stdio", "--cache-dir", "memory"]
        with patch.dict(os.environ, {}, clear=True):
            with (
                patch.object(sys, "argv", argv),
                patch.object(server, "_init_artifact_store", return_value=True),
            ):
                main()
        fake_async_server.run.assert_called_once_with(stdio=True)

    def test_engine_options_exported(self, fake_async_server):
        argv = [
            "chuk-mcp-viewshed",
            "stdio",
            "--cache-dir",
            "memory",
            "--zoom",
            "12",
            "--max-distance",
            "5000",
        ]
        with patch.dict(os.environ, {}, clear=True):
            with (
                patch.object(sys, "argv", argv),
                patch.object(server, "_init_artifact_store", return_value=True),
            ):
                main()
                assert os.environ["VIEWSHED_TILE_ZOOM"] == "12"
                assert os.environ["VIEWSHED_MAX_DISTANCE_M"] == "5000.0"

    def test_mcp_stdio_env(self, fake_async_server):
        argv = ["chuk-mcp-viewshed", "--cache-dir", "memory"]
        with patch.dict(os.environ, {"MCP_STDIO": "1"}, clear=True):
            with (
                patch.object(sys, "argv", argv),
                patch.object(server, "_init_artifact_store", return_value=True),
            ):
                main()
        fake_async_server.run.assert_called_once_with(stdio=True)
