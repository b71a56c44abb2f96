"""Tests for chuk_mcp_viewshed.core.config."""

import pytest
from pydantic import ValidationError

from chuk_mcp_viewshed.constants import TERRAIN_RGB_URL_TEMPLATE, EnvVar
from chuk_mcp_viewshed.core.config import ViewshedConfig


class TestDefaults:
    def test_values(self):
        config = ViewshedConfig()
        assert config.max_distance_m == 3000.0
        assert config.angular_resolution_deg == 1.0
        assert config.sample_interval_m == 10.0
        assert config.observer_height_m == 1.7
        assert config.account_for_curvature is True
        assert config.earth_radius_m == 6_371_000.0
        assert config.grid_cell_size_m == 100.0
        assert config.tile_zoom_level == 14
        assert config.tile_url_template == TERRAIN_RGB_URL_TEMPLATE
        assert config.cache_dir is None

    def test_derived(self):
        config = ViewshedConfig()
        assert config.ray_count == 360
        assert config.samples_per_ray == 300
        assert config.cell_area_km2 == pytest.approx(0.01)

    @pytest.mark.parametrize("res, rays", [(90.0, 4), (45.0, 8), (0.5, 720), (360.0, 1)])
    def test_ray_count(self, res, rays):
        assert ViewshedConfig(angular_resolution_deg=res).ray_count == rays

    def test_samples_per_ray_floors(self):
        assert ViewshedConfig(max_distance_m=105.0, sample_interval_m=10.0).samples_per_ray == 10


class TestValidation:
    @pytest.mark.parametrize(
        "field, value",
        [
            ("max_distance_m", 0.0),
            ("angular_resolution_deg", 0.0),
            ("angular_resolution_deg", 400.0),
            ("sample_interval_m", -1.0),
            ("observer_height_m", -0.1),
            ("grid_cell_size_m", 0.0),
            ("tile_zoom_level", 23),
            ("max_concurrent_fetches", 0),
            ("max_concurrent_rays", 0),
            ("max_retry_attempts", 0),
        ],
    )
    def test_rejects(self, field, value):
        with pytest.raises(ValidationError):
            ViewshedConfig(**{field: value})

    def test_unknown_field(self):
        with pytest.raises(ValidationError):
            ViewshedConfig(bogus=1)

    def test_frozen(self):
        config = ViewshedConfig()
        with pytest.raises(ValidationError):
            config.max_distance_m = 10.0

    def test_model_copy_update(self):
        config = ViewshedConfig()
        other = config.model_copy(update={"observer_height_m": 0.0})
        assert other.observer_height_m == 0.0
        assert config.observer_height_m == 1.7


class TestFromEnv:
    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch):
        for name in vars(EnvVar).values():
            if isinstance(name, str) and name.startswith("VIEWSHED_"):
                monkeypatch.delenv(name, raising=False)

    def test_empty_env_gives_defaults(self):
        assert ViewshedConfig.from_env() == ViewshedConfig()

    def test_numeric_vars(self, monkeypatch):
        monkeypatch.setenv(EnvVar.MAX_DISTANCE_M, "5000")
        monkeypatch.setenv(EnvVar.ANGULAR_RESOLUTION_DEG, "2.5")
        monkeypatch.setenv(EnvVar.TILE_ZOOM, "12")
        monkeypatch.setenv(EnvVar.MAX_CONCURRENT_FETCHES, "8")
        monkeypatch.setenv(EnvVar.MAX_CONCURRENT_RAYS, "2")
        config = ViewshedConfig.from_env()
        assert config.max_distance_m == 5000.0
        assert config.angular_resolution_deg == 2.5
        assert config.tile_zoom_level == 12
        assert config.max_concurrent_fetches == 8
        assert config.max_concurrent_rays == 2

    @pytest.mark.parametrize(
        "raw, expected",
        [("true", True), ("1", True), ("YES", True), (" on ", True), ("false", False), ("0", False)],
    )
    def test_curvature_flag(self, monkeypatch, raw, expected):
        monkeypatch.setenv(EnvVar.ACCOUNT_FOR_CURVATURE, raw)
        assert ViewshedConfig.from_env().account_for_curvature is expected

    def test_strings(self, monkeypatch, tmp_path):
        monkeypatch.setenv(EnvVar.TILE_URL_TEMPLATE, "http://tiles/{z}/{x}/{y}.png")
        monkeypatch.setenv(EnvVar.CACHE_DIR, str(tmp_path))
        config = ViewshedConfig.from_env()
        assert config.tile_url_template == "http://tiles/{z}/{x}/{y}.png"
        assert config.cache_dir == str(tmp_path)

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv(EnvVar.OBSERVER_HEIGHT_M, "10")
        assert ViewshedConfig.from_env(observer_height_m=2.0).observer_height_m == 2.0

    def test_invalid_value(self, monkeypatch):
        monkeypatch.setenv(EnvVar.SAMPLE_INTERVAL_M, "-5")
        with pytest.raises(ValidationError):
            ViewshedConfig.from_env()
