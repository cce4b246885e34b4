"""Tests for environment-driven settings."""

import pytest

from location_intelligence.config import Settings
from location_intelligence.db import get_db_url


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.google_maps_api_key is None
        assert settings.cache_retention_days == 30
        assert settings.cache_freshness_hours == 24
        assert settings.http_timeout_seconds == 10
        assert settings.live_retry_attempts == 2
        assert settings.batch_size == 3
        assert settings.base_price_per_area == 3500

    def test_values_from_environment(self):
        settings = Settings.from_env({
            "GOOGLE_MAPS_API_KEY": "key-123",
            "CACHE_RETENTION_DAYS": "7",
            "HTTP_TIMEOUT_SECONDS": "4.5",
            "BATCH_SIZE": "5",
            "BATCH_PAUSE_SECONDS": "0",
        })
        assert settings.google_maps_api_key == "key-123"
        assert settings.cache_retention_days == 7
        assert settings.http_timeout_seconds == 4.5
        assert settings.batch_size == 5
        assert settings.batch_pause_seconds == 0

    def test_blank_values_use_defaults(self):
        assert Settings.from_env({"BATCH_SIZE": ""}).batch_size == 3

    @pytest.mark.parametrize("env", [
        {"CACHE_RETENTION_DAYS": "soon"},
        {"HTTP_TIMEOUT_SECONDS": "30"},
        {"BATCH_SIZE": "0"},
    ])
    def test_invalid_values_raise(self, env):
        with pytest.raises(ValueError):
            Settings.from_env(env)


class TestDataDir:
    def test_database_lives_under_data_dir(self, data_dir):
        assert get_db_url() == f"sqlite+aiosqlite:///{data_dir / 'data.db'}"

    def test_home_is_expanded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.setenv("DATA_DIR", "~/li")
        assert get_db_url().endswith(f"{tmp_path}/li/data.db")
