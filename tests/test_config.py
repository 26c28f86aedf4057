"""
Tests for configuration loading.
"""
import os

import pytest

from listing_dedupe.config import DedupeConfig
from listing_dedupe.errors import ConfigError


class TestDedupeConfig:
    """Tests for defaults and validation."""

    def test_defaults(self):
        config = DedupeConfig()
        assert config.detect_chunk_size == 800
        assert config.chunked_row_threshold == 15000
        assert config.pause_after_seconds == 240
        assert config.max_file_size_bytes == 10 * 1024 * 1024
        assert config.end_code == "OtherListingError"

    def test_pause_never_negative(self):
        assert DedupeConfig(time_budget_seconds=30, safety_margin_seconds=60).pause_after_seconds == 0

    def test_invalid_chunk_size(self):
        with pytest.raises(ConfigError):
            DedupeConfig(detect_chunk_size=0)

    def test_invalid_threshold(self):
        with pytest.raises(ConfigError):
            DedupeConfig(similarity_threshold=1.5)


class TestFromEnv:
    """Tests for environment-driven configuration."""

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEDUPE_DETECT_CHUNK_SIZE", "500")
        monkeypatch.setenv("DEDUPE_TIME_BUDGET_SECONDS", "120")
        monkeypatch.setenv("DEDUPE_STATE_DIR", str(tmp_path / "state"))
        config = DedupeConfig.from_env(tmp_path / "missing.env")
        assert config.detect_chunk_size == 500
        assert config.time_budget_seconds == 120.0
        assert config.state_dir == tmp_path / "state"

    def test_env_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("DEDUPE_SITE_FILTER", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("DEDUPE_SITE_FILTER=US\n", encoding="utf-8")
        try:
            config = DedupeConfig.from_env(env_file)
        finally:
            os.environ.pop("DEDUPE_SITE_FILTER", None)
        assert config.site_filter == "US"

    def test_blank_values_ignored(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEDUPE_REDIS_URL", "  ")
        assert DedupeConfig.from_env(tmp_path / "missing.env").redis_url is None

    def test_bad_number(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DEDUPE_MAX_FILE_SIZE_MB", "lots")
        with pytest.raises(ConfigError):
            DedupeConfig.from_env(tmp_path / "missing.env")
