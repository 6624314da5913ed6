"""Tests for user settings."""
import json
import logging

import pytest

from turnlink import settings
from turnlink.constants import DEFAULT_CONNECT_TIMEOUT_MS


@pytest.fixture(autouse=True)
def settings_home(tmp_path, monkeypatch):
    """Keep settings out of the real home directory."""
    monkeypatch.setenv("TURNLINK_HOME", str(tmp_path / "home"))
    return tmp_path / "home"


class TestSettings:
    """Load, save and typed getters."""

    def test_defaults_without_file(self):
        assert settings.load_settings() == settings.DEFAULT_SETTINGS
        assert settings.get_connect_timeout_ms() == DEFAULT_CONNECT_TIMEOUT_MS
        assert settings.get_log_level() == logging.INFO

    def test_save_and_load(self, settings_home):
        settings.set_connect_timeout_ms(1500)
        assert (settings_home / "settings.json").exists()
        assert settings.get_connect_timeout_ms() == 1500

    def test_saved_values_merged_with_defaults(self, settings_home):
        settings_home.mkdir()
        (settings_home / "settings.json").write_text(json.dumps({"log_level": "debug"}))
        loaded = settings.load_settings()
        assert loaded["connect_timeout_ms"] == DEFAULT_CONNECT_TIMEOUT_MS
        assert settings.get_log_level() == logging.DEBUG

    def test_corrupt_file_uses_defaults(self, settings_home):
        settings_home.mkdir()
        (settings_home / "settings.json").write_text("{not json")
        assert settings.load_settings() == settings.DEFAULT_SETTINGS

    def test_bad_values_fall_back(self, settings_home):
        settings_home.mkdir()
        (settings_home / "settings.json").write_text(
            json.dumps({"connect_timeout_ms": "soon", "log_level": "LOUD"})
        )
        assert settings.get_connect_timeout_ms() == DEFAULT_CONNECT_TIMEOUT_MS
        assert settings.get_log_level() == logging.INFO
