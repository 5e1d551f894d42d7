"""Test Settings loading from TOML, overrides and environment."""

import pytest

from journal_analytics.core.config import Settings, load_settings
from journal_analytics.core.errors import ConfigError


class TestSettingsDefaults:
    def test_default_settings(self):
        settings = Settings()
        assert settings.analytics.default_timezone is None
        assert settings.analytics.starting_balance == 10_000.0
        assert settings.storage.store_path == "data/journal.json"
        assert settings.storage.trades_key == "tradestial:trades"
        assert settings.observability.log_format == "json"

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "absent.toml")
        assert settings.analytics.starting_balance == 10_000.0


class TestLoadSettings:
    def test_toml_file(self, tmp_path):
        path = tmp_path / "journal.toml"
        path.write_text(
            '[analytics]\n'
            'default_timezone = "America/New_York"\n'
            'starting_balance = 25000\n'
            '\n'
            '[storage]\n'
            'store_path = "/tmp/j.json"\n'
        )
        settings = load_settings(path)
        assert settings.analytics.default_timezone == "America/New_York"
        assert settings.analytics.starting_balance == 25_000.0
        assert settings.storage.store_path == "/tmp/j.json"

    def test_offset_timezone(self, tmp_path):
        path = tmp_path / "journal.toml"
        path.write_text("[analytics]\ndefault_timezone = -300\n")
        assert load_settings(path).analytics.default_timezone == -300

    def test_overrides(self):
        settings = load_settings(overrides={"observability": {"log_level": "DEBUG"}})
        assert settings.observability.log_level == "DEBUG"

    def test_invalid_value_raises_config_error(self):
        with pytest.raises(ConfigError, match="Invalid settings"):
            load_settings(overrides={"analytics": {"starting_balance": "lots"}})

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("JOURNAL_ANALYTICS__STARTING_BALANCE", "500")
        assert load_settings().analytics.starting_balance == 500.0
