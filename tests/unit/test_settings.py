"""
Configuration Tests
===================

Loading settings from defaults, Config.toml, .env and environment variables.
"""

from pathlib import Path

import pytest

from dailyfeed.config.settings import (
    CACHE_FILE_NAME,
    DailyFeedSettings,
    LogLevel,
    get_settings,
    load_settings,
)
from dailyfeed.utils.exceptions import ConfigurationError, ErrorCode


class TestDefaults:
    def test_defaults(self):
        settings = DailyFeedSettings()

        assert settings.sources == []
        assert settings.cache_max_days == 0
        assert settings.cache_url is None
        assert settings.proxy is None
        assert settings.site_title == ""
        assert settings.fetch.parallel_feeds == 5
        assert settings.fetch.request_timeout == 30
        assert settings.logging.level == LogLevel.INFO

    def test_cache_path(self):
        settings = DailyFeedSettings(target_dir="public")

        assert settings.cache_path == Path("public") / CACHE_FILE_NAME


class TestValidation:
    """Field validation."""

    def test_sources_are_stripped(self):
        settings = DailyFeedSettings(sources=["  https://a.example.com/rss  "])

        assert settings.sources == ["https://a.example.com/rss"]

    @pytest.mark.parametrize("bad_source", [
        "ftp://a.example.com/rss",
        "not a url",
        "file:///etc/passwd",
    ])
    def test_non_http_source_rejected(self, bad_source):
        with pytest.raises(ValueError):
            DailyFeedSettings(sources=[bad_source])

    def test_negative_retention_rejected(self):
        with pytest.raises(ValueError):
            DailyFeedSettings(cache_max_days=-1)

    def test_blank_optionals_are_absent(self):
        settings = DailyFeedSettings(cache_url="  ", proxy="")

        assert settings.cache_url is None
        assert settings.proxy is None

    def test_unsupported_proxy(self):
        settings = DailyFeedSettings(proxy="gopher://old.example.com")

        with pytest.raises(ConfigurationError, match="proxy"):
            settings.validate_configuration()

    def test_socks_proxy_accepted(self):
        DailyFeedSettings(proxy="socks5://127.0.0.1:1080").validate_configuration()

    def test_target_dir_must_be_directory(self, tmp_path):
        (tmp_path / "blocked").write_text("file")
        settings = DailyFeedSettings(target_dir=str(tmp_path / "blocked"))

        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate_configuration()

        assert exc_info.value.error_code == ErrorCode.CONFIG_INVALID

    def test_debug_forces_debug_level(self):
        assert DailyFeedSettings(debug=True).get_effective_log_level() == "DEBUG"
        assert DailyFeedSettings().get_effective_log_level() == "INFO"


class TestSources:
    """Config.yaml, Config.toml, .env and environment precedence."""

    def test_config_toml(self, tmp_path):
        (tmp_path / "Config.toml").write_text(
            'site_title = "From TOML"\n'
            'cache_max_days = 3\n'
            'sources = ["https://a.example.com/rss", "https://b.example.com/rss"]\n'
            '\n'
            '[fetch]\n'
            'parallel_feeds = 2\n'
        )

        settings = load_settings()

        assert settings.site_title == "From TOML"
        assert settings.cache_max_days == 3
        assert settings.sources == ["https://a.example.com/rss", "https://b.example.com/rss"]
        assert settings.fetch.parallel_feeds == 2

    def test_config_yaml(self, tmp_path):
        (tmp_path / "Config.yaml").write_text(
            "site_title: From YAML\n"
            "sources:\n"
            "  - https://a.example.com/rss\n"
            "fetch:\n"
            "  request_timeout: 9\n"
        )

        settings = load_settings()

        assert settings.site_title == "From YAML"
        assert settings.sources == ["https://a.example.com/rss"]
        assert settings.fetch.request_timeout == 9

    def test_toml_overrides_yaml(self, tmp_path):
        (tmp_path / "Config.yaml").write_text("site_title: From YAML\ncache_max_days: 5\n")
        (tmp_path / "Config.toml").write_text('site_title = "From TOML"\n')

        settings = load_settings()

        assert settings.site_title == "From TOML"
        assert settings.cache_max_days == 5

    def test_environment_overrides_toml(self, tmp_path, monkeypatch):
        (tmp_path / "Config.toml").write_text('site_title = "From TOML"\ncache_max_days = 3\n')
        monkeypatch.setenv("DAILYFEED_SITE_TITLE", "From env")
        monkeypatch.setenv("DAILYFEED_FETCH__REQUEST_TIMEOUT", "12")

        settings = load_settings()

        assert settings.site_title == "From env"
        assert settings.cache_max_days == 3
        assert settings.fetch.request_timeout == 12

    def test_environment_sources_as_json(self, monkeypatch):
        monkeypatch.setenv("DAILYFEED_SOURCES", '["https://a.example.com/rss"]')

        assert load_settings().sources == ["https://a.example.com/rss"]

    def test_invalid_config_wrapped(self, tmp_path):
        (tmp_path / "Config.toml").write_text('sources = ["nope"]\n')

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings()

        assert "Failed to initialize settings" in str(exc_info.value)

    def test_overrides(self):
        assert load_settings(site_title="Override").site_title == "Override"

    def test_get_settings_is_cached(self):
        first = get_settings()

        assert get_settings() is first
        assert get_settings(reload=True) is not first
