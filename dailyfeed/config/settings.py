"""
DailyFeed Configuration System
==============================

Settings for a cache build, validated with Pydantic.

Precedence, highest first: environment variables (``DAILYFEED_`` prefix,
``__`` for nested sections), the ``.env`` file, ``Config.toml`` then
``Config.yaml`` in the working directory, then field defaults.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Type
from enum import Enum
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
    YamlConfigSettingsSource,
)

from ..utils.exceptions import ConfigurationError, ErrorCode


CACHE_FILE_NAME = "cache.json"


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class FetchSettings(BaseModel):
    """HTTP fetching configuration."""
    parallel_feeds: int = Field(default=5, ge=1, le=50, description="Concurrent feed fetches")
    request_timeout: int = Field(default=30, ge=1, le=300, description="Per-request timeout in seconds")
    user_agent: str = Field(default="DailyFeed/0.3 (+https://github.com/dailyfeed/dailyfeed)")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging on the console")
    console_logging: bool = Field(default=True, description="Enable console logging")


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme.lower() in {"http", "https"} and bool(parsed.netloc)


class DailyFeedSettings(BaseSettings):
    """Main application settings."""

    sources: List[str] = Field(default_factory=list, description="Feed URLs polled on every run, in order")
    cache_max_days: int = Field(default=0, ge=0, description="Retention window in days")
    cache_url: Optional[str] = Field(default=None, description="Prior cache location: local path or http(s) URL")
    proxy: Optional[str] = Field(default=None, description="Outbound proxy URL for all requests")
    site_title: str = Field(default="", description="Title stamped on the aggregate")
    target_dir: str = Field(default="target", description="Directory receiving cache.json")

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        env_prefix="DAILYFEED_",
        toml_file="Config.toml",
        yaml_file="Config.yaml",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            YamlConfigSettingsSource(settings_cls),
        )

    @field_validator("sources")
    @classmethod
    def validate_sources(cls, v):
        """Only http(s) sources can be polled."""
        cleaned = []
        for url in v:
            url = url.strip()
            if not _is_http_url(url):
                raise ValueError(f"Feed source must be an http(s) URL: {url!r}")
            cleaned.append(url)
        return cleaned

    @field_validator("cache_url", "proxy")
    @classmethod
    def blank_is_absent(cls, v):
        """An empty string means the option is not set."""
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

    @property
    def cache_path(self) -> Path:
        """Location of the persisted artifact."""
        return Path(self.target_dir) / CACHE_FILE_NAME

    def validate_configuration(self) -> None:
        """Validate settings that pydantic cannot check on its own."""
        errors = []

        if self.proxy and not _is_http_url(self.proxy) and not self.proxy.startswith("socks"):
            errors.append(f"Unsupported proxy URL: {self.proxy}")

        target = Path(self.target_dir)
        if target.exists() and not target.is_dir():
            errors.append(f"target_dir is not a directory: {self.target_dir}")

        if self.logging.file_path:
            try:
                Path(self.logging.file_path).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID,
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings(**overrides) -> DailyFeedSettings:
    """Load settings from the environment, .env and Config.toml.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        settings = DailyFeedSettings(**overrides)
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID,
        ) from e


# Global settings instance
_settings: Optional[DailyFeedSettings] = None


def get_settings(reload: bool = False) -> DailyFeedSettings:
    """Get global settings instance, loading it on first use."""
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
