"""Configuration management for plist tables.

Uses Pydantic Settings for environment-based configuration. Every field can
be overridden with a ``PLIST_TABLE_`` prefixed environment variable, e.g.
``PLIST_TABLE_RESOURCE_PATHS='["data", "/opt/app/plists"]'``.
"""

from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PlistTableSettings(BaseSettings):
    """Settings shared by every plist table in the process."""

    resource_paths: List[Path] = Field(
        default_factory=list, description="Directories searched for plist resources"
    )
    resource_extension: str = Field(default=".plist", description="Plist file extension")
    strict_mapping: bool = Field(
        default=False, description="Fail on row keys the record class does not declare"
    )
    log_level: str = Field(default="INFO", description="Log level")
    json_logs: bool = Field(default=False, description="Render logs as JSON")
    metrics_enabled: bool = Field(default=True, description="Record Prometheus metrics")

    model_config = SettingsConfigDict(
        env_prefix="PLIST_TABLE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("resource_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Normalise the extension to start with a dot."""
        if not v:
            raise ValueError("resource_extension cannot be empty")
        return v if v.startswith(".") else f".{v}"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one the logging module knows."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid log level: {v}")
        return level


# Global settings instance
_settings_instance: PlistTableSettings | None = None


def get_settings() -> PlistTableSettings:
    """Get or create settings instance.

    Returns:
        PlistTableSettings instance
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = PlistTableSettings()
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings_instance
    _settings_instance = None
