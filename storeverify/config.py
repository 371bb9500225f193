"""
Library Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Invalid config is rejected when the settings are loaded.
"""

import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storeverify.exceptions import ConfigurationError

__all__ = ["ConfigurationError", "Settings", "get_settings", "settings"]


class Settings(BaseSettings):
    """Library settings loaded from STOREVERIFY_* environment variables."""

    # HTTP
    http_timeout_seconds: float = 30.0
    proxy_url: str | None = None  # Applied to every client built without an explicit proxy

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability
    metrics_enabled: bool = True
    tracing_enabled: bool = True
    service_name: str = "storeverify"
    version: str = "0.1.0"

    model_config = SettingsConfigDict(
        env_prefix="STOREVERIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_config(self) -> "Settings":
        """Reject settings that would only fail later, mid-request."""
        errors: list[str] = []

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            errors.append(f"LOG_LEVEL is not a logging level: {self.log_level}")
        if self.log_format not in ("json", "console"):
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format}")
        if self.http_timeout_seconds <= 0:
            errors.append(
                f"HTTP_TIMEOUT_SECONDS must be positive, got: {self.http_timeout_seconds}"
            )

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get library settings instance."""
    return settings
