"""Configuration management using Pydantic Settings."""

from typing import Literal, Optional

from pydantic import Field, PositiveFloat
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIMEOUT = 30.0


class Settings(BaseSettings):
    """Server settings loaded from BITRIX24_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BITRIX24_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        str_strip_whitespace=True,
        extra="ignore",
        frozen=True,
    )

    # Portal access
    webhook_url: Optional[str] = None
    access_token: Optional[str] = None

    # Requests
    timeout: PositiveFloat = DEFAULT_TIMEOUT
    continue_on_fail: bool = False

    # Logging (unprefixed LOG_LEVEL)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
