"""Application configuration settings."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file_path: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(env_prefix="LOG_")


class SyncSettings(BaseSettings):
    """Sync loop defaults used when the config file leaves them out."""

    config_path: str = Field(default="./config/dropbox_sync.yaml")
    wait_interval: float = Field(default=30)
    verbose: bool = Field(default=True)
    error_retry_delay: float = Field(default=5)

    model_config = SettingsConfigDict(env_prefix="SYNC_")


class AppSettings(BaseSettings):
    """Main application settings."""

    version: str = Field(default="1.0.0")

    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings
