"""Configuration package for Dropbox folder sync."""

from .settings import (
    LoggingSettings,
    SyncSettings,
    AppSettings,
    get_settings
)

from .schema import (
    SyncConfig,
    AccountConfig,
    MappingConfig,
    EXAMPLE_CONFIG
)

from .loader import (
    ConfigLoader,
    ConfigurationError,
    load_config_from_env,
    token_env_var
)

__all__ = [
    "LoggingSettings",
    "SyncSettings",
    "AppSettings",
    "get_settings",

    "SyncConfig",
    "AccountConfig",
    "MappingConfig",
    "EXAMPLE_CONFIG",

    "ConfigLoader",
    "ConfigurationError",
    "load_config_from_env",
    "token_env_var"
]
