"""Configuration loader for JSON/YAML files and environment variables."""

import os
import re
import json
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union

from .schema import SyncConfig, EXAMPLE_CONFIG
from .settings import get_settings
from ..utils.logging import get_logger


class ConfigurationError(Exception):
    """Raised when configuration loading fails."""
    pass


class ConfigLoader:
    """Loads and validates sync configuration from various sources."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def load_from_file(self, file_path: Union[str, Path]) -> SyncConfig:
        """Load configuration from JSON or YAML file.

        Args:
            file_path: Path to configuration file

        Returns:
            Validated SyncConfig object

        Raises:
            ConfigurationError: If file cannot be loaded or validated
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ConfigurationError(f"Configuration file not found: {file_path}")

        self.logger.info("Loading configuration from file", file_path=str(file_path))

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                if file_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                elif file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported file format: {file_path.suffix}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration: {e}")

        return self.load_from_dict(data or {})

    def load_from_dict(self, data: Dict[str, Any]) -> SyncConfig:
        """Load configuration from dictionary.

        Values missing from ``data`` fall back to the environment settings.
        """
        try:
            defaults = get_settings().sync
            data = {
                "wait_interval": defaults.wait_interval,
                "verbose": defaults.verbose,
                "error_retry_delay": defaults.error_retry_delay,
                **data,
            }
            data = self._apply_env_overrides(data)

            config = SyncConfig(**data)

        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}")

        self.logger.info(
            "Configuration loaded",
            accounts_count=len(config.accounts),
            mappings_count=config.count_mappings(),
            wait_interval=config.wait_interval
        )

        return config

    def save_to_file(self, config: SyncConfig, file_path: Union[str, Path], format: str = 'yaml'):
        """Save configuration to file.

        Args:
            config: Configuration to save
            file_path: Output file path
            format: Output format ('yaml' or 'json')
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data = config.model_dump()

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                if format.lower() == 'yaml':
                    yaml.dump(data, f, default_flow_style=False, indent=2, allow_unicode=True, sort_keys=False)
                elif format.lower() == 'json':
                    json.dump(data, f, indent=2)
                else:
                    raise ConfigurationError(f"Unsupported format: {format}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")

        self.logger.info("Configuration saved successfully", file_path=str(file_path))

    def create_default_config(self) -> SyncConfig:
        """Create a configuration with example accounts."""
        self.logger.info("Created default configuration")
        return EXAMPLE_CONFIG.model_copy(deep=True)

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration data.

        Supported variables:
            DROPBOX_SYNC_WAIT_INTERVAL, DROPBOX_SYNC_VERBOSE,
            DROPBOX_SYNC_TOKEN_<ACCOUNT> (account name upper-cased,
            non-alphanumerics replaced by '_').
        """
        env_overrides = {}

        if os.getenv('DROPBOX_SYNC_WAIT_INTERVAL'):
            try:
                env_overrides['wait_interval'] = float(os.getenv('DROPBOX_SYNC_WAIT_INTERVAL'))
            except ValueError:
                self.logger.warning("Invalid DROPBOX_SYNC_WAIT_INTERVAL value, ignoring")

        if os.getenv('DROPBOX_SYNC_VERBOSE'):
            env_overrides['verbose'] = os.getenv('DROPBOX_SYNC_VERBOSE').lower() in ['true', '1', 'yes']

        accounts = data.get('accounts') or []
        overridden_accounts = []
        tokens_applied = False
        for account in accounts:
            if isinstance(account, dict) and account.get('name'):
                token = os.getenv(token_env_var(account['name']))
                if token:
                    account = {**account, 'access_token': token}
                    tokens_applied = True
            overridden_accounts.append(account)
        if tokens_applied:
            env_overrides['accounts'] = overridden_accounts

        if env_overrides:
            self.logger.info("Applied environment variable overrides", overrides=list(env_overrides.keys()))
            data = {**data, **env_overrides}

        return data


def token_env_var(account_name: str) -> str:
    """Name of the environment variable holding an account's access token."""
    return "DROPBOX_SYNC_TOKEN_" + re.sub(r'[^A-Za-z0-9]', '_', account_name).upper()


def load_config_from_env(config_path: Optional[str] = None) -> SyncConfig:
    """Load configuration from an explicit path or the default locations.

    Looks for configuration files in this order:
    1. ``config_path`` argument
    2. SYNC_CONFIG_PATH setting (defaults to ./config/dropbox_sync.yaml)
    3. ./dropbox_sync.yaml
    4. ./dropbox_sync.json
    """
    loader = ConfigLoader()
    logger = get_logger("load_config_from_env")

    if config_path:
        return loader.load_from_file(config_path)

    possible_files = [
        get_settings().sync.config_path,
        './dropbox_sync.yaml',
        './dropbox_sync.yml',
        './dropbox_sync.json'
    ]

    for file_path in possible_files:
        if os.path.exists(file_path):
            logger.info("Found configuration file", file=file_path)
            return loader.load_from_file(file_path)

    raise ConfigurationError(f"No configuration file found, tried: {possible_files}")
