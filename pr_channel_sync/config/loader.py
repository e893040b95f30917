"""Configuration loading.

Configuration comes from a YAML file when one is given or found, otherwise
from the process environment through ``ENVIRONMENT_TEMPLATE``. Either way the
result is validated by the pydantic models before anything starts.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationValidationError,
)
from .models import Config

CONFIG_PATH_ENV = "PR_CHANNEL_SYNC_CONFIG"
DEFAULT_CONFIG_FILENAME = "pr-channel-sync.yaml"

# Environment-only deployments: every value is a ${VAR} reference resolved by
# the models, so a missing required variable fails validation.
ENVIRONMENT_TEMPLATE: dict[str, Any] = {
    "system": {
        "log_level": "${LOG_LEVEL:INFO}",
        "sweep_interval_seconds": "${SWEEP_INTERVAL_SECONDS:0}",
    },
    "github": {
        "owner": "${GITHUB_OWNER}",
        "repo": "${GITHUB_REPO}",
        "base_url": "${GITHUB_API_URL:https://api.github.com}",
        "app_id": "${GITHUB_APP_ID:}",
        "private_key": "${GITHUB_PRIVATE_KEY:}",
        "installation_id": "${GITHUB_INSTALLATION_ID:}",
        "token": "${GITHUB_TOKEN:}",
        "webhook_secret": "${GITHUB_WEBHOOK_SECRET:}",
    },
    "slack": {
        "bot_token": "${SLACK_BOT_TOKEN}",
        "signing_secret": "${SLACK_SIGNING_SECRET:}",
    },
    "server": {
        "port": "${PORT:3000}",
    },
    "identities": "${GIT_USER_TO_SLACK_ID:}",
}


class ConfigurationLoader:
    """Handles loading and validation of configuration from its sources."""

    def __init__(self) -> None:
        self._config: Config | None = None
        self._config_file_path: Path | None = None

    def load_from_file(self, config_path: str | Path) -> Config:
        """Load configuration from a YAML file.

        Raises:
            ConfigurationFileError: If file cannot be read or parsed
            ConfigurationValidationError: If configuration validation fails
        """
        config_path = Path(config_path)

        if not config_path.is_file():
            raise ConfigurationFileError(
                f"Configuration file not found: {config_path}", str(config_path)
            )

        try:
            with open(config_path, encoding="utf-8") as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationFileError(
                f"Failed to parse YAML configuration: {e}", str(config_path)
            ) from e
        except OSError as e:
            raise ConfigurationFileError(
                f"Failed to read configuration file: {e}", str(config_path)
            ) from e

        if not isinstance(config_data, dict):
            raise ConfigurationFileError(
                "Configuration file must contain a mapping", str(config_path)
            )

        config = self.load_from_dict(config_data)
        self._config_file_path = config_path.resolve()
        return config

    def load_from_dict(self, config_data: dict[str, Any]) -> Config:
        """Validate a configuration dictionary.

        Raises:
            ConfigurationValidationError: If configuration validation fails
        """
        try:
            self._config = Config(**config_data)
        except ValidationError as e:
            raise ConfigurationValidationError(
                f"Configuration validation failed: {e}",
                validation_errors=e.errors(include_url=False),
            ) from e
        except ValueError as e:
            raise ConfigurationValidationError(
                f"Configuration validation failed: {e}"
            ) from e
        return self._config

    def load_from_env(self) -> Config:
        """Build the configuration from environment variables."""
        return self.load_from_dict(ENVIRONMENT_TEMPLATE)

    def find_config_file(self) -> Path | None:
        """Find a configuration file.

        Search order: ``$PR_CHANNEL_SYNC_CONFIG``, then
        ``./pr-channel-sync.yaml``.
        """
        candidates = []
        env_path = os.getenv(CONFIG_PATH_ENV)
        if env_path:
            candidates.append(Path(env_path))
        candidates.append(Path.cwd() / DEFAULT_CONFIG_FILENAME)

        for path in candidates:
            if path.is_file():
                return path
        return None

    @property
    def config(self) -> Config | None:
        return self._config

    @property
    def config_file_path(self) -> Path | None:
        return self._config_file_path

    @property
    def is_loaded(self) -> bool:
        return self._config is not None


# Global configuration loader instance
_loader = ConfigurationLoader()


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from an explicit file, a discovered file or the env.

    Raises:
        ConfigurationError: If configuration cannot be loaded or is invalid
    """
    try:
        if config_path:
            return _loader.load_from_file(config_path)
        discovered = _loader.find_config_file()
        if discovered is not None:
            return _loader.load_from_file(discovered)
        return _loader.load_from_env()
    except (ConfigurationFileError, ConfigurationValidationError) as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e


def get_config() -> Config:
    """Get the currently loaded configuration.

    Raises:
        ConfigurationError: If no configuration has been loaded
    """
    if _loader.config is None:
        raise ConfigurationError("No configuration loaded. Call load_config() first.")
    return _loader.config
