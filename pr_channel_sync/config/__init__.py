"""Configuration management for pr-channel-sync.

Example usage:
    from pr_channel_sync.config import load_config

    config = load_config()
    owner, repo = config.github.owner, config.github.repo
"""

from .exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationValidationError,
)
from .loader import (
    ENVIRONMENT_TEMPLATE,
    ConfigurationLoader,
    get_config,
    load_config,
)
from .models import (
    Config,
    GitHubConfig,
    LogLevel,
    ServerConfig,
    SlackConfig,
    SystemConfig,
)

__all__ = [
    "ENVIRONMENT_TEMPLATE",
    "Config",
    "ConfigurationError",
    "ConfigurationFileError",
    "ConfigurationLoader",
    "ConfigurationValidationError",
    "GitHubConfig",
    "LogLevel",
    "ServerConfig",
    "SlackConfig",
    "SystemConfig",
    "get_config",
    "load_config",
]
