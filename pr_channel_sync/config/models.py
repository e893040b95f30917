"""Pydantic configuration models for pr-channel-sync.

The configuration hierarchy:
- Config: root, one GitHub repository and one Slack workspace
- SystemConfig: logging and the polling sweep
- GitHubConfig: repository coordinates and app credentials
- SlackConfig: bot credentials and channel conventions
- ServerConfig: HTTP listener
- identities: static GitHub login -> Slack user id mapping

String values may reference environment variables as ``${VAR_NAME}`` or
``${VAR_NAME:default}``.
"""

import json
import os
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..sync.naming import ChannelNaming

_ENV_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


class LogLevel(str, Enum):
    """Supported logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _substitute(value: Any) -> Any:
    if isinstance(value, str):

        def replacer(match: re.Match[str]) -> str:
            var_name, default_value = match.group(1), match.group(2)
            env_value = os.getenv(var_name)
            if env_value is not None:
                return env_value
            if default_value is not None:
                return default_value
            raise ValueError(f"Required environment variable '{var_name}' not found")

        return _ENV_PATTERN.sub(replacer, value)
    if isinstance(value, dict):
        return {k: _substitute(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute(item) for item in value]
    return value


class BaseConfigModel(BaseModel):
    """Base configuration model with environment variable substitution."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    @model_validator(mode="before")
    @classmethod
    def substitute_env_vars(cls, values: Any) -> Any:
        """Substitute ``${VAR}`` / ``${VAR:default}`` references.

        Raises:
            ValueError: If a referenced variable without default is missing
        """
        if not isinstance(values, dict):
            return values
        return {key: _substitute(value) for key, value in values.items()}


class SystemConfig(BaseConfigModel):
    """Process-wide settings."""

    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")

    sweep_interval_seconds: int = Field(
        default=0,
        ge=0,
        le=86400,
        description="Polling sweep interval in seconds; 0 disables the sweep loop",
    )


class GitHubConfig(BaseConfigModel):
    """The single repository kept in sync and how to authenticate to it."""

    owner: str = Field(description="Repository owner (user or organisation)")

    repo: str = Field(description="Repository name")

    base_url: str = Field(
        default="https://api.github.com", description="GitHub API base URL"
    )

    app_id: str | None = Field(default=None, description="GitHub App ID")

    private_key: str | None = Field(
        default=None, description="GitHub App private key (PEM)"
    )

    installation_id: str | None = Field(
        default=None, description="GitHub App installation ID"
    )

    token: str | None = Field(
        default=None, description="Token used instead of GitHub App credentials"
    )

    webhook_secret: str | None = Field(
        default=None, description="Secret used to verify webhook signatures"
    )

    @field_validator(
        "app_id", "private_key", "installation_id", "token", "webhook_secret"
    )
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Treat empty substitutions (``${VAR:}``) as unset."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("private_key")
    @classmethod
    def unescape_private_key(cls, v: str | None) -> str | None:
        """Accept keys whose newlines were escaped to fit in one env line."""
        if v is None:
            return v
        return v.replace("\\n", "\n")

    @field_validator("owner", "repo")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Repository owner and name cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_credentials(self) -> "GitHubConfig":
        """Require a token or the complete GitHub App credential triple."""
        app_fields = [self.app_id, self.private_key, self.installation_id]
        if self.token is None and not all(app_fields):
            raise ValueError(
                "GitHub credentials missing: set token, or app_id, private_key "
                "and installation_id"
            )
        return self

    @property
    def uses_app_auth(self) -> bool:
        return self.token is None


class SlackConfig(BaseConfigModel):
    """Slack workspace credentials and channel conventions."""

    bot_token: str = Field(description="Bot user OAuth token (xoxb-...)")

    signing_secret: str | None = Field(
        default=None, description="Signing secret for slash command requests"
    )

    channel_prefix: str = Field(
        default="pr-", description="Literal prefix of every PR channel name"
    )

    include_repository_in_name: bool = Field(
        default=False,
        description="Append the repository slug to channel names (pr-42-repo)",
    )

    history_window: int = Field(
        default=200,
        ge=1,
        le=1000,
        description="Messages scanned when looking for the managed first message",
    )

    thread_window: int = Field(
        default=15,
        ge=1,
        le=24,
        description="Most recent thread comments relayed by move-to-chat",
    )

    move_trigger: str = Field(
        default="move to chat",
        description="Phrase in a review comment that moves the thread to Slack",
    )

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Slack bot token cannot be empty")
        return v.strip()

    @field_validator("signing_secret")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("channel_prefix")
    @classmethod
    def validate_channel_prefix(cls, v: str) -> str:
        if not re.fullmatch(r"[a-z0-9][a-z0-9_-]*", v):
            raise ValueError(
                "Channel prefix may only contain lowercase letters, digits, "
                "'-' and '_'"
            )
        return v

    @field_validator("move_trigger")
    @classmethod
    def validate_move_trigger(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Move trigger phrase cannot be empty")
        return v.strip()


class ServerConfig(BaseConfigModel):
    """HTTP listener settings."""

    host: str = Field(default="0.0.0.0", description="Bind address")  # nosec B104

    port: int = Field(default=3000, ge=1, le=65535, description="Listening port")


class Config(BaseConfigModel):
    """Root configuration."""

    system: SystemConfig = Field(
        default_factory=SystemConfig, description="Process-wide settings"
    )

    github: GitHubConfig = Field(description="GitHub repository configuration")

    slack: SlackConfig = Field(description="Slack workspace configuration")

    server: ServerConfig = Field(
        default_factory=ServerConfig, description="HTTP listener settings"
    )

    identities: dict[str, str] = Field(
        default_factory=dict,
        description="GitHub login -> Slack user id mapping",
    )

    @field_validator("identities", mode="before")
    @classmethod
    def parse_identities(cls, v: Any) -> Any:
        """Accept the mapping as JSON object text, as found in the environment."""
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"Identity mapping is not valid JSON: {e}") from e
        if not isinstance(v, dict):
            raise ValueError("Identity mapping must be an object of login -> id")
        return v

    @model_validator(mode="after")
    def validate_channel_names(self) -> "Config":
        """Every PR number must fit in a channel name Slack accepts."""
        repository = self.github.repo if self.slack.include_repository_in_name else None
        ChannelNaming(prefix=self.slack.channel_prefix, repository=repository)
        return self
