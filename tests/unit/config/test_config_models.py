"""Unit tests for the configuration models.

This module tests validation, defaults and ``${VAR}`` substitution of the
pydantic configuration models.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from pr_channel_sync.config.models import (
    Config,
    GitHubConfig,
    LogLevel,
    ServerConfig,
    SlackConfig,
    SystemConfig,
)


def _minimal(**overrides) -> dict:
    data = {
        "github": {"owner": "acme", "repo": "widgets", "token": "ghp_x"},
        "slack": {"bot_token": "xoxb-x"},
    }
    data.update(overrides)
    return data


class TestDefaults:
    """Tests for default values."""

    def test_minimal_config(self):
        """
        Why: A token, a repository and a bot token must be enough to run
        What: Tests that every other setting has a usable default
        How: Builds Config from the minimal dictionary
        """
        config = Config(**_minimal())

        assert config.system == SystemConfig()
        assert config.system.log_level is LogLevel.INFO
        assert config.system.sweep_interval_seconds == 0
        assert config.server == ServerConfig()
        assert config.server.port == 3000
        assert config.slack.channel_prefix == "pr-"
        assert config.slack.thread_window == 15
        assert config.slack.move_trigger == "move to chat"
        assert config.identities == {}
        assert not config.github.uses_app_auth


class TestGitHubConfig:
    """Tests for GitHub credentials validation."""

    def test_missing_credentials_rejected(self):
        with pytest.raises(ValidationError, match="GitHub credentials missing"):
            GitHubConfig(owner="acme", repo="widgets")

    def test_partial_app_credentials_rejected(self):
        with pytest.raises(ValidationError):
            GitHubConfig(owner="acme", repo="widgets", app_id="1", private_key="k")

    def test_app_credentials_accepted_with_escaped_key(self):
        config = GitHubConfig(
            owner="acme",
            repo="widgets",
            app_id="1",
            private_key="-----BEGIN-----\\nabc\\n-----END-----",
            installation_id="99",
        )

        assert config.uses_app_auth
        assert config.private_key == "-----BEGIN-----\nabc\n-----END-----"

    def test_blank_token_is_unset(self):
        with pytest.raises(ValidationError):
            GitHubConfig(owner="acme", repo="widgets", token="  ")

    def test_empty_repository_rejected(self):
        with pytest.raises(ValidationError):
            GitHubConfig(owner="acme", repo=" ", token="ghp_x")


class TestSlackConfig:
    """Tests for Slack settings validation."""

    @pytest.mark.parametrize("prefix", ["PR-", "pr channel", "-pr", ""])
    def test_invalid_channel_prefix(self, prefix):
        with pytest.raises(ValidationError):
            SlackConfig(bot_token="xoxb-x", channel_prefix=prefix)

    def test_thread_window_bounded_by_block_limit(self):
        """
        Why: A relayed thread is one Slack message of at most 50 blocks
        What: Tests that windows above 24 comments are rejected
        How: Validates 24 and 25
        """
        assert SlackConfig(bot_token="xoxb-x", thread_window=24).thread_window == 24
        with pytest.raises(ValidationError):
            SlackConfig(bot_token="xoxb-x", thread_window=25)

    def test_empty_bot_token_rejected(self):
        with pytest.raises(ValidationError):
            SlackConfig(bot_token="")

    def test_repository_suffix_must_fit_channel_names(self):
        """
        Why: An unusable naming convention is a startup error, not a per-event one
        What: Tests that Config rejects a repository too long for the suffix
        How: Enables the suffix for a 70 character repository name
        """
        slack = {"bot_token": "xoxb-x", "include_repository_in_name": True}
        data = _minimal(slack=slack)
        data["github"]["repo"] = "r" * 70

        with pytest.raises(ValidationError, match="character limit"):
            Config(**data)

        data["slack"]["include_repository_in_name"] = False
        assert Config(**data).github.repo == "r" * 70


class TestIdentities:
    """Tests for the identity mapping."""

    def test_json_text_is_parsed(self):
        config = Config(**_minimal(identities='{"alice": "U123"}'))
        assert config.identities == {"alice": "U123"}

    def test_invalid_json_rejected(self):
        with pytest.raises(ValidationError, match="not valid JSON"):
            Config(**_minimal(identities="{alice"))

    def test_non_object_rejected(self):
        with pytest.raises(ValidationError):
            Config(**_minimal(identities='["alice"]'))


class TestEnvironmentSubstitution:
    """Tests for ${VAR} references."""

    def test_variable_and_default(self):
        with patch.dict(os.environ, {"BOT_TOKEN": "xoxb-env"}):
            config = Config(
                **_minimal(
                    slack={
                        "bot_token": "${BOT_TOKEN}",
                        "move_trigger": "${TRIGGER:take it to slack}",
                    }
                )
            )

        assert config.slack.bot_token == "xoxb-env"
        assert config.slack.move_trigger == "take it to slack"

    def test_missing_variable_rejected(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError, match="UNSET_TOKEN"):
                Config(**_minimal(slack={"bot_token": "${UNSET_TOKEN}"}))
