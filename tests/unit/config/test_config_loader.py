"""Unit tests for configuration loading.

This module tests loading from YAML files, from the environment template and
the discovery order used by ``load_config``.
"""

import os
from unittest.mock import patch

import pytest
import yaml

from pr_channel_sync.config.exceptions import (
    ConfigurationError,
    ConfigurationFileError,
    ConfigurationValidationError,
)
from pr_channel_sync.config.loader import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_FILENAME,
    ConfigurationLoader,
    get_config,
    load_config,
)

CONFIG_DATA = {
    "system": {"log_level": "DEBUG", "sweep_interval_seconds": 300},
    "github": {"owner": "acme", "repo": "widgets", "token": "ghp_file"},
    "slack": {"bot_token": "xoxb-file", "include_repository_in_name": True},
    "identities": {"carol": "U789"},
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(CONFIG_DATA), encoding="utf-8")
    return path


class TestConfigurationLoader:
    """Tests for ConfigurationLoader class methods."""

    def test_load_from_file(self, config_file):
        """
        Why: File-based deployments keep every setting in one YAML document
        What: Tests that the file is parsed, validated and remembered
        How: Writes a YAML file to tmp_path and loads it
        """
        loader = ConfigurationLoader()

        config = loader.load_from_file(config_file)

        assert loader.is_loaded
        assert loader.config_file_path == config_file.resolve()
        assert config.system.sweep_interval_seconds == 300
        assert config.slack.include_repository_in_name
        assert config.identities == {"carol": "U789"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationFileError) as exc_info:
            ConfigurationLoader().load_from_file(tmp_path / "absent.yaml")

        assert exc_info.value.file_path == str(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("github: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationFileError, match="Failed to parse YAML"):
            ConfigurationLoader().load_from_file(path)

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationFileError, match="mapping"):
            ConfigurationLoader().load_from_file(path)

    def test_validation_errors_are_collected(self):
        with pytest.raises(ConfigurationValidationError) as exc_info:
            ConfigurationLoader().load_from_dict({"github": {"owner": "acme"}})

        assert exc_info.value.validation_errors

    def test_load_from_env(self, test_env_vars):
        """
        Why: Container deployments configure the service purely through env
        What: Tests that the environment template yields a complete Config
        How: Uses the test_env_vars fixture and loads without a file
        """
        config = ConfigurationLoader().load_from_env()

        assert config.github.owner == "acme"
        assert config.github.token == "ghp_test_token"
        assert config.github.webhook_secret == "webhook-secret"
        assert config.github.app_id is None
        assert config.slack.signing_secret == "signing-secret"
        assert config.server.port == 8080
        assert config.identities == {"alice": "U123", "bob": "U456"}

    def test_load_from_env_without_bot_token(self, test_env_vars):
        with patch.dict(os.environ):
            del os.environ["SLACK_BOT_TOKEN"]

            with pytest.raises(ConfigurationValidationError, match="SLACK_BOT_TOKEN"):
                ConfigurationLoader().load_from_env()


class TestLoadConfig:
    """Tests for the load_config entry point."""

    def test_explicit_path(self, config_file):
        assert load_config(config_file).github.token == "ghp_file"

    def test_get_config_returns_last_loaded(self, config_file):
        config = load_config(config_file)
        assert get_config() is config

    def test_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(config_file))
        assert load_config().github.token == "ghp_file"

    def test_file_in_working_directory(self, tmp_path, monkeypatch):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        monkeypatch.chdir(tmp_path)
        (tmp_path / DEFAULT_CONFIG_FILENAME).write_text(
            yaml.safe_dump(CONFIG_DATA), encoding="utf-8"
        )

        assert load_config().slack.bot_token == "xoxb-file"

    def test_falls_back_to_environment(self, test_env_vars, tmp_path, monkeypatch):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        monkeypatch.chdir(tmp_path)

        assert load_config().github.token == "ghp_test_token"

    def test_errors_are_wrapped(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Failed to load configuration"):
            load_config(tmp_path / "absent.yaml")
