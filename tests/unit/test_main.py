"""
Unit tests for the command line entry point.

Why: Operators run one-off sweeps and identity mapping from the shell and
     rely on the exit status.

What: Tests argument parsing, configuration failures and the sweep and
      map-identities commands.

How: Loads a YAML configuration from tmp_path and patches
     Service.from_config to return a service wired to the in-memory doubles.
"""

import json
from unittest.mock import patch

import pytest
import yaml

from pr_channel_sync.github.exceptions import GitHubServerError
from pr_channel_sync.main import build_parser, main
from pr_channel_sync.server.service import Service
from tests.fixtures.sync import OWNER, REPO, PullRequestDataFactory


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "github": {"owner": OWNER, "repo": REPO, "token": "ghp_x"},
                "slack": {"bot_token": "xoxb-x"},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def fake_service(github, slack, engine):
    def from_config(config):
        return Service(config=config, github=github, slack=slack, engine=engine)

    with patch.object(Service, "from_config", side_effect=from_config) as mock:
        yield mock


class TestParser:
    """Test build_parser."""

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_log_level_is_normalised(self) -> None:
        args = build_parser().parse_args(["--log-level", "debug", "sweep"])

        assert args.log_level == "DEBUG"
        assert args.command == "sweep"

    def test_unknown_log_level_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-level", "loud", "sweep"])


class TestMain:
    """Test main."""

    def test_configuration_error_exits_1(self, tmp_path) -> None:
        assert main(["--config", str(tmp_path / "absent.yaml"), "sweep"]) == 1

    def test_sweep_success(self, config_path, fake_service, github, slack, capsys):
        """
        Why: A one-off sweep must report what it did and exit cleanly
        What: Tests that an open PR gets a channel and the exit status is 0
        How: Runs "sweep" against the in-memory doubles and reads stdout
        """
        github.add_pull(PullRequestDataFactory.create())

        status = main(["--config", str(config_path), "sweep"])

        assert status == 0
        assert slack.by_name("pr-42") is not None
        assert capsys.readouterr().out.startswith(
            "Sweep finished: 1 open PRs, 1 channels created"
        )

    def test_sweep_failure_exits_1(self, config_path, fake_service, github, capsys):
        github.failures["list_pulls"] = GitHubServerError("Server Error", 500)

        status = main(["--config", str(config_path), "sweep"])

        assert status == 1
        assert capsys.readouterr().out.startswith("Sweep aborted")

    def test_map_identities(
        self, config_path, fake_service, slack, tmp_path, capsys
    ) -> None:
        slack.users = [
            {"id": "U123", "profile": {"email": "Alice@Example.com"}},
            {"id": "U999", "profile": {"email": "gone@example.com"}, "deleted": True},
        ]
        emails = tmp_path / "emails.json"
        emails.write_text(
            json.dumps({"alice": "alice@example.com", "gone": "gone@example.com"}),
            encoding="utf-8",
        )

        status = main(
            ["--config", str(config_path), "map-identities", "--emails", str(emails)]
        )

        assert status == 0
        assert json.loads(capsys.readouterr().out) == {"alice": "U123"}

    def test_map_identities_rejects_non_object(
        self, config_path, fake_service, tmp_path
    ) -> None:
        emails = tmp_path / "emails.json"
        emails.write_text("[]", encoding="utf-8")

        status = main(
            ["--config", str(config_path), "map-identities", "--emails", str(emails)]
        )

        assert status == 1