"""Test doubles and data factories for the channel sync."""

from .factories import (
    OWNER,
    REPO,
    PullRequestDataFactory,
    ReviewCommentDataFactory,
    webhook_payload,
)
from .fakes import (
    BOT_ID,
    BOT_USER_ID,
    TEAM_ID,
    FakeGitHubClient,
    FakeSlackWorkspace,
)

__all__ = [
    "BOT_ID",
    "BOT_USER_ID",
    "OWNER",
    "REPO",
    "TEAM_ID",
    "FakeGitHubClient",
    "FakeSlackWorkspace",
    "PullRequestDataFactory",
    "ReviewCommentDataFactory",
    "webhook_payload",
]
