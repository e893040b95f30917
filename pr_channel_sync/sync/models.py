"""Data models for the channel sync.

Pull requests and review comments are read-only views of GitHub objects;
channels are views of Slack conversations. Outcome classes collect what the
engine did for one pull request or one sweep so callers can report it
without any exception reaching them.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)


def parse_timestamp(value: str | None) -> datetime:
    """Parse a GitHub ISO-8601 timestamp (``2024-01-01T10:00:00Z``)."""
    if not value:
        return datetime.fromtimestamp(0, UTC)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class PRState(str, enum.Enum):
    """Pull request state."""

    OPEN = "open"
    CLOSED = "closed"


class SyncAction(str, enum.Enum):
    """Writes the engine performs against either system."""

    CREATE_CHANNEL = "create_channel"
    POST_MESSAGE = "post_message"
    SET_TOPIC = "set_topic"
    UPDATE_MESSAGE = "update_message"
    INVITE = "invite"
    ARCHIVE = "archive"
    CREATE_COMMENT = "create_comment"
    UPDATE_COMMENT = "update_comment"
    POST_NOTICE = "post_notice"
    RELAY_THREAD = "relay_thread"
    REPLY_COMMENT = "reply_comment"


@dataclass(frozen=True)
class PullRequest:
    """Snapshot of a pull request."""

    owner: str
    repo: str
    number: int
    title: str
    body: str | None
    state: PRState
    author: str
    html_url: str
    requested_reviewers: tuple[str, ...] = ()
    merged: bool = False

    @classmethod
    def from_github(
        cls,
        data: dict[str, Any],
        owner: str | None = None,
        repo: str | None = None,
    ) -> "PullRequest":
        """Build from a REST response or a webhook ``pull_request`` object."""
        base_repo = (data.get("base") or {}).get("repo") or {}
        reviewers = tuple(
            user["login"] for user in data.get("requested_reviewers") or []
        )
        return cls(
            owner=owner or base_repo.get("owner", {}).get("login", ""),
            repo=repo or base_repo.get("name", ""),
            number=int(data["number"]),
            title=data.get("title") or "",
            body=data.get("body"),
            state=PRState(data.get("state", "open")),
            author=(data.get("user") or {}).get("login", ""),
            html_url=data.get("html_url", ""),
            requested_reviewers=reviewers,
            merged=bool(data.get("merged")),
        )

    @property
    def is_open(self) -> bool:
        return self.state is PRState.OPEN

    @property
    def participants(self) -> tuple[str, ...]:
        """Author followed by requested reviewers, without repeats."""
        return tuple(dict.fromkeys((self.author, *self.requested_reviewers)))


@dataclass(frozen=True)
class ReviewComment:
    """A review (diff) comment on a pull request."""

    id: int
    author: str
    body: str
    created_at: datetime
    in_reply_to_id: int | None = None
    html_url: str = ""

    @classmethod
    def from_github(cls, data: dict[str, Any]) -> "ReviewComment":
        return cls(
            id=int(data["id"]),
            author=(data.get("user") or {}).get("login", ""),
            body=data.get("body") or "",
            created_at=parse_timestamp(data.get("created_at")),
            in_reply_to_id=data.get("in_reply_to_id"),
            html_url=data.get("html_url", ""),
        )

    @property
    def thread_anchor(self) -> int:
        """Id of the top-level comment of the thread this comment belongs to."""
        return self.in_reply_to_id or self.id


@dataclass(frozen=True)
class Channel:
    """A Slack channel as seen by the directory."""

    id: str
    name: str
    is_archived: bool = False
    topic: str = ""

    @classmethod
    def from_slack(cls, data: dict[str, Any]) -> "Channel":
        topic = data.get("topic") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            is_archived=bool(data.get("is_archived", False)),
            topic=topic.get("value", "") if isinstance(topic, dict) else str(topic),
        )


@dataclass
class ConvergeOutcome:
    """What happened while converging one pull request."""

    pr_number: int
    channel: Channel | None = None
    actions: list[SyncAction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    skipped: str | None = None

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def writes(self) -> int:
        return len(self.actions)

    def record(self, action: SyncAction) -> None:
        self.actions.append(action)

    def add_error(self, error: str) -> None:
        """Record and log an error for this pull request."""
        self.errors.append(error)
        logger.error(f"PR#{self.pr_number}: {error}")

    def skip(self, reason: str) -> None:
        self.skipped = reason
        logger.info(f"PR#{self.pr_number}: skipped, {reason}")

    def __str__(self) -> str:
        status = "OK" if self.success else "FAILED"
        actions = ",".join(a.value for a in self.actions) or "none"
        return f"PR#{self.pr_number}: {status} (actions={actions})"


@dataclass
class SweepReport:
    """Collected results of one sweep over every open pull request."""

    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    outcomes: list[ConvergeOutcome] = field(default_factory=list)
    archived: list[str] = field(default_factory=list)
    archive_failures: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def failed_outcomes(self) -> list[ConvergeOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def success(self) -> bool:
        return (
            self.error is None
            and not self.archive_failures
            and not self.failed_outcomes
        )

    @property
    def channels_created(self) -> int:
        return sum(SyncAction.CREATE_CHANNEL in o.actions for o in self.outcomes)

    def finish(self) -> "SweepReport":
        self.completed_at = datetime.now(UTC)
        return self

    def summary(self) -> str:
        if self.error:
            return f"Sweep aborted, retry later: {self.error}"
        return (
            f"Sweep finished: {len(self.outcomes)} open PRs, "
            f"{self.channels_created} channels created, "
            f"{len(self.archived)} archived, "
            f"{len(self.failed_outcomes) + len(self.archive_failures)} failures"
        )
