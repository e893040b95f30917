"""Reconciliation engine: converges Slack channels onto GitHub pull requests.

Both entry points share one per-PR convergence routine:

- Sweep mode lists every open pull request and every PR channel, archives
  channels whose pull request is no longer open and converges each open pull
  request against the listing.
- Event mode handles a single webhook delivery, slash command or redirect
  request and applies only what that event implies.

A channel only ever moves forward through ``none -> active -> archived``.
Every step compares before it writes, so converging the same pull request
twice without an external change performs no writes the second time.
Nothing here raises to the caller: failures are logged and recorded on the
returned ``ConvergeOutcome`` or ``SweepReport``, and the next event or sweep
retries them.
"""

import logging
from collections.abc import Awaitable, Mapping
from typing import Any

from ..github.exceptions import GitHubError
from ..slack.client import SlackClient
from ..slack.exceptions import SlackError, SlackNameTakenError
from .directory import ChannelDirectory
from .exceptions import (
    ChannelDirectoryError,
    ManagedMessageMissingError,
    PullRequestSnapshotError,
)
from .identity import IdentityMap
from .models import (
    Channel,
    ConvergeOutcome,
    PullRequest,
    ReviewComment,
    SweepReport,
    SyncAction,
)
from .naming import ChannelNaming
from .relay import (
    CrossPostRelay,
    channel_topic,
    escape_slack,
    format_pull_request,
    is_managed_message,
    is_move_trigger,
    same_message_text,
)
from .snapshot import PullRequestSnapshot

logger = logging.getLogger(__name__)

# pull_request webhook actions that can change the channel's desired state
PULL_REQUEST_ACTIONS = frozenset(
    {
        "opened",
        "reopened",
        "edited",
        "synchronize",
        "ready_for_review",
        "review_requested",
        "review_request_removed",
        "closed",
    }
)

# Message subtypes that still count as a regular post by the bot
POST_SUBTYPES = (None, "bot_message")


class ReconciliationEngine:
    """Computes and applies the writes that bring channels in line with PRs."""

    def __init__(
        self,
        slack: SlackClient,
        directory: ChannelDirectory,
        snapshot: PullRequestSnapshot,
        relay: CrossPostRelay,
        identities: IdentityMap,
        naming: ChannelNaming,
        history_window: int = 200,
        move_trigger: str = "move to chat",
    ):
        """Initialize the engine.

        Args:
            slack: Slack client used for channel writes
            directory: Channel listing and lookup
            snapshot: Read-only pull request access
            relay: Cross-posting between the two systems
            identities: GitHub login -> Slack id lookup
            naming: Channel naming convention
            history_window: Channel messages scanned for the managed message
            move_trigger: Phrase that moves a review thread into the channel
        """
        self.slack = slack
        self.directory = directory
        self.snapshot = snapshot
        self.relay = relay
        self.identities = identities
        self.naming = naming
        self.history_window = history_window
        self.move_trigger = move_trigger

    @property
    def repository(self) -> str:
        return f"{self.snapshot.owner}/{self.snapshot.repo}"

    # Sweep mode

    async def sweep(self) -> SweepReport:
        """Reconcile every open pull request and every PR channel.

        A failed pull request or channel listing aborts the sweep before any
        write; otherwise each archive and each convergence is isolated so one
        failure never stops the others.
        """
        report = SweepReport()
        logger.info(f"Starting sweep of {self.repository}")

        try:
            open_pulls = await self.snapshot.fetch_open_pulls()
            channels = await self.directory.pr_channels()
        except (PullRequestSnapshotError, ChannelDirectoryError) as e:
            report.error = str(e)
            logger.error(f"Sweep aborted before any write: {e}")
            return report.finish()

        open_numbers = {pr.number for pr in open_pulls}
        index = {channel.name: channel for channel in channels}

        for channel in channels:
            number = self.naming.parse_pr_number(channel.name)
            if number is None or number in open_numbers or channel.is_archived:
                continue
            try:
                await self.slack.archive(channel.id)
            except SlackError as e:
                report.archive_failures[channel.name] = str(e)
                logger.error(f"PR#{number}: Failed to archive #{channel.name}: {e}")
                continue
            report.archived.append(channel.name)
            logger.info(f"PR#{number}: Archived #{channel.name}, PR is not open")

        for pr in open_pulls:
            outcome = ConvergeOutcome(pr.number)
            try:
                await self._converge(pr, outcome, index)
            except Exception as e:
                outcome.add_error(f"Unexpected error during convergence: {e}")
            report.outcomes.append(outcome)

        report.finish()
        logger.info(report.summary())
        return report

    # Per-PR convergence

    async def converge(
        self, pr: PullRequest, channels: Mapping[str, Channel] | None = None
    ) -> ConvergeOutcome:
        """Bring the channel of ``pr`` to its desired state.

        Args:
            pr: Pull request snapshot
            channels: Channel listing by name; fetched from Slack when omitted

        Returns:
            What was done and what failed
        """
        outcome = ConvergeOutcome(pr.number)
        await self._converge(pr, outcome, channels)
        return outcome

    async def _converge(
        self,
        pr: PullRequest,
        outcome: ConvergeOutcome,
        channels: Mapping[str, Channel] | None = None,
    ) -> None:
        name = self.naming.channel_name(pr.number)
        try:
            channel = await self._lookup(name, channels)
        except ChannelDirectoryError as e:
            outcome.add_error(str(e))
            return

        created = False
        if channel is None:
            if not pr.is_open:
                outcome.skip("closed without a channel")
                return
            channel, created = await self._create_channel(pr, name, outcome)
            if channel is None:
                return

        outcome.channel = channel
        if channel.is_archived:
            if pr.is_open:
                outcome.skip(f"#{channel.name} is archived and is never reused")
            else:
                logger.debug(f"PR#{pr.number}: #{channel.name} already archived")
            return

        if not pr.is_open:
            await self._run_step(
                outcome, "archive", self._archive(pr, channel, outcome)
            )
            return

        await self._sync_channel(pr, channel, outcome, created)

    async def _lookup(
        self, name: str, channels: Mapping[str, Channel] | None
    ) -> Channel | None:
        if channels is not None:
            return channels.get(name)
        return await self.directory.find(name)

    async def _run_step(
        self, outcome: ConvergeOutcome, step: str, operation: Awaitable[Any]
    ) -> bool:
        """Await one convergence step, recording instead of raising failures."""
        try:
            await operation
        except ManagedMessageMissingError as e:
            outcome.add_error(str(e))
        except (SlackError, GitHubError) as e:
            outcome.add_error(f"{step} failed: {e}")
        else:
            return True
        return False

    async def _create_channel(
        self, pr: PullRequest, name: str, outcome: ConvergeOutcome
    ) -> tuple[Channel | None, bool]:
        """Create the channel of ``pr``; adopt it if another handler won the race.

        Returns:
            The channel (None on failure) and whether this call created it
        """
        try:
            data = await self.slack.create_channel(name)
        except SlackNameTakenError:
            logger.warning(
                f"PR#{pr.number}: #{name} already exists, adopting existing channel"
            )
            try:
                channel = await self.directory.find(name)
            except ChannelDirectoryError as e:
                outcome.add_error(str(e))
                return None, False
            if channel is None:
                outcome.add_error(f"#{name} is taken but not visible to the app")
            return channel, False
        except SlackError as e:
            outcome.add_error(f"Failed to create #{name}: {e}")
            return None, False

        channel = Channel.from_slack(data)
        outcome.record(SyncAction.CREATE_CHANNEL)
        logger.info(f"PR#{pr.number}: Successfully created channel #{channel.name}")

        # The managed message goes first so it stays the oldest bot post.
        if pr.body and pr.body.strip():
            await self._run_step(
                outcome, "managed message", self._post_managed(pr, channel, outcome)
            )
        await self._run_step(
            outcome, "topic", self._set_topic(pr, channel, outcome)
        )
        return channel, True

    async def _sync_channel(
        self,
        pr: PullRequest,
        channel: Channel,
        outcome: ConvergeOutcome,
        created: bool,
    ) -> None:
        await self._run_step(
            outcome, "invite", self._sync_members(pr, channel, outcome)
        )
        if not created:
            topic = channel_topic(pr)
            # Slack returns the topic with &, < and > escaped
            if channel.topic not in (topic, escape_slack(topic)):
                await self._run_step(
                    outcome, "topic", self._set_topic(pr, channel, outcome)
                )
            await self._run_step(
                outcome,
                "managed message",
                self._sync_managed_message(pr, channel, outcome),
            )
        await self._run_step(
            outcome,
            "channel link",
            self.relay.upsert_channel_link(pr, channel, outcome),
        )

    async def _post_managed(
        self, pr: PullRequest, channel: Channel, outcome: ConvergeOutcome
    ) -> None:
        await self.slack.post_message(channel.id, format_pull_request(pr))
        outcome.record(SyncAction.POST_MESSAGE)

    async def _set_topic(
        self, pr: PullRequest, channel: Channel, outcome: ConvergeOutcome
    ) -> None:
        await self.slack.set_topic(channel.id, channel_topic(pr))
        outcome.record(SyncAction.SET_TOPIC)
        logger.info(f"PR#{pr.number}: Set topic of #{channel.name}")

    async def _sync_members(
        self, pr: PullRequest, channel: Channel, outcome: ConvergeOutcome
    ) -> None:
        """Invite mapped participants who are not members yet."""
        ids, missing = self.identities.resolve(pr.participants)
        if missing:
            logger.info(
                f"PR#{pr.number}: No Slack user mapped for {', '.join(missing)}"
            )

        identity = await self.slack.identity()
        wanted = set(ids) - {identity.user_id}
        if not wanted:
            return

        to_invite = wanted - await self.directory.members(channel)
        if not to_invite:
            return

        await self.slack.invite(channel.id, to_invite)
        outcome.record(SyncAction.INVITE)
        logger.info(
            f"PR#{pr.number}: Invited {len(to_invite)} users to #{channel.name}"
        )

    async def _find_managed_message(
        self, channel: Channel
    ) -> dict[str, Any] | None:
        """Oldest regular post by the bot within the history window."""
        identity = await self.slack.identity()
        history = await self.slack.history(channel.id, self.history_window)
        own = [
            m
            for m in history
            if identity.authored(m) and m.get("subtype") in POST_SUBTYPES
        ]
        if not own:
            return None
        oldest = min(own, key=lambda m: float(m.get("ts") or 0))
        return oldest if is_managed_message(oldest) else None

    async def _sync_managed_message(
        self, pr: PullRequest, channel: Channel, outcome: ConvergeOutcome
    ) -> None:
        """Rewrite the managed message when title or body changed.

        Raises:
            ManagedMessageMissingError: If the PR has a body but the channel
                holds no managed message; no replacement is posted
        """
        message = await self._find_managed_message(channel)
        if message is None:
            if pr.body and pr.body.strip():
                raise ManagedMessageMissingError(
                    f"No managed message found in #{channel.name} within the "
                    f"last {self.history_window} messages"
                )
            return

        text = format_pull_request(pr)
        if same_message_text(message.get("text") or "", text):
            return

        await self.slack.update_message(channel.id, message["ts"], text)
        outcome.record(SyncAction.UPDATE_MESSAGE)
        logger.info(f"PR#{pr.number}: Updated managed message in #{channel.name}")

    async def _archive(
        self, pr: PullRequest, channel: Channel, outcome: ConvergeOutcome
    ) -> None:
        await self.slack.archive(channel.id)
        outcome.record(SyncAction.ARCHIVE)
        logger.info(f"PR#{pr.number}: Archived #{channel.name}")

    async def _ensure_channel(
        self, pr: PullRequest, outcome: ConvergeOutcome
    ) -> Channel | None:
        """Resolve or create the channel even when ``pr`` is closed.

        Open pull requests go through the regular convergence. A closed pull
        request without a channel gets one, which the next event or sweep
        archives again.
        """
        if pr.is_open:
            await self._converge(pr, outcome)
            return outcome.channel

        name = self.naming.channel_name(pr.number)
        try:
            channel = await self.directory.find(name)
        except ChannelDirectoryError as e:
            outcome.add_error(str(e))
            return None

        if channel is None:
            channel, created = await self._create_channel(pr, name, outcome)
            if channel is not None and not channel.is_archived:
                await self._sync_channel(pr, channel, outcome, created)

        outcome.channel = channel
        return channel

    # Event mode

    def _pull_from_payload(self, payload: dict[str, Any]) -> PullRequest | None:
        full_name = (payload.get("repository") or {}).get("full_name")
        if full_name and full_name.lower() != self.repository.lower():
            logger.debug(f"Ignoring event for other repository {full_name}")
            return None

        data = payload.get("pull_request")
        if not data:
            logger.warning("Event payload carries no pull_request object")
            return None
        return PullRequest.from_github(data, self.snapshot.owner, self.snapshot.repo)

    async def handle_pull_request(
        self, action: str, payload: dict[str, Any]
    ) -> ConvergeOutcome | None:
        """Handle a ``pull_request`` webhook delivery.

        Returns:
            The convergence outcome, or None when the event was ignored
        """
        if action not in PULL_REQUEST_ACTIONS:
            logger.debug(f"Ignoring pull_request action '{action}'")
            return None

        pr = self._pull_from_payload(payload)
        if pr is None:
            return None

        logger.info(f"PR#{pr.number}: Handling pull_request '{action}'")
        return await self.converge(pr)

    async def handle_review(self, payload: dict[str, Any]) -> ConvergeOutcome | None:
        """Post an approval notice for an approving ``pull_request_review``."""
        review = payload.get("review") or {}
        if payload.get("action") != "submitted":
            return None
        if (review.get("state") or "").lower() != "approved":
            return None

        pr = self._pull_from_payload(payload)
        if pr is None:
            return None

        outcome = ConvergeOutcome(pr.number)
        try:
            channel = await self.directory.find_for(pr.number)
        except ChannelDirectoryError as e:
            outcome.add_error(str(e))
            return outcome

        if channel is None or channel.is_archived:
            outcome.skip("no active channel for the approval notice")
            return outcome

        outcome.channel = channel
        login = (review.get("user") or {}).get("login", "")
        await self._run_step(
            outcome,
            "approval notice",
            self.relay.post_approval(pr, channel, login, outcome),
        )
        return outcome

    async def handle_review_comment(
        self, payload: dict[str, Any]
    ) -> ConvergeOutcome | None:
        """Move a review thread to the channel when a comment asks for it."""
        if payload.get("action") != "created" or not payload.get("comment"):
            return None

        trigger = ReviewComment.from_github(payload["comment"])
        if not is_move_trigger(trigger.body, self.move_trigger):
            return None

        pr = self._pull_from_payload(payload)
        if pr is None:
            return None

        logger.info(f"PR#{pr.number}: Comment {trigger.id} asks to move to chat")
        outcome = ConvergeOutcome(pr.number)
        channel = await self._ensure_channel(pr, outcome)
        if channel is None:
            return outcome
        if channel.is_archived:
            outcome.add_error(f"#{channel.name} is archived, cannot move thread")
            return outcome

        try:
            comments = await self.snapshot.fetch_review_comments(pr.number)
        except PullRequestSnapshotError as e:
            outcome.add_error(str(e))
            return outcome

        await self._run_step(
            outcome,
            "move to chat",
            self.relay.move_thread_to_chat(pr, channel, trigger, comments, outcome),
        )
        return outcome

    async def open_channel(self, number: int) -> ConvergeOutcome | None:
        """Resolve or create the channel of PR ``number``.

        Returns:
            The outcome, whose ``channel`` is set when one could be resolved,
            or None when the pull request does not exist
        """
        try:
            pr = await self.snapshot.fetch_pull(number)
        except PullRequestSnapshotError as e:
            outcome = ConvergeOutcome(number)
            outcome.add_error(str(e))
            return outcome

        if pr is None:
            return None

        outcome = ConvergeOutcome(number)
        await self._ensure_channel(pr, outcome)
        return outcome

    async def deep_link(self, channel: Channel) -> str:
        return await self.relay.channel_link(channel)
