"""Cross-post Relay: content that crosses between GitHub and Slack.

Formatting helpers are pure functions; ``CrossPostRelay`` performs the writes.
Slack text is escaped (``&``, ``<``, ``>``) before sending so that the text
read back from channel history compares equal to a fresh rendering.
"""

import logging
import re
from collections.abc import Sequence
from typing import Any

from ..github.client import GitHubClient
from ..slack.client import SlackClient
from .identity import IdentityMap
from .models import Channel, ConvergeOutcome, PullRequest, ReviewComment, SyncAction

logger = logging.getLogger(__name__)

MANAGED_MESSAGE_HEADER = "PR Opened!"
MANAGED_COMMENT_MARKER = "<!-- pr-channel-sync:channel-link -->"
SLACK_TOPIC_LIMIT = 250
# Section blocks accept at most 3000 characters of text.
SECTION_TEXT_LIMIT = 2900
NO_EARLIER_COMMENTS = "(no earlier comments in this thread)"
# Slack truncates message text beyond 40k characters.
MANAGED_BODY_LIMIT = 3000

# Slack stores bare URLs wrapped as <https://...>.
_WRAPPED_URL = re.compile(r"<((?:https?|mailto):[^|>]+)>")


def escape_slack(text: str) -> str:
    """Escape the three control characters of Slack message formatting."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def channel_deep_link(channel_id: str, team_id: str | None = None) -> str:
    link = f"https://slack.com/app_redirect?channel={channel_id}"
    if team_id:
        link += f"&team={team_id}"
    return link


def channel_topic(pr: PullRequest) -> str:
    return pr.title[:SLACK_TOPIC_LIMIT]


def format_pull_request(pr: PullRequest) -> str:
    """Text of the managed first message: title, link and fenced body."""
    if pr.body and pr.body.strip():
        body = escape_slack(pr.body[:MANAGED_BODY_LIMIT])
    else:
        body = "(no description)"
    return (
        f"{MANAGED_MESSAGE_HEADER} <{pr.html_url}|#{pr.number}>\n"
        "\n"
        f"PR Title: `{escape_slack(pr.title)}`\n"
        "PR Description:\n"
        f"```\n{body}\n```"
    )


def unwrap_links(text: str) -> str:
    return _WRAPPED_URL.sub(r"\1", text)


def same_message_text(stored: str, rendered: str) -> bool:
    """Compare history text with a fresh rendering, ignoring Slack link markup."""
    return unwrap_links(stored) == unwrap_links(rendered)


def is_managed_message(message: dict[str, Any]) -> bool:
    return (message.get("text") or "").startswith(MANAGED_MESSAGE_HEADER)


def approval_notice(login: str) -> str:
    return f":white_check_mark: {login} approved this PR!"


def channel_link_comment(channel: Channel, link: str) -> str:
    """Body of the managed comment on the pull request."""
    return (
        f"{MANAGED_COMMENT_MARKER}\n"
        f"Discussion for this pull request happens in Slack: [#{channel.name}]({link})"
    )


def is_move_trigger(body: str, phrase: str) -> bool:
    return phrase.lower() in body.lower()


def select_thread(
    comments: Sequence[ReviewComment], trigger: ReviewComment, window: int
) -> list[ReviewComment]:
    """Comments of the trigger's thread, oldest first, last ``window`` only.

    The trigger comment itself is not part of the relayed context.
    """
    anchor = trigger.thread_anchor
    thread = [
        c for c in comments if c.thread_anchor == anchor and c.id != trigger.id
    ]
    thread.sort(key=lambda c: (c.created_at, c.id))
    return thread[-window:]


def _section(text: str) -> dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def format_thread(
    pr: PullRequest,
    comments: Sequence[ReviewComment],
    identities: IdentityMap,
) -> tuple[str, list[dict[str, Any]]]:
    """Render a review thread as fallback text plus Block Kit blocks."""
    header = f"Review thread moved from <{pr.html_url}|PR #{pr.number}>"
    blocks: list[dict[str, Any]] = [_section(header)]
    lines = [header]

    if not comments:
        lines.append(NO_EARLIER_COMMENTS)
        blocks.append(_section(NO_EARLIER_COMMENTS))

    for comment in comments:
        author = identities.mention(comment.author)
        body = escape_slack(comment.body[:SECTION_TEXT_LIMIT])
        blocks.append({"type": "divider"})
        blocks.append(_section(f"*{author}*\n{body}"))
        lines.append(f"{author}: {body}")

    return "\n---\n".join(lines), blocks


class CrossPostRelay:
    """Writes that carry content from one system into the other."""

    def __init__(
        self,
        slack: SlackClient,
        github: GitHubClient,
        identities: IdentityMap,
        owner: str,
        repo: str,
        thread_window: int = 15,
    ):
        self.slack = slack
        self.github = github
        self.identities = identities
        self.owner = owner
        self.repo = repo
        self.thread_window = thread_window

    async def channel_link(self, channel: Channel) -> str:
        identity = await self.slack.identity()
        return channel_deep_link(channel.id, identity.team_id)

    async def upsert_channel_link(
        self, pr: PullRequest, channel: Channel, outcome: ConvergeOutcome
    ) -> None:
        """Create or refresh the single managed comment linking to the channel."""
        body = channel_link_comment(channel, await self.channel_link(channel))
        comments = await self.github.list_issue_comments(
            self.owner, self.repo, pr.number
        )
        managed = [
            c for c in comments if MANAGED_COMMENT_MARKER in (c.get("body") or "")
        ]

        if not managed:
            await self.github.create_issue_comment(
                self.owner, self.repo, pr.number, body
            )
            outcome.record(SyncAction.CREATE_COMMENT)
            logger.info(f"PR#{pr.number}: Added channel link comment")
            return

        if len(managed) > 1:
            logger.warning(
                f"PR#{pr.number}: {len(managed)} channel link comments found, "
                "updating the oldest"
            )
        current = managed[0]
        if current.get("body") != body:
            await self.github.update_issue_comment(
                self.owner, self.repo, current["id"], body
            )
            outcome.record(SyncAction.UPDATE_COMMENT)
            logger.info(f"PR#{pr.number}: Updated channel link comment")

    async def post_approval(
        self, pr: PullRequest, channel: Channel, login: str, outcome: ConvergeOutcome
    ) -> None:
        await self.slack.post_message(channel.id, approval_notice(login))
        outcome.record(SyncAction.POST_NOTICE)
        logger.info(f"PR#{pr.number}: Posted approval by {login} to #{channel.name}")

    async def move_thread_to_chat(
        self,
        pr: PullRequest,
        channel: Channel,
        trigger: ReviewComment,
        comments: Sequence[ReviewComment],
        outcome: ConvergeOutcome,
    ) -> str:
        """Post the thread as one Slack message, then link back to it on GitHub.

        The GitHub reply needs the permalink of the Slack message, so nothing
        is written to GitHub unless the Slack post succeeded.

        Returns:
            Permalink of the posted Slack message
        """
        thread = select_thread(comments, trigger, self.thread_window)
        text, blocks = format_thread(pr, thread, self.identities)

        ts = await self.slack.post_message(channel.id, text, blocks=blocks)
        outcome.record(SyncAction.RELAY_THREAD)
        permalink = await self.slack.permalink(channel.id, ts)

        await self.github.create_review_comment_reply(
            self.owner,
            self.repo,
            pr.number,
            trigger.thread_anchor,
            f"This thread continues in Slack: {permalink}",
        )
        outcome.record(SyncAction.REPLY_COMMENT)
        logger.info(
            f"PR#{pr.number}: Moved {len(thread)} comments of thread "
            f"{trigger.thread_anchor} to #{channel.name}"
        )
        return permalink
