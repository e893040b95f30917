"""
Unit tests for the cross-post relay.

Why: Message text is compared on every convergence, so formatting must be
     deterministic; relayed threads must be bounded and chronological.

What: Tests the formatting helpers and CrossPostRelay writes.

How: Calls the pure helpers directly and the relay against in-memory fakes.
"""

from datetime import UTC, datetime

import pytest

from pr_channel_sync.sync.identity import IdentityMap
from pr_channel_sync.sync.models import (
    Channel,
    ConvergeOutcome,
    PullRequest,
    ReviewComment,
    SyncAction,
)
from pr_channel_sync.sync.relay import (
    MANAGED_BODY_LIMIT,
    MANAGED_COMMENT_MARKER,
    SECTION_TEXT_LIMIT,
    CrossPostRelay,
    approval_notice,
    channel_topic,
    escape_slack,
    format_pull_request,
    format_thread,
    is_managed_message,
    is_move_trigger,
    same_message_text,
    select_thread,
)
from tests.fixtures.sync import OWNER, REPO, PullRequestDataFactory


def _comment(comment_id: int, minute: int, reply_to: int | None = None, author="bob"):
    return ReviewComment(
        id=comment_id,
        author=author,
        body=f"comment {comment_id}",
        created_at=datetime(2024, 1, 1, 10, minute, tzinfo=UTC),
        in_reply_to_id=reply_to,
    )


@pytest.fixture
def pr() -> PullRequest:
    return PullRequest.from_github(PullRequestDataFactory.create(), OWNER, REPO)


class TestFormatting:
    """Test the pure formatting helpers."""

    def test_format_pull_request(self, pr) -> None:
        text = format_pull_request(pr)

        link = "<https://github.com/acme/widgets/pull/42|#42>"
        assert text.startswith(f"PR Opened! {link}")
        assert f"PR Title: `{pr.title}`" in text
        assert text.endswith("```\nFixes bug\n```")
        assert is_managed_message({"text": text})

    def test_format_pull_request_escapes_and_handles_empty_body(self) -> None:
        data = PullRequestDataFactory.create(title="a < b", body="   ")
        text = format_pull_request(PullRequest.from_github(data))

        assert "`a &lt; b`" in text
        assert "```\n(no description)\n```" in text

    def test_long_body_is_capped(self) -> None:
        data = PullRequestDataFactory.create(body="x" * (MANAGED_BODY_LIMIT + 500))
        text = format_pull_request(PullRequest.from_github(data))

        assert f"```\n{'x' * MANAGED_BODY_LIMIT}\n```" in text

    def test_same_message_text_ignores_wrapped_links(self) -> None:
        rendered = "see https://x.io and <https://github.com/a|#1>"
        stored = "see <https://x.io> and <https://github.com/a|#1>"

        assert same_message_text(stored, rendered)
        assert not same_message_text("see <https://y.io>", rendered)

    def test_escape_slack(self) -> None:
        assert escape_slack("<a & b>") == "&lt;a &amp; b&gt;"

    def test_topic_truncated_to_slack_limit(self) -> None:
        data = PullRequestDataFactory.create(title="x" * 300)
        assert len(channel_topic(PullRequest.from_github(data))) == 250

    def test_approval_notice(self) -> None:
        assert approval_notice("bob") == ":white_check_mark: bob approved this PR!"

    def test_move_trigger_is_case_insensitive(self) -> None:
        assert is_move_trigger("Let's MOVE TO CHAT", "move to chat")
        assert not is_move_trigger("move it to chat", "move to chat")


class TestThreadSelection:
    """Test select_thread and format_thread."""

    def test_last_window_in_ascending_order(self) -> None:
        """
        Why: Only the most recent context is relayed, oldest first
        What: Tests 20 prior comments reduced to the newest 15
        How: Shuffles a thread and selects with a window of 15
        """
        thread = [_comment(100, 0)] + [_comment(100 + i, i, 100) for i in range(1, 20)]
        trigger = _comment(200, 30, 100)
        other = _comment(300, 5)
        comments = list(reversed(thread)) + [other, trigger]

        selected = select_thread(comments, trigger, 15)

        assert [c.id for c in selected] == list(range(105, 120))

    def test_trigger_on_top_level_comment(self) -> None:
        trigger = _comment(100, 0)
        replies = [_comment(101, 1, 100), _comment(102, 2, 100)]

        selected = select_thread([trigger, *replies], trigger, 15)

        assert [c.id for c in selected] == [101, 102]

    def test_format_thread_attributes_authors(self, pr) -> None:
        identities = IdentityMap({"alice": "U123"})
        comments = [_comment(1, 0, author="alice"), _comment(2, 1, 1, author="dave")]

        text, blocks = format_thread(pr, comments, identities)

        assert [b["type"] for b in blocks] == [
            "section",
            "divider",
            "section",
            "divider",
            "section",
        ]
        assert blocks[2]["text"]["text"] == "*<@U123>*\ncomment 1"
        assert blocks[4]["text"]["text"] == "*dave*\ncomment 2"
        assert "<@U123>: comment 1" in text
        assert "dave: comment 2" in text

    def test_long_comment_is_cut_before_escaping(self, pr) -> None:
        """
        Why: Cutting escaped text can split an entity such as &amp;
        What: Tests that only whole entities reach the section block
        How: Relays a comment of 3000 ampersands
        """
        comment = ReviewComment(
            id=1,
            author="bob",
            body="&" * 3000,
            created_at=datetime(2024, 1, 1, 10, 0, tzinfo=UTC),
        )

        _, blocks = format_thread(pr, [comment], IdentityMap())

        body = blocks[2]["text"]["text"].split("\n", 1)[1]
        assert body == "&amp;" * SECTION_TEXT_LIMIT

    def test_format_empty_thread(self, pr) -> None:
        text, blocks = format_thread(pr, [], IdentityMap())

        assert len(blocks) == 2
        assert "no earlier comments" in text


class TestCrossPostRelay:
    """Test CrossPostRelay writes."""

    @pytest.fixture
    def relay(self, slack, github, identities) -> CrossPostRelay:
        return CrossPostRelay(slack, github, identities, OWNER, REPO, thread_window=15)

    @pytest.fixture
    def channel(self, slack) -> Channel:
        return Channel.from_slack(slack.add_channel("pr-42"))

    @pytest.mark.asyncio
    async def test_channel_link_comment_created_once(
        self, relay, github, pr, channel
    ) -> None:
        """
        Why: Exactly one managed comment may exist per pull request
        What: Tests creation then no-op on an unchanged second upsert
        How: Upserts twice and counts GitHub writes
        """
        first = ConvergeOutcome(pr.number)
        second = ConvergeOutcome(pr.number)

        await relay.upsert_channel_link(pr, channel, first)
        await relay.upsert_channel_link(pr, channel, second)

        assert first.actions == [SyncAction.CREATE_COMMENT]
        assert second.actions == []
        created = github.writes_of("create_issue_comment")
        assert len(created) == 1
        assert created[0][1].startswith(MANAGED_COMMENT_MARKER)
        assert f"channel={channel.id}&team=T0001" in created[0][1]

    @pytest.mark.asyncio
    async def test_move_thread_posts_then_replies(
        self, relay, slack, github, pr, channel
    ) -> None:
        trigger = _comment(200, 30, 100)
        comments = [_comment(100, 0), _comment(101, 1, 100), trigger]
        outcome = ConvergeOutcome(pr.number)

        permalink = await relay.move_thread_to_chat(
            pr, channel, trigger, comments, outcome
        )

        assert outcome.actions == [SyncAction.RELAY_THREAD, SyncAction.REPLY_COMMENT]
        assert len(slack.writes_of("post_message")) == 1
        assert github.writes_of("create_review_comment_reply") == [
            (100, f"This thread continues in Slack: {permalink}")
        ]
