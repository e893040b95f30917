"""Channel Directory: every channel of the workspace, fully materialized."""

import logging

from ..slack.client import SlackClient
from ..slack.exceptions import SlackError
from .exceptions import ChannelDirectoryError
from .models import Channel
from .naming import ChannelNaming

logger = logging.getLogger(__name__)


class ChannelDirectory:
    """Lists channels across every cursor page and resolves PR channels by name.

    The listing is rebuilt from Slack on every call; nothing is cached between
    calls because another handler may have created or archived a channel in
    the meantime.
    """

    def __init__(
        self, slack: SlackClient, naming: ChannelNaming, page_size: int = 200
    ):
        self.slack = slack
        self.naming = naming
        self.page_size = page_size

    async def list_channels(self) -> list[Channel]:
        """Fetch every channel, archived ones included, in page order.

        Raises:
            ChannelDirectoryError: If any page fails; no partial listing is
                returned
        """
        channels: list[Channel] = []
        cursor: str | None = None
        pages = 0

        try:
            while True:
                page, cursor = await self.slack.list_channels_page(
                    cursor, self.page_size
                )
                pages += 1
                channels.extend(Channel.from_slack(item) for item in page)
                if not cursor:
                    break
        except SlackError as e:
            logger.error(f"Failed to fetch channel page {pages + 1}: {e}")
            raise ChannelDirectoryError(f"Channel listing failed: {e}") from e

        logger.debug(f"Fetched {len(channels)} channels in {pages} pages")
        return channels

    async def pr_channels(self) -> list[Channel]:
        """Channels whose name carries the PR-channel prefix."""
        channels = await self.list_channels()
        return [c for c in channels if self.naming.is_pr_channel(c.name)]

    async def find(self, name: str) -> Channel | None:
        """Resolve a channel by exact name."""
        for channel in await self.list_channels():
            if channel.name == name:
                return channel
        return None

    async def find_for(self, pr_number: int) -> Channel | None:
        """Resolve the channel of a pull request."""
        return await self.find(self.naming.channel_name(pr_number))

    async def members(self, channel: Channel) -> frozenset[str]:
        """Current member ids of ``channel``.

        Raises:
            SlackError: If any member page fails
        """
        members: set[str] = set()
        cursor: str | None = None
        while True:
            page, cursor = await self.slack.members_page(
                channel.id, cursor, self.page_size
            )
            members.update(page)
            if not cursor:
                break
        return frozenset(members)
