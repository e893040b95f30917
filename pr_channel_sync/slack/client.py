"""Slack Web API wrapper exposing the calls the channel sync performs."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import aiohttp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from .exceptions import (
    SlackAuthenticationError,
    SlackConnectionError,
    SlackError,
    SlackNameTakenError,
    SlackNotFoundError,
    SlackRateLimitError,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset(
    {"channel_not_found", "message_not_found", "user_not_found", "users_not_found"}
)
AUTH_CODES = frozenset(
    {
        "invalid_auth",
        "not_authed",
        "account_inactive",
        "token_revoked",
        "missing_scope",
    }
)
# Answers that mean the requested state already holds.
BENIGN_CODES = frozenset({"already_in_channel", "already_archived"})


@dataclass(frozen=True)
class BotIdentity:
    """Who the app posts as; used to recognise the app's own messages."""

    user_id: str
    bot_id: str | None
    team_id: str | None

    def authored(self, message: dict[str, Any]) -> bool:
        """Whether ``message`` was posted by this identity."""
        if self.bot_id and message.get("bot_id") == self.bot_id:
            return True
        return message.get("user") == self.user_id


def translate_error(error: SlackApiError) -> SlackError:
    """Map a ``SlackApiError`` onto the ``SlackError`` hierarchy."""
    response = error.response
    code = response.get("error") if response is not None else None
    data: dict[str, Any] = {}
    if response is not None and isinstance(response.data, dict):
        data = dict(response.data)
    message = f"Slack API error: {code or error}"

    if code == "ratelimited" or (
        response is not None and response.status_code == 429
    ):
        retry_after = response.headers.get("Retry-After")
        return SlackRateLimitError(message, int(retry_after) if retry_after else None)
    if code == "name_taken":
        return SlackNameTakenError(message, code, data)
    if code in NOT_FOUND_CODES:
        return SlackNotFoundError(message, code, data)
    if code in AUTH_CODES:
        return SlackAuthenticationError(message, code, data)
    return SlackError(message, code, data)


class SlackClient:
    """Thin async facade over ``AsyncWebClient``.

    Every call either returns plain data or raises a ``SlackError``;
    ``already_in_channel`` and ``already_archived`` are reported as success.
    """

    def __init__(self, token: str, web_client: AsyncWebClient | None = None):
        self._client = web_client or AsyncWebClient(token=token)
        self._identity: BotIdentity | None = None

    async def _call(self, method: str, **kwargs: Any) -> dict[str, Any]:
        api = getattr(self._client, method)
        try:
            response = await api(**kwargs)
        except SlackApiError as e:
            code = e.response.get("error") if e.response is not None else None
            if code in BENIGN_CODES:
                logger.debug(f"Slack {method} answered {code}; nothing to do")
                return {"ok": True, "error": code}
            raise translate_error(e) from e
        except aiohttp.ClientError as e:
            raise SlackConnectionError(f"Slack {method} failed: {e}") from e
        return dict(response.data) if isinstance(response.data, dict) else {}

    async def identity(self) -> BotIdentity:
        """Return the bot identity (``auth.test``), cached after the first call."""
        if self._identity is None:
            data = await self._call("auth_test")
            self._identity = BotIdentity(
                user_id=data["user_id"],
                bot_id=data.get("bot_id"),
                team_id=data.get("team_id"),
            )
        return self._identity

    async def list_channels_page(
        self, cursor: str | None = None, limit: int = 200
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Fetch one page of public channels, archived ones included."""
        kwargs: dict[str, Any] = {
            "limit": limit,
            "exclude_archived": False,
            "types": "public_channel",
        }
        if cursor:
            kwargs["cursor"] = cursor
        data = await self._call("conversations_list", **kwargs)
        next_cursor = (data.get("response_metadata") or {}).get("next_cursor") or None
        return data.get("channels", []), next_cursor

    async def members_page(
        self, channel_id: str, cursor: str | None = None, limit: int = 200
    ) -> tuple[list[str], str | None]:
        """Fetch one page of channel member ids."""
        kwargs: dict[str, Any] = {"channel": channel_id, "limit": limit}
        if cursor:
            kwargs["cursor"] = cursor
        data = await self._call("conversations_members", **kwargs)
        next_cursor = (data.get("response_metadata") or {}).get("next_cursor") or None
        return data.get("members", []), next_cursor

    async def create_channel(self, name: str) -> dict[str, Any]:
        data = await self._call("conversations_create", name=name)
        return data["channel"]

    async def set_topic(self, channel_id: str, topic: str) -> None:
        await self._call("conversations_setTopic", channel=channel_id, topic=topic)

    async def post_message(
        self,
        channel_id: str,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
    ) -> str:
        """Post a message and return its ``ts``."""
        kwargs: dict[str, Any] = {"channel": channel_id, "text": text}
        if blocks:
            kwargs["blocks"] = blocks
        data = await self._call("chat_postMessage", **kwargs)
        return data["ts"]

    async def update_message(self, channel_id: str, ts: str, text: str) -> None:
        await self._call("chat_update", channel=channel_id, ts=ts, text=text)

    async def history(self, channel_id: str, limit: int = 200) -> list[dict[str, Any]]:
        """Return up to ``limit`` most recent messages, newest first."""
        data = await self._call(
            "conversations_history", channel=channel_id, limit=limit
        )
        return data.get("messages", [])

    async def invite(self, channel_id: str, user_ids: Iterable[str]) -> None:
        users = sorted(set(user_ids))
        if not users:
            return
        await self._call(
            "conversations_invite", channel=channel_id, users=",".join(users)
        )

    async def archive(self, channel_id: str) -> None:
        await self._call("conversations_archive", channel=channel_id)

    async def permalink(self, channel_id: str, ts: str) -> str:
        data = await self._call(
            "chat_getPermalink", channel=channel_id, message_ts=ts
        )
        return data["permalink"]

    async def list_users_page(
        self, cursor: str | None = None, limit: int = 200
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Fetch one page of workspace members."""
        kwargs: dict[str, Any] = {"limit": limit}
        if cursor:
            kwargs["cursor"] = cursor
        data = await self._call("users_list", **kwargs)
        next_cursor = (data.get("response_metadata") or {}).get("next_cursor") or None
        return data.get("members", []), next_cursor

    async def close(self) -> None:
        session = getattr(self._client, "session", None)
        if session is not None and not session.closed:
            await session.close()
