"""GitHub login -> Slack user id mapping.

The live engine only ever reads the map. ``build_identity_map`` is the offline
maintenance routine that derives the map from a login -> email table and the
workspace member list.
"""

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from ..slack.client import SlackClient

logger = logging.getLogger(__name__)


class IdentityMap(Mapping[str, str]):
    """Immutable, case-insensitive login -> Slack id lookup."""

    def __init__(self, entries: Mapping[str, str] | None = None):
        self._entries = MappingProxyType(
            {login.lower(): slack_id for login, slack_id in (entries or {}).items()}
        )

    @classmethod
    def from_json(cls, text: str) -> "IdentityMap":
        """Parse the serialized mapping (a JSON object of login -> id)."""
        data = json.loads(text) if text.strip() else {}
        if not isinstance(data, dict):
            raise ValueError("Identity mapping must be a JSON object")
        return cls(data)

    def __getitem__(self, login: str) -> str:
        return self._entries[login.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, login: str) -> str | None:
        """Slack id for ``login``, or None when the login is unmapped."""
        return self._entries.get(login.lower())

    def resolve(self, logins: Iterable[str]) -> tuple[list[str], list[str]]:
        """Split ``logins`` into mapped Slack ids and unmapped logins."""
        ids: list[str] = []
        missing: list[str] = []
        for login in logins:
            slack_id = self.lookup(login)
            if slack_id is None:
                missing.append(login)
            elif slack_id not in ids:
                ids.append(slack_id)
        return ids, missing

    def mention(self, login: str) -> str:
        """Slack mention for ``login``, falling back to the raw login."""
        slack_id = self.lookup(login)
        return f"<@{slack_id}>" if slack_id else login


async def build_identity_map(
    slack: SlackClient, login_to_email: Mapping[str, str]
) -> tuple[dict[str, str], list[str]]:
    """Resolve logins to Slack ids through workspace member emails.

    Returns:
        The login -> Slack id mapping and the logins that could not be matched
    """
    email_to_id: dict[str, str] = {}
    cursor: str | None = None
    while True:
        members, cursor = await slack.list_users_page(cursor)
        for member in members:
            email = (member.get("profile") or {}).get("email")
            if email and not member.get("deleted"):
                email_to_id[email.lower()] = member["id"]
        if not cursor:
            break

    mapping: dict[str, str] = {}
    unresolved: list[str] = []
    for login, email in login_to_email.items():
        slack_id = email_to_id.get(email.lower())
        if slack_id:
            mapping[login] = slack_id
        else:
            unresolved.append(login)

    logger.info(
        f"Resolved {len(mapping)} of {len(login_to_email)} logins to Slack users"
    )
    return mapping, unresolved
