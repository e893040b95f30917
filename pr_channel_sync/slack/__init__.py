"""Slack Web API wrapper package."""

from .client import BotIdentity, SlackClient, translate_error
from .exceptions import (
    SlackAuthenticationError,
    SlackConnectionError,
    SlackError,
    SlackNameTakenError,
    SlackNotFoundError,
    SlackRateLimitError,
)

__all__ = [
    "BotIdentity",
    "SlackAuthenticationError",
    "SlackClient",
    "SlackConnectionError",
    "SlackError",
    "SlackNameTakenError",
    "SlackNotFoundError",
    "SlackRateLimitError",
    "translate_error",
]
