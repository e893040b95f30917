"""Slack Web API exceptions."""

from typing import Any


class SlackError(Exception):
    """Base exception for Slack Web API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        """Initialize Slack error.

        Args:
            message: Error message
            error_code: Slack ``error`` field (e.g. ``channel_not_found``)
            response_data: Response data from the Web API
        """
        super().__init__(message)
        self.error_code = error_code
        self.response_data = response_data or {}


class SlackAuthenticationError(SlackError):
    """Raised for invalid tokens or missing scopes."""


class SlackRateLimitError(SlackError):
    """Raised when Slack answers ``ratelimited``."""

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message, error_code="ratelimited")
        self.retry_after = retry_after


class SlackNotFoundError(SlackError):
    """Raised when a channel, message or user does not exist."""


class SlackNameTakenError(SlackError):
    """Raised when a channel with the requested name already exists."""


class SlackConnectionError(SlackError):
    """Raised when the Web API cannot be reached."""
