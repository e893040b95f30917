"""GitHub API client exceptions."""

from typing import Any


class GitHubError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        """Initialize GitHub error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_data: Response data from GitHub API
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class GitHubAuthenticationError(GitHubError):
    """Raised when authentication fails or the app lacks permission."""


class GitHubRateLimitError(GitHubError):
    """Raised when the rate limit is exhausted or inside the reserve buffer."""

    def __init__(
        self,
        message: str,
        reset_time: int | None = None,
        remaining: int = 0,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            reset_time: Unix timestamp when the rate limit resets
            remaining: Remaining API calls
        """
        super().__init__(message, status_code=403)
        self.reset_time = reset_time
        self.remaining = remaining


class GitHubNotFoundError(GitHubError):
    """Raised when a pull request, comment or repository does not exist."""


class GitHubValidationError(GitHubError):
    """Raised when GitHub rejects the request body (HTTP 422)."""


class GitHubServerError(GitHubError):
    """Raised when GitHub returns a 5xx error."""


class GitHubConnectionError(GitHubError):
    """Raised when the connection to GitHub fails or times out."""
