"""GitHub API client package."""

from .auth import AuthProvider, AuthToken, GitHubAppAuth, TokenAuth
from .client import GitHubClient, GitHubClientConfig
from .exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubValidationError,
)
from .pagination import AsyncPaginator, LinkHeader, Page
from .rate_limiting import RateLimitInfo, RateLimitManager

__all__ = [
    "AsyncPaginator",
    "AuthProvider",
    "AuthToken",
    "GitHubAppAuth",
    "GitHubAuthenticationError",
    "GitHubClient",
    "GitHubClientConfig",
    "GitHubConnectionError",
    "GitHubError",
    "GitHubNotFoundError",
    "GitHubRateLimitError",
    "GitHubServerError",
    "GitHubValidationError",
    "LinkHeader",
    "Page",
    "RateLimitInfo",
    "RateLimitManager",
    "TokenAuth",
]
