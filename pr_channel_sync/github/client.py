"""GitHub REST client for the pull request and comment endpoints the sync uses."""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import aiohttp

from .auth import AuthProvider
from .exceptions import (
    GitHubAuthenticationError,
    GitHubConnectionError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubServerError,
    GitHubValidationError,
)
from .pagination import AsyncPaginator, Page
from .rate_limiting import RateLimitManager

logger = logging.getLogger(__name__)


@dataclass
class GitHubClientConfig:
    """Configuration for GitHub client."""

    base_url: str = "https://api.github.com"
    timeout: int = 30
    rate_limit_buffer: int = 50
    user_agent: str = "pr-channel-sync/1.0"


class GitHubClient:
    """Async GitHub API client.

    Requests are issued once; failures are mapped onto the ``GitHubError``
    hierarchy and left to the caller, which recovers on the next webhook or
    sweep.
    """

    def __init__(
        self,
        auth: AuthProvider,
        config: GitHubClientConfig | None = None,
    ) -> None:
        """Initialize GitHub client.

        Args:
            auth: Authentication provider
            config: Client configuration
        """
        self.auth = auth
        self.config = config or GitHubClientConfig()
        self.rate_limiter = RateLimitManager(buffer=self.config.rate_limit_buffer)

        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    async def __aenter__(self) -> "GitHubClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure HTTP session is initialized."""
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    self._session = aiohttp.ClientSession(
                        timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                        headers={
                            "User-Agent": self.config.user_agent,
                            "Accept": "application/vnd.github+json",
                        },
                    )
        return self._session

    async def close(self) -> None:
        """Close HTTP session and the auth provider."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        await self.auth.close()

    def _url(self, path: str) -> str:
        return urljoin(self.config.base_url.rstrip("/") + "/", path.lstrip("/"))

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> tuple[Any, dict[str, str]]:
        """Make one HTTP request and return ``(json_body, headers)``.

        Raises:
            GitHubError: Various GitHub API errors
        """
        correlation_id = str(uuid.uuid4())[:8]

        self.rate_limiter.check_rate_limit()

        headers = (await self.auth.get_token()).to_header()
        session = await self._ensure_session()

        request_kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if data is not None:
            request_kwargs["json"] = data

        start_time = time.time()
        logger.debug(f"GitHub API request [{correlation_id}] {method} {url}")

        try:
            async with session.request(method, url, **request_kwargs) as response:
                response_headers = dict(response.headers)
                self.rate_limiter.update_rate_limit(response_headers)

                logger.debug(
                    f"GitHub API response [{correlation_id}] "
                    f"{response.status} in {time.time() - start_time:.2f}s"
                )

                if response.status == 204:
                    return None, response_headers
                if response.status in (200, 201):
                    return await response.json(), response_headers

                await self._handle_error_response(response, correlation_id)
        except TimeoutError as e:
            raise GitHubConnectionError(f"Request timeout for {method} {url}") from e
        except aiohttp.ClientError as e:
            raise GitHubConnectionError(
                f"Connection error for {method} {url}: {e}"
            ) from e

        raise GitHubError(f"Unhandled response for {method} {url}")

    async def _handle_error_response(
        self, response: aiohttp.ClientResponse, correlation_id: str
    ) -> None:
        """Raise the exception matching an error response.

        Raises:
            GitHubError: Appropriate error based on status code
        """
        try:
            error_data = await response.json()
        except (json.JSONDecodeError, aiohttp.ContentTypeError):
            error_data = {"message": await response.text()}

        error_message = error_data.get("message", f"HTTP {response.status}")

        logger.warning(
            f"GitHub API error [{correlation_id}] {response.status}: {error_message}"
        )

        if response.status == 401:
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status in (403, 429):
            if response.status == 429 or "rate limit" in error_message.lower():
                reset_time = response.headers.get("X-RateLimit-Reset")
                raise GitHubRateLimitError(
                    error_message,
                    reset_time=int(reset_time) if reset_time else None,
                    remaining=int(response.headers.get("X-RateLimit-Remaining", "0")),
                )
            raise GitHubAuthenticationError(error_message, response.status, error_data)
        elif response.status == 404:
            raise GitHubNotFoundError(error_message, response.status, error_data)
        elif response.status == 422:
            raise GitHubValidationError(error_message, response.status, error_data)
        elif 500 <= response.status < 600:
            raise GitHubServerError(error_message, response.status, error_data)
        else:
            raise GitHubError(error_message, response.status, error_data)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make GET request to GitHub API."""
        body, _ = await self._request("GET", self._url(path), params)
        return body

    async def post(self, path: str, data: dict[str, Any] | None = None) -> Any:
        """Make POST request to GitHub API."""
        body, _ = await self._request("POST", self._url(path), data=data)
        return body

    async def patch(self, path: str, data: dict[str, Any] | None = None) -> Any:
        """Make PATCH request to GitHub API."""
        body, _ = await self._request("PATCH", self._url(path), data=data)
        return body

    async def _fetch_page(self, url: str, params: dict[str, Any] | None) -> Page:
        """Fetch one page for ``AsyncPaginator``."""
        body, headers = await self._request("GET", url, params)
        return Page(body or [], headers)

    def paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        per_page: int = 100,
    ) -> AsyncPaginator:
        """Create async paginator for a GitHub list endpoint."""
        return AsyncPaginator(
            client=self, initial_url=self._url(path), params=params, per_page=per_page
        )

    # Pull request endpoints

    async def get_pull(self, owner: str, repo: str, pull_number: int) -> dict[str, Any]:
        """Get specific pull request."""
        return await self.get(f"/repos/{owner}/{repo}/pulls/{pull_number}")

    async def list_pulls(
        self, owner: str, repo: str, state: str = "open"
    ) -> list[dict[str, Any]]:
        """List every pull request of a repository in the given state."""
        return await self.paginate(
            f"/repos/{owner}/{repo}/pulls", params={"state": state}
        ).collect_all()

    async def list_review_comments(
        self, owner: str, repo: str, pull_number: int
    ) -> list[dict[str, Any]]:
        """List review (diff) comments of a pull request."""
        return await self.paginate(
            f"/repos/{owner}/{repo}/pulls/{pull_number}/comments"
        ).collect_all()

    async def create_review_comment_reply(
        self, owner: str, repo: str, pull_number: int, comment_id: int, body: str
    ) -> dict[str, Any]:
        """Reply on the review thread that ``comment_id`` belongs to."""
        return await self.post(
            f"/repos/{owner}/{repo}/pulls/{pull_number}/comments/{comment_id}/replies",
            data={"body": body},
        )

    # Issue comment endpoints (the conversation tab of a pull request)

    async def list_issue_comments(
        self, owner: str, repo: str, issue_number: int
    ) -> list[dict[str, Any]]:
        """List conversation comments of an issue or pull request."""
        return await self.paginate(
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments"
        ).collect_all()

    async def create_issue_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> dict[str, Any]:
        """Create a conversation comment."""
        return await self.post(
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            data={"body": body},
        )

    async def update_issue_comment(
        self, owner: str, repo: str, comment_id: int, body: str
    ) -> dict[str, Any]:
        """Replace the body of a conversation comment."""
        return await self.patch(
            f"/repos/{owner}/{repo}/issues/comments/{comment_id}",
            data={"body": body},
        )
