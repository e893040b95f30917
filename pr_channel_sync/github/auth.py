"""GitHub authentication handlers."""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

import aiohttp
import jwt

from .exceptions import GitHubAuthenticationError

logger = logging.getLogger(__name__)

# Installation tokens are refreshed this many seconds before GitHub expires them.
EXPIRY_MARGIN_SECONDS = 60


@dataclass
class AuthToken:
    """Authentication token with metadata."""

    token: str
    token_type: str = "Bearer"
    expires_at: int | None = None

    @property
    def is_expired(self) -> bool:
        """Check if token is expired."""
        if self.expires_at is None:
            return False
        return time.time() >= self.expires_at - EXPIRY_MARGIN_SECONDS

    def to_header(self) -> dict[str, str]:
        """Convert to authorization header."""
        return {"Authorization": f"{self.token_type} {self.token}"}


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @abstractmethod
    async def get_token(self) -> AuthToken:
        """Get a valid authentication token."""

    async def close(self) -> None:
        """Release any resources held by the provider."""


class TokenAuth(AuthProvider):
    """Static token authentication (personal access or pre-minted token)."""

    def __init__(self, token: str, token_type: str = "token"):
        """Initialize token authentication.

        Args:
            token: Authentication token
            token_type: Authorization scheme sent to GitHub
        """
        if not token:
            raise GitHubAuthenticationError("GitHub token is required")
        self._token = AuthToken(token=token, token_type=token_type)

    async def get_token(self) -> AuthToken:
        return self._token


class GitHubAppAuth(AuthProvider):
    """GitHub App authentication using installation access tokens.

    A short-lived RS256 JWT signed with the app's private key is exchanged
    for an installation token, which is cached until shortly before it
    expires.
    """

    def __init__(
        self,
        app_id: str,
        private_key: str,
        installation_id: str,
        base_url: str = "https://api.github.com",
    ):
        """Initialize GitHub App authentication.

        Args:
            app_id: GitHub App ID
            private_key: PEM private key for JWT signing
            installation_id: Installation ID of the app on the repository owner
            base_url: GitHub API base URL
        """
        if not app_id or not private_key or not installation_id:
            raise GitHubAuthenticationError(
                "GitHub App auth requires app_id, private_key and installation_id"
            )
        self.app_id = app_id
        self.private_key = private_key
        self.installation_id = installation_id
        self.base_url = base_url.rstrip("/")
        self._current_token: AuthToken | None = None
        self._session: aiohttp.ClientSession | None = None

    def _generate_jwt(self) -> str:
        """Generate JWT for GitHub App authentication."""
        now = int(time.time())
        payload = {
            "iat": now - 60,  # tolerate clock drift
            "exp": now + 540,
            "iss": self.app_id,
        }

        try:
            return jwt.encode(payload, self.private_key, algorithm="RS256")
        except Exception as e:
            raise GitHubAuthenticationError(f"Failed to generate JWT: {e}") from e

    async def get_token(self) -> AuthToken:
        if self._current_token and not self._current_token.is_expired:
            return self._current_token

        return await self.refresh_token()

    async def refresh_token(self) -> AuthToken:
        """Exchange a fresh app JWT for an installation token."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()

        url = f"{self.base_url}/app/installations/{self.installation_id}/access_tokens"
        headers = {
            "Authorization": f"Bearer {self._generate_jwt()}",
            "Accept": "application/vnd.github+json",
        }

        try:
            async with self._session.post(url, headers=headers) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise GitHubAuthenticationError(
                        "Installation token exchange returned a non-JSON "
                        f"response (HTTP {response.status})",
                        response.status,
                    ) from e
                if response.status != 201:
                    message = (data or {}).get("message", f"HTTP {response.status}")
                    raise GitHubAuthenticationError(
                        f"Installation token exchange failed: {message}",
                        response.status,
                        data,
                    )
        except aiohttp.ClientError as e:
            raise GitHubAuthenticationError(
                f"Installation token exchange failed: {e}"
            ) from e

        expires = datetime.fromisoformat(data["expires_at"].replace("Z", "+00:00"))
        expires_at = int(expires.timestamp())
        self._current_token = AuthToken(
            token=data["token"], token_type="token", expires_at=expires_at
        )
        logger.debug(f"Refreshed installation token for app {self.app_id}")
        return self._current_token

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
