"""GitHub API rate limit bookkeeping."""

import time
from dataclasses import dataclass, field

from .exceptions import GitHubRateLimitError


@dataclass
class RateLimitInfo:
    """Rate limit information reported by GitHub response headers."""

    limit: int
    remaining: int
    reset: int
    resource: str = "core"

    @property
    def seconds_until_reset(self) -> float:
        """Get seconds until rate limit resets."""
        return max(0.0, self.reset - time.time())


@dataclass
class RateLimitManager:
    """Tracks the latest rate limit headers and refuses calls inside the buffer.

    Requests are never delayed here: a refused call surfaces as
    ``GitHubRateLimitError`` and the caller retries on the next event or sweep.
    """

    buffer: int = 50
    _rate_limits: dict[str, RateLimitInfo] = field(default_factory=dict)

    def get_rate_limit(self, resource: str = "core") -> RateLimitInfo | None:
        return self._rate_limits.get(resource)

    def update_rate_limit(self, headers: dict[str, str]) -> None:
        """Update rate limit info from response headers."""
        if "X-RateLimit-Limit" not in headers:
            return

        try:
            info = RateLimitInfo(
                limit=int(headers["X-RateLimit-Limit"]),
                remaining=int(headers.get("X-RateLimit-Remaining", 0)),
                reset=int(headers.get("X-RateLimit-Reset", 0)),
                resource=headers.get("X-RateLimit-Resource", "core"),
            )
        except (ValueError, TypeError):
            return
        self._rate_limits[info.resource] = info

    def check_rate_limit(self, resource: str = "core") -> None:
        """Raise if the remaining budget for ``resource`` is inside the buffer.

        Raises:
            GitHubRateLimitError: If too few calls remain before the reset
        """
        info = self.get_rate_limit(resource)
        if info is None:
            return

        if info.remaining <= self.buffer and info.seconds_until_reset > 0:
            raise GitHubRateLimitError(
                f"Rate limit reserve reached for {resource}. "
                f"Remaining: {info.remaining}, "
                f"reset in {info.seconds_until_reset:.0f} seconds",
                reset_time=info.reset,
                remaining=info.remaining,
            )
