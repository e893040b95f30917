"""Channel naming convention: the join key between pull requests and channels.

There is no shared foreign key between the two systems, so the channel name
is derived from the pull request number (and optionally the repository) and
parsed back out. ``parse_pr_number`` only accepts names ``channel_name``
itself produces, which keeps the mapping injective.
"""

import re
from dataclasses import dataclass

# Slack channel names: lowercase, no spaces or periods, at most 80 characters.
MAX_CHANNEL_NAME_LENGTH = 80
# GitHub issue numbers are 32-bit integers.
MAX_PR_NUMBER_DIGITS = 10


def repository_slug(repository: str) -> str:
    """Reduce a repository name to characters Slack allows in channel names."""
    slug = re.sub(r"[^a-z0-9_-]+", "-", repository.lower()).strip("-")
    return slug or "repo"


@dataclass(frozen=True)
class ChannelNaming:
    """Maps PR numbers to channel names and back.

    With ``repository`` unset names look like ``pr-42``; with it set they
    look like ``pr-42-my-repo``.
    """

    prefix: str = "pr-"
    repository: str | None = None

    def __post_init__(self) -> None:
        longest = len(self.prefix) + MAX_PR_NUMBER_DIGITS + len(self.suffix)
        if longest > MAX_CHANNEL_NAME_LENGTH:
            raise ValueError(
                f'Channel names "{self.prefix}<number>{self.suffix}" can exceed '
                f"Slack's {MAX_CHANNEL_NAME_LENGTH} character limit"
            )

    @property
    def suffix(self) -> str:
        return f"-{repository_slug(self.repository)}" if self.repository else ""

    def channel_name(self, number: int) -> str:
        if number < 1:
            raise ValueError(f"Invalid pull request number: {number}")
        name = f"{self.prefix}{number}{self.suffix}"
        if len(name) > MAX_CHANNEL_NAME_LENGTH:
            raise ValueError(f"Channel name too long for Slack: {name}")
        return name

    def is_pr_channel(self, name: str) -> bool:
        """Exact literal-prefix test; ``xpr-1`` or ``prs-1`` do not match."""
        return name.startswith(self.prefix)

    def parse_pr_number(self, name: str) -> int | None:
        """Return the PR number encoded in ``name``, or None if not ours."""
        if not self.is_pr_channel(name):
            return None
        rest = name[len(self.prefix) :]
        if self.suffix:
            if not rest.endswith(self.suffix):
                return None
            rest = rest[: -len(self.suffix)]
        if not rest.isascii() or not rest.isdigit() or rest.startswith("0"):
            return None
        return int(rest)
