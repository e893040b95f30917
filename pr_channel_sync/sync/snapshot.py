"""Pull Request Snapshot: read-only views of the repository's pull requests."""

import logging

from ..github.client import GitHubClient
from ..github.exceptions import GitHubError, GitHubNotFoundError
from .exceptions import PullRequestSnapshotError
from .models import PullRequest, ReviewComment

logger = logging.getLogger(__name__)


class PullRequestSnapshot:
    """Fetches pull requests and review comments of one repository."""

    def __init__(self, github: GitHubClient, owner: str, repo: str):
        self.github = github
        self.owner = owner
        self.repo = repo

    async def fetch_pull(self, number: int) -> PullRequest | None:
        """Fetch one pull request; None if it does not exist.

        Raises:
            PullRequestSnapshotError: If GitHub cannot be queried
        """
        try:
            data = await self.github.get_pull(self.owner, self.repo, number)
        except GitHubNotFoundError:
            logger.info(f"PR#{number}: not found in {self.owner}/{self.repo}")
            return None
        except GitHubError as e:
            raise PullRequestSnapshotError(f"Failed to fetch PR#{number}: {e}") from e
        return PullRequest.from_github(data, self.owner, self.repo)

    async def fetch_open_pulls(self) -> list[PullRequest]:
        """Fetch every open pull request across all pages.

        Raises:
            PullRequestSnapshotError: If any page fails
        """
        try:
            pulls = await self.github.list_pulls(self.owner, self.repo, state="open")
        except GitHubError as e:
            raise PullRequestSnapshotError(
                f"Failed to list open pull requests: {e}"
            ) from e
        logger.debug(f"Fetched {len(pulls)} open pull requests")
        return [PullRequest.from_github(p, self.owner, self.repo) for p in pulls]

    async def fetch_review_comments(self, number: int) -> list[ReviewComment]:
        """Fetch every review comment of a pull request.

        Raises:
            PullRequestSnapshotError: If any page fails
        """
        try:
            comments = await self.github.list_review_comments(
                self.owner, self.repo, number
            )
        except GitHubError as e:
            raise PullRequestSnapshotError(
                f"Failed to fetch review comments of PR#{number}: {e}"
            ) from e
        return [ReviewComment.from_github(c) for c in comments]
