"""Wiring of clients and sync components from a loaded configuration."""

import logging
from dataclasses import dataclass

from ..config.models import Config
from ..github.auth import AuthProvider, GitHubAppAuth, TokenAuth
from ..github.client import GitHubClient, GitHubClientConfig
from ..slack.client import SlackClient
from ..sync.directory import ChannelDirectory
from ..sync.engine import ReconciliationEngine
from ..sync.identity import IdentityMap
from ..sync.naming import ChannelNaming
from ..sync.relay import CrossPostRelay
from ..sync.snapshot import PullRequestSnapshot

logger = logging.getLogger(__name__)


def create_auth_provider(config: Config) -> AuthProvider:
    """Token auth when a token is configured, GitHub App auth otherwise."""
    github = config.github
    if github.token is not None:
        return TokenAuth(github.token)
    return GitHubAppAuth(
        app_id=github.app_id or "",
        private_key=github.private_key or "",
        installation_id=github.installation_id or "",
        base_url=github.base_url,
    )


@dataclass
class Service:
    """Everything a request handler or the sweep worker needs."""

    config: Config
    github: GitHubClient
    slack: SlackClient
    engine: ReconciliationEngine

    @classmethod
    def from_config(cls, config: Config) -> "Service":
        github = GitHubClient(
            auth=create_auth_provider(config),
            config=GitHubClientConfig(base_url=config.github.base_url),
        )
        slack = SlackClient(config.slack.bot_token)

        repository = config.github.repo
        naming = ChannelNaming(
            prefix=config.slack.channel_prefix,
            repository=repository if config.slack.include_repository_in_name else None,
        )
        identities = IdentityMap(config.identities)
        directory = ChannelDirectory(slack, naming)
        snapshot = PullRequestSnapshot(github, config.github.owner, repository)
        relay = CrossPostRelay(
            slack,
            github,
            identities,
            config.github.owner,
            repository,
            thread_window=config.slack.thread_window,
        )
        engine = ReconciliationEngine(
            slack=slack,
            directory=directory,
            snapshot=snapshot,
            relay=relay,
            identities=identities,
            naming=naming,
            history_window=config.slack.history_window,
            move_trigger=config.slack.move_trigger,
        )

        logger.info(
            f"Service configured for {config.github.owner}/{repository} "
            f"({len(identities)} mapped identities)"
        )
        return cls(config=config, github=github, slack=slack, engine=engine)

    async def close(self) -> None:
        await self.github.close()
        await self.slack.close()
