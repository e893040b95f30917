"""Channel sync core: directory, identities, snapshots, relay and engine."""

from .directory import ChannelDirectory
from .engine import ReconciliationEngine
from .exceptions import (
    ChannelDirectoryError,
    ManagedMessageMissingError,
    PullRequestSnapshotError,
    SyncError,
)
from .identity import IdentityMap, build_identity_map
from .models import (
    Channel,
    ConvergeOutcome,
    PRState,
    PullRequest,
    ReviewComment,
    SweepReport,
    SyncAction,
)
from .naming import ChannelNaming
from .relay import CrossPostRelay
from .snapshot import PullRequestSnapshot

__all__ = [
    "Channel",
    "ChannelDirectory",
    "ChannelDirectoryError",
    "ChannelNaming",
    "ConvergeOutcome",
    "CrossPostRelay",
    "IdentityMap",
    "ManagedMessageMissingError",
    "PRState",
    "PullRequest",
    "PullRequestSnapshot",
    "PullRequestSnapshotError",
    "ReconciliationEngine",
    "ReviewComment",
    "SweepReport",
    "SyncAction",
    "SyncError",
    "build_identity_map",
]
