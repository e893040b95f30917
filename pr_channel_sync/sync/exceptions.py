"""Exceptions raised inside the channel sync."""


class SyncError(Exception):
    """Base exception for channel sync failures."""


class ChannelDirectoryError(SyncError):
    """The channel listing could not be fetched completely.

    Never interpret this as "no channels": the whole operation is retried on
    the next event or sweep.
    """


class PullRequestSnapshotError(SyncError):
    """Pull request data could not be fetched from GitHub."""


class ManagedMessageMissingError(SyncError):
    """The channel's first bot message was expected but could not be found."""
