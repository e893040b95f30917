"""Keep one Slack channel per open GitHub pull request."""

__version__ = "1.0.0"
