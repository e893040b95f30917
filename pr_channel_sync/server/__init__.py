"""HTTP surface: GitHub webhooks, the Slack slash command and the redirect."""

from .app import create_app, dispatch_github_event
from .service import Service, create_auth_provider

__all__ = ["Service", "create_app", "create_auth_provider", "dispatch_github_event"]
