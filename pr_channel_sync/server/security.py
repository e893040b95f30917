"""Request signature checks for inbound webhooks and slash commands."""

import hashlib
import hmac
from collections.abc import Mapping

from slack_sdk.signature import SignatureVerifier


def github_signature(payload: bytes, secret: str) -> str:
    """``X-Hub-Signature-256`` header value for ``payload``."""
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_github_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Verify a GitHub webhook signature in constant time."""
    if not signature:
        return False
    return hmac.compare_digest(github_signature(payload, secret), signature)


def verify_slack_request(
    body: bytes, headers: Mapping[str, str], signing_secret: str
) -> bool:
    """Verify the ``X-Slack-Signature`` of a slash command request.

    Requests older than five minutes are rejected by the verifier.
    """
    verifier = SignatureVerifier(signing_secret)
    return verifier.is_valid_request(body, dict(headers))
