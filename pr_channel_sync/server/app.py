"""FastAPI application: webhooks, the slash command and the channel redirect.

The handlers only parse and authenticate requests; every decision is made by
``ReconciliationEngine``, which reports failures on its outcome objects
instead of raising. Webhooks are therefore always acknowledged once the
signature checks out.
"""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import parse_qs

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import RedirectResponse

from ..slack.exceptions import SlackError
from ..sync.engine import ReconciliationEngine
from ..sync.models import ConvergeOutcome
from ..worker import SweepWorker
from .security import verify_github_signature, verify_slack_request
from .service import Service

logger = logging.getLogger(__name__)

SLASH_COMMAND_USAGE = "Usage: `/pr <number>` to open a PR channel, `/pr sync` to sweep"


async def dispatch_github_event(
    engine: ReconciliationEngine, event: str, payload: dict[str, Any]
) -> ConvergeOutcome | None:
    """Route one webhook delivery to the engine.

    Returns:
        The engine outcome, or None when the event is not one the sync handles
    """
    if event == "pull_request":
        return await engine.handle_pull_request(payload.get("action", ""), payload)
    if event == "pull_request_review":
        return await engine.handle_review(payload)
    if event == "pull_request_review_comment":
        return await engine.handle_review_comment(payload)
    logger.debug(f"Ignoring GitHub event '{event}'")
    return None


def _ephemeral(text: str) -> dict[str, str]:
    return {"response_type": "ephemeral", "text": text}


def create_app(service: Service) -> FastAPI:
    """Build the application around an already wired ``Service``."""
    config = service.config
    engine = service.engine

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        worker: SweepWorker | None = None
        task: asyncio.Task | None = None
        interval = config.system.sweep_interval_seconds
        if interval > 0:
            worker = SweepWorker(engine, interval)
            task = asyncio.create_task(worker.run())
        try:
            yield
        finally:
            if worker and task:
                await worker.shutdown()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            await service.close()

    app = FastAPI(title="pr-channel-sync", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {
            "status": "ok",
            "repository": f"{config.github.owner}/{config.github.repo}",
        }

    @app.post("/github/webhook", status_code=202)
    async def github_webhook(
        request: Request,
        x_github_event: str = Header(default=""),
        x_github_delivery: str = Header(default=""),
        x_hub_signature_256: str = Header(default=""),
    ) -> dict[str, Any]:
        body = await request.body()

        secret = config.github.webhook_secret
        if secret and not verify_github_signature(body, x_hub_signature_256, secret):
            logger.warning(f"Rejected webhook {x_github_delivery}: bad signature")
            raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

        logger.info(f"Received GitHub event '{x_github_event}' ({x_github_delivery})")
        outcome = await dispatch_github_event(engine, x_github_event, payload)
        if outcome is None:
            return {"handled": False}
        return {
            "handled": True,
            "pr_number": outcome.pr_number,
            "actions": [a.value for a in outcome.actions],
            "errors": outcome.errors,
        }

    @app.post("/slack/commands")
    async def slack_command(request: Request) -> dict[str, str]:
        body = await request.body()

        secret = config.slack.signing_secret
        if secret and not verify_slack_request(body, request.headers, secret):
            logger.warning("Rejected slash command: bad signature")
            raise HTTPException(status_code=401, detail="Invalid signature")

        form = parse_qs(body.decode())
        text = form.get("text", [""])[0].strip()

        if text.lower() == "sync":
            report = await engine.sweep()
            return _ephemeral(report.summary())

        number = text.lstrip("#")
        if not number.isdigit() or int(number) < 1:
            return _ephemeral(SLASH_COMMAND_USAGE)

        outcome = await engine.open_channel(int(number))
        if outcome is None:
            return _ephemeral(f"PR #{number} does not exist")
        if outcome.channel is None:
            return _ephemeral(f"Could not open a channel for PR #{number}, try again")
        return _ephemeral(f"PR #{number} is discussed in <#{outcome.channel.id}>")

    @app.get("/app/openSlackChannel/v1/{repo_name}/{pull_number}")
    async def open_slack_channel(repo_name: str, pull_number: int) -> RedirectResponse:
        if repo_name.lower() != config.github.repo.lower() or pull_number < 1:
            raise HTTPException(status_code=404, detail="Unknown pull request")

        outcome = await engine.open_channel(pull_number)
        if outcome is None:
            raise HTTPException(status_code=404, detail="Unknown pull request")
        if outcome.channel is None:
            raise HTTPException(status_code=503, detail="Channel unavailable")

        try:
            link = await engine.deep_link(outcome.channel)
        except SlackError as e:
            logger.error(f"PR#{pull_number}: Failed to build channel link: {e}")
            raise HTTPException(status_code=503, detail="Channel unavailable") from e
        return RedirectResponse(link, status_code=307)

    return app
