"""Command line entry point.

    pr-channel-sync serve            run the HTTP server (and sweep worker)
    pr-channel-sync sweep            run one sweep and exit
    pr-channel-sync map-identities   build the login -> Slack id mapping
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .config import ConfigurationError, load_config
from .config.models import Config, LogLevel
from .server.service import Service
from .sync.identity import build_identity_map

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pr-channel-sync",
        description="Keep one Slack channel per open GitHub pull request",
    )
    parser.add_argument("--config", help="Configuration file path")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=[level.value for level in LogLevel],
        help="Log level (overrides configuration)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("serve", help="Run the HTTP server")
    subparsers.add_parser("sweep", help="Reconcile every pull request once")

    mapper = subparsers.add_parser(
        "map-identities",
        help="Resolve GitHub logins to Slack user ids through their emails",
    )
    mapper.add_argument(
        "--emails",
        required=True,
        help="JSON file with an object of GitHub login -> email",
    )
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper()), format=LOG_FORMAT)


def serve(config: Config) -> int:
    import uvicorn

    from .server.app import create_app

    app = create_app(Service.from_config(config))
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.system.log_level.value.lower(),
    )
    return 0


async def sweep(config: Config) -> int:
    service = Service.from_config(config)
    try:
        report = await service.engine.sweep()
    finally:
        await service.close()

    print(report.summary())
    for outcome in report.failed_outcomes:
        print(f"  {outcome}: {'; '.join(outcome.errors)}")
    for name, error in report.archive_failures.items():
        print(f"  #{name}: archive failed: {error}")
    return 0 if report.success else 1


async def map_identities(config: Config, emails_path: str) -> int:
    login_to_email = json.loads(Path(emails_path).read_text(encoding="utf-8"))
    if not isinstance(login_to_email, dict):
        raise ValueError(f"{emails_path} must contain a JSON object")

    service = Service.from_config(config)
    try:
        mapping, unresolved = await build_identity_map(service.slack, login_to_email)
    finally:
        await service.close()

    for login in unresolved:
        logger.warning(f"No Slack user with the email of {login}")
    print(json.dumps(mapping, indent=2, sort_keys=True))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or "INFO")

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    if not args.log_level:
        logging.getLogger().setLevel(config.system.log_level.value)

    try:
        if args.command == "serve":
            return serve(config)
        if args.command == "sweep":
            return asyncio.run(sweep(config))
        return asyncio.run(map_identities(config, args.emails))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
