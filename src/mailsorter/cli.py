"""Command-line interface for Mailsorter.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from mailsorter import __version__
from mailsorter.config import Settings, get_settings
from mailsorter.exceptions import MailsorterError
from mailsorter.models import SuggestionStatus
from mailsorter.utils import configure_logging

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mailsorter", description="AI-assisted inbox sorting")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    analyze_parser = subparsers.add_parser("analyze", help="Classify messages and store suggestions")
    analyze_parser.add_argument("--user", required=True, help="User (tenant) email address")
    analyze_parser.add_argument("email_ids", nargs="+", help="Gmail message IDs")

    subparsers.add_parser("gmail-auth", help="Authorize Gmail in a browser and write token.json")

    suggestions_parser = subparsers.add_parser("suggestions", help="List stored suggestions")
    suggestions_parser.add_argument("--user", required=True, help="User (tenant) email address")
    suggestions_parser.add_argument(
        "--status",
        choices=[s.value for s in SuggestionStatus],
        default=SuggestionStatus.PENDING.value,
        help="Suggestion status to list (default: pending)",
    )

    return parser


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    from mailsorter.api import create_app

    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_level=settings.log_level.lower())
    return 0


async def _cmd_analyze(args: argparse.Namespace, settings: Settings) -> int:
    from mailsorter.agent import SortingAgent
    from mailsorter.classifier import ClassifierClient
    from mailsorter.db import create_db_engine, ensure_schema
    from mailsorter.gmail import GmailClient

    engine = create_db_engine(settings)
    ensure_schema(engine)

    gmail = GmailClient(settings)
    await gmail.authenticate()

    agent = SortingAgent(
        user_id=args.user,
        mailbox=gmail,
        engine=engine,
        client=ClassifierClient(settings),
        settings=settings,
    )
    suggestions = await agent.analyze_messages(args.email_ids)
    for s in suggestions:
        label = f"\t{s.label_name}" if s.label_name else ""
        print(f"{s.id}\t{s.email_id}\t{s.action.value}\t{s.confidence:.2f}{label}")
    return 0


async def _cmd_gmail_auth(settings: Settings) -> int:
    from mailsorter.gmail import GmailClient

    # Runs the browser flow when token.json is missing or invalid.
    await GmailClient(settings, allow_interactive=True).authenticate()
    print(f"Gmail authorized; token written to {settings.gmail_token_path}")
    return 0


def _cmd_suggestions(args: argparse.Namespace, settings: Settings) -> int:
    from mailsorter.db import create_db_engine, ensure_schema
    from mailsorter.repository import SuggestionRepository

    engine = create_db_engine(settings)
    ensure_schema(engine)

    repo = SuggestionRepository(engine)
    rows = repo.list_by_status(
        args.user,
        status=SuggestionStatus(args.status),
        limit=settings.suggestions_page_size,
    )
    for s in rows:
        created = s.created_at.isoformat(timespec="seconds")
        print(f"{s.id}\t{created}\t{s.email_id}\t{s.action.value}\t{s.label_name}\t{s.reasoning}")
    if not rows:
        print(f"No {args.status} suggestions for {args.user}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Mailsorter CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info("mailsorter_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    try:
        if parsed.command == "serve":
            return _cmd_serve(parsed, settings)
        if parsed.command == "analyze":
            return asyncio.run(_cmd_analyze(parsed, settings))
        if parsed.command == "suggestions":
            return _cmd_suggestions(parsed, settings)
        if parsed.command == "gmail-auth":
            return asyncio.run(_cmd_gmail_auth(settings))
    except MailsorterError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
