"""Summary: Command-line interface for ProAssist.

Importance: Provides server startup and operator workflows without the mobile client.
Alternatives: Use a CLI framework like Typer or Click.
"""

from __future__ import annotations

import argparse
import logging

import uvicorn

from proassist.api import create_app
from proassist.app import build_context
from proassist.config import AppConfig
from proassist.errors import UserNotFound
from proassist.oauth import create_state_token


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="ProAssist CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None)
    serve.add_argument("--port", type=int, default=None)

    subparsers.add_parser("init-db", help="Create database tables")

    issue_token = subparsers.add_parser("issue-token", help="Issue a bearer token for a user")
    issue_token.add_argument("email", type=str)

    sync = subparsers.add_parser("sync", help="Sync Gmail messages for a user")
    sync.add_argument("email", type=str)

    stats = subparsers.add_parser("stats", help="Show inbox statistics for a user")
    stats.add_argument("email", type=str)

    subparsers.add_parser("auth-url", help="Print Google OAuth URL")
    return parser


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Execute CLI commands based on arguments.

    Importance: Drives operator workflows from the terminal.
    Alternatives: Invoke services via the HTTP API.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    if not logging.getLogger().handlers:
        logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")

    if args.command == "serve":
        app = create_app(config)
        uvicorn.run(
            app,
            host=args.host or config.api_host,
            port=args.port or config.api_port,
            log_level=config.log_level.lower(),
        )
        return

    context = build_context(config)

    if args.command == "init-db":
        print(f"Database ready at {config.db_path}.")
        return

    if args.command == "issue-token":
        result = context.auth.issue_token(args.email)
        print(result.token)
        return

    if args.command == "auth-url":
        print(context.auth.login_url(create_state_token()))
        return

    user = context.store.get_user_by_email(args.email)
    if user is None:
        raise UserNotFound(f"No user with email {args.email}")

    if args.command == "sync":
        processed = context.sync.sync_messages(user.id)
        print(f"Synced {len(processed)} new messages.")
        for item in processed:
            marker = " [auto-reply]" if item.auto_reply_sent else ""
            print(f"#{item.id} {item.urgency}: {item.subject} ({item.sender_contact}){marker}")
        return

    if args.command == "stats":
        snapshot = context.messages.stats(user.id)
        print(f"total: {snapshot.total}")
        print(f"unread: {snapshot.unread}")
        print(f"today: {snapshot.today_count}")
        print(f"replied: {snapshot.replied_count}")
        print(f"read_rate: {snapshot.read_rate:.1f}%")
        return


if __name__ == "__main__":
    run_cli()
