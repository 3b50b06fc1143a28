"""Summary: Command-line interface for ThreadPilot.

Importance: Covers one-time Basecamp authorization, token checks, and channel bindings.
Alternatives: Manage everything through the HTTP API.
"""

from __future__ import annotations

import argparse
import logging

from threadpilot.app import build_context
from threadpilot.config import AppConfig
from threadpilot.oauth import build_authorization_url, exchange_oauth_code


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="ThreadPilot CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("oauth-url", help="Print the Basecamp authorization URL")
    exchange = subparsers.add_parser(
        "oauth-exchange", help="Exchange an authorization code and save tokens"
    )
    exchange.add_argument("code", type=str)

    subparsers.add_parser("token-status", help="Show stored Basecamp token details")
    subparsers.add_parser("refresh-token", help="Force a Basecamp token refresh")

    bind = subparsers.add_parser("bind-channel", help="Bind a Slack channel to a to-do list")
    bind.add_argument("channel_id", type=str)
    bind.add_argument("project_id", type=str)
    bind.add_argument("todolist_id", type=str)

    unbind = subparsers.add_parser("unbind-channel", help="Remove a channel binding")
    unbind.add_argument("channel_id", type=str)

    subparsers.add_parser("list-bindings", help="List channel bindings")
    return parser


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Execute CLI commands based on arguments.

    Importance: Lets operators seed credentials before starting the HTTP service.
    Alternatives: Invoke the setup flow via the HTTP API.
    """

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    context = build_context(config)

    if args.command == "oauth-url":
        print(build_authorization_url(config))
        print("After authorizing, run: threadpilot oauth-exchange <code>")
        return

    if args.command == "oauth-exchange":
        result = exchange_oauth_code(config, args.code)
        context.credentials.save(result.to_record())
        print(f"Tokens saved to {context.credentials.path}.")
        return

    if args.command == "token-status":
        record = context.credentials.load()
        if not record:
            print("No Basecamp token stored.")
            return
        print(f"expires_at: {record.expires_at.isoformat() if record.expires_at else 'unknown'}")
        print(f"refresh_token: {'present' if record.refresh_token else 'missing'}")
        print(f"can_refresh: {context.tokens.can_refresh(record)}")
        return

    if args.command == "refresh-token":
        context.tokens.get_valid_token(force_refresh=True)
        record = context.credentials.load()
        expires = record.expires_at.isoformat() if record and record.expires_at else "unknown"
        print(f"Token valid; expires_at: {expires}")
        return

    if args.command == "bind-channel":
        binding = context.bindings.set_binding(args.channel_id, args.project_id, args.todolist_id)
        print(f"Bound {binding.channel_id} to {binding.project_id}/{binding.todolist_id}.")
        return

    if args.command == "unbind-channel":
        removed = context.bindings.remove_binding(args.channel_id)
        print("Binding removed." if removed else "No binding for that channel.")
        return

    if args.command == "list-bindings":
        for binding in context.bindings.list_bindings():
            print(f"{binding.channel_id}: {binding.project_id}/{binding.todolist_id}")
        return


if __name__ == "__main__":
    run_cli()
