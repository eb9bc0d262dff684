"""CLI entry point for mailgate."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .commands import (
    list_emails_cmd,
    list_mailboxes_cmd,
    list_masked_cmd,
    read_email_cmd,
    read_thread_cmd,
    search_cmd,
)
from .config import Config, load_config
from .errors import JmapError
from .mcp_server import run_mcp_server

logger = logging.getLogger("mailgate")


def configure_logging(verbose: bool = False) -> None:
    # stdout carries the MCP transport, so logs go to stderr
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def add_common_args(parser: argparse.ArgumentParser, suppress_defaults: bool = False) -> None:
    """Add common arguments to a parser.

    Subcommand copies pass ``suppress_defaults`` so a value given before
    the command is not overwritten by the subcommand's default.
    """
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=argparse.SUPPRESS if suppress_defaults else Path("config.toml"),
        help="Path to configuration file (optional; defaults and environment are used if missing)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_defaults else False,
        help="Enable debug logging",
    )


def add_limit_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--limit",
        type=int,
        default=25,
        help="Maximum emails to list (default: 25)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description="JMAP mailbox tools with preview/confirm gating",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_common_args(parser)
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve - Run the MCP server over stdio
    serve_parser = subparsers.add_parser("serve", help="Run the MCP server over stdio")
    add_common_args(serve_parser, suppress_defaults=True)

    # mailboxes - List mailboxes
    mailboxes_parser = subparsers.add_parser("mailboxes", help="List mailboxes with counts")
    add_common_args(mailboxes_parser, suppress_defaults=True)

    # emails - List emails in a mailbox
    emails_parser = subparsers.add_parser("emails", help="List emails in a mailbox")
    add_common_args(emails_parser, suppress_defaults=True)
    emails_parser.add_argument("mailbox", help="Mailbox name or role")
    add_limit_args(emails_parser)

    # search - Free-text search
    search_parser = subparsers.add_parser("search", help="Search emails")
    add_common_args(search_parser, suppress_defaults=True)
    search_parser.add_argument("query", help="Text to match in subject, from, to or body")
    add_limit_args(search_parser)

    # read - Read an email
    read_parser = subparsers.add_parser("read", help="Read and display an email")
    add_common_args(read_parser, suppress_defaults=True)
    read_parser.add_argument("email_id", help="Email ID")

    # thread - Read a thread
    thread_parser = subparsers.add_parser("thread", help="Display every email in a thread")
    add_common_args(thread_parser, suppress_defaults=True)
    thread_parser.add_argument("thread_id", help="Thread ID")

    # masked - List masked email addresses
    masked_parser = subparsers.add_parser("masked", help="List masked email addresses")
    add_common_args(masked_parser, suppress_defaults=True)
    masked_parser.add_argument(
        "--state",
        choices=["pending", "enabled", "disabled", "deleted"],
        help="Only show addresses in this state",
    )

    return parser


def resolve_config(path: Path) -> Config:
    if path.exists():
        return load_config(path)
    logger.debug(f"Configuration file not found: {path}, using defaults")
    return Config()


def main() -> None:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    configure_logging(args.verbose)

    # Show help if no command specified
    if not args.command:
        parser.print_help()
        sys.exit(0)

    config = resolve_config(args.config)

    try:
        if args.command == "serve":
            asyncio.run(run_mcp_server(config))
        elif args.command == "mailboxes":
            asyncio.run(list_mailboxes_cmd(config))
        elif args.command == "emails":
            asyncio.run(list_emails_cmd(config, args.mailbox, args.limit))
        elif args.command == "search":
            asyncio.run(search_cmd(config, args.query, args.limit))
        elif args.command == "read":
            asyncio.run(read_email_cmd(config, args.email_id))
        elif args.command == "thread":
            asyncio.run(read_thread_cmd(config, args.thread_id))
        elif args.command == "masked":
            asyncio.run(list_masked_cmd(config, args.state))
    except (JmapError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
