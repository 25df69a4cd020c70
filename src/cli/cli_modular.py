"""Streamlined CLI interface with modular command structure."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable

from src.config import LOG_LEVEL, TIMEOUT_PROFILES

from .commands.feeds import (  # noqa: F401
    add_generate_feed_parser,
    add_list_feeds_parser,
    handle_generate_feed_command,
    handle_list_feeds_command,
)

CommandHandler = Callable[[argparse.Namespace], int]

# Handlers looked up by name so tests can monkeypatch this module.
COMMAND_HANDLER_ATTRS: dict[str, str] = {
    "list-feeds": "handle_list_feeds_command",
    "generate-feed": "handle_generate_feed_command",
}


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="feed-generator",
        description="Institutional feed generator - RSS for sites without feeds",
    )
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        help="Logging level (e.g. INFO, DEBUG)",
    )
    parser.add_argument(
        "--timeout-profile",
        choices=sorted(TIMEOUT_PROFILES),
        default=None,
        help="Timeout budget to run under (default: detected from the host)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    add_list_feeds_parser(subparsers)
    add_generate_feed_parser(subparsers)
    return parser


def _resolve_handler(
    args: argparse.Namespace,
    overrides: dict[str, CommandHandler] | None = None,
) -> CommandHandler | None:
    command = getattr(args, "command", None)
    if command is None:
        return None
    if overrides and command in overrides:
        return overrides[command]

    func = getattr(args, "func", None)
    if callable(func):
        return func

    handler = globals().get(COMMAND_HANDLER_ATTRS.get(command, ""))
    return handler if callable(handler) else None


def main(
    argv: list[str] | None = None,
    *,
    setup_logging_func: Callable[[str], None] | None = None,
    handler_overrides: dict[str, CommandHandler] | None = None,
) -> int:
    """Main CLI entry point; returns the process exit status."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if setup_logging_func is None:
        from .context import setup_logging as setup_logging_func

    setup_logging_func(args.log_level or "INFO")

    handler = _resolve_handler(args, overrides=handler_overrides)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
