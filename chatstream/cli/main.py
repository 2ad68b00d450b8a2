"""
Main CLI entry point for chatstream.

Chat with an AG-UI style agent endpoint, replay captured streams and manage
saved endpoint profiles.
"""

import argparse
import logging
import sys

from chatstream import __version__

from .._exceptions import ChatStreamError, ConfigurationError
from ..auth.credentials import CredentialManager
from ..client import ChatStreamClient
from .base import Command, CommandGroup
from .registry import registry
from .util import graceful_main, show_endpoint_guidance


def create_client(args: argparse.Namespace) -> ChatStreamClient | None:
    """Build a client from flags, environment and the saved profile."""
    try:
        return ChatStreamClient(
            endpoint=args.endpoint,
            api_key=args.api_key,
            profile=args.profile or CredentialManager.DEFAULT_PROFILE,
        )
    except ConfigurationError as e:
        print(f"❌ {e.message}")
        show_endpoint_guidance()
        return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatstream",
        description="chatstream - stream conversations with AG-UI agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--endpoint", help="Chat endpoint URL (or set CHATSTREAM_ENDPOINT environment variable)"
    )
    parser.add_argument(
        "--api-key", help="Bearer token (or set CHATSTREAM_API_KEY environment variable)"
    )
    parser.add_argument("--profile", help="Saved profile to use (default: default)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    for command in registry.get_primary_commands():
        subparser = subparsers.add_parser(
            command.name, aliases=command.aliases, help=command.description
        )
        command.add_arguments(subparser)
    return parser


def _real_main(argv: list[str]) -> int:
    if not registry.get_primary_commands():
        registry.auto_discover_commands()

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    try:
        command = registry.get_command(args.command)
    except KeyError:
        print(f"❌ Unknown command: {args.command}")
        return 1

    leaf: Command | None = command
    if isinstance(command, CommandGroup):
        leaf = command.resolve(args)

    client = None
    if leaf is not None and leaf.requires_client:
        client = create_client(args)
        if client is None:
            return 1

    try:
        return command.execute(args, client)
    except ChatStreamError as e:
        print(f"❌ {e.message}")
        return 1
    finally:
        if client is not None:
            client.close()


def main() -> None:
    """Console script entry point with graceful interrupt handling."""
    code = graceful_main(_real_main, sys.argv[1:])
    raise SystemExit(code)


if __name__ == "__main__":
    main()
