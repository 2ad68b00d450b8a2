"""Ctrl-C/SIGTERM handling for the CLI entry point."""

from __future__ import annotations

from collections.abc import Callable
import signal
import sys
from typing import Any

CANCELLED_EXIT = 130  # POSIX: 128 + SIGINT (2)


def print_cancelled(msg: str = "✖ Cancelled by user") -> None:
    sys.stderr.write("\n" + msg + "\n")
    sys.stderr.flush()


def show_endpoint_guidance() -> None:
    """Explain how to configure an endpoint when none was found."""
    print("\n💡 No chat endpoint configured")
    print("=" * 50)
    print("\n  Pass it on the command line:")
    print("    chatstream --endpoint http://localhost:8000/api/chat chat send 'Hi'")
    print("\n  Or set the environment variable:")
    print("    export CHATSTREAM_ENDPOINT=http://localhost:8000/api/chat")
    print("\n  Or save it in a profile:")
    print("    chatstream --endpoint http://localhost:8000/api/chat auth login")
    print()


def graceful_main(fn: Callable[[list[str]], int], argv: list[str]) -> int:
    """
    Run fn(argv), treating SIGTERM like Ctrl-C.

    Returns:
        Exit code (130 for cancelled, or fn's return value)
    """

    def _term(_signum: int, _frame: Any) -> None:
        raise KeyboardInterrupt()

    old_term = signal.getsignal(signal.SIGTERM)
    signal.signal(signal.SIGTERM, _term)

    try:
        return int(fn(argv) or 0)
    except KeyboardInterrupt:
        print_cancelled()
        return CANCELLED_EXIT
    finally:
        signal.signal(signal.SIGTERM, old_term)
