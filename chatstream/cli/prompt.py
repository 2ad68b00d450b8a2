"""Input helpers that turn Ctrl-C at a prompt into a clean exit."""

from __future__ import annotations

from getpass import getpass

from .util import CANCELLED_EXIT, print_cancelled


def prompt(label: str, *, allow_empty: bool = False) -> str:
    """
    Read a line of input, re-prompting on empty input unless allowed.

    Exits:
        With code 130 if the user cancels with Ctrl-C or EOF
    """
    try:
        while True:
            value = input(label).strip()
            if value or allow_empty:
                return value
    except (KeyboardInterrupt, EOFError):
        print_cancelled()
        raise SystemExit(CANCELLED_EXIT) from None


def secure_prompt(label: str) -> str:
    """Read a secret without echo. Exits with code 130 on Ctrl-C."""
    try:
        return getpass(label).strip()
    except (KeyboardInterrupt, EOFError):
        print_cancelled()
        raise SystemExit(CANCELLED_EXIT) from None
