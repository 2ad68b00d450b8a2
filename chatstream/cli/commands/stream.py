"""
Offline tools for captured SSE bodies.

A capture is the raw response body of a chat endpoint, e.g. saved with
``curl -N ... > run.sse`` or ``chatstream chat send --format json``.
"""

from argparse import ArgumentParser, Namespace
from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from ..._exceptions import ProtocolError
from ...chat import ChatSession
from ...lifecycle import RunLifecycleTracker, validate_event_sequence
from ...streaming import SSEStreamParser
from ..base import Command, CommandGroup
from ..display import create_display
from .chat import add_format_argument

if TYPE_CHECKING:
    from ...client import ChatStreamClient


def read_capture(path: str) -> bytes | None:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        print(f"❌ Cannot read {path}: {e.strerror or e}")
        return None


def split_bytes(data: bytes, chunk_size: int) -> list[bytes]:
    """Cut ``data`` into transport-sized pieces; 0 keeps it whole."""
    if chunk_size <= 0:
        return [data]
    return [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]


class ReplayCommand(Command):
    """Feed a capture through a chat session as if it were streamed."""

    name = "replay"
    aliases: ClassVar[list[str]] = ["r"]
    description = "Replay a captured SSE stream through a chat session"
    requires_client = False

    def add_arguments(self, parser: ArgumentParser) -> None:
        parser.add_argument("file", help="Captured SSE body")
        add_format_argument(parser)
        parser.add_argument(
            "--chunk-size",
            type=int,
            default=0,
            help="Split the capture into chunks of N bytes (default: whole file)",
        )

    def execute(self, args: Namespace, client: "ChatStreamClient | None" = None) -> int:
        data = read_capture(args.file)
        if data is None:
            return 1

        display = create_display(args.format)
        session = ChatSession(on_event=display.on_event)
        display.start()
        session.replay(split_bytes(data, args.chunk_size))
        display.finish(session.state)

        if args.format != "json":
            for violation in session.tracker.violations:
                display.console.print(f"[yellow]⚠ {violation}[/yellow]")
        return 1 if session.error else 0


class ValidateCommand(Command):
    """Check a capture against the run lifecycle rules."""

    name = "validate"
    aliases: ClassVar[list[str]] = ["v"]
    description = "Validate the event sequence of a captured SSE stream"
    requires_client = False

    def add_arguments(self, parser: ArgumentParser) -> None:
        parser.add_argument("file", help="Captured SSE body")

    def execute(self, args: Namespace, client: "ChatStreamClient | None" = None) -> int:
        data = read_capture(args.file)
        if data is None:
            return 1

        events = list(SSEStreamParser.iter_events([data]))
        tracker = RunLifecycleTracker()
        for event in events:
            tracker.process(event)
        tracker.end_of_stream()

        counts = Counter(event.type.value for event in events)
        print(f"📄 {args.file}: {len(events)} events")
        for event_type, count in sorted(counts.items()):
            print(f"   {event_type:<22} {count}")

        ok = True
        try:
            validate_event_sequence(events)
        except ProtocolError as e:
            print(f"❌ {e.message}")
            ok = False

        for violation in tracker.violations:
            print(f"⚠️  {violation}")
            ok = False

        if ok:
            print(f"✅ Valid run ({tracker.phase.value})")
        return 0 if ok else 1


class StreamCommandGroup(CommandGroup):
    """Stream capture command group."""

    name = "stream"
    description = "Inspect and replay captured event streams"
    subcommand_classes: ClassVar[list[type[Command]]] = [ReplayCommand, ValidateCommand]
