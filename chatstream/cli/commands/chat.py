"""
Chat commands for the chatstream CLI.

Sends messages to the configured endpoint and renders the streamed reply.
"""

from argparse import ArgumentParser, Namespace
import json
from typing import TYPE_CHECKING, ClassVar

from ...chat import ChatSession
from ..base import Command, CommandGroup
from ..display import DISPLAY_FORMATS, create_display
from ..prompt import prompt

if TYPE_CHECKING:
    from ...client import ChatStreamClient


def add_format_argument(parser: ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=DISPLAY_FORMATS,
        default="verbose",
        help="Output format (default: verbose)",
    )


def run_turn(session: ChatSession, content: str, output_format: str) -> int:
    """Send one message through ``session`` while rendering its events."""
    display = create_display(output_format)
    session.on_event = display.on_event
    display.start()
    try:
        session.send(content)
    finally:
        session.on_event = None
        display.finish(session.state)
    return 1 if session.error else 0


class SendCommand(Command):
    """Send a single message and stream the reply."""

    name = "send"
    aliases: ClassVar[list[str]] = ["s"]
    description = "Send a message and stream the agent's reply"

    def add_arguments(self, parser: ArgumentParser) -> None:
        parser.add_argument("message", help="Message to send")
        add_format_argument(parser)

    def execute(self, args: Namespace, client: "ChatStreamClient | None" = None) -> int:
        if client is None:
            print("❌ No chat endpoint configured")
            return 1
        if not args.message.strip():
            print("❌ Message must not be empty")
            return 1
        return run_turn(client.session(), args.message, args.format)


class InteractiveCommand(Command):
    """Prompt loop over a single conversation."""

    name = "interactive"
    aliases: ClassVar[list[str]] = ["i"]
    description = "Chat interactively (/clear, /state, /exit)"

    def add_arguments(self, parser: ArgumentParser) -> None:
        add_format_argument(parser)

    def execute(self, args: Namespace, client: "ChatStreamClient | None" = None) -> int:
        if client is None:
            print("❌ No chat endpoint configured")
            return 1

        session = client.session()
        print(f"💬 Chatting with {client.endpoint}")
        print("   Commands: /clear (new conversation), /state (agent state), /exit\n")

        while True:
            line = prompt("You: ")
            if line == "/exit":
                return 0
            if line == "/clear":
                session.clear()
                print("🧹 Conversation cleared\n")
                continue
            if line == "/state":
                state = session.state
                print(f"phase: {state.phase}  thread: {state.current_thread_id}")
                print(json.dumps(state.agent_state, indent=2, default=str))
                continue
            run_turn(session, line, args.format)
            print()


class ChatCommandGroup(CommandGroup):
    """Chat command group."""

    name = "chat"
    aliases: ClassVar[list[str]] = ["c"]
    description = "Chat with an agent endpoint"
    subcommand_classes: ClassVar[list[type[Command]]] = [SendCommand, InteractiveCommand]
