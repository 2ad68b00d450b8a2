"""
CLI display components for streamed chat runs.

Provides different output formats for rendering events as they arrive:
- VerboseDisplay: Rich terminal UI with steps, tool spinners and result panels
- CompactDisplay: Only the streamed assistant text
- JsonDisplay: One JSON line per event for scripting and debugging
"""

from abc import ABC, abstractmethod
import json
import re
from typing import Any

from rich.console import Console
from rich.json import JSON
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn

from .._types import ChatStreamState
from ..streaming import (
    CustomEvent,
    RunErrorEvent,
    RunStartedEvent,
    StepFinishedEvent,
    StepStartedEvent,
    StreamEvent,
    TextMessageChunkEvent,
    TextMessageContentEvent,
    TextMessageEndEvent,
    ToolCallEndEvent,
    ToolCallResultEvent,
    ToolCallStartEvent,
)


class StreamDisplay(ABC):
    """Base class for stream display renderers."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()
        self.error_shown = False

    def start(self) -> None:
        """Called before the first event."""

    @abstractmethod
    def on_event(self, event: StreamEvent) -> None:
        """Render one event as it arrives."""

    def finish(self, state: ChatStreamState | None = None) -> None:
        """Called once the run ends, with the session's final state."""
        if state is not None and state.error and not self.error_shown:
            self.show_error(state.error)

    def show_error(self, message: str) -> None:
        self.console.print(f"\n[red]❌ Error: {message}[/red]", highlight=False)
        self.error_shown = True


class CompactDisplay(StreamDisplay):
    """Streams assistant text and errors, nothing else."""

    def __init__(self, console: Console | None = None) -> None:
        super().__init__(console=console)
        self.text_shown = False

    def on_event(self, event: StreamEvent) -> None:
        if isinstance(event, TextMessageContentEvent | TextMessageChunkEvent):
            self.console.print(event.delta, end="", markup=False, highlight=False)
            self.text_shown = True
        elif isinstance(event, TextMessageEndEvent):
            if self.text_shown:
                self.console.print()
                self.text_shown = False
        elif isinstance(event, RunErrorEvent):
            self.show_error(event.message)

    def finish(self, state: ChatStreamState | None = None) -> None:
        if self.text_shown:
            self.console.print()
            self.text_shown = False
        super().finish(state)


class VerboseDisplay(StreamDisplay):
    """
    Verbose display with rich terminal UI.

    Shows:
    - Run and step progress
    - Real-time text streaming
    - Tool call spinners and result panels
    - Errors in a red panel
    - The final response as markdown, and the agent state
    """

    def __init__(self, console: Console | None = None) -> None:
        super().__init__(console=console)
        self.tool_names: dict[str, str] = {}
        self.current_tool_call: str | None = None
        self.progress: Progress | None = None
        self.task_id: TaskID | None = None
        self.streaming_text = False

    def on_event(self, event: StreamEvent) -> None:
        if isinstance(event, TextMessageContentEvent | TextMessageChunkEvent):
            self.streaming_text = True
            self.console.print(event.delta, end="", style="white", markup=False, highlight=False)
            return

        self._end_text_line()

        if isinstance(event, RunStartedEvent):
            self.console.print(
                f"[dim]Run {event.run_id or '?'} started (thread {event.thread_id or '?'})[/dim]"
            )
        elif isinstance(event, StepStartedEvent):
            self.console.print(f"[bold blue]▶ {event.step_name or 'step'}[/bold blue]")
        elif isinstance(event, StepFinishedEvent):
            self.console.print(f"[blue]✓ {event.step_name or 'step'}[/blue]")
        elif isinstance(event, ToolCallStartEvent):
            self._handle_tool_call_start(event)
        elif isinstance(event, ToolCallEndEvent):
            self._handle_tool_call_end(event)
        elif isinstance(event, ToolCallResultEvent):
            self._handle_tool_call_result(event)
        elif isinstance(event, RunErrorEvent):
            self._stop_progress()
            title = "[red]❌ Error[/red]"
            if event.code:
                title = f"[red]❌ Error ({event.code})[/red]"
            self.console.print(
                Panel(f"[red]{event.message}[/red]", title=title, border_style="red")
            )
            self.error_shown = True
        elif isinstance(event, CustomEvent):
            self.console.print(f"[dim]• {event.name or 'custom'}[/dim]")

    def _end_text_line(self) -> None:
        if self.streaming_text:
            self.console.print()
            self.streaming_text = False

    def _handle_tool_call_start(self, event: ToolCallStartEvent) -> None:
        self._stop_progress()
        display_name = event.tool_call_name or "Unknown tool"
        if event.tool_call_id:
            self.tool_names[event.tool_call_id] = display_name
        self.current_tool_call = event.tool_call_id

        self.console.print(
            f"[bold cyan]⚡ Calling tool:[/bold cyan] [yellow]{display_name}[/yellow]"
        )
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=True,
        )
        self.progress.start()
        self.task_id = self.progress.add_task(f"Executing {display_name}...", total=None)

    def _handle_tool_call_end(self, event: ToolCallEndEvent) -> None:
        if self.progress is None or self.task_id is None:
            return
        if event.tool_call_id == self.current_tool_call:
            name = self.tool_names.get(event.tool_call_id or "", "tool")
            self.progress.update(self.task_id, description=f"{name} (waiting for result...)")

    def _handle_tool_call_result(self, event: ToolCallResultEvent) -> None:
        self._stop_progress()
        name = self.tool_names.get(event.tool_call_id or "", "tool")
        if event.status == "error":
            self.console.print(f"[red]✖ Tool failed:[/red] [yellow]{name}[/yellow]")
            border = "red"
        else:
            self.console.print(f"[green]✅ Completed tool:[/green] [yellow]{name}[/yellow]")
            border = "green"

        if event.result not in (None, ""):
            self.console.print(
                Panel(
                    format_tool_result(event.result),
                    title=f"Tool Result: {name}",
                    border_style=border,
                    expand=False,
                )
            )
        self.current_tool_call = None

    def finish(self, state: ChatStreamState | None = None) -> None:
        self._stop_progress()
        self._end_text_line()
        super().finish(state)
        if state is None:
            return

        final_text = ""
        for message in reversed(state.messages):
            if message.role == "assistant":
                final_text = message.content
                break
        if final_text.strip():
            self.console.print()
            self.console.print(build_markdown_panel(final_text))

        if state.agent_state not in (None, {}):
            self.console.print(
                Panel(
                    JSON.from_data(state.agent_state),
                    title="[magenta]Agent state[/magenta]",
                    border_style="magenta",
                    expand=False,
                )
            )

    def _stop_progress(self) -> None:
        if self.progress:
            self.progress.stop()
            self.progress = None
        self.task_id = None


class JsonDisplay(StreamDisplay):
    """
    JSON display for raw event streaming.

    Outputs each decoded event payload as one JSON line; useful for
    scripting and for capturing streams to replay later.
    """

    def on_event(self, event: StreamEvent) -> None:
        print(json.dumps(event.raw), flush=True)

    def finish(self, state: ChatStreamState | None = None) -> None:
        # Errors from RUN_ERROR are already in the event stream.
        if state is not None and state.error and state.phase != "errored":
            print(json.dumps({"type": "TRANSPORT_ERROR", "message": state.error}), flush=True)


def format_tool_result(result: Any) -> str:
    """Pretty-print a tool result, truncating long payloads."""
    if isinstance(result, str):
        try:
            result = json.loads(result)
        except ValueError:
            return result if len(result) <= 500 else result[:497] + "..."

    if isinstance(result, list) and len(result) > 5:
        sample = json.dumps(result[:5], indent=2)
        return f"List with {len(result)} items (showing first 5):\n{sample}\n..."

    try:
        text = json.dumps(result, indent=2)
    except (TypeError, ValueError):
        text = str(result)
    return text if len(text) <= 500 else text[:497] + "..."


_TASK_LIST_PATTERN = re.compile(r"^(\s*[-*]\s+)\[([ xX])\]\s+(.*)$", flags=re.MULTILINE)


def _normalize_markdown(text: str) -> str:
    """Render GitHub task-list checkboxes, which Rich lacks."""

    def replace(match: re.Match[str]) -> str:
        prefix, state, content = match.groups()
        symbol = "☑" if state.lower() == "x" else "☐"
        return f"{prefix}{symbol} {content}"

    return _TASK_LIST_PATTERN.sub(replace, text)


def build_markdown_panel(text: str, *, title: str = "[cyan]Response[/cyan]") -> Panel:
    normalized = _normalize_markdown(text)
    if not normalized.strip():
        return Panel("[dim]No response generated.[/dim]", border_style="cyan", expand=True)
    return Panel(
        Markdown(normalized, code_theme="monokai", justify="left"),
        title=title,
        border_style="cyan",
        expand=True,
    )


def create_display(format: str = "verbose", console: Console | None = None) -> StreamDisplay:
    """
    Create the display for an output format.

    Args:
        format: "verbose" (default), "compact" or "json"
    """
    if format == "compact":
        return CompactDisplay(console=console)
    if format == "json":
        return JsonDisplay(console=console)
    return VerboseDisplay(console=console)


DISPLAY_FORMATS = ("verbose", "compact", "json")
