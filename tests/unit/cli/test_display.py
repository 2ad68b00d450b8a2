import io
import json

import pytest
from rich.console import Console

from chatstream._types import ChatStreamState, Message
from chatstream.cli.display import (
    CompactDisplay,
    JsonDisplay,
    VerboseDisplay,
    _normalize_markdown,
    create_display,
    format_tool_result,
)
from chatstream.streaming import StreamEvent


def ev(**data) -> StreamEvent:
    return StreamEvent.from_dict(data)


def make_console() -> Console:
    # Route output to an in-memory buffer so Rich doesn't touch the real terminal.
    return Console(file=io.StringIO(), force_terminal=False, color_system=None, width=100)


def output(display) -> str:
    return display.console.file.getvalue()


@pytest.fixture
def active_instances(monkeypatch):
    """Replace rich Progress with a dummy that fails on overlapping spinners."""
    active = {"count": 0}

    class DummyProgress:
        def __init__(self, *args, **kwargs):
            self.started = False

        def start(self) -> None:
            if self.started:
                raise RuntimeError("progress already started")
            if active["count"]:
                raise RuntimeError("another progress is already active")
            self.started = True
            active["count"] += 1

        def add_task(self, *args, **kwargs):
            return "dummy-task"

        def update(self, *args, **kwargs):
            pass

        def stop(self) -> None:
            if self.started:
                self.started = False
                active["count"] = max(0, active["count"] - 1)

    monkeypatch.setattr("chatstream.cli.display.Progress", DummyProgress)
    return active


def test_verbose_display_prevents_overlapping_progress(active_instances):
    """Ensure VerboseDisplay stops an active spinner before starting a new one."""
    display = VerboseDisplay(console=make_console())

    display.on_event(ev(type="TOOL_CALL_START", toolCallId="call-1", toolCallName="search"))
    assert active_instances["count"] == 1

    # The dummy progress raises if a previous instance is still active.
    display.on_event(ev(type="TOOL_CALL_START", toolCallId="call-2", toolCallName="get_weather"))
    assert active_instances["count"] == 1

    display.on_event(ev(type="TOOL_CALL_END", toolCallId="call-2"))
    assert active_instances["count"] == 1

    display.on_event(ev(type="TOOL_CALL_RESULT", toolCallId="call-2", result={"ok": True}))
    assert active_instances["count"] == 0
    assert "Tool Result: get_weather" in output(display)


def test_verbose_display_run_error_stops_spinner(active_instances):
    display = VerboseDisplay(console=make_console())
    display.on_event(ev(type="TOOL_CALL_START", toolCallId="t", toolCallName="search"))
    display.on_event(ev(type="RUN_ERROR", message="Agent failed", code="MOCK_ERROR"))

    assert active_instances["count"] == 0
    assert display.error_shown
    text = output(display)
    assert "Agent failed" in text
    assert "MOCK_ERROR" in text


def test_verbose_display_failed_tool(active_instances):
    display = VerboseDisplay(console=make_console())
    display.on_event(ev(type="TOOL_CALL_START", toolCallId="t", toolCallName="search"))
    display.on_event(
        ev(type="TOOL_CALL_RESULT", toolCallId="t", result="not found", status="error")
    )
    assert "Tool failed" in output(display)


def test_verbose_display_steps_and_text():
    display = VerboseDisplay(console=make_console())
    display.on_event(ev(type="RUN_STARTED", threadId="thread-1", runId="run-1"))
    display.on_event(ev(type="STEP_STARTED", stepName="plan"))
    display.on_event(ev(type="TEXT_MESSAGE_CONTENT", messageId="m", delta="Hello"))
    display.on_event(ev(type="STEP_FINISHED", stepName="plan"))

    text = output(display)
    assert "Run run-1 started (thread thread-1)" in text
    assert "▶ plan" in text
    assert "Hello\n" in text
    assert "✓ plan" in text


def test_verbose_finish_renders_response_and_state():
    display = VerboseDisplay(console=make_console())
    state = ChatStreamState(
        messages=[
            Message(id="u", role="user", content="Hi"),
            Message(id="m", role="assistant", content="**Done**"),
        ],
        agent_state={"counter": 1},
    )
    display.finish(state)

    text = output(display)
    assert "Response" in text
    assert "Done" in text
    assert "Agent state" in text
    assert '"counter": 1' in text


def test_finish_shows_transport_error_once():
    display = VerboseDisplay(console=make_console())
    display.finish(ChatStreamState(error="Stream interrupted: reset"))
    display.finish(ChatStreamState(error="Stream interrupted: reset"))
    assert output(display).count("Stream interrupted: reset") == 1


def test_compact_display_only_streams_text():
    display = CompactDisplay(console=make_console())
    display.on_event(ev(type="RUN_STARTED", runId="r"))
    display.on_event(ev(type="TEXT_MESSAGE_CONTENT", messageId="m", delta="Hel"))
    display.on_event(ev(type="TEXT_MESSAGE_CONTENT", messageId="m", delta="lo [b]"))
    display.on_event(ev(type="TEXT_MESSAGE_END", messageId="m"))
    display.finish(ChatStreamState())

    assert output(display) == "Hello [b]\n"


def test_json_display_prints_raw_events(capsys):
    display = JsonDisplay(console=make_console())
    display.on_event(ev(type="RUN_STARTED", runId="r"))
    display.finish(ChatStreamState(error="Agent failed", phase="errored"))
    display.finish(ChatStreamState(error="HTTP error! status: 500"))

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert lines == [
        {"type": "RUN_STARTED", "runId": "r"},
        {"type": "TRANSPORT_ERROR", "message": "HTTP error! status: 500"},
    ]


def test_create_display():
    assert isinstance(create_display("compact"), CompactDisplay)
    assert isinstance(create_display("json"), JsonDisplay)
    assert isinstance(create_display(), VerboseDisplay)


def test_format_tool_result():
    assert format_tool_result('{"a": 1}') == '{\n  "a": 1\n}'
    assert format_tool_result("plain text") == "plain text"
    assert format_tool_result("x" * 600).endswith("...")
    assert format_tool_result(list(range(10))).startswith("List with 10 items")


def test_normalize_markdown_task_lists():
    assert _normalize_markdown("- [x] done\n- [ ] todo") == "- ☑ done\n- ☐ todo"
