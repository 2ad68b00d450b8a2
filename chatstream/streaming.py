"""
AG-UI event stream parser.

Decodes the Server-Sent-Events body of an agent chat endpoint into typed
events. Each record on the wire is ``data: <JSON>`` followed by a blank
line; the JSON payload carries a ``type`` discriminant.

Protocol: https://docs.ag-ui.com/concepts/events
"""

import codecs
from collections.abc import Generator, Iterable
from dataclasses import dataclass
from enum import Enum
import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """AG-UI event types."""

    # Lifecycle events
    RUN_STARTED = "RUN_STARTED"
    RUN_FINISHED = "RUN_FINISHED"
    RUN_ERROR = "RUN_ERROR"
    STEP_STARTED = "STEP_STARTED"
    STEP_FINISHED = "STEP_FINISHED"

    # Text message events
    TEXT_MESSAGE_START = "TEXT_MESSAGE_START"
    TEXT_MESSAGE_CONTENT = "TEXT_MESSAGE_CONTENT"
    TEXT_MESSAGE_END = "TEXT_MESSAGE_END"
    TEXT_MESSAGE_CHUNK = "TEXT_MESSAGE_CHUNK"

    # Tool call events
    TOOL_CALL_START = "TOOL_CALL_START"
    TOOL_CALL_ARGS = "TOOL_CALL_ARGS"
    TOOL_CALL_END = "TOOL_CALL_END"
    TOOL_CALL_RESULT = "TOOL_CALL_RESULT"

    # State management events
    STATE_SNAPSHOT = "STATE_SNAPSHOT"
    STATE_DELTA = "STATE_DELTA"
    MESSAGES_SNAPSHOT = "MESSAGES_SNAPSHOT"

    # Special events
    RAW = "RAW"
    CUSTOM = "CUSTOM"

    # Any discriminant this client does not know yet
    UNKNOWN = "UNKNOWN"


LIFECYCLE_EVENTS = frozenset(
    {
        EventType.RUN_STARTED,
        EventType.RUN_FINISHED,
        EventType.RUN_ERROR,
        EventType.STEP_STARTED,
        EventType.STEP_FINISHED,
    }
)
TERMINAL_EVENTS = frozenset({EventType.RUN_FINISHED, EventType.RUN_ERROR})


def _opt_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


@dataclass
class StreamEvent:
    """Base class for all stream events. ``raw`` keeps the full decoded payload."""

    type: EventType
    raw: dict[str, Any]

    @property
    def timestamp(self) -> int | float | None:
        """Epoch milliseconds stamped by the server, if any."""
        value = self.raw.get("timestamp")
        if isinstance(value, int | float) and not isinstance(value, bool):
            return value
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StreamEvent":
        """Build the typed event for a decoded payload.

        The discriminant is read from ``type`` (or ``kind``). Unrecognised
        discriminants produce a base event with ``EventType.UNKNOWN`` so the
        payload survives for collaborators; accumulators ignore it.
        """
        event_type_str = data.get("type", data.get("kind"))

        try:
            event_type = EventType(event_type_str)
        except ValueError:
            event_type = EventType.UNKNOWN

        event: StreamEvent

        if event_type == EventType.RUN_STARTED:
            event = RunStartedEvent(
                type=event_type,
                raw=data,
                thread_id=_opt_str(data.get("threadId")),
                run_id=_opt_str(data.get("runId")),
            )
        elif event_type == EventType.RUN_FINISHED:
            event = RunFinishedEvent(type=event_type, raw=data, result=data.get("result"))
        elif event_type == EventType.RUN_ERROR:
            event = RunErrorEvent(
                type=event_type,
                raw=data,
                message=_opt_str(data.get("message")) or "Agent error",
                code=_opt_str(data.get("code")),
            )
        elif event_type == EventType.STEP_STARTED:
            event = StepStartedEvent(
                type=event_type, raw=data, step_name=_opt_str(data.get("stepName"))
            )
        elif event_type == EventType.STEP_FINISHED:
            event = StepFinishedEvent(
                type=event_type, raw=data, step_name=_opt_str(data.get("stepName"))
            )
        elif event_type == EventType.TEXT_MESSAGE_START:
            event = TextMessageStartEvent(
                type=event_type,
                raw=data,
                message_id=_opt_str(data.get("messageId")),
                role=_opt_str(data.get("role")),
            )
        elif event_type == EventType.TEXT_MESSAGE_CONTENT:
            event = TextMessageContentEvent(
                type=event_type,
                raw=data,
                message_id=_opt_str(data.get("messageId")),
                delta=_opt_str(data.get("delta")) or "",
            )
        elif event_type == EventType.TEXT_MESSAGE_END:
            event = TextMessageEndEvent(
                type=event_type, raw=data, message_id=_opt_str(data.get("messageId"))
            )
        elif event_type == EventType.TEXT_MESSAGE_CHUNK:
            event = TextMessageChunkEvent(
                type=event_type,
                raw=data,
                message_id=_opt_str(data.get("messageId")),
                role=_opt_str(data.get("role")),
                delta=_opt_str(data.get("delta")) or "",
            )
        elif event_type == EventType.TOOL_CALL_START:
            event = ToolCallStartEvent(
                type=event_type,
                raw=data,
                tool_call_id=_opt_str(data.get("toolCallId")),
                tool_call_name=_opt_str(data.get("toolCallName")),
                parent_message_id=_opt_str(data.get("parentMessageId")),
            )
        elif event_type == EventType.TOOL_CALL_ARGS:
            event = ToolCallArgsEvent(
                type=event_type,
                raw=data,
                tool_call_id=_opt_str(data.get("toolCallId")),
                args=data.get("args", data.get("delta", "")),
            )
        elif event_type == EventType.TOOL_CALL_END:
            event = ToolCallEndEvent(
                type=event_type, raw=data, tool_call_id=_opt_str(data.get("toolCallId"))
            )
        elif event_type == EventType.TOOL_CALL_RESULT:
            event = ToolCallResultEvent(
                type=event_type,
                raw=data,
                tool_call_id=_opt_str(data.get("toolCallId")),
                result=data.get("result", data.get("content")),
                status=_opt_str(data.get("status")),
            )
        elif event_type == EventType.STATE_SNAPSHOT:
            event = StateSnapshotEvent(type=event_type, raw=data, state=data.get("state"))
        elif event_type == EventType.STATE_DELTA:
            delta = data.get("delta")
            event = StateDeltaEvent(
                type=event_type, raw=data, delta=delta if isinstance(delta, list) else []
            )
        elif event_type == EventType.MESSAGES_SNAPSHOT:
            messages = data.get("messages")
            event = MessagesSnapshotEvent(
                type=event_type,
                raw=data,
                messages=[m for m in messages if isinstance(m, dict)]
                if isinstance(messages, list)
                else [],
            )
        elif event_type == EventType.RAW:
            event = RawEvent(
                type=event_type,
                raw=data,
                event=data.get("event"),
                source=_opt_str(data.get("source")),
            )
        elif event_type == EventType.CUSTOM:
            event = CustomEvent(
                type=event_type,
                raw=data,
                name=_opt_str(data.get("name")),
                value=data.get("value"),
            )
        else:
            event = StreamEvent(type=event_type, raw=data)

        return event


@dataclass
class RunStartedEvent(StreamEvent):
    """Run begins; carries the conversation thread and run identifiers."""

    thread_id: str | None
    run_id: str | None


@dataclass
class RunFinishedEvent(StreamEvent):
    """Run completed successfully."""

    result: Any | None = None


@dataclass
class RunErrorEvent(StreamEvent):
    """Run failed on the agent side."""

    message: str
    code: str | None = None


@dataclass
class StepStartedEvent(StreamEvent):
    """Named step inside a run begins."""

    step_name: str | None


@dataclass
class StepFinishedEvent(StreamEvent):
    """Named step inside a run completed."""

    step_name: str | None


@dataclass
class TextMessageStartEvent(StreamEvent):
    """New message begins."""

    message_id: str | None
    role: str | None = None


@dataclass
class TextMessageContentEvent(StreamEvent):
    """Incremental message text."""

    message_id: str | None
    delta: str


@dataclass
class TextMessageEndEvent(StreamEvent):
    """Message is complete."""

    message_id: str | None


@dataclass
class TextMessageChunkEvent(StreamEvent):
    """Start and delta in one payload; the message id may be omitted."""

    message_id: str | None
    role: str | None
    delta: str


@dataclass
class ToolCallStartEvent(StreamEvent):
    """Tool call begins under a parent message."""

    tool_call_id: str | None
    tool_call_name: str | None
    parent_message_id: str | None = None


@dataclass
class ToolCallArgsEvent(StreamEvent):
    """Tool call arguments as a JSON string."""

    tool_call_id: str | None
    args: Any


@dataclass
class ToolCallEndEvent(StreamEvent):
    """Tool call arguments finished streaming."""

    tool_call_id: str | None


@dataclass
class ToolCallResultEvent(StreamEvent):
    """Tool output and completion status."""

    tool_call_id: str | None
    result: Any | None
    status: str | None = None


@dataclass
class StateSnapshotEvent(StreamEvent):
    """Complete agent state."""

    state: Any


@dataclass
class StateDeltaEvent(StreamEvent):
    """JSON-Patch style operations against the agent state."""

    delta: list[Any]


@dataclass
class MessagesSnapshotEvent(StreamEvent):
    """Server view of the whole message history."""

    messages: list[dict[str, Any]]


@dataclass
class RawEvent(StreamEvent):
    """Passthrough event from an upstream system."""

    event: Any = None
    source: str | None = None


@dataclass
class CustomEvent(StreamEvent):
    """Application defined event."""

    name: str | None = None
    value: Any = None


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def split_records(buffer: str, chunk: str) -> tuple[list[str], str]:
    """
    Split buffered text plus a new chunk into complete SSE records.

    Args:
        buffer: Remainder returned by the previous call ("" initially)
        chunk: Newly received text

    Returns:
        (records, remainder) - complete records without their terminating
        blank line, and the trailing partial record to pass back in.
    """
    text = buffer + chunk
    # A lone trailing CR may be the first half of a CRLF split across chunks.
    held_cr = text.endswith("\r")
    if held_cr:
        text = text[:-1]

    parts = _normalize_newlines(text).split("\n\n")
    remainder = parts.pop()
    if held_cr:
        remainder += "\r"

    records = [part for part in parts if part.strip()]
    return records, remainder


def parse_record(record: str) -> StreamEvent | None:
    """
    Decode one SSE record into a StreamEvent.

    Args:
        record: Record text (one or more lines, without trailing blank line)

    Returns:
        The decoded event, or None when the record carries no usable payload
    """
    if not record or not record.strip():
        return None

    data_lines: list[str] = []
    for raw_line in _normalize_newlines(record).split("\n"):
        if not raw_line.strip() or raw_line.startswith(":"):
            continue
        if raw_line.startswith("data:"):
            value = raw_line[5:]
            data_lines.append(value[1:] if value.startswith(" ") else value)

    if not data_lines:
        logger.warning("Dropping SSE record without data line: %s", record[:200])
        return None

    payload = "\n".join(data_lines).strip()
    if not payload:
        return None

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.warning("Failed to parse SSE JSON: %s", payload[:200])
        return None

    if not isinstance(data, dict):
        logger.warning("Dropping SSE payload that is not an object: %s", payload[:200])
        return None

    if not isinstance(data.get("type", data.get("kind")), str):
        logger.warning("Dropping SSE payload without event type: %s", payload[:200])
        return None

    event = StreamEvent.from_dict(data)
    if event.type == EventType.UNKNOWN:
        logger.warning("Unknown event type: %s", data.get("type", data.get("kind")))
    return event


def parse_chunk(buffer: str, chunk: str) -> tuple[list[StreamEvent], str]:
    """Split and decode in one step. Returns (events, remainder)."""
    records, remainder = split_records(buffer, chunk)
    events = [event for event in map(parse_record, records) if event is not None]
    return events, remainder


class SSEStreamParser:
    """
    Incremental parser for AG-UI Server-Sent-Events bodies.

    Produces the same events however the transport fragments the body.
    """

    @staticmethod
    def iter_events(chunks: Iterable[str | bytes]) -> Generator[StreamEvent, None, None]:
        """
        Parse an iterable of text or byte chunks.

        Args:
            chunks: Transport chunks in arrival order

        Yields:
            StreamEvent objects in arrival order
        """
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = ""
        for chunk in chunks:
            if isinstance(chunk, bytes):
                chunk = decoder.decode(chunk)
            if not chunk:
                continue
            events, buffer = parse_chunk(buffer, chunk)
            yield from events

        # Flush trailing record if stream ended without a final blank line.
        buffer += decoder.decode(b"", final=True)
        if buffer.strip():
            event = parse_record(buffer)
            if event is not None:
                yield event

    @staticmethod
    def parse_stream(response: object) -> Generator[StreamEvent, None, None]:
        """
        Parse SSE stream from HTTP response.

        Args:
            response: requests.Response object with streaming enabled

        Yields:
            StreamEvent objects
        """
        chunks = response.iter_content(chunk_size=None)  # type: ignore[attr-defined]
        yield from SSEStreamParser.iter_events(chunks)
