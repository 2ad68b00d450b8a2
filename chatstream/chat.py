"""
ChatSession: the stateful consumer of an agent's event stream.

Sends the conversation to the chat endpoint, folds the streamed events into
messages, tool results, lifecycle metadata and agent state, and publishes a
fresh ``ChatStreamState`` to observers after every applied event.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
import copy
import logging
import threading
from typing import TYPE_CHECKING
import uuid

import requests

from ._exceptions import APIError, ChatStreamError, RunError
from ._types import ChatStreamState, Message
from .accumulators import MessageAccumulator, ToolCallAccumulator
from .lifecycle import RunLifecycleTracker, RunPhase
from .state import StateSynchronizer
from .streaming import (
    LIFECYCLE_EVENTS,
    EventType,
    MessagesSnapshotEvent,
    RunErrorEvent,
    RunStartedEvent,
    SSEStreamParser,
    StepFinishedEvent,
    StreamEvent,
    TextMessageChunkEvent,
    TextMessageContentEvent,
    TextMessageEndEvent,
    TextMessageStartEvent,
    ToolCallArgsEvent,
    ToolCallEndEvent,
    ToolCallResultEvent,
    ToolCallStartEvent,
)

if TYPE_CHECKING:
    from ._http import HTTPClient

logger = logging.getLogger(__name__)

StateListener = Callable[[ChatStreamState], None]

_TEXT_EVENTS = (
    TextMessageStartEvent,
    TextMessageContentEvent,
    TextMessageEndEvent,
    TextMessageChunkEvent,
)
_TOOL_EVENTS = (ToolCallStartEvent, ToolCallArgsEvent, ToolCallEndEvent, ToolCallResultEvent)


class ChatSession:
    """Conversation with an agent endpoint; one streamed run at a time."""

    def __init__(
        self,
        http: HTTPClient | None = None,
        *,
        path: str = "",
        on_message: Callable[[Message], None] | None = None,
        on_error: Callable[[ChatStreamError], None] | None = None,
        on_event: Callable[[StreamEvent], None] | None = None,
    ):
        """
        Initialize a ChatSession.

        Args:
            http: HTTP client bound to the chat endpoint (None for offline replay)
            path: Path appended to the client's base URL when sending
            on_message: Called with a copy of each completed or added message
            on_error: Called with transport errors and RunError for RUN_ERROR events
            on_event: Called with every applied event, including RAW, CUSTOM,
                MESSAGES_SNAPSHOT and unknown kinds
        """
        self._http = http
        self._path = path
        self.on_message = on_message
        self.on_error = on_error
        self.on_event = on_event

        self._messages: list[Message] = []
        self._is_streaming = False
        self._error: str | None = None
        self._thread_id: str | None = None
        self._run_id: str | None = None
        self._completed_steps: list[str] = []
        self._phase = RunPhase.IDLE
        self._state = StateSynchronizer()

        self._message_acc = MessageAccumulator()
        self._tool_acc = ToolCallAccumulator()
        self._tracker = RunLifecycleTracker()

        self._listeners: list[StateListener] = []
        self._send_lock = threading.Lock()
        self._generation = 0
        self.last_messages_snapshot: list[dict] | None = None

    # ------------------------------------------------------------------
    # Published state
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChatStreamState:
        """Snapshot of the conversation; safe to keep and mutate."""
        return ChatStreamState(
            messages=copy.deepcopy(self._messages),
            is_streaming=self._is_streaming,
            error=self._error,
            current_thread_id=self._thread_id,
            current_run_id=self._run_id,
            agent_state=copy.deepcopy(self._state.state),
            completed_steps=list(self._completed_steps),
            phase=self._phase.value,
        )

    @property
    def is_streaming(self) -> bool:
        return self._is_streaming

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def tracker(self) -> RunLifecycleTracker:
        """Lifecycle tracker of the current (or last) run."""
        return self._tracker

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state observer. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self) -> None:
        if not self._listeners:
            return
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def send(self, content: str) -> bool:
        """
        Send a user message and stream the agent's reply into the session.

        Blocks until the response ends, RUN_ERROR arrives, or the session is
        cleared. Failures are reported through ``error`` and ``on_error``.

        Returns:
            False if the message was empty or another send is still streaming
        """
        if not content.strip():
            return False
        if self._http is None:
            raise ChatStreamError("ChatSession has no HTTP client; use replay() instead")
        if not self._send_lock.acquire(blocking=False):
            logger.debug("send() ignored: a run is already streaming")
            return False

        try:
            self.add_message(Message(id=str(uuid.uuid4()), role="user", content=content))
            generation = self._begin_run()
            try:
                self._stream_reply(generation)
            finally:
                self._end_run(generation)
        finally:
            self._send_lock.release()
        return True

    def replay(self, chunks: Iterable[str | bytes]) -> bool:
        """
        Run a captured SSE body through the session as if it were streamed.

        Returns:
            False if another run is still streaming
        """
        if not self._send_lock.acquire(blocking=False):
            logger.debug("replay() ignored: a run is already streaming")
            return False
        try:
            generation = self._begin_run()
            try:
                self._consume(SSEStreamParser.iter_events(chunks), generation)
            finally:
                self._end_run(generation)
        finally:
            self._send_lock.release()
        return True

    def add_message(self, message: Message) -> None:
        """Append a message to the history (e.g. a locally composed message)."""
        self._messages.append(message)
        if self.on_message:
            self.on_message(copy.deepcopy(message))
        self._publish()

    def clear(self) -> None:
        """Reset the conversation. A run still streaming is abandoned."""
        self._generation += 1
        self._messages = []
        self._error = None
        self._is_streaming = False
        self._thread_id = None
        self._run_id = None
        self._completed_steps = []
        self._phase = RunPhase.IDLE
        self._state.reset()
        self._message_acc = MessageAccumulator()
        self._tool_acc = ToolCallAccumulator()
        self._tracker = RunLifecycleTracker()
        self.last_messages_snapshot = None
        self._publish()

    def set_error(self, error: str | None) -> None:
        self._error = error
        self._publish()

    def process_event(self, event: StreamEvent) -> None:
        """Apply a single event to the session and publish the result."""
        self._apply(event)
        if self.on_event:
            self.on_event(event)
        self._publish()

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    def _request_body(self) -> dict:
        body: dict = {"messages": [m.to_dict() for m in self._messages]}
        if self._thread_id is not None:
            body["threadId"] = self._thread_id
        if self._run_id is not None:
            body["runId"] = self._run_id
        return body

    def _begin_run(self) -> int:
        self._is_streaming = True
        self._error = None
        self._phase = RunPhase.IDLE
        self._message_acc = MessageAccumulator()
        self._tool_acc = ToolCallAccumulator()
        self._tracker = RunLifecycleTracker()
        self._publish()
        return self._generation

    def _stream_reply(self, generation: int) -> None:
        try:
            response = self._http.stream("POST", self._path, json=self._request_body())
        except ChatStreamError as e:
            self._fail(e, generation)
            return
        except requests.RequestException as e:
            self._fail(APIError(str(e)), generation)
            return

        try:
            self._consume(SSEStreamParser.parse_stream(response), generation)
        except requests.RequestException as e:
            self._fail(APIError(f"Stream interrupted: {e}"), generation)
        finally:
            response.close()

    def _consume(self, events: Iterator[StreamEvent], generation: int) -> None:
        for event in events:
            if generation != self._generation:
                logger.debug("Run superseded by clear(); dropping remaining events")
                return
            self.process_event(event)
            if event.type == EventType.RUN_ERROR:
                return
        self._tracker.end_of_stream()

    def _end_run(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._is_streaming = False
        self._publish()

    def _fail(self, error: ChatStreamError, generation: int) -> None:
        if generation != self._generation:
            return
        logger.warning("Chat stream failed: %s", error.message)
        self._error = error.message
        if self.on_error:
            self.on_error(error)

    # ------------------------------------------------------------------
    # Event dispatch
    # ------------------------------------------------------------------

    def _apply(self, event: StreamEvent) -> None:
        if event.type in LIFECYCLE_EVENTS:
            self._apply_lifecycle(event)
        elif isinstance(event, _TEXT_EVENTS):
            self._apply_text(event)
        elif isinstance(event, _TOOL_EVENTS):
            self._apply_tool(event)
        elif event.type in (EventType.STATE_SNAPSHOT, EventType.STATE_DELTA):
            self._state.process(event)
        elif isinstance(event, MessagesSnapshotEvent):
            # Replace-vs-merge is left to the caller (see on_event).
            self.last_messages_snapshot = event.messages
            logger.debug("Received MESSAGES_SNAPSHOT with %d messages", len(event.messages))
        elif event.type in (EventType.RAW, EventType.CUSTOM):
            logger.debug("Received special event: %s %s", event.type.value, event.raw)

    def _apply_lifecycle(self, event: StreamEvent) -> None:
        ended = self._tracker.is_terminal
        self._tracker.process(event)
        self._phase = self._tracker.phase
        if ended:
            # Recorded as a violation by the tracker; the finished run stays as it was.
            return

        if isinstance(event, RunStartedEvent):
            self._thread_id = event.thread_id or self._thread_id
            self._run_id = event.run_id or self._run_id
        elif isinstance(event, StepFinishedEvent):
            if event.step_name:
                self._completed_steps.append(event.step_name)
        elif isinstance(event, RunErrorEvent):
            self._error = event.message
            if self.on_error:
                self.on_error(RunError(event.message, code=event.code))

    def _apply_text(self, event: StreamEvent) -> None:
        message = self._message_acc.process(event)
        if message is None:
            return
        self._upsert_message(message)
        if isinstance(event, TextMessageEndEvent) and self.on_message:
            self.on_message(copy.deepcopy(message))

    def _apply_tool(self, event: StreamEvent) -> None:
        tool_call = self._tool_acc.process(event)
        if tool_call is None or not isinstance(event, ToolCallStartEvent):
            # ARGS/END/RESULT mutate the attached ToolResult in place.
            return

        parent_id = self._tool_acc.get_parent_message_id(tool_call.id)
        if not parent_id:
            logger.warning("Tool call %s has no parent message", tool_call.id)
            return
        if self._message_acc.add_tool_result(parent_id, tool_call):
            return

        # Parent may belong to an earlier run.
        parent = self._find_message(parent_id)
        if parent is None:
            logger.warning("Tool call %s references unknown message %s", tool_call.id, parent_id)
        elif all(existing.id != tool_call.id for existing in parent.tool_results):
            parent.tool_results.append(tool_call)

    def _find_message(self, message_id: str) -> Message | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def _upsert_message(self, message: Message) -> None:
        for index, existing in enumerate(self._messages):
            if existing.id == message.id:
                if existing is not message:
                    self._messages[index] = message
                return
        self._messages.append(message)

    def __enter__(self) -> ChatSession:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.clear()

    def __repr__(self) -> str:
        return (
            f"<ChatSession thread_id={self._thread_id} run_id={self._run_id} "
            f"messages={len(self._messages)} streaming={self._is_streaming}>"
        )
