"""
Accumulators folding partial-update events into materialized entities.

Both accumulators return the entity they touched from ``process`` so the
caller can publish interim state after every delta.
"""

import json
import logging
import uuid
from typing import Any

from ._types import (
    DEFAULT_ROLE,
    MESSAGE_ROLES,
    TOOL_STATUSES,
    Message,
    ToolResult,
    timestamp_to_datetime,
)
from .streaming import (
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

logger = logging.getLogger(__name__)


class MessageAccumulator:
    """Builds messages from TEXT_MESSAGE_* events, keyed by message id."""

    def __init__(self) -> None:
        self._messages: dict[str, Message] = {}
        self._completed: set[str] = set()

    def process(self, event: StreamEvent) -> Message | None:
        """Apply a text message event; returns the affected message."""
        if isinstance(event, TextMessageStartEvent):
            if not event.message_id:
                logger.warning("TEXT_MESSAGE_START without messageId ignored")
                return None
            return self.get_or_create(event.message_id, event.role, event.timestamp)

        if isinstance(event, TextMessageContentEvent):
            if not event.message_id:
                logger.warning("TEXT_MESSAGE_CONTENT without messageId ignored")
                return None
            # Some transports omit START before the first delta.
            message = self.get_or_create(event.message_id, timestamp=event.timestamp)
            message.content += event.delta
            return message

        if isinstance(event, TextMessageChunkEvent):
            message_id = event.message_id or str(uuid.uuid4())
            message = self.get_or_create(message_id, event.role, event.timestamp)
            message.content += event.delta
            return message

        if isinstance(event, TextMessageEndEvent):
            if not event.message_id or event.message_id not in self._messages:
                logger.debug("TEXT_MESSAGE_END for unknown message %s", event.message_id)
                return None
            self._completed.add(event.message_id)
            return self._messages[event.message_id]

        return None

    def get_or_create(
        self,
        message_id: str,
        role: str | None = None,
        timestamp: int | float | None = None,
    ) -> Message:
        """Return the message for ``message_id``, creating an empty one if needed.

        An existing message is returned untouched, so a repeated START is a no-op.
        """
        message = self._messages.get(message_id)
        if message is None:
            if role and role not in MESSAGE_ROLES:
                logger.warning("Unrecognised message role %r, using %r", role, DEFAULT_ROLE)
                role = None
            message = Message(
                id=message_id,
                role=role or DEFAULT_ROLE,
                content="",
                created_at=timestamp_to_datetime(timestamp),
                tool_results=[],
            )
            self._messages[message_id] = message
        return message

    def get_message(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def is_complete(self, message_id: str) -> bool:
        """Whether TEXT_MESSAGE_END has been seen for the message."""
        return message_id in self._completed

    def add_tool_result(self, message_id: str, tool_result: ToolResult) -> bool:
        """Attach a tool result to a message. Returns False if the message is unknown."""
        message = self._messages.get(message_id)
        if message is None:
            return False
        if all(existing.id != tool_result.id for existing in message.tool_results):
            message.tool_results.append(tool_result)
        return True

    @property
    def messages(self) -> list[Message]:
        """Messages in creation order."""
        return list(self._messages.values())

    def clear(self) -> None:
        self._messages.clear()
        self._completed.clear()


class ToolCallAccumulator:
    """Builds tool results from TOOL_CALL_* events, keyed by tool call id."""

    def __init__(self) -> None:
        self._tool_calls: dict[str, ToolResult] = {}
        self._parents: dict[str, str | None] = {}
        self._args_complete: set[str] = set()

    def process(self, event: StreamEvent) -> ToolResult | None:
        """Apply a tool call event; returns the affected tool result."""
        if isinstance(event, ToolCallStartEvent):
            return self._handle_start(event)

        if not isinstance(event, ToolCallArgsEvent | ToolCallEndEvent | ToolCallResultEvent):
            return None

        tool_call = self._tool_calls.get(event.tool_call_id or "")
        if tool_call is None:
            # Without START there is no parent message to attach to.
            logger.warning(
                "%s for unknown tool call %s ignored", event.type.value, event.tool_call_id
            )
            return None

        if isinstance(event, ToolCallArgsEvent):
            self._merge_args(tool_call, event.args)
        elif isinstance(event, ToolCallEndEvent):
            self._args_complete.add(tool_call.id)
        else:
            tool_call.output = self._format_output(event.result)
            status = event.status or "success"
            if status not in TOOL_STATUSES:
                logger.warning("Unrecognised tool status %r, using 'success'", status)
                status = "success"
            tool_call.status = status

        return tool_call

    def _handle_start(self, event: ToolCallStartEvent) -> ToolResult | None:
        if not event.tool_call_id:
            logger.warning("TOOL_CALL_START without toolCallId ignored")
            return None

        tool_call = self._tool_calls.get(event.tool_call_id)
        if tool_call is None:
            tool_call = ToolResult(
                id=event.tool_call_id,
                tool_name=event.tool_call_name or "",
                input={},
                output="",
                status="pending",
                created_at=timestamp_to_datetime(event.timestamp),
            )
            self._tool_calls[event.tool_call_id] = tool_call
            self._parents[event.tool_call_id] = event.parent_message_id
        return tool_call

    @staticmethod
    def _merge_args(tool_call: ToolResult, args: Any) -> None:
        if isinstance(args, dict):
            parsed: Any = args
        else:
            try:
                parsed = json.loads(args)
            except (TypeError, json.JSONDecodeError) as e:
                # Fragments may be incomplete JSON; a later ARGS event can still succeed.
                logger.warning("Failed to parse tool args for %s: %s", tool_call.id, e)
                return
        if not isinstance(parsed, dict):
            logger.warning("Tool args for %s are not an object, ignored", tool_call.id)
            return
        tool_call.input = {**tool_call.input, **parsed}

    @staticmethod
    def _format_output(result: Any) -> str:
        if result is None:
            return ""
        if isinstance(result, str):
            return result
        try:
            return json.dumps(result)
        except (TypeError, ValueError):
            return str(result)

    def get_tool_call(self, tool_call_id: str) -> ToolResult | None:
        return self._tool_calls.get(tool_call_id)

    def get_parent_message_id(self, tool_call_id: str) -> str | None:
        """Parent message recorded by TOOL_CALL_START."""
        return self._parents.get(tool_call_id)

    def is_args_complete(self, tool_call_id: str) -> bool:
        return tool_call_id in self._args_complete

    @property
    def tool_calls(self) -> list[ToolResult]:
        return list(self._tool_calls.values())

    def clear(self) -> None:
        self._tool_calls.clear()
        self._parents.clear()
        self._args_complete.clear()
