"""
chatstream - client for AG-UI style agent chat streams.

Parses the Server-Sent-Events stream of a chat agent and keeps a consistent
view of the conversation: messages, tool calls and the agent's state.
"""

__version__ = "0.1.0"

from ._exceptions import (
    APIError,
    AuthenticationError,
    ChatStreamError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ProtocolError,
    RateLimitError,
    RunError,
    ValidationError,
)
from ._streaming import RunStream
from ._types import ChatStreamState, Message, ToolResult
from .accumulators import MessageAccumulator, ToolCallAccumulator
from .chat import ChatSession
from .client import ChatStreamClient
from .lifecycle import RunContext, RunLifecycleTracker, RunPhase, validate_event_sequence
from .state import PatchOp, PatchOperation, StateSynchronizer, apply_patch
from .streaming import EventType, SSEStreamParser, StreamEvent, parse_record, split_records

__all__ = [
    "APIError",
    "AuthenticationError",
    "ChatSession",
    "ChatStreamClient",
    "ChatStreamError",
    "ChatStreamState",
    "ConfigurationError",
    "ConflictError",
    "EventType",
    "Message",
    "MessageAccumulator",
    "NotFoundError",
    "PatchOp",
    "PatchOperation",
    "PermissionDeniedError",
    "ProtocolError",
    "RateLimitError",
    "RunContext",
    "RunError",
    "RunLifecycleTracker",
    "RunPhase",
    "RunStream",
    "SSEStreamParser",
    "StateSynchronizer",
    "StreamEvent",
    "ToolCallAccumulator",
    "ToolResult",
    "ValidationError",
    "apply_patch",
    "parse_record",
    "split_records",
    "validate_event_sequence",
]
