"""Dataclass models for conversation entities and the published session state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

MESSAGE_ROLES = ("user", "assistant", "system")
TOOL_STATUSES = ("pending", "success", "error")
DEFAULT_ROLE = "assistant"


def timestamp_to_datetime(value: object) -> datetime:
    """Convert an event ``timestamp`` (epoch milliseconds) to an aware datetime.

    Missing or unusable values fall back to the current UTC time.
    """
    if isinstance(value, int | float) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            pass
    return datetime.now(UTC)


def _parse_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return datetime.now(UTC)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return timestamp_to_datetime(value)


@dataclass
class ToolResult:
    """A tool invocation made by the agent, with its streamed input and result."""

    id: str
    tool_name: str
    input: dict[str, Any] = field(default_factory=dict)
    output: str = ""
    status: str = "pending"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_dict(cls, data: dict) -> ToolResult:
        return cls(
            id=data["id"],
            tool_name=data.get("toolName", data.get("tool_name", "")),
            input=dict(data.get("input") or {}),
            output=data.get("output", ""),
            status=data.get("status", "pending"),
            created_at=_parse_datetime(data.get("timestamp", data.get("created_at"))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "toolName": self.tool_name,
            "input": self.input,
            "output": self.output,
            "status": self.status,
            "timestamp": self.created_at.isoformat(),
        }


@dataclass
class Message:
    """A conversation message; ``content`` grows while the agent streams it."""

    id: str
    role: str = DEFAULT_ROLE
    content: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    tool_results: list[ToolResult] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> Message:
        """Build a message from wire/camelCase data (e.g. a MESSAGES_SNAPSHOT entry)."""
        return cls(
            id=data["id"],
            role=data.get("role") or DEFAULT_ROLE,
            content=data.get("content") or "",
            created_at=_parse_datetime(data.get("timestamp", data.get("created_at"))),
            tool_results=[
                ToolResult.from_dict(t)
                for t in data.get("toolResults", data.get("tool_results")) or []
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the outbound request history."""
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.created_at.isoformat(),
        }
        if self.tool_results:
            data["toolResults"] = [t.to_dict() for t in self.tool_results]
        return data


@dataclass
class ChatStreamState:
    """Aggregate view published to observers after every applied event."""

    messages: list[Message] = field(default_factory=list)
    is_streaming: bool = False
    error: str | None = None
    current_thread_id: str | None = None
    current_run_id: str | None = None
    agent_state: Any = None
    completed_steps: list[str] = field(default_factory=list)
    phase: str = "idle"
