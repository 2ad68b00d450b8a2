"""
Agent state synchronization.

STATE_SNAPSHOT replaces the agent state; STATE_DELTA applies a subset of
JSON Patch (RFC 6902): add, replace and remove over object keys. Array
indices are not supported: a path that walks into a list is skipped.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, assert_never

from .streaming import StateDeltaEvent, StateSnapshotEvent, StreamEvent

logger = logging.getLogger(__name__)

_MISSING = object()


class PatchOp(str, Enum):
    """JSON Patch operation kinds."""

    ADD = "add"
    REPLACE = "replace"
    REMOVE = "remove"
    MOVE = "move"
    COPY = "copy"
    TEST = "test"


@dataclass(frozen=True)
class PatchOperation:
    """One decoded patch operation."""

    op: PatchOp
    path: str
    value: Any = None
    from_path: str | None = None

    @classmethod
    def from_dict(cls, data: object) -> PatchOperation:
        """Decode a wire operation.

        Raises:
            ValueError: If the operation is not an object, names an unknown
                op, or has no string path
        """
        if not isinstance(data, dict):
            raise ValueError(f"patch operation must be an object, got {type(data).__name__}")
        op = PatchOp(data.get("op"))
        path = data.get("path")
        if not isinstance(path, str):
            raise ValueError("patch operation has no path")
        from_path = data.get("from")
        return cls(
            op=op,
            path=path,
            value=data.get("value"),
            from_path=from_path if isinstance(from_path, str) else None,
        )


def parse_path(path: str) -> list[str]:
    """Split a slash-delimited pointer into unescaped object keys."""
    return [
        part.replace("~1", "/").replace("~0", "~") for part in path.split("/") if part != ""
    ]


def _set_value(document: Any, parts: list[str], value: Any) -> Any:
    """Set ``value`` at ``parts``, creating missing intermediate objects."""
    if not parts:
        return copy.deepcopy(value)

    current = document
    for part in parts[:-1]:
        if not isinstance(current, dict):
            raise ValueError(f"cannot descend into {type(current).__name__} at {part!r}")
        if part not in current:
            current[part] = {}
        current = current[part]

    if not isinstance(current, dict):
        raise ValueError(f"cannot set key {parts[-1]!r} on {type(current).__name__}")
    current[parts[-1]] = copy.deepcopy(value)
    return document


def _remove_value(document: Any, parts: list[str]) -> Any:
    if not parts:
        return None

    current = document
    for part in parts[:-1]:
        current = current.get(part, _MISSING) if isinstance(current, dict) else _MISSING
        if current is _MISSING:
            raise ValueError(f"path segment {part!r} does not exist")

    if not isinstance(current, dict) or parts[-1] not in current:
        raise ValueError(f"path segment {parts[-1]!r} does not exist")
    del current[parts[-1]]
    return document


def apply_patch(state: Any, operations: list[Any]) -> Any:
    """
    Apply patch operations in order to a deep copy of ``state``.

    Unsupported (move/copy/test) and malformed operations are skipped with a
    warning; the remaining operations still apply.

    Returns:
        The new state; ``state`` itself is never mutated
    """
    document = copy.deepcopy(state) if state is not None else {}

    for raw_op in operations:
        try:
            if isinstance(raw_op, PatchOperation):
                operation = raw_op
            else:
                operation = PatchOperation.from_dict(raw_op)
        except ValueError as e:
            logger.warning("Skipping malformed patch operation %r: %s", raw_op, e)
            continue

        parts = parse_path(operation.path)
        try:
            if operation.op is PatchOp.ADD or operation.op is PatchOp.REPLACE:
                document = _set_value(document, parts, operation.value)
            elif operation.op is PatchOp.REMOVE:
                document = _remove_value(document, parts)
            elif (
                operation.op is PatchOp.MOVE
                or operation.op is PatchOp.COPY
                or operation.op is PatchOp.TEST
            ):
                logger.warning("Unsupported JSON Patch operation: %s", operation.op.value)
            else:
                assert_never(operation.op)
        except ValueError as e:
            logger.warning("Skipping %s at %r: %s", operation.op.value, operation.path, e)

    return document


class StateSynchronizer:
    """Holds the latest agent state and advances it from state events."""

    def __init__(self, state: Any = None) -> None:
        self._state = state

    @property
    def state(self) -> Any:
        return self._state

    def apply_snapshot(self, state: Any) -> Any:
        self._state = copy.deepcopy(state) if state is not None else {}
        return self._state

    def apply_delta(self, operations: list[Any]) -> Any:
        self._state = apply_patch(self._state, operations)
        return self._state

    def process(self, event: StreamEvent) -> bool:
        """Apply a state event. Returns False for events it does not handle."""
        if isinstance(event, StateSnapshotEvent):
            self.apply_snapshot(event.state)
            return True
        if isinstance(event, StateDeltaEvent):
            self.apply_delta(event.delta)
            return True
        return False

    def reset(self) -> None:
        self._state = None
