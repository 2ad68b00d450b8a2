"""Run lifecycle tracking and event sequence validation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any

from ._exceptions import ProtocolError
from .streaming import (
    LIFECYCLE_EVENTS,
    TERMINAL_EVENTS,
    EventType,
    RunErrorEvent,
    RunFinishedEvent,
    RunStartedEvent,
    StepFinishedEvent,
    StepStartedEvent,
    StreamEvent,
)

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    """Lifecycle phase of a single run."""

    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in (RunPhase.FINISHED, RunPhase.ERRORED)


@dataclass
class RunContext:
    """Identifiers and bookkeeping for the run carried by one stream."""

    thread_id: str | None = None
    run_id: str | None = None
    phase: RunPhase = RunPhase.IDLE
    current_step: str | None = None
    completed_steps: list[str] = field(default_factory=list)
    result: Any = None
    error: str | None = None
    error_code: str | None = None


class RunLifecycleTracker:
    """
    State machine over lifecycle events: IDLE -> RUNNING -> FINISHED | ERRORED.

    The tracker only observes. Events arriving out of order are recorded in
    ``violations`` but never rejected, and non-lifecycle events are left to
    the accumulators whatever the current phase.
    """

    def __init__(self) -> None:
        self.context = RunContext()
        self.violations: list[str] = []

    @property
    def phase(self) -> RunPhase:
        return self.context.phase

    @property
    def is_terminal(self) -> bool:
        return self.context.phase.is_terminal

    @property
    def thread_id(self) -> str | None:
        return self.context.thread_id

    @property
    def run_id(self) -> str | None:
        return self.context.run_id

    @property
    def error(self) -> str | None:
        return self.context.error

    @property
    def completed_steps(self) -> list[str]:
        return list(self.context.completed_steps)

    def _violation(self, message: str) -> None:
        logger.warning("Protocol violation: %s", message)
        self.violations.append(message)

    def process(self, event: StreamEvent) -> bool:
        """Apply a lifecycle event. Returns False for events the tracker ignores."""
        if event.type not in LIFECYCLE_EVENTS:
            return False

        ctx = self.context

        # Terminal phases are sticky for the rest of the stream.
        if ctx.phase.is_terminal:
            self._violation(f"{event.type.value} received after run ended ({ctx.phase.value})")
            return True

        if isinstance(event, RunStartedEvent):
            if ctx.phase != RunPhase.IDLE:
                self._violation(f"RUN_STARTED received while {ctx.phase.value}")
            ctx.thread_id = event.thread_id
            ctx.run_id = event.run_id
            ctx.phase = RunPhase.RUNNING
            return True

        if ctx.phase == RunPhase.IDLE:
            self._violation(f"{event.type.value} received before RUN_STARTED")

        if isinstance(event, StepStartedEvent):
            ctx.current_step = event.step_name
        elif isinstance(event, StepFinishedEvent):
            if event.step_name:
                ctx.completed_steps.append(event.step_name)
            if ctx.current_step == event.step_name:
                ctx.current_step = None
        elif isinstance(event, RunFinishedEvent):
            ctx.result = event.result
            ctx.phase = RunPhase.FINISHED
        elif isinstance(event, RunErrorEvent):
            ctx.error = event.message
            ctx.error_code = event.code
            ctx.phase = RunPhase.ERRORED
        return True

    def end_of_stream(self) -> None:
        """Record that the transport closed; flags runs that never terminated."""
        if not self.context.phase.is_terminal:
            self._violation(
                f"stream ended without RUN_FINISHED or RUN_ERROR ({self.context.phase.value})"
            )

    def reset(self) -> None:
        self.context = RunContext()
        self.violations = []


def validate_event_sequence(events: Iterable[StreamEvent]) -> None:
    """
    Check that a complete event sequence follows the run lifecycle.

    An empty sequence is valid. Otherwise the first event must be
    RUN_STARTED and the last one RUN_FINISHED or RUN_ERROR.

    Raises:
        ProtocolError: If the sequence is malformed
    """
    events = list(events)
    if not events:
        return

    if events[0].type != EventType.RUN_STARTED:
        raise ProtocolError("Missing RUN_STARTED")

    if events[-1].type not in TERMINAL_EVENTS:
        raise ProtocolError("Missing RUN_FINISHED or RUN_ERROR")
