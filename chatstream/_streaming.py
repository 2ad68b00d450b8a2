"""RunStream context manager wrapping SSEStreamParser for one streamed run."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

from .lifecycle import RunLifecycleTracker, RunPhase
from .streaming import EventType, SSEStreamParser, StreamEvent

if TYPE_CHECKING:
    import requests


class RunStream:
    """Iterable stream of run events. Use as context manager or iterate directly.

    Iteration stops after RUN_ERROR; the response is closed when iteration
    ends, breaks, or raises.

    Usage:
        with client.stream(messages) as stream:
            for event in stream:
                print(event.type, event.raw)
        print(stream.phase, stream.thread_id)
    """

    def __init__(self, response: requests.Response):
        self._response = response
        self._tracker = RunLifecycleTracker()
        self._closed = False

    def _close(self) -> None:
        """Close the underlying response (idempotent)."""
        if not self._closed:
            self._closed = True
            self._response.close()

    def __iter__(self) -> Iterator[StreamEvent]:
        try:
            for event in SSEStreamParser.parse_stream(self._response):
                self._tracker.process(event)
                yield event
                if event.type == EventType.RUN_ERROR:
                    return
            self._tracker.end_of_stream()
        finally:
            self._close()

    def __enter__(self) -> RunStream:
        return self

    def __exit__(self, *_: object) -> None:
        self._close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def tracker(self) -> RunLifecycleTracker:
        return self._tracker

    @property
    def phase(self) -> RunPhase:
        return self._tracker.phase

    @property
    def thread_id(self) -> str | None:
        return self._tracker.thread_id

    @property
    def run_id(self) -> str | None:
        return self._tracker.run_id

    @property
    def error(self) -> str | None:
        """Message of the RUN_ERROR event, if the run failed."""
        return self._tracker.error
