"""
Progress events and cooperative cancellation for exports
"""

from __future__ import annotations

import itertools
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional

from ..utils.logger import get_logger
from .errors import ExportCanceledByUser


class ExportState(Enum):
    """Export pipeline states."""

    IDLE = "idle"
    STARTED = "started"
    EXTRACTING_SEGMENTS = "extracting_segments"
    REENCODING_SEGMENTS = "reencoding_segments"
    COMPOSITING = "compositing"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    CANCELED = "canceled"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ExportState.COMPLETE, ExportState.CANCELED, ExportState.FAILED})

LEVEL_INFO = "info"
LEVEL_SUCCESS = "success"
LEVEL_ERROR = "error"
LEVEL_CANCELED = "canceled"

LEVEL_COLORS = {
    LEVEL_INFO: "#4a9eff",
    LEVEL_SUCCESS: "#4caf50",
    LEVEL_ERROR: "#ff4444",
    LEVEL_CANCELED: "#ff9800",
}


class CancellationToken:
    """Cancellation flag threaded through one export, checked between ffmpeg runs."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "") -> None:
        if self._event.is_set():
            raise ExportCanceledByUser(stage)


@dataclass(frozen=True)
class ProgressEvent:
    """One progress report: segment_index out of total, plus a message."""

    segment_index: int
    total: int
    message: str
    state: ExportState
    level: str = LEVEL_INFO
    sequence: int = 0

    @property
    def color(self) -> str:
        return LEVEL_COLORS.get(self.level, LEVEL_COLORS[LEVEL_INFO])

    @property
    def percent(self) -> int:
        if self.total <= 0:
            return 0
        return min(100, max(0, round(self.segment_index / self.total * 100)))

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def to_dict(self) -> dict:
        return {
            "segmentIndex": self.segment_index,
            "total": self.total,
            "message": self.message,
            "state": self.state.value,
            "level": self.level,
            "color": self.color,
        }


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressChannel:
    """
    Ordered stream of progress events for one export.

    Events are queued for callers that drain the channel and also pushed to
    subscribers. A subscriber that raises is logged and skipped; it never
    stops the export. After the first terminal event the channel is closed
    and further events are dropped.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._queue: queue.Queue[ProgressEvent] = queue.Queue()
        self._subscribers: list[ProgressCallback] = []
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()
        self._closed = False
        self._logger = get_logger()
        if callback is not None:
            self.subscribe(callback)

    def subscribe(self, callback: ProgressCallback) -> None:
        self._subscribers.append(callback)

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(
        self,
        segment_index: int,
        total: int,
        message: str,
        state: ExportState,
        level: str = LEVEL_INFO
    ) -> Optional[ProgressEvent]:
        """Emit an event. Returns None if the channel is already closed."""
        with self._lock:
            if self._closed:
                self._logger.debug(f"Progress event after completion dropped: {message}")
                return None
            event = ProgressEvent(
                segment_index=segment_index,
                total=total,
                message=message,
                state=state,
                level=level,
                sequence=next(self._sequence),
            )
            if event.is_terminal:
                self._closed = True
            self._queue.put(event)

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                self._logger.warning(f"Progress callback failed: {e}")
        return event

    def drain(self) -> list[ProgressEvent]:
        """All events queued so far, without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def events(self, timeout: Optional[float] = None) -> Iterator[ProgressEvent]:
        """
        Yield events as they arrive, ending after the terminal event.
        Stops early if no event arrives within timeout seconds.
        """
        while True:
            try:
                event = self._queue.get(timeout=timeout)
            except queue.Empty:
                return
            yield event
            if event.is_terminal:
                return
