"""Viewer session signals with subscription and poll access.

Key features:
- Non-blocking emission (asyncio.Queue.put_nowait)
- Graceful degradation (drop + log when the poll queue is full)
- Synchronous subscribers notified on emit
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

import structlog


logger = structlog.get_logger(__name__)


class SignalKind(str, Enum):
    """Kinds of signals a viewer session raises."""

    PLAYBACK_UNAVAILABLE = "playback_unavailable"
    COURSE_COMPLETED = "course_completed"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class PlaybackUnavailable:
    """Media for the selected lesson could not be created or loaded."""

    lesson_id: int
    media_ref: str | None
    cause: str
    occurred_at: datetime = field(default_factory=_now)
    kind = SignalKind.PLAYBACK_UNAVAILABLE


@dataclass(frozen=True)
class CourseCompleted:
    """The last remaining lesson of the course was completed."""

    course_id: int
    user_id: int
    lesson_id: int
    occurred_at: datetime = field(default_factory=_now)
    kind = SignalKind.COURSE_COMPLETED


Signal = PlaybackUnavailable | CourseCompleted
Subscriber = Callable[[Signal], None]


class SignalBus:
    """Per-session signal fan-out.

    Every emitted signal goes to the subscribers and into a bounded queue
    that the presentation layer can drain with ``poll``.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._queue: asyncio.Queue[Signal] = asyncio.Queue(maxsize=queue_size)
        self._subscribers: list[Subscriber] = []
        self._signals_dropped = 0

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, signal: Signal) -> bool:
        """Publish a signal. Returns False if the poll queue dropped it."""
        for callback in list(self._subscribers):
            try:
                callback(signal)
            except Exception:
                logger.exception("signal_subscriber_failed", kind=signal.kind.value)

        try:
            self._queue.put_nowait(signal)
        except asyncio.QueueFull:
            self._signals_dropped += 1
            logger.warning(
                "signal_queue_full",
                kind=signal.kind.value,
                queue_size=self.queue_size,
                dropped_total=self._signals_dropped,
            )
            return False
        return True

    def poll(self) -> list[Signal]:
        """Drain and return the pending signals, oldest first."""
        signals: list[Signal] = []
        while True:
            try:
                signals.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return signals

    @property
    def pending(self) -> int:
        return self._queue.qsize()
