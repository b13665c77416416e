"""Lesson session controller: the presentation layer's single entry point.

Coordinates lesson selection (playback transition + advisory "opened"
event) and completion (progress transition + course-completed detection)
for one open viewing session: one course, one user.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import structlog

from lesson_viewer.core.context import ViewerContext
from lesson_viewer.core.errors import (
    LessonAlreadyCompletedError,
    LessonNotFoundError,
    NoLessonSelectedError,
    NotEnrolledError,
    ResourceUnavailableError,
    SessionBusyError,
    SessionClosedError,
)
from lesson_viewer.playback.manager import PlaybackResourceManager, TransitionResult
from lesson_viewer.playback.state import PlaybackStatus
from lesson_viewer.progress.models import CourseProgressSummary, Lesson
from lesson_viewer.progress.tracker import LessonProgressTracker

from .signals import CourseCompleted, PlaybackUnavailable, SignalBus


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SelectionResult:
    """Outcome of a lesson selection."""

    lesson: Lesson
    transition: TransitionResult | None
    playback_error: ResourceUnavailableError | None = None
    opened_recorded: bool = False
    playback_status: PlaybackStatus | None = None

    @property
    def playback_available(self) -> bool:
        return (
            self.playback_error is None
            and self.lesson.has_media
            and self.playback_status == PlaybackStatus.INITIALIZED
        )


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of a completion request."""

    lesson_id: int
    changed: bool
    summary: CourseProgressSummary
    course_completed: bool  # True only on the call that completed the course


class LessonSessionController:
    """One open lesson viewer.

    Selections and completions are serialized: while one is pending,
    another is rejected with SessionBusyError instead of being queued.
    ``close_session`` is never blocked and always releases playback.
    """

    def __init__(
        self,
        session_id: str,
        user_id: int,
        course_id: int,
        lessons: list[Lesson],
        tracker: LessonProgressTracker,
        playback: PlaybackResourceManager,
        signals: SignalBus | None = None,
        enrolled: bool = True,
    ) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self.course_id = course_id
        self.lessons = sorted(lessons, key=lambda lesson: (lesson.position, lesson.id))
        self.tracker = tracker
        self.playback = playback
        self.signals = signals or SignalBus()
        self.enrolled = enrolled

        self._lessons_by_id = {lesson.id: lesson for lesson in self.lessons}
        self._current: Lesson | None = None
        self._lock = asyncio.Lock()
        self._pending_operation: str | None = None
        self._course_completed_signalled = False
        self._closed = False

    # ==========================================================================
    # State for the presentation layer
    # ==========================================================================

    @property
    def current_lesson(self) -> Lesson | None:
        return self._current

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def pending_operation(self) -> str | None:
        return self._pending_operation

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def playback_status(self) -> PlaybackStatus | None:
        return self.playback.status

    def summary(self) -> CourseProgressSummary:
        return self.tracker.summary()

    def get_lesson(self, lesson_id: int) -> Lesson:
        try:
            return self._lessons_by_id[lesson_id]
        except KeyError:
            raise LessonNotFoundError(lesson_id) from None

    def context(self) -> ViewerContext:
        return ViewerContext(self.session_id, self.user_id, self.course_id)

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        """Serialize an operation; reject instead of waiting when busy."""
        if self._closed:
            raise SessionClosedError
        if self._lock.locked():
            raise SessionBusyError(self._pending_operation)

        async with self._lock:
            self._pending_operation = name
            try:
                with self.context():
                    yield
            finally:
                self._pending_operation = None

    # ==========================================================================
    # Operations
    # ==========================================================================

    async def open(self) -> CourseProgressSummary:
        """Load progress for the session's lessons."""
        async with self._operation("open"):
            return await self.tracker.load_progress(self.lessons)

    async def select_lesson(self, lesson_id: int) -> SelectionResult:
        """Make a lesson current.

        Playback failures do not fail the selection: they are returned on
        the result and emitted as a PlaybackUnavailable signal.

        Raises:
            LessonNotFoundError: lesson is not part of this session
            NotEnrolledError: non-preview lesson without enrollment
            SessionBusyError: another operation is pending
            SessionClosedError: the session was closed
        """
        async with self._operation("select_lesson"):
            lesson = self.get_lesson(lesson_id)
            if not self.enrolled and not lesson.is_preview:
                raise NotEnrolledError

            transition: TransitionResult | None = None
            playback_error: ResourceUnavailableError | None = None
            try:
                transition = await self.playback.transition_to(lesson.media_ref)
            except ResourceUnavailableError as e:
                playback_error = e
                self.signals.emit(
                    PlaybackUnavailable(
                        lesson_id=lesson.id,
                        media_ref=lesson.media_ref,
                        cause=e.cause,
                    )
                )

            opened = await self.tracker.on_lesson_opened(lesson)

            if self._closed:
                raise SessionClosedError

            self._current = lesson
            result = SelectionResult(
                lesson=lesson,
                transition=transition,
                playback_error=playback_error,
                opened_recorded=opened,
                playback_status=self.playback.status,
            )
            logger.info(
                "lesson_selected",
                lesson_id=lesson.id,
                action=transition.action.value if transition else None,
                playback_available=result.playback_available,
            )
            return result

    async def mark_current_complete(self) -> CompletionResult:
        """Complete the current lesson.

        Raises:
            NoLessonSelectedError: nothing is selected
            NotEnrolledError: the session has no enrollment
            LessonAlreadyCompletedError: current lesson already completed
            PersistenceFailure: gateway or store did not acknowledge
        """
        lesson = self._current
        if lesson is None:
            raise NoLessonSelectedError
        if not self.enrolled:
            raise NotEnrolledError("Enrollment required to complete lessons")
        if self.tracker.is_completed(lesson.id):
            raise LessonAlreadyCompletedError(lesson.id)
        return await self.complete_lesson(lesson.id)

    async def complete_lesson(self, lesson_id: int) -> CompletionResult:
        """Complete any lesson of the session (idempotent).

        Raises:
            LessonNotFoundError: lesson is not part of this session
            NotEnrolledError: the session has no enrollment
            PersistenceFailure: gateway or store did not acknowledge
        """
        async with self._operation("complete_lesson"):
            lesson = self.get_lesson(lesson_id)
            if not self.enrolled:
                raise NotEnrolledError("Enrollment required to complete lessons")
            outcome = await self.tracker.complete(lesson)

            course_completed = False
            if outcome.crossed_course_completion and not self._course_completed_signalled:
                self._course_completed_signalled = True
                course_completed = True
                self.signals.emit(
                    CourseCompleted(
                        course_id=self.course_id,
                        user_id=self.user_id,
                        lesson_id=lesson.id,
                    )
                )
                logger.info("course_completed", lesson_id=lesson.id)

            return CompletionResult(
                lesson_id=lesson.id,
                changed=outcome.changed,
                summary=outcome.summary,
                course_completed=course_completed,
            )

    def close_session(self) -> None:
        """Release playback unconditionally. Idempotent, never blocked."""
        if self._closed:
            return
        self._closed = True
        with self.context():
            self.playback.close()
            logger.info(
                "viewer_session_closed",
                pending_operation=self._pending_operation,
                progress=self.summary().label,
            )

    async def __aenter__(self) -> "LessonSessionController":
        return self

    async def __aexit__(self, *_: object) -> None:
        self.close_session()
