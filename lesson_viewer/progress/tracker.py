"""Per-session lesson progress map and the completion transition."""

from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from lesson_viewer.core.errors import LessonNotFoundError, PersistenceFailure

from .models import CourseProgressSummary, Lesson, LessonProgress, summarize
from .protocols import EnrollmentGateway, ProgressStore


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CompletionOutcome:
    """Result of LessonProgressTracker.complete."""

    lesson_id: int
    changed: bool  # False when the lesson was already completed
    summary: CourseProgressSummary
    previous_summary: CourseProgressSummary

    @property
    def crossed_course_completion(self) -> bool:
        """True only on the completion that made the course reach 100%."""
        return (
            self.changed
            and self.summary.is_complete
            and not self.previous_summary.is_complete
        )


class LessonProgressTracker:
    """Owns the progress map of one viewing session.

    The map is only mutated after the gateway and the store have both
    acknowledged a completion; on any persistence failure it is left as is.
    """

    def __init__(
        self,
        store: ProgressStore,
        gateway: EnrollmentGateway,
        user_id: int,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.user_id = user_id
        self._lessons: dict[int, Lesson] = {}
        self._progress: dict[int, LessonProgress] = {}

    # ==========================================================================
    # Loading
    # ==========================================================================

    async def load_progress(self, lessons: list[Lesson]) -> CourseProgressSummary:
        """Fetch stored progress for every lesson; absent ones default to incomplete.

        Defaults are not persisted. Safe to call again: the map is rebuilt
        from the store and swapped in only once every fetch succeeded.
        """
        loaded: dict[int, LessonProgress] = {}
        for lesson in lessons:
            try:
                record = await self.store.find(self.user_id, lesson.id)
            except Exception as e:
                logger.error(
                    "progress_load_failed",
                    lesson_id=lesson.id,
                    error=str(e),
                )
                raise PersistenceFailure(
                    f"Could not load progress for lesson {lesson.id}: {e}"
                ) from e

            loaded[lesson.id] = record or LessonProgress(
                user_id=self.user_id, lesson_id=lesson.id
            )

        self._lessons = {lesson.id: lesson for lesson in lessons}
        self._progress = loaded

        summary = self.summary()
        logger.info(
            "progress_loaded",
            lessons=summary.total_lessons,
            completed=summary.completed_count,
        )
        return summary

    # ==========================================================================
    # Queries
    # ==========================================================================

    def summary(self) -> CourseProgressSummary:
        return summarize(self._progress)

    def is_completed(self, lesson_id: int) -> bool:
        entry = self._progress.get(lesson_id)
        return entry is not None and entry.completed

    def get(self, lesson_id: int) -> LessonProgress:
        try:
            return self._progress[lesson_id]
        except KeyError:
            raise LessonNotFoundError(lesson_id) from None

    def entries(self) -> list[LessonProgress]:
        return list(self._progress.values())

    def next_incomplete_lesson(self) -> Lesson | None:
        """First lesson in ordinal order that is not completed yet."""
        ordered = sorted(self._lessons.values(), key=lambda l: (l.position, l.id))
        for lesson in ordered:
            if not self.is_completed(lesson.id):
                return lesson
        return None

    # ==========================================================================
    # Transitions
    # ==========================================================================

    async def on_lesson_opened(self, lesson: Lesson) -> bool:
        """Advisory "lesson opened" event; never raises.

        Failures are logged and ignored. On success the in-memory entry's
        last_opened_at is stamped.
        """
        try:
            ok = await self.gateway.open_lesson(self.user_id, lesson.id)
        except Exception as e:
            logger.warning(
                "lesson_open_advisory_failed",
                lesson_id=lesson.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if not ok:
            logger.warning("lesson_open_advisory_rejected", lesson_id=lesson.id)
            return False

        entry = self._progress.get(lesson.id)
        if entry is not None:
            entry.last_opened_at = datetime.now(UTC)
        return True

    async def complete(self, lesson: Lesson) -> CompletionOutcome:
        """Apply the completion transition to a lesson.

        Raises:
            LessonNotFoundError: lesson is not part of this session
            PersistenceFailure: gateway or store did not acknowledge
        """
        entry = self._progress.get(lesson.id)
        if entry is None:
            raise LessonNotFoundError(lesson.id)

        before = self.summary()
        if entry.completed:
            return CompletionOutcome(
                lesson_id=lesson.id,
                changed=False,
                summary=before,
                previous_summary=before,
            )

        await self._call_persistence(
            "complete_lesson",
            lesson.id,
            lambda: self.gateway.complete_lesson(self.user_id, lesson.id),
        )

        updated = entry.mark_completed(datetime.now(UTC))
        await self._call_persistence(
            "progress_upsert",
            lesson.id,
            lambda: self.store.upsert(updated),
        )

        self._progress[lesson.id] = updated
        after = self.summary()

        logger.info(
            "lesson_completed",
            lesson_id=lesson.id,
            progress=after.label,
        )
        return CompletionOutcome(
            lesson_id=lesson.id,
            changed=True,
            summary=after,
            previous_summary=before,
        )

    async def _call_persistence(self, operation: str, lesson_id: int, call) -> None:
        """Await a store/gateway call; exceptions and False both fail."""
        try:
            ok = await call()
        except Exception as e:
            logger.error(
                "persistence_call_failed",
                operation=operation,
                lesson_id=lesson_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PersistenceFailure(f"{operation} failed: {e}") from e

        if not ok:
            logger.warning(
                "persistence_call_rejected",
                operation=operation,
                lesson_id=lesson_id,
            )
            raise PersistenceFailure(f"{operation} was not acknowledged")
