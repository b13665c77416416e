"""Cassandra-backed progress store, enrollment gateway and lesson catalog.

Business logic for:
- Lesson completion records per user
- "Lesson opened" / "lesson completed" enrollment events
- Course progress recalculation after each completion
- Ordered lesson listing per course
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

from .models import (
    EnrollmentStatus,
    Lesson,
    LessonProgress,
    summarize,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Progress Store
# ==============================================================================


class CassandraProgressStore:
    """ProgressStore over the ``lesson_progress`` table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_lesson_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE user_id = ? AND lesson_id = ?
        """)

        self._upsert_lesson_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lesson_progress
            (user_id, lesson_id, completed, completed_at, last_opened_at)
            VALUES (?, ?, ?, ?, ?)
        """)

    async def find(self, user_id: int, lesson_id: int) -> LessonProgress | None:
        """Get progress for a specific lesson."""
        result = await self.session.aexecute(
            self._get_lesson_progress, [user_id, lesson_id]
        )
        row = result.one()
        return LessonProgress.from_row(row) if row else None

    async def upsert(self, progress: LessonProgress) -> bool:
        """Save lesson progress to database."""
        await self.session.aexecute(
            self._upsert_lesson_progress,
            [
                progress.user_id,
                progress.lesson_id,
                progress.completed,
                progress.completed_at,
                progress.last_opened_at,
            ],
        )
        return True


# ==============================================================================
# Lesson Catalog
# ==============================================================================


class CassandraLessonCatalog:
    """LessonCatalog over the ``lessons`` / ``lessons_by_course`` tables."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_lesson = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lessons WHERE lesson_id = ?
        """)

        self._get_course_lessons = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lessons_by_course WHERE course_id = ?
        """)

        self._upsert_lesson = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lessons
            (lesson_id, course_id, position, title, description, media_ref,
             duration_minutes, is_preview)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._upsert_lesson_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lessons_by_course
            (course_id, position, lesson_id, title, description, media_ref,
             duration_minutes, is_preview)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

    async def get_lesson(self, lesson_id: int) -> Lesson | None:
        result = await self.session.aexecute(self._get_lesson, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None

    async def list_lessons(self, course_id: int) -> list[Lesson]:
        """Lessons of a course, ordered by the clustering key (position)."""
        rows = await self.session.aexecute(self._get_course_lessons, [course_id])
        return [Lesson.from_row(row) for row in rows]

    async def save_lesson(self, lesson: Lesson) -> None:
        """Dual write: lookup by id + ordered listing by course."""
        await self.session.aexecute(
            self._upsert_lesson,
            [
                lesson.id,
                lesson.course_id,
                lesson.position,
                lesson.title,
                lesson.description,
                lesson.media_ref,
                lesson.duration_minutes,
                lesson.is_preview,
            ],
        )
        await self.session.aexecute(
            self._upsert_lesson_by_course,
            [
                lesson.course_id,
                lesson.position,
                lesson.id,
                lesson.title,
                lesson.description,
                lesson.media_ref,
                lesson.duration_minutes,
                lesson.is_preview,
            ],
        )


# ==============================================================================
# Enrollment Gateway
# ==============================================================================


class CassandraEnrollmentGateway:
    """EnrollmentGateway over the ``enrollments`` and ``lesson_progress`` tables."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        catalog: CassandraLessonCatalog,
    ):
        self.session = session
        self.keyspace = keyspace
        self.catalog = catalog
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, status, enrolled_at, progress_percent)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._touch_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET last_accessed_at = ?, last_lesson_id = ?
            WHERE course_id = ? AND user_id = ?
        """)

        self._update_enrollment_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = ?, progress_percent = ?, completed_at = ?,
                last_accessed_at = ?, last_lesson_id = ?
            WHERE course_id = ? AND user_id = ?
        """)

        self._mark_opened = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_progress
            SET last_opened_at = ?, course_id = ?
            WHERE user_id = ? AND lesson_id = ?
        """)

        self._mark_completed = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_progress
            SET completed = true, completed_at = ?, course_id = ?
            WHERE user_id = ? AND lesson_id = ?
        """)

        self._get_user_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress WHERE user_id = ?
        """)

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(self, user_id: int, course_id: int) -> None:
        """Enroll user in a course (no-op if already enrolled)."""
        if await self.is_enrolled(user_id, course_id):
            return

        await self.session.aexecute(
            self._insert_enrollment,
            [
                course_id,
                user_id,
                EnrollmentStatus.ENROLLED.value,
                datetime.now(UTC),
                Decimal(0),
            ],
        )
        logger.info("user_enrolled", user_id=user_id, course_id=course_id)

    async def is_enrolled(self, user_id: int, course_id: int) -> bool:
        result = await self.session.aexecute(
            self._get_enrollment, [course_id, user_id]
        )
        return result.one() is not None

    # ==========================================================================
    # Lesson Events
    # ==========================================================================

    async def open_lesson(self, user_id: int, lesson_id: int) -> bool:
        """Stamp last_opened_at and the enrollment's last access."""
        lesson = await self.catalog.get_lesson(lesson_id)
        if lesson is None:
            return False

        now = datetime.now(UTC)
        await self.session.aexecute(
            self._mark_opened, [now, lesson.course_id, user_id, lesson_id]
        )

        if await self.is_enrolled(user_id, lesson.course_id):
            await self.session.aexecute(
                self._touch_enrollment, [now, lesson_id, lesson.course_id, user_id]
            )
        return True

    async def complete_lesson(self, user_id: int, lesson_id: int) -> bool:
        """Mark the lesson completed and recalculate course progress.

        Returns False when the lesson is unknown or the user is not
        enrolled in its course.
        """
        lesson = await self.catalog.get_lesson(lesson_id)
        if lesson is None:
            logger.warning("complete_unknown_lesson", lesson_id=lesson_id)
            return False

        if not await self.is_enrolled(user_id, lesson.course_id):
            logger.warning(
                "complete_without_enrollment",
                user_id=user_id,
                course_id=lesson.course_id,
            )
            return False

        now = datetime.now(UTC)
        await self.session.aexecute(
            self._mark_completed, [now, lesson.course_id, user_id, lesson_id]
        )
        await self._propagate_progress(user_id, lesson, now)

        logger.info("lesson_marked_complete", user_id=user_id, lesson_id=lesson_id)
        return True

    async def _propagate_progress(
        self, user_id: int, lesson: Lesson, now: datetime
    ) -> None:
        """Recalculate the enrollment's course progress after a completion."""
        course_lessons = await self.catalog.list_lessons(lesson.course_id)
        lesson_ids = {item.id for item in course_lessons}

        rows = await self.session.aexecute(self._get_user_progress, [user_id])
        progress = {
            lesson_id: LessonProgress(user_id=user_id, lesson_id=lesson_id)
            for lesson_id in lesson_ids
        }
        for row in rows:
            if row.lesson_id in lesson_ids:
                progress[row.lesson_id] = LessonProgress.from_row(row)

        summary = summarize(progress)
        if summary.is_complete:
            status = EnrollmentStatus.COMPLETED.value
            completed_at = now
        else:
            status = EnrollmentStatus.IN_PROGRESS.value
            completed_at = None

        await self.session.aexecute(
            self._update_enrollment_progress,
            [
                status,
                Decimal(summary.percent),
                completed_at,
                now,
                lesson.id,
                lesson.course_id,
                user_id,
            ],
        )
