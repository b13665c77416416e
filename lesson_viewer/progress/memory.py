"""In-process implementations of the persistence protocols.

Used when Cassandra is disabled (local development, testing) and as the
reference behavior for the Cassandra-backed services.
"""

from collections import defaultdict
from datetime import UTC, datetime

import structlog

from .models import Lesson, LessonProgress


logger = structlog.get_logger(__name__)


class InMemoryProgressStore:
    """Progress records kept in a dict keyed by (user_id, lesson_id)."""

    def __init__(self) -> None:
        self._records: dict[tuple[int, int], LessonProgress] = {}

    async def find(self, user_id: int, lesson_id: int) -> LessonProgress | None:
        record = self._records.get((user_id, lesson_id))
        if record is None:
            return None
        # Hand out copies so callers never alias the stored record
        return LessonProgress(**record.to_dict())

    async def upsert(self, progress: LessonProgress) -> bool:
        self._records[(progress.user_id, progress.lesson_id)] = LessonProgress(
            **progress.to_dict()
        )
        return True


class InMemoryLessonCatalog:
    """Lessons grouped by course, kept in ordinal order."""

    def __init__(self, lessons: list[Lesson] | None = None) -> None:
        self._by_course: dict[int, list[Lesson]] = defaultdict(list)
        for lesson in lessons or []:
            self.add(lesson)

    def add(self, lesson: Lesson) -> None:
        course_lessons = self._by_course[lesson.course_id]
        course_lessons[:] = [item for item in course_lessons if item.id != lesson.id]
        course_lessons.append(lesson)
        course_lessons.sort(key=lambda item: (item.position, item.id))

    def get(self, lesson_id: int) -> Lesson | None:
        for lessons in self._by_course.values():
            for lesson in lessons:
                if lesson.id == lesson_id:
                    return lesson
        return None

    async def list_lessons(self, course_id: int) -> list[Lesson]:
        return list(self._by_course.get(course_id, []))

    async def save_lesson(self, lesson: Lesson) -> None:
        self.add(lesson)


class InMemoryEnrollmentGateway:
    """Enrollment events recorded against in-memory enrollments.

    Mirrors the Cassandra gateway: completing a lesson requires an
    enrollment in the lesson's course and also stamps the progress store.
    """

    def __init__(
        self,
        catalog: InMemoryLessonCatalog,
        store: InMemoryProgressStore,
        enrollments: set[tuple[int, int]] | None = None,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self._enrollments: set[tuple[int, int]] = set(enrollments or ())
        self.last_accessed: dict[tuple[int, int], datetime] = {}

    async def enroll(self, user_id: int, course_id: int) -> None:
        if (user_id, course_id) not in self._enrollments:
            self._enrollments.add((user_id, course_id))
            logger.info("user_enrolled", user_id=user_id, course_id=course_id)

    async def is_enrolled(self, user_id: int, course_id: int) -> bool:
        return (user_id, course_id) in self._enrollments

    async def open_lesson(self, user_id: int, lesson_id: int) -> bool:
        lesson = self.catalog.get(lesson_id)
        if lesson is None:
            return False

        now = datetime.now(UTC)
        record = await self.store.find(user_id, lesson_id) or LessonProgress(
            user_id=user_id, lesson_id=lesson_id
        )
        record.last_opened_at = now
        await self.store.upsert(record)

        if (user_id, lesson.course_id) in self._enrollments:
            self.last_accessed[(user_id, lesson.course_id)] = now
        return True

    async def complete_lesson(self, user_id: int, lesson_id: int) -> bool:
        lesson = self.catalog.get(lesson_id)
        if lesson is None or (user_id, lesson.course_id) not in self._enrollments:
            logger.warning(
                "lesson_completion_rejected",
                user_id=user_id,
                lesson_id=lesson_id,
                reason="not_enrolled" if lesson else "unknown_lesson",
            )
            return False

        record = await self.store.find(user_id, lesson_id) or LessonProgress(
            user_id=user_id, lesson_id=lesson_id
        )
        await self.store.upsert(record.mark_completed())
        self.last_accessed[(user_id, lesson.course_id)] = datetime.now(UTC)
        return True
