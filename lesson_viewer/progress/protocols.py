"""Contracts for the persistence collaborators of a viewer session.

The viewer core only depends on these protocols; concrete Cassandra and
in-memory implementations live in ``service.py`` and ``memory.py``.
"""

from typing import Protocol

from .models import Lesson, LessonProgress


class ProgressStore(Protocol):
    """Durable per-(user, lesson) completion records."""

    async def find(self, user_id: int, lesson_id: int) -> LessonProgress | None:
        """Get the stored record, or None if the lesson was never tracked."""
        ...

    async def upsert(self, progress: LessonProgress) -> bool:
        """Insert or replace a record. Returns False on failure."""
        ...


class EnrollmentGateway(Protocol):
    """Records lesson events against a user's course enrollment."""

    async def open_lesson(self, user_id: int, lesson_id: int) -> bool:
        """Advisory "lesson opened" event."""
        ...

    async def complete_lesson(self, user_id: int, lesson_id: int) -> bool:
        """Authoritative completion; must succeed before local state flips."""
        ...

    async def is_enrolled(self, user_id: int, course_id: int) -> bool:
        """Check whether the user is enrolled in the course."""
        ...

    async def enroll(self, user_id: int, course_id: int) -> None:
        """Enroll the user in the course. No-op if already enrolled."""
        ...


class LessonCatalog(Protocol):
    """Source of a course's lessons."""

    async def list_lessons(self, course_id: int) -> list[Lesson]:
        """Lessons of the course in ordinal order."""
        ...

    async def save_lesson(self, lesson: Lesson) -> None:
        """Insert or replace a lesson."""
        ...
