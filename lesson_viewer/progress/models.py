"""Models for lessons and per-user lesson progress.

Cassandra table definitions for:
- Lesson progress: completion state per (user, lesson)
- Enrollments: course enrollment with overall progress
- Lessons: catalog, by id and by course (dual-write for both lookups)

Entity classes for the in-memory session state and the derived
course progress summary.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ENROLLED = "enrolled"  # Enrolled, no lesson completed yet
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # Every lesson completed


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Completion per user and lesson
# Partition key: user_id, so all of a user's progress sits in one partition
LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    user_id BIGINT,
    lesson_id BIGINT,
    course_id BIGINT,
    completed BOOLEAN,
    completed_at TIMESTAMP,
    last_opened_at TIMESTAMP,
    PRIMARY KEY (user_id, lesson_id)
)
"""

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id BIGINT,
    user_id BIGINT,
    status TEXT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    progress_percent DECIMAL,
    last_accessed_at TIMESTAMP,
    last_lesson_id BIGINT,
    PRIMARY KEY (course_id, user_id)
)
"""

# Lesson lookup by id (lesson -> course resolution for gateway events)
LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    lesson_id BIGINT PRIMARY KEY,
    course_id BIGINT,
    position INT,
    title TEXT,
    description TEXT,
    media_ref TEXT,
    duration_minutes INT,
    is_preview BOOLEAN
)
"""

# Ordered lessons of a course
LESSONS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_course (
    course_id BIGINT,
    position INT,
    lesson_id BIGINT,
    title TEXT,
    description TEXT,
    media_ref TEXT,
    duration_minutes INT,
    is_preview BOOLEAN,
    PRIMARY KEY (course_id, position, lesson_id)
) WITH CLUSTERING ORDER BY (position ASC, lesson_id ASC)
"""

# All CQL statements for table setup
PROGRESS_TABLES_CQL = [
    LESSON_PROGRESS_TABLE_CQL,
    ENROLLMENTS_TABLE_CQL,
    LESSONS_TABLE_CQL,
    LESSONS_BY_COURSE_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass(frozen=True)
class Lesson:
    """Ordered unit of content within a course.

    Immutable once loaded for a session. ``media_ref`` is a path or URI
    understood by the media backend; lessons without one are text-only.
    """

    id: int
    course_id: int
    position: int
    title: str
    description: str = ""
    media_ref: str | None = None
    duration_minutes: int | None = None
    is_preview: bool = False

    @property
    def has_media(self) -> bool:
        return bool(self.media_ref)

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from Cassandra row."""
        return cls(
            id=row.lesson_id,
            course_id=row.course_id,
            position=row.position or 0,
            title=row.title or "",
            description=row.description or "",
            media_ref=row.media_ref or None,
            duration_minutes=row.duration_minutes,
            is_preview=bool(row.is_preview),
        )


class LessonProgress:
    """Completion record of one lesson for one user.

    Attributes:
        user_id: User id
        lesson_id: Lesson id
        completed: Whether the lesson was completed (never reverts to False)
        completed_at: Completion timestamp (None while incomplete)
        last_opened_at: Last time the lesson was opened in a viewer
    """

    def __init__(
        self,
        user_id: int,
        lesson_id: int,
        completed: bool = False,
        completed_at: datetime | None = None,
        last_opened_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.lesson_id = lesson_id
        self.completed = completed
        self.completed_at = ensure_utc_aware(completed_at)
        self.last_opened_at = ensure_utc_aware(last_opened_at)

    @classmethod
    def from_row(cls, row: Any) -> "LessonProgress":
        """Create LessonProgress instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            lesson_id=row.lesson_id,
            completed=bool(row.completed),
            completed_at=row.completed_at,
            last_opened_at=row.last_opened_at,
        )

    def mark_completed(self, now: datetime | None = None) -> "LessonProgress":
        """Return a completed copy; the receiver is left untouched."""
        return LessonProgress(
            user_id=self.user_id,
            lesson_id=self.lesson_id,
            completed=True,
            completed_at=self.completed_at or now or datetime.now(UTC),
            last_opened_at=self.last_opened_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "lesson_id": self.lesson_id,
            "completed": self.completed,
            "completed_at": self.completed_at,
            "last_opened_at": self.last_opened_at,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LessonProgress):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        state = "completed" if self.completed else "incomplete"
        return f"<LessonProgress user={self.user_id} lesson={self.lesson_id} {state}>"


@dataclass(frozen=True)
class CourseProgressSummary:
    """Aggregate course progress, derived from the progress map."""

    completed_count: int
    total_lessons: int

    @property
    def percent(self) -> int:
        """Completion percentage rounded half up; 0 for an empty course."""
        if self.total_lessons <= 0:
            return 0
        ratio = Decimal(self.completed_count) * 100 / Decimal(self.total_lessons)
        value = int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))
        return max(0, min(100, value))

    @property
    def is_complete(self) -> bool:
        return self.total_lessons > 0 and self.completed_count >= self.total_lessons

    @property
    def label(self) -> str:
        return f"{self.percent}% ({self.completed_count}/{self.total_lessons})"


def summarize(progress: dict[int, LessonProgress]) -> CourseProgressSummary:
    """Derive the course summary from a lesson_id -> progress map."""
    completed = sum(1 for entry in progress.values() if entry.completed)
    return CourseProgressSummary(completed_count=completed, total_lessons=len(progress))
