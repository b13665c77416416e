"""Tests for lesson and progress models."""

from datetime import UTC, datetime
from types import SimpleNamespace

import pytest

from lesson_viewer.progress.models import (
    CourseProgressSummary,
    Lesson,
    LessonProgress,
    ensure_utc_aware,
    summarize,
)


class TestCourseProgressSummary:
    """Tests for the derived course summary."""

    @pytest.mark.parametrize(
        ("completed", "total", "expected"),
        [
            (0, 0, 0),
            (0, 3, 0),
            (1, 3, 33),
            (2, 3, 67),
            (3, 3, 100),
            (1, 8, 13),  # 12.5 rounds half up
            (1, 2, 50),
            (5, 200, 3),  # 2.5 rounds half up
        ],
    )
    def test_percent(self, completed: int, total: int, expected: int) -> None:
        summary = CourseProgressSummary(completed_count=completed, total_lessons=total)
        assert summary.percent == expected

    def test_percent_is_clamped(self) -> None:
        summary = CourseProgressSummary(completed_count=5, total_lessons=3)
        assert summary.percent == 100

    def test_empty_course_is_never_complete(self) -> None:
        summary = CourseProgressSummary(completed_count=0, total_lessons=0)
        assert summary.is_complete is False
        assert summary.label == "0% (0/0)"

    def test_label(self) -> None:
        summary = CourseProgressSummary(completed_count=1, total_lessons=3)
        assert summary.label == "33% (1/3)"

    def test_summarize_counts_completed(self) -> None:
        progress = {
            1: LessonProgress(user_id=1, lesson_id=1, completed=True),
            2: LessonProgress(user_id=1, lesson_id=2),
            3: LessonProgress(user_id=1, lesson_id=3, completed=True),
        }
        summary = summarize(progress)
        assert summary.completed_count == 2
        assert summary.total_lessons == 3
        assert summary.percent == 67


class TestLessonProgress:
    """Tests for LessonProgress."""

    def test_mark_completed_returns_copy(self) -> None:
        entry = LessonProgress(user_id=1, lesson_id=2)
        now = datetime(2024, 5, 1, tzinfo=UTC)

        completed = entry.mark_completed(now)

        assert completed.completed is True
        assert completed.completed_at == now
        assert entry.completed is False
        assert entry.completed_at is None

    def test_mark_completed_keeps_first_timestamp(self) -> None:
        first = datetime(2024, 5, 1, tzinfo=UTC)
        entry = LessonProgress(user_id=1, lesson_id=2, completed=True, completed_at=first)

        again = entry.mark_completed(datetime(2024, 6, 1, tzinfo=UTC))

        assert again.completed_at == first

    def test_naive_timestamps_become_utc(self) -> None:
        entry = LessonProgress(
            user_id=1, lesson_id=2, completed_at=datetime(2024, 5, 1, 12, 0)
        )
        assert entry.completed_at.tzinfo is UTC
        assert ensure_utc_aware(None) is None

    def test_from_row(self) -> None:
        row = SimpleNamespace(
            user_id=1,
            lesson_id=2,
            completed=None,
            completed_at=None,
            last_opened_at=datetime(2024, 5, 1),
        )
        entry = LessonProgress.from_row(row)
        assert entry.completed is False
        assert entry.last_opened_at == datetime(2024, 5, 1, tzinfo=UTC)

    def test_equality_uses_fields(self) -> None:
        assert LessonProgress(user_id=1, lesson_id=2) == LessonProgress(
            user_id=1, lesson_id=2
        )
        assert LessonProgress(user_id=1, lesson_id=2) != LessonProgress(
            user_id=1, lesson_id=2, completed=True
        )


class TestLesson:
    """Tests for Lesson."""

    def test_has_media(self) -> None:
        assert Lesson(id=1, course_id=1, position=1, title="a", media_ref="a.mp4").has_media
        assert not Lesson(id=1, course_id=1, position=1, title="a").has_media
        assert not Lesson(id=1, course_id=1, position=1, title="a", media_ref="").has_media

    def test_from_row_defaults(self) -> None:
        row = SimpleNamespace(
            lesson_id=4,
            course_id=9,
            position=None,
            title=None,
            description=None,
            media_ref="",
            duration_minutes=None,
            is_preview=None,
        )
        lesson = Lesson.from_row(row)
        assert lesson.position == 0
        assert lesson.title == ""
        assert lesson.media_ref is None
        assert lesson.is_preview is False
