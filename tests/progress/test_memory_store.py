"""Tests for the in-memory persistence implementations."""

import pytest

from lesson_viewer.progress.memory import (
    InMemoryEnrollmentGateway,
    InMemoryLessonCatalog,
    InMemoryProgressStore,
)
from lesson_viewer.progress.models import Lesson, LessonProgress


class TestInMemoryProgressStore:
    """Tests for InMemoryProgressStore."""

    @pytest.mark.asyncio
    async def test_find_missing(self) -> None:
        assert await InMemoryProgressStore().find(1, 1) is None

    @pytest.mark.asyncio
    async def test_records_are_copied(self) -> None:
        store = InMemoryProgressStore()
        record = LessonProgress(user_id=1, lesson_id=2)
        await store.upsert(record)

        record.completed = True
        found = await store.find(1, 2)

        assert found is not None
        assert found.completed is False
        found.completed = True
        assert (await store.find(1, 2)).completed is False


class TestInMemoryLessonCatalog:
    """Tests for InMemoryLessonCatalog."""

    @pytest.mark.asyncio
    async def test_lessons_are_ordered_by_position(self) -> None:
        catalog = InMemoryLessonCatalog(
            [
                Lesson(id=3, course_id=1, position=2, title="c"),
                Lesson(id=1, course_id=1, position=1, title="a"),
                Lesson(id=2, course_id=2, position=1, title="other course"),
            ]
        )

        assert [lesson.id for lesson in await catalog.list_lessons(1)] == [1, 3]
        assert await catalog.list_lessons(99) == []

    def test_add_replaces_same_id(self) -> None:
        catalog = InMemoryLessonCatalog([Lesson(id=1, course_id=1, position=1, title="a")])
        catalog.add(Lesson(id=1, course_id=1, position=5, title="renamed"))

        assert catalog.get(1).title == "renamed"
        assert catalog.get(42) is None


class TestInMemoryEnrollmentGateway:
    """Tests for InMemoryEnrollmentGateway."""

    @pytest.mark.asyncio
    async def test_complete_requires_enrollment(
        self, catalog: InMemoryLessonCatalog, store: InMemoryProgressStore
    ) -> None:
        gateway = InMemoryEnrollmentGateway(catalog, store)

        assert await gateway.complete_lesson(7, 1) is False
        await gateway.enroll(7, 10)
        assert await gateway.is_enrolled(7, 10)
        assert await gateway.complete_lesson(7, 1) is True
        assert (await store.find(7, 1)).completed is True
        assert (7, 10) in gateway.last_accessed

    @pytest.mark.asyncio
    async def test_complete_unknown_lesson(
        self, gateway: InMemoryEnrollmentGateway
    ) -> None:
        assert await gateway.complete_lesson(7, 404) is False

    @pytest.mark.asyncio
    async def test_open_lesson_stamps_store(
        self, gateway: InMemoryEnrollmentGateway, store: InMemoryProgressStore
    ) -> None:
        assert await gateway.open_lesson(7, 2) is True
        record = await store.find(7, 2)
        assert record is not None
        assert record.last_opened_at is not None
        assert record.completed is False
        assert await gateway.open_lesson(7, 404) is False
