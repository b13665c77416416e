"""Tests for PlaybackResourceManager."""

import asyncio

import pytest

from lesson_viewer.core.errors import ResourceUnavailableError, SessionClosedError
from lesson_viewer.playback.manager import PlaybackResourceManager
from lesson_viewer.playback.state import PlaybackStatus, TransitionAction


@pytest.fixture
def manager(backend) -> PlaybackResourceManager:
    return PlaybackResourceManager(backend)


class TestTransitions:
    """Tests for lesson-to-lesson transitions."""

    @pytest.mark.asyncio
    async def test_first_selection_creates(self, manager, backend) -> None:
        result = await manager.transition_to("a.mp4")

        assert result.action == TransitionAction.CREATE
        assert backend.created == 1
        assert manager.status == PlaybackStatus.INITIALIZED

    @pytest.mark.asyncio
    async def test_same_media_is_noop(self, manager, backend) -> None:
        await manager.transition_to("a.mp4")
        result = await manager.transition_to("a.mp4")

        assert result.action == TransitionAction.NOOP
        assert backend.created == 1

    @pytest.mark.asyncio
    async def test_media_to_media_reuses(self, manager, backend) -> None:
        await manager.transition_to("a.mp4")
        result = await manager.transition_to("b.mp4")

        assert result.action == TransitionAction.RELOAD
        assert result.reused is True
        assert backend.created == 1
        assert backend.handles[0].loads == ["b.mp4"]
        assert manager.active.media_ref == "b.mp4"

    @pytest.mark.asyncio
    async def test_failed_reload_recreates(self, manager, backend) -> None:
        await manager.transition_to("a.mp4")
        backend.fail_load.add("b.mp4")

        result = await manager.transition_to("b.mp4")

        assert result.recreated is True
        assert backend.created == 2
        assert backend.handles[0].disposed
        assert len(backend.live_handles) == 1
        assert manager.active.media_ref == "b.mp4"

    @pytest.mark.asyncio
    async def test_failed_reload_and_recreate_gives_up(self, manager, backend) -> None:
        await manager.transition_to("a.mp4")
        backend.fail_load.add("b.mp4")
        backend.fail_create.add("b.mp4")

        with pytest.raises(ResourceUnavailableError) as exc_info:
            await manager.transition_to("b.mp4")

        assert "in-place load failed" in exc_info.value.cause
        assert manager.active is None
        assert backend.live_handles == []

    @pytest.mark.asyncio
    async def test_to_text_lesson_releases(self, manager, backend) -> None:
        await manager.transition_to("a.mp4")
        result = await manager.transition_to(None)

        assert result.action == TransitionAction.RELEASE
        assert manager.active is None
        assert backend.live_handles == []

    @pytest.mark.asyncio
    async def test_uninitialized_resource_is_replaced(self, manager, backend) -> None:
        backend.initialize_on_create = False
        await manager.transition_to("a.mp4")
        assert manager.status == PlaybackStatus.UNINITIALIZED

        backend.initialize_on_create = True
        result = await manager.transition_to("b.mp4")

        assert result.action == TransitionAction.REPLACE
        assert backend.handles[0].loads == []
        assert backend.handles[0].disposed
        assert manager.status == PlaybackStatus.INITIALIZED

    @pytest.mark.asyncio
    async def test_construction_failure_leaves_no_resource(self, manager, backend) -> None:
        backend.fail_create.add("a.mp4")

        with pytest.raises(ResourceUnavailableError):
            await manager.transition_to("a.mp4")
        assert manager.active is None

        # Next selection attempts a fresh creation
        backend.fail_create.clear()
        result = await manager.transition_to("a.mp4")
        assert result.action == TransitionAction.CREATE

    @pytest.mark.asyncio
    async def test_never_two_live_resources(self, manager, backend) -> None:
        for media_ref in ["a.mp4", "b.mp4", None, "c.mp4", "c.mp4", "a.mp4"]:
            await manager.transition_to(media_ref)
            assert len(backend.live_handles) <= 1


class TestRelease:
    """Tests for release and close."""

    @pytest.mark.asyncio
    async def test_release_if_active(self, manager, backend) -> None:
        assert manager.release_if_active() is False
        await manager.transition_to("a.mp4")

        assert manager.release_if_active() is True
        assert manager.release_if_active() is False
        assert backend.live_handles == []

    @pytest.mark.asyncio
    async def test_closed_manager_refuses_transitions(self, manager) -> None:
        manager.close()
        manager.close()

        assert manager.closed
        with pytest.raises(SessionClosedError):
            await manager.transition_to("a.mp4")

    @pytest.mark.asyncio
    async def test_close_during_creation_disposes_new_resource(
        self, manager, backend
    ) -> None:
        backend.create_gate = asyncio.Event()

        pending = asyncio.create_task(manager.transition_to("a.mp4"))
        await asyncio.sleep(0)
        manager.close()
        backend.create_gate.set()

        with pytest.raises(SessionClosedError):
            await pending
        assert backend.created == 1
        assert backend.live_handles == []
        assert manager.active is None

    @pytest.mark.asyncio
    async def test_close_during_reload(self, manager, backend) -> None:
        await manager.transition_to("a.mp4")
        backend.load_gate = asyncio.Event()

        pending = asyncio.create_task(manager.transition_to("b.mp4"))
        await asyncio.sleep(0)
        manager.close()
        backend.load_gate.set()

        with pytest.raises(SessionClosedError):
            await pending
        assert backend.created == 1
        assert backend.live_handles == []
