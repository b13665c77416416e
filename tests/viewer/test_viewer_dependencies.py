"""Tests for viewer dependencies and error mapping."""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from fastapi import HTTPException

from lesson_viewer.core.errors import (
    InvalidStateError,
    LessonAlreadyCompletedError,
    LessonNotFoundError,
    NotEnrolledError,
    PersistenceFailure,
    SessionBusyError,
    SessionClosedError,
    ViewerError,
    ViewerSessionNotFoundError,
)
from lesson_viewer.viewer.dependencies import get_viewer_registry, handle_viewer_error
from lesson_viewer.viewer.session import ViewerSessionRegistry


@pytest.mark.parametrize(
    ("error", "expected_status"),
    [
        (LessonNotFoundError(4), 404),
        (ViewerSessionNotFoundError("x"), 404),
        (SessionBusyError("select_lesson"), 409),
        (SessionClosedError(), 409),
        (LessonAlreadyCompletedError(4), 409),
        (NotEnrolledError(), 403),
        (InvalidStateError("Too many", "session_limit"), 429),
        (PersistenceFailure(), 502),
        (ViewerError("odd"), 500),
    ],
)
def test_status_mapping(error: ViewerError, expected_status: int) -> None:
    exc = handle_viewer_error(error)
    assert exc.status_code == expected_status
    assert exc.detail == {"code": error.code, "message": error.message}


@pytest.mark.asyncio
async def test_empty_registry_is_available(registry: ViewerSessionRegistry) -> None:
    request = Mock()
    request.app.state = SimpleNamespace(viewer_registry=registry)

    assert len(registry) == 0
    assert await get_viewer_registry(request) is registry


@pytest.mark.asyncio
async def test_missing_registry_is_unavailable() -> None:
    request = Mock()
    request.app.state = SimpleNamespace()

    with pytest.raises(HTTPException) as exc_info:
        await get_viewer_registry(request)
    assert exc_info.value.status_code == 503
