"""Lesson viewer API endpoints.

Provides routes for:
- Login and logout (explicit user sessions)
- Catalog administration (lessons, enrollments)
- Opening, inspecting and closing viewer sessions
- Lesson selection and completion
- Signal polling
"""

from fastapi import APIRouter, status

from lesson_viewer.core.errors import ViewerError

from .dependencies import StaffLogin, ViewerRegistryDep, handle_viewer_error
from .schemas import (
    CompletionResponse,
    EnrollmentRequest,
    EnrollmentResponse,
    LessonResponse,
    LessonUpsertRequest,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    OpenSessionRequest,
    SelectionResponse,
    SignalListResponse,
    SignalResponse,
    ViewerSessionResponse,
)


router = APIRouter(prefix="/v1/viewer", tags=["viewer"])


# ==============================================================================
# Login Endpoints
# ==============================================================================


@router.post(
    "/logins",
    response_model=LoginResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a login session",
)
async def login(data: LoginRequest, registry: ViewerRegistryDep) -> LoginResponse:
    """Create the user session that viewers are opened under."""
    user = registry.login(data.user_id, data.role)
    return LoginResponse.from_session(user)


@router.delete(
    "/logins/{login_id}",
    response_model=LogoutResponse,
    summary="Log out",
)
async def logout(login_id: str, registry: ViewerRegistryDep) -> LogoutResponse:
    """End a login session and close every viewer it still has open."""
    try:
        user = registry.get_login(login_id)
    except ViewerError as e:
        raise handle_viewer_error(e) from e

    closed = registry.logout(user)
    return LogoutResponse(login_id=login_id, closed_viewers=closed)


# ==============================================================================
# Catalog Administration Endpoints
# ==============================================================================


@router.put(
    "/courses/{course_id}/lessons/{lesson_id}",
    response_model=LessonResponse,
    summary="Create or replace a lesson",
)
async def save_lesson(
    course_id: int,
    lesson_id: int,
    data: LessonUpsertRequest,
    registry: ViewerRegistryDep,
    staff: StaffLogin,
) -> LessonResponse:
    """Add a lesson to a course (admin or instructor).

    Viewers already open keep the lesson list they were opened with.
    """
    lesson = data.to_lesson(course_id, lesson_id)
    try:
        await registry.save_lesson(lesson)
    except ViewerError as e:
        raise handle_viewer_error(e) from e
    return LessonResponse.from_lesson(lesson)


@router.post(
    "/courses/{course_id}/enrollments",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll a user in a course",
)
async def enroll_user(
    course_id: int,
    data: EnrollmentRequest,
    registry: ViewerRegistryDep,
    staff: StaffLogin,
) -> EnrollmentResponse:
    try:
        await registry.enroll(data.user_id, course_id)
    except ViewerError as e:
        raise handle_viewer_error(e) from e
    return EnrollmentResponse(user_id=data.user_id, course_id=course_id)


# ==============================================================================
# Viewer Session Endpoints
# ==============================================================================


@router.post(
    "/sessions",
    response_model=ViewerSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a lesson viewer",
)
async def open_session(
    data: OpenSessionRequest, registry: ViewerRegistryDep
) -> ViewerSessionResponse:
    """Open a viewer for a course and load the user's progress."""
    try:
        user = registry.get_login(data.login_id)
        controller = await registry.open_viewer(user, data.course_id)
    except ViewerError as e:
        raise handle_viewer_error(e) from e
    return ViewerSessionResponse.from_controller(controller)


@router.get(
    "/sessions/{session_id}",
    response_model=ViewerSessionResponse,
    summary="Get viewer session state",
)
async def get_session(
    session_id: str, registry: ViewerRegistryDep
) -> ViewerSessionResponse:
    try:
        controller = registry.get(session_id)
    except ViewerError as e:
        raise handle_viewer_error(e) from e
    return ViewerSessionResponse.from_controller(controller)


@router.delete(
    "/sessions/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Close a viewer session",
)
async def close_session(session_id: str, registry: ViewerRegistryDep) -> None:
    """Close the viewer and release its playback resource."""
    try:
        registry.close(session_id)
    except ViewerError as e:
        raise handle_viewer_error(e) from e


# ==============================================================================
# Lesson Endpoints
# ==============================================================================


@router.post(
    "/sessions/{session_id}/lessons/{lesson_id}/select",
    response_model=SelectionResponse,
    summary="Select a lesson",
)
async def select_lesson(
    session_id: str, lesson_id: int, registry: ViewerRegistryDep
) -> SelectionResponse:
    """Make a lesson current.

    A playback failure does not fail the request: the response reports
    ``playback_available=false`` and a playback_unavailable signal is queued.
    """
    try:
        controller = registry.get(session_id)
        result = await controller.select_lesson(lesson_id)
    except ViewerError as e:
        raise handle_viewer_error(e) from e
    return SelectionResponse.from_result(controller, result)


@router.post(
    "/sessions/{session_id}/complete",
    response_model=CompletionResponse,
    summary="Mark the current lesson complete",
)
async def complete_current_lesson(
    session_id: str, registry: ViewerRegistryDep
) -> CompletionResponse:
    try:
        controller = registry.get(session_id)
        result = await controller.mark_current_complete()
    except ViewerError as e:
        raise handle_viewer_error(e) from e
    return CompletionResponse.from_result(result)


@router.post(
    "/sessions/{session_id}/lessons/{lesson_id}/complete",
    response_model=CompletionResponse,
    summary="Mark a lesson complete",
)
async def complete_lesson(
    session_id: str, lesson_id: int, registry: ViewerRegistryDep
) -> CompletionResponse:
    """Complete any lesson of the session. Idempotent."""
    try:
        controller = registry.get(session_id)
        result = await controller.complete_lesson(lesson_id)
    except ViewerError as e:
        raise handle_viewer_error(e) from e
    return CompletionResponse.from_result(result)


# ==============================================================================
# Signal Endpoints
# ==============================================================================


@router.get(
    "/sessions/{session_id}/signals",
    response_model=SignalListResponse,
    summary="Drain pending signals",
)
async def poll_signals(
    session_id: str, registry: ViewerRegistryDep
) -> SignalListResponse:
    try:
        controller = registry.get(session_id)
    except ViewerError as e:
        raise handle_viewer_error(e) from e

    items = [SignalResponse.from_signal(signal) for signal in controller.signals.poll()]
    return SignalListResponse(items=items, total=len(items))
