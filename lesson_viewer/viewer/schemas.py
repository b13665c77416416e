"""Pydantic schemas for the lesson viewer API.

Request and response models for:
- Login sessions
- Viewer sessions (open, snapshot)
- Lesson selection and completion
- Signal polling
"""

from datetime import datetime

from pydantic import BaseModel, Field

from lesson_viewer.playback.state import PlaybackStatus
from lesson_viewer.progress.models import CourseProgressSummary, Lesson, LessonProgress

from .controller import CompletionResult, LessonSessionController, SelectionResult
from .session import UserRole, UserSession
from .signals import CourseCompleted, PlaybackUnavailable, SignalKind


# ==============================================================================
# Login Schemas
# ==============================================================================


class LoginRequest(BaseModel):
    """Request to start a login session."""

    user_id: int = Field(..., ge=1, description="User ID")
    role: UserRole = Field(default=UserRole.STUDENT, description="Platform role")


class LoginResponse(BaseModel):
    """A login session."""

    login_id: str
    user_id: int
    role: UserRole
    logged_in_at: datetime

    @classmethod
    def from_session(cls, user: UserSession) -> "LoginResponse":
        return cls(
            login_id=user.session_id,
            user_id=user.user_id,
            role=user.role,
            logged_in_at=user.logged_in_at,
        )


class LogoutResponse(BaseModel):
    """Result of a logout."""

    login_id: str
    closed_viewers: int


# ==============================================================================
# Progress Schemas
# ==============================================================================


class ProgressSummaryResponse(BaseModel):
    """Aggregate course progress."""

    completed_count: int
    total_lessons: int
    percent: int = Field(description="0-100, rounded half up")
    label: str
    is_complete: bool

    @classmethod
    def from_summary(cls, summary: CourseProgressSummary) -> "ProgressSummaryResponse":
        return cls(
            completed_count=summary.completed_count,
            total_lessons=summary.total_lessons,
            percent=summary.percent,
            label=summary.label,
            is_complete=summary.is_complete,
        )


class LessonResponse(BaseModel):
    """A lesson with the user's completion state."""

    id: int
    course_id: int
    position: int
    title: str
    description: str = ""
    duration_minutes: int | None = None
    is_preview: bool = False
    has_media: bool
    completed: bool = False
    completed_at: datetime | None = None

    @classmethod
    def from_lesson(
        cls, lesson: Lesson, progress: LessonProgress | None = None
    ) -> "LessonResponse":
        return cls(
            id=lesson.id,
            course_id=lesson.course_id,
            position=lesson.position,
            title=lesson.title,
            description=lesson.description,
            duration_minutes=lesson.duration_minutes,
            is_preview=lesson.is_preview,
            has_media=lesson.has_media,
            completed=progress.completed if progress else False,
            completed_at=progress.completed_at if progress else None,
        )


# ==============================================================================
# Catalog Administration Schemas
# ==============================================================================


class LessonUpsertRequest(BaseModel):
    """Lesson fields for creating or replacing a lesson."""

    position: int = Field(..., ge=0, description="Ordinal within the course")
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    media_ref: str | None = Field(default=None, description="Media path or URI")
    duration_minutes: int | None = Field(default=None, ge=0)
    is_preview: bool = False

    def to_lesson(self, course_id: int, lesson_id: int) -> Lesson:
        return Lesson(
            id=lesson_id,
            course_id=course_id,
            position=self.position,
            title=self.title,
            description=self.description,
            media_ref=self.media_ref or None,
            duration_minutes=self.duration_minutes,
            is_preview=self.is_preview,
        )


class EnrollmentRequest(BaseModel):
    """Request to enroll a user in a course."""

    user_id: int = Field(..., ge=1, description="User ID")


class EnrollmentResponse(BaseModel):
    """An enrollment."""

    user_id: int
    course_id: int
    enrolled: bool = True


# ==============================================================================
# Viewer Session Schemas
# ==============================================================================


class OpenSessionRequest(BaseModel):
    """Request to open a lesson viewer for a course."""

    login_id: str = Field(..., min_length=1, description="Login session ID")
    course_id: int = Field(..., ge=1, description="Course ID")


class ViewerSessionResponse(BaseModel):
    """Snapshot of an open viewer session."""

    session_id: str
    user_id: int
    course_id: int
    enrolled: bool
    busy: bool
    pending_operation: str | None = None
    playback_status: PlaybackStatus | None = None
    current_lesson_id: int | None = None
    next_lesson_id: int | None = None
    summary: ProgressSummaryResponse
    lessons: list[LessonResponse]

    @classmethod
    def from_controller(
        cls, controller: LessonSessionController
    ) -> "ViewerSessionResponse":
        progress = {entry.lesson_id: entry for entry in controller.tracker.entries()}
        current = controller.current_lesson
        upcoming = controller.tracker.next_incomplete_lesson()
        return cls(
            session_id=controller.session_id,
            user_id=controller.user_id,
            course_id=controller.course_id,
            enrolled=controller.enrolled,
            busy=controller.busy,
            pending_operation=controller.pending_operation,
            playback_status=controller.playback_status,
            current_lesson_id=current.id if current else None,
            next_lesson_id=upcoming.id if upcoming else None,
            summary=ProgressSummaryResponse.from_summary(controller.summary()),
            lessons=[
                LessonResponse.from_lesson(lesson, progress.get(lesson.id))
                for lesson in controller.lessons
            ],
        )


class SelectionResponse(BaseModel):
    """Result of selecting a lesson."""

    lesson: LessonResponse
    action: str | None = Field(
        default=None, description="Playback transition taken (noop/create/reload/...)"
    )
    playback_status: PlaybackStatus | None = None
    playback_available: bool
    playback_error: str | None = None

    @classmethod
    def from_result(
        cls, controller: LessonSessionController, result: SelectionResult
    ) -> "SelectionResponse":
        lesson = result.lesson
        return cls(
            lesson=LessonResponse.from_lesson(lesson, controller.tracker.get(lesson.id)),
            action=result.transition.action.value if result.transition else None,
            playback_status=controller.playback_status,
            playback_available=result.playback_available,
            playback_error=result.playback_error.cause if result.playback_error else None,
        )


class CompletionResponse(BaseModel):
    """Result of completing a lesson."""

    lesson_id: int
    changed: bool
    course_completed: bool
    summary: ProgressSummaryResponse

    @classmethod
    def from_result(cls, result: CompletionResult) -> "CompletionResponse":
        return cls(
            lesson_id=result.lesson_id,
            changed=result.changed,
            course_completed=result.course_completed,
            summary=ProgressSummaryResponse.from_summary(result.summary),
        )


# ==============================================================================
# Signal Schemas
# ==============================================================================


class SignalResponse(BaseModel):
    """One signal raised by a viewer session."""

    kind: SignalKind
    occurred_at: datetime
    lesson_id: int
    media_ref: str | None = None
    cause: str | None = None
    course_id: int | None = None
    user_id: int | None = None

    @classmethod
    def from_signal(
        cls, signal: PlaybackUnavailable | CourseCompleted
    ) -> "SignalResponse":
        if isinstance(signal, PlaybackUnavailable):
            return cls(
                kind=signal.kind,
                occurred_at=signal.occurred_at,
                lesson_id=signal.lesson_id,
                media_ref=signal.media_ref,
                cause=signal.cause,
            )
        return cls(
            kind=signal.kind,
            occurred_at=signal.occurred_at,
            lesson_id=signal.lesson_id,
            course_id=signal.course_id,
            user_id=signal.user_id,
        )


class SignalListResponse(BaseModel):
    """Signals drained from a viewer session."""

    items: list[SignalResponse]
    total: int
