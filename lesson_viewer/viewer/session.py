"""Explicit login sessions and the registry of open lesson viewers.

A UserSession is created once per login and handed to whatever opens
viewers for that user; logging out closes every viewer the user still has
open. Nothing here is process-global: the registry instance lives on the
application state.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

import structlog

from lesson_viewer.core.errors import (
    InvalidStateError,
    PersistenceFailure,
    ViewerError,
    ViewerSessionNotFoundError,
)
from lesson_viewer.playback.backend import MediaBackend
from lesson_viewer.playback.manager import PlaybackResourceManager
from lesson_viewer.progress.models import Lesson
from lesson_viewer.progress.protocols import EnrollmentGateway, LessonCatalog, ProgressStore
from lesson_viewer.progress.tracker import LessonProgressTracker

from .controller import LessonSessionController
from .signals import SignalBus


logger = structlog.get_logger(__name__)


class UserRole(str, Enum):
    """Platform roles."""

    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STUDENT = "student"


@dataclass(frozen=True)
class UserSession:
    """Identity of a logged-in user, constructed once per login."""

    user_id: int
    role: UserRole = UserRole.STUDENT
    session_id: str = field(default_factory=lambda: str(uuid4()))
    logged_in_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def requires_enrollment(self) -> bool:
        """Staff can view any lesson; students need an enrollment."""
        return self.role == UserRole.STUDENT


@dataclass
class _ViewerEntry:
    owner: UserSession
    controller: LessonSessionController
    last_seen: float


class ViewerSessionRegistry:
    """Creates, tracks and tears down lesson viewer sessions.

    Viewers and logins untouched for ``idle_timeout`` seconds are expired
    lazily, on the next login or open. A viewer with an operation in
    flight is never expired.
    """

    def __init__(
        self,
        store: ProgressStore,
        gateway: EnrollmentGateway,
        catalog: LessonCatalog,
        backend_factory: Callable[[], MediaBackend],
        max_sessions: int = 256,
        signal_queue_size: int = 100,
        max_sessions_per_login: int = 16,
        idle_timeout: float | None = 1800.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.catalog = catalog
        self.backend_factory = backend_factory
        self.max_sessions = max_sessions
        self.signal_queue_size = signal_queue_size
        self.max_sessions_per_login = max_sessions_per_login
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._logins: dict[str, UserSession] = {}
        self._login_seen: dict[str, float] = {}
        self._sessions: dict[str, _ViewerEntry] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def login_count(self) -> int:
        return len(self._logins)

    def login(self, user_id: int, role: UserRole = UserRole.STUDENT) -> UserSession:
        """Create the session object of a new login."""
        self.expire_idle()
        user = UserSession(user_id=user_id, role=role)
        self._logins[user.session_id] = user
        self._login_seen[user.session_id] = self.clock()
        logger.info("user_logged_in", user_id=user_id, role=role.value)
        return user

    def get_login(self, login_id: str) -> UserSession:
        try:
            user = self._logins[login_id]
        except KeyError:
            raise ViewerSessionNotFoundError(login_id) from None
        self._login_seen[login_id] = self.clock()
        return user

    def _owned_by(self, user: UserSession) -> list[str]:
        return [
            session_id
            for session_id, entry in self._sessions.items()
            if entry.owner.session_id == user.session_id
        ]

    def _check_capacity(self, user: UserSession) -> None:
        if len(self._sessions) >= self.max_sessions:
            raise InvalidStateError("Too many open viewer sessions", "session_limit")
        if len(self._owned_by(user)) >= self.max_sessions_per_login:
            raise InvalidStateError(
                "Too many open viewer sessions for this login", "session_limit"
            )

    async def open_viewer(
        self, user: UserSession, course_id: int
    ) -> LessonSessionController:
        """Open a viewer for a course and load the user's progress.

        Raises:
            InvalidStateError: too many open sessions, overall or for the login
            PersistenceFailure: catalog, enrollment or progress lookup failed
            ViewerSessionNotFoundError: the login ended while opening
        """
        self.expire_idle()
        self._check_capacity(user)

        try:
            lessons = await self.catalog.list_lessons(course_id)
            enrolled = not user.requires_enrollment or await self.gateway.is_enrolled(
                user.user_id, course_id
            )
        except ViewerError:
            raise
        except Exception as e:
            logger.error(
                "viewer_open_lookup_failed",
                user_id=user.user_id,
                course_id=course_id,
                error=str(e),
            )
            raise PersistenceFailure(f"Could not load course {course_id}: {e}") from e

        controller = LessonSessionController(
            session_id=str(uuid4()),
            user_id=user.user_id,
            course_id=course_id,
            lessons=lessons,
            tracker=LessonProgressTracker(self.store, self.gateway, user.user_id),
            playback=PlaybackResourceManager(self.backend_factory()),
            signals=SignalBus(queue_size=self.signal_queue_size),
            enrolled=enrolled,
        )

        try:
            await controller.open()
            # Other opens may have completed while this one awaited
            if user.session_id not in self._logins:
                raise ViewerSessionNotFoundError(user.session_id)
            self._check_capacity(user)
        except Exception:
            controller.close_session()
            raise

        now = self.clock()
        self._sessions[controller.session_id] = _ViewerEntry(user, controller, now)
        self._login_seen[user.session_id] = now
        logger.info(
            "viewer_session_opened",
            viewer_session_id=controller.session_id,
            user_id=user.user_id,
            course_id=course_id,
            lessons=len(lessons),
            enrolled=enrolled,
        )
        return controller

    # ==========================================================================
    # Catalog administration
    # ==========================================================================

    async def save_lesson(self, lesson: Lesson) -> None:
        """Add or replace a lesson; viewers opened afterwards see it."""
        try:
            await self.catalog.save_lesson(lesson)
        except Exception as e:
            logger.error("lesson_save_failed", lesson_id=lesson.id, error=str(e))
            raise PersistenceFailure(f"Could not save lesson {lesson.id}: {e}") from e
        logger.info("lesson_saved", lesson_id=lesson.id, course_id=lesson.course_id)

    async def enroll(self, user_id: int, course_id: int) -> None:
        """Enroll a user; viewers opened afterwards see the enrollment."""
        try:
            await self.gateway.enroll(user_id, course_id)
        except Exception as e:
            logger.error(
                "enrollment_failed", user_id=user_id, course_id=course_id, error=str(e)
            )
            raise PersistenceFailure(
                f"Could not enroll user {user_id} in course {course_id}: {e}"
            ) from e

    def get(self, session_id: str) -> LessonSessionController:
        try:
            entry = self._sessions[session_id]
        except KeyError:
            raise ViewerSessionNotFoundError(session_id) from None

        now = self.clock()
        entry.last_seen = now
        if entry.owner.session_id in self._login_seen:
            self._login_seen[entry.owner.session_id] = now
        return entry.controller

    def close(self, session_id: str) -> None:
        """Close and forget a viewer session."""
        entry = self._sessions.pop(session_id, None)
        if entry is None:
            raise ViewerSessionNotFoundError(session_id)
        entry.controller.close_session()

    def logout(self, user: UserSession) -> int:
        """Close every viewer opened under a login session and forget the login."""
        self._logins.pop(user.session_id, None)
        self._login_seen.pop(user.session_id, None)
        owned = self._owned_by(user)
        for session_id in owned:
            self.close(session_id)
        logger.info("user_logged_out", user_id=user.user_id, closed_viewers=len(owned))
        return len(owned)

    def expire_idle(self) -> int:
        """Close idle viewers and forget idle logins with no viewer open.

        Returns:
            Number of viewer sessions closed
        """
        if self.idle_timeout is None:
            return 0

        now = self.clock()
        expired = [
            session_id
            for session_id, entry in self._sessions.items()
            if now - entry.last_seen >= self.idle_timeout and not entry.controller.busy
        ]
        for session_id in expired:
            entry = self._sessions[session_id]
            self.close(session_id)
            logger.info(
                "viewer_session_expired",
                viewer_session_id=session_id,
                user_id=entry.owner.user_id,
            )

        active_owners = {entry.owner.session_id for entry in self._sessions.values()}
        idle_logins = [
            login_id
            for login_id, seen in self._login_seen.items()
            if now - seen >= self.idle_timeout and login_id not in active_owners
        ]
        for login_id in idle_logins:
            user = self._logins.pop(login_id)
            del self._login_seen[login_id]
            logger.info("login_expired", user_id=user.user_id)

        return len(expired)

    def close_all(self) -> None:
        """Close every open viewer (application shutdown)."""
        for session_id in list(self._sessions):
            self.close(session_id)
        self._logins.clear()
        self._login_seen.clear()
