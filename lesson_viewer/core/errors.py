"""Error taxonomy shared by the progress, playback and viewer layers.

Every error carries a human-readable ``message`` and a stable ``code`` the
HTTP layer maps to a status code.
"""


class ViewerError(Exception):
    """Base lesson viewer error."""

    def __init__(self, message: str, code: str = "viewer_error"):
        self.message = message
        self.code = code
        super().__init__(message)


# ==============================================================================
# Persistence
# ==============================================================================


class PersistenceFailure(ViewerError):
    """A progress store or enrollment gateway call did not succeed."""

    def __init__(self, message: str = "Progress could not be saved"):
        super().__init__(message, "persistence_failure")


# ==============================================================================
# Playback
# ==============================================================================


class ResourceUnavailableError(ViewerError):
    """Media could not be created or loaded after exhausting the fallbacks.

    Advisory: the session stays usable, only playback is unavailable.
    """

    def __init__(self, media_ref: str | None, cause: str):
        self.media_ref = media_ref
        self.cause = cause
        super().__init__(
            f"Playback unavailable for {media_ref!r}: {cause}",
            "resource_unavailable",
        )


class MediaBackendError(ViewerError):
    """Raised by media backends when a decode session cannot be created."""

    def __init__(self, message: str):
        super().__init__(message, "media_backend_error")


# ==============================================================================
# Invalid state
# ==============================================================================


class InvalidStateError(ViewerError):
    """Operation rejected before any external call was attempted."""

    def __init__(self, message: str, code: str = "invalid_state"):
        super().__init__(message, code)


class SessionBusyError(InvalidStateError):
    """Another transition is still pending on this session."""

    def __init__(self, pending_operation: str | None = None):
        self.pending_operation = pending_operation
        message = "Viewer session is busy"
        if pending_operation:
            message = f"{message} ({pending_operation} in progress)"
        super().__init__(message, "session_busy")


class SessionClosedError(InvalidStateError):
    """Viewer session was already closed."""

    def __init__(self, message: str = "Viewer session is closed"):
        super().__init__(message, "session_closed")


class NoLessonSelectedError(InvalidStateError):
    """Completion requested with no current lesson."""

    def __init__(self, message: str = "No lesson selected"):
        super().__init__(message, "no_lesson_selected")


class LessonAlreadyCompletedError(InvalidStateError):
    """Current lesson is already completed."""

    def __init__(self, lesson_id: int):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson {lesson_id} is already completed", "already_completed")


class NotEnrolledError(InvalidStateError):
    """Non-preview lesson requested by a user without enrollment."""

    def __init__(self, message: str = "Enrollment required to view this lesson"):
        super().__init__(message, "not_enrolled")


# ==============================================================================
# Not found
# ==============================================================================


class NotFoundError(ViewerError):
    """Requested entity does not exist."""

    def __init__(self, message: str, code: str = "not_found"):
        super().__init__(message, code)


class LessonNotFoundError(NotFoundError):
    """Lesson is not part of the session's lesson list."""

    def __init__(self, lesson_id: int):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson {lesson_id} not found in session", "lesson_not_found")


class ViewerSessionNotFoundError(NotFoundError):
    """Viewer session id is unknown or already closed."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Viewer session {session_id} not found", "session_not_found")
