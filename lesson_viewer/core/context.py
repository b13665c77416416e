"""Logging context management using contextvars.

Each HTTP request gets a unique ID, and every viewer-session operation binds
the session, user and course it acts on, so log lines emitted anywhere in the
call stack carry them without passing parameters explicitly.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


# Context variables for request and viewer-session tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
viewer_session_id_var: ContextVar[str | None] = ContextVar(
    "viewer_session_id", default=None
)
course_id_var: ContextVar[str | None] = ContextVar("course_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | int | UUID | None) -> None:
    """Set the user ID for the current context."""
    if user_id is not None:
        user_id_var.set(str(user_id))
    else:
        user_id_var.set(None)


def get_viewer_session_id() -> str | None:
    """Get the current viewer session ID."""
    return viewer_session_id_var.get()


def get_context() -> dict[str, Any]:
    """Get all context variables as a dictionary.

    Returns:
        Dictionary with request_id, user_id, viewer_session_id and course_id
        (only the ones that are set).
    """
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    user_id = get_user_id()
    if user_id:
        context["user_id"] = user_id

    viewer_session_id = get_viewer_session_id()
    if viewer_session_id:
        context["viewer_session_id"] = viewer_session_id

    course_id = course_id_var.get()
    if course_id:
        context["course_id"] = course_id

    return context


def clear_context() -> None:
    """Clear all context variables.

    This should be called at the end of each request to prevent
    context leakage between requests.
    """
    request_id_var.set("")
    user_id_var.set(None)
    viewer_session_id_var.set(None)
    course_id_var.set(None)


class ViewerContext:
    """Context manager binding a viewer session to the logging context.

    Usage:
        with ViewerContext(session_id="...", user_id=7, course_id=3):
            log.info("lesson_selected")  # includes viewer_session_id, user_id
    """

    def __init__(
        self,
        session_id: str,
        user_id: int | str | None = None,
        course_id: int | str | None = None,
    ) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self.course_id = course_id
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> "ViewerContext":
        """Enter context and set variables."""
        self._tokens.append(
            (viewer_session_id_var, viewer_session_id_var.set(self.session_id))
        )
        if self.user_id is not None:
            self._tokens.append((user_id_var, user_id_var.set(str(self.user_id))))
        if self.course_id is not None:
            self._tokens.append(
                (course_id_var, course_id_var.set(str(self.course_id)))
            )
        return self

    def __exit__(self, *_: object) -> None:
        """Exit context and restore previous values."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
