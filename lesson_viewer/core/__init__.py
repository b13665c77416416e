# Core infrastructure
from lesson_viewer.core.context import (
    ViewerContext,
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_request_id,
    set_user_id,
)
from lesson_viewer.core.errors import (
    InvalidStateError,
    NotFoundError,
    PersistenceFailure,
    ResourceUnavailableError,
    ViewerError,
)
from lesson_viewer.core.logging import configure_structlog, get_logger


__all__ = [
    "InvalidStateError",
    "NotFoundError",
    "PersistenceFailure",
    "ResourceUnavailableError",
    "ViewerContext",
    "ViewerError",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "set_request_id",
    "set_user_id",
]
