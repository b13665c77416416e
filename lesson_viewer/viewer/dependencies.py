"""FastAPI dependencies for the lesson viewer.

Provides dependency injection for:
- Viewer session registry
- Staff login lookup for catalog administration
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from lesson_viewer.core.context import set_user_id
from lesson_viewer.core.errors import ViewerError, ViewerSessionNotFoundError

from .session import UserRole, UserSession, ViewerSessionRegistry


async def get_viewer_registry(request: Request) -> ViewerSessionRegistry:
    """Get the viewer session registry from app state.

    Args:
        request: FastAPI request

    Returns:
        ViewerSessionRegistry instance
    """
    registry = getattr(request.app.state, "viewer_registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Viewer service not available",
        )
    return registry


# Type alias for dependency injection
ViewerRegistryDep = Annotated[ViewerSessionRegistry, Depends(get_viewer_registry)]


async def get_staff_login(
    registry: ViewerRegistryDep,
    x_login_id: Annotated[str | None, Header()] = None,
) -> UserSession:
    """Resolve the ``X-Login-ID`` header to an admin or instructor login.

    Raises:
        HTTPException(401): header missing or login unknown
        HTTPException(403): login is a student
    """
    if not x_login_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "login_required", "message": "X-Login-ID header required"},
        )

    try:
        user = registry.get_login(x_login_id)
    except ViewerSessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "login_required", "message": "Login session not found"},
        ) from None

    set_user_id(str(user.user_id))
    if user.role not in (UserRole.ADMIN, UserRole.INSTRUCTOR):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "forbidden", "message": "Insufficient permission"},
        )
    return user


StaffLogin = Annotated[UserSession, Depends(get_staff_login)]


def handle_viewer_error(error: ViewerError) -> HTTPException:
    """Convert viewer errors to HTTP exceptions.

    Args:
        error: Viewer error

    Returns:
        HTTPException with appropriate status code
    """
    status_map = {
        "not_found": status.HTTP_404_NOT_FOUND,
        "lesson_not_found": status.HTTP_404_NOT_FOUND,
        "session_not_found": status.HTTP_404_NOT_FOUND,
        "invalid_state": status.HTTP_409_CONFLICT,
        "session_busy": status.HTTP_409_CONFLICT,
        "session_closed": status.HTTP_409_CONFLICT,
        "already_completed": status.HTTP_409_CONFLICT,
        "no_lesson_selected": status.HTTP_409_CONFLICT,
        "not_enrolled": status.HTTP_403_FORBIDDEN,
        "session_limit": status.HTTP_429_TOO_MANY_REQUESTS,
        "persistence_failure": status.HTTP_502_BAD_GATEWAY,
        "resource_unavailable": status.HTTP_502_BAD_GATEWAY,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    )
