"""Playback resource: one media handle plus its tagged state."""

import structlog

from lesson_viewer.core.errors import MediaBackendError, ResourceUnavailableError

from .backend import MediaBackend, MediaHandle
from .state import (
    Disposed,
    Failed,
    Initialized,
    ResourceState,
    Uninitialized,
    is_reusable,
)


logger = structlog.get_logger(__name__)


class PlaybackResource:
    """A decode session bound to exactly one media reference.

    The state only moves forward: Uninitialized -> Initialized,
    Uninitialized/Initialized -> Failed, anything -> Disposed. A Failed or
    Disposed resource refuses to load new media.
    """

    def __init__(self, handle: MediaHandle, media_ref: str) -> None:
        self._handle = handle
        self._state: ResourceState = Uninitialized(media_ref)
        self._refresh()

    @classmethod
    async def create(cls, backend: MediaBackend, media_ref: str) -> "PlaybackResource":
        """Build a resource through the backend.

        Raises:
            ResourceUnavailableError: the backend could not create a session
        """
        try:
            handle = await backend.create(media_ref)
        except MediaBackendError as e:
            raise ResourceUnavailableError(media_ref, e.message) from e
        except Exception as e:
            raise ResourceUnavailableError(
                media_ref, f"{type(e).__name__}: {e}"
            ) from e
        return cls(handle, media_ref)

    def _refresh(self) -> None:
        """Pick up asynchronous initialization (or decoder loss) from the handle."""
        state = self._state
        if isinstance(state, Uninitialized) and self._handle.is_initialized():
            self._state = Initialized(state.media_ref)
        elif isinstance(state, Initialized) and not self._handle.is_initialized():
            self._state = Failed(state.media_ref, "decoder is no longer initialized")

    @property
    def state(self) -> ResourceState:
        self._refresh()
        return self._state

    @property
    def media_ref(self) -> str | None:
        state = self.state
        return getattr(state, "media_ref", None)

    def is_initialized(self) -> bool:
        return isinstance(self.state, Initialized)

    async def load(self, media_ref: str) -> bool:
        """Load new media in place.

        Returns False (and moves to Failed when the handle itself failed)
        if the load did not succeed. A non-initialized resource is never
        asked to load.
        """
        if not is_reusable(self.state):
            return False

        try:
            ok = await self._handle.load(media_ref)
        except Exception as e:
            ok = False
            cause = f"{type(e).__name__}: {e}"
        else:
            cause = "load rejected by media backend"

        if isinstance(self._state, Disposed):
            # Disposed while the load was in flight
            return False

        if ok and self._handle.is_initialized():
            self._state = Initialized(media_ref)
            return True

        self._state = Failed(media_ref, cause)
        return False

    def dispose(self) -> None:
        """Release the handle. Idempotent and never raises."""
        if isinstance(self._state, Disposed):
            return

        media_ref = getattr(self._state, "media_ref", None)
        self._state = Disposed()
        try:
            self._handle.dispose()
        except Exception as e:
            logger.warning(
                "playback_dispose_error",
                media_ref=media_ref,
                error=str(e),
                error_type=type(e).__name__,
            )

    def __repr__(self) -> str:
        return f"<PlaybackResource {self._state!r}>"
