"""Playback resource manager: reuse, recreate or release on lesson changes.

Decoder setup is expensive, so an existing resource is reused with an
in-place load whenever possible; recreation is the fallback, giving up
(and reporting playback as unavailable) is the last step.
"""

from dataclasses import dataclass

import structlog

from lesson_viewer.core.errors import ResourceUnavailableError, SessionClosedError

from .backend import MediaBackend
from .resource import PlaybackResource
from .state import PlaybackStatus, TransitionAction, plan_transition


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    """What a successful transition did."""

    action: TransitionAction
    media_ref: str | None
    reused: bool = False
    recreated: bool = False


class PlaybackResourceManager:
    """Owns zero or one live PlaybackResource.

    Not safe for interleaved transitions; the session controller
    serializes calls. ``close`` may be called at any time, also while a
    transition is awaiting the backend.
    """

    def __init__(self, backend: MediaBackend) -> None:
        self.backend = backend
        self._resource: PlaybackResource | None = None
        self._closed = False

    @property
    def active(self) -> PlaybackResource | None:
        return self._resource

    @property
    def status(self) -> PlaybackStatus | None:
        """Status of the active resource, None when there is none."""
        if self._resource is None:
            return None
        return self._resource.state.status

    @property
    def closed(self) -> bool:
        return self._closed

    async def transition_to(self, media_ref: str | None) -> TransitionResult:
        """Bring the active resource in line with the selected lesson's media.

        Raises:
            ResourceUnavailableError: creation (or reload and recreation)
                failed; no resource is left active
            SessionClosedError: the manager was closed
        """
        if self._closed:
            raise SessionClosedError

        current = self._resource.state if self._resource is not None else None
        action = plan_transition(current, media_ref)
        logger.debug(
            "playback_transition_planned",
            action=action.value,
            current=current.status.value if current else None,
            target=media_ref,
        )

        if action == TransitionAction.NOOP:
            return TransitionResult(action=action, media_ref=media_ref)

        if action == TransitionAction.RELEASE:
            self.release_if_active()
            return TransitionResult(action=action, media_ref=None)

        if action == TransitionAction.REPLACE:
            logger.info(
                "playback_stale_resource_replaced",
                stale_state=current.status.value if current else None,
                media_ref=media_ref,
            )
            self.release_if_active()
            await self._create(media_ref, "could not create decoder")
            return TransitionResult(action=action, media_ref=media_ref, recreated=True)

        if action == TransitionAction.CREATE:
            await self._create(media_ref, "could not create decoder")
            return TransitionResult(action=action, media_ref=media_ref)

        # RELOAD: reuse first, recreate as fallback
        resource = self._resource
        if await resource.load(media_ref):
            if self._closed:
                self.release_if_active()
                raise SessionClosedError
            logger.info("playback_resource_reused", media_ref=media_ref)
            return TransitionResult(action=action, media_ref=media_ref, reused=True)

        logger.warning(
            "playback_reload_failed",
            media_ref=media_ref,
            cause=getattr(resource.state, "cause", None),
        )
        self.release_if_active()
        await self._create(media_ref, "in-place load failed and recreation failed")
        return TransitionResult(action=action, media_ref=media_ref, recreated=True)

    async def _create(self, media_ref: str, failure_context: str) -> None:
        if self._closed:
            raise SessionClosedError

        try:
            resource = await PlaybackResource.create(self.backend, media_ref)
        except ResourceUnavailableError as e:
            logger.warning(
                "playback_resource_unavailable",
                media_ref=media_ref,
                cause=e.cause,
            )
            raise ResourceUnavailableError(
                media_ref, f"{failure_context}: {e.cause}"
            ) from e

        if self._closed:
            # Close requested while the backend was building the resource
            resource.dispose()
            logger.info("playback_resource_disposed_after_close", media_ref=media_ref)
            raise SessionClosedError

        self._resource = resource
        logger.info(
            "playback_resource_created",
            media_ref=media_ref,
            status=resource.state.status.value,
        )

    def release_if_active(self) -> bool:
        """Dispose the active resource, if any. Returns whether one was released."""
        resource, self._resource = self._resource, None
        if resource is None:
            return False
        media_ref = resource.media_ref
        resource.dispose()
        logger.info("playback_resource_released", media_ref=media_ref)
        return True

    def close(self) -> None:
        """Release and refuse further transitions. Idempotent."""
        self._closed = True
        self.release_if_active()
