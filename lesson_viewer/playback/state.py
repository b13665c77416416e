"""Playback resource states and the lesson-transition decision table.

A resource is always in exactly one of four tagged states::

    Uninitialized(m) -> Initialized(m) -> Disposed
            |                 |
            +----> Failed <---+

``plan_transition`` maps (current state, target media) to the action the
manager has to run. It is a pure function so the decision table can be
tested without any backend.
"""

from dataclasses import dataclass
from enum import Enum


class PlaybackStatus(str, Enum):
    """Status tag of a playback resource."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    FAILED = "failed"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class Uninitialized:
    """Resource created, decoder not ready yet (partial initialization)."""

    media_ref: str
    status = PlaybackStatus.UNINITIALIZED


@dataclass(frozen=True)
class Initialized:
    """Decoder ready and bound to ``media_ref``."""

    media_ref: str
    status = PlaybackStatus.INITIALIZED


@dataclass(frozen=True)
class Failed:
    """Initialization or a load failed; the resource must be replaced."""

    media_ref: str
    cause: str
    status = PlaybackStatus.FAILED


@dataclass(frozen=True)
class Disposed:
    """Released; terminal."""

    status = PlaybackStatus.DISPOSED


ResourceState = Uninitialized | Initialized | Failed | Disposed


def is_reusable(state: ResourceState) -> bool:
    """Only an initialized resource may load new media."""
    return isinstance(state, Initialized)


def is_live(state: ResourceState) -> bool:
    """Anything not yet disposed still holds decoder resources."""
    return not isinstance(state, Disposed)


# ==============================================================================
# Transition planning
# ==============================================================================


class TransitionAction(str, Enum):
    """What the manager does for a lesson transition."""

    NOOP = "noop"  # Nothing to do (already bound, or nothing wanted)
    CREATE = "create"  # No resource: build one for the target
    RELOAD = "reload"  # Reuse: in-place load, recreate on failure
    REPLACE = "replace"  # Stale resource: dispose, then create
    RELEASE = "release"  # Target has no media: dispose


def plan_transition(
    current: ResourceState | None,
    target_media: str | None,
) -> TransitionAction:
    """Decide how to move from the current resource state to ``target_media``.

    Args:
        current: State of the active resource, None when there is none.
        target_media: Media reference of the selected lesson, None if it
            has no media.

    Returns:
        The action to execute.
    """
    if current is None or isinstance(current, Disposed):
        return TransitionAction.CREATE if target_media else TransitionAction.NOOP

    if not target_media:
        return TransitionAction.RELEASE

    if isinstance(current, Initialized):
        if current.media_ref == target_media:
            return TransitionAction.NOOP
        return TransitionAction.RELOAD

    # Uninitialized or Failed: stale, never reused
    return TransitionAction.REPLACE
