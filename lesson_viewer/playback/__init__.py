"""Playback resource lifecycle module.

Provides:
- Tagged resource states and the transition decision table
- The playback resource wrapper over a media handle
- The resource manager (reuse -> recreate -> give up)
- Media backend contracts and the local-file backend
"""

from .backend import LocalFileHandle, LocalFileMediaBackend, MediaBackend, MediaHandle
from .manager import PlaybackResourceManager, TransitionResult
from .resource import PlaybackResource
from .state import (
    Disposed,
    Failed,
    Initialized,
    PlaybackStatus,
    ResourceState,
    TransitionAction,
    Uninitialized,
    plan_transition,
)


__all__ = [
    "Disposed",
    "Failed",
    "Initialized",
    "LocalFileHandle",
    "LocalFileMediaBackend",
    "MediaBackend",
    "MediaHandle",
    "PlaybackResource",
    "PlaybackResourceManager",
    "PlaybackStatus",
    "ResourceState",
    "TransitionAction",
    "TransitionResult",
    "Uninitialized",
    "plan_transition",
]
