"""Lesson viewer session module.

Provides:
- The lesson session controller (selection, completion, close)
- Per-session signals (playback unavailable, course completed)
- Login sessions and the registry of open viewers
- REST endpoints for viewer sessions
"""

from .controller import CompletionResult, LessonSessionController, SelectionResult
from .router import router
from .session import UserRole, UserSession, ViewerSessionRegistry
from .signals import CourseCompleted, PlaybackUnavailable, SignalBus, SignalKind


__all__ = [
    "CompletionResult",
    "CourseCompleted",
    "LessonSessionController",
    "PlaybackUnavailable",
    "SelectionResult",
    "SignalBus",
    "SignalKind",
    "UserRole",
    "UserSession",
    "ViewerSessionRegistry",
    "router",
]
