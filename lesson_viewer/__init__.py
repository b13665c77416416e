"""Lesson viewer: per-session lesson progress and playback resource management."""

__version__ = "0.1.0"
