"""Utility modules for the lesson viewer."""

from lesson_viewer.utils.magic_bytes import detect_content_type, is_valid_video


__all__ = ["detect_content_type", "is_valid_video"]
