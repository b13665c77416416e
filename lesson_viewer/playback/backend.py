"""Media backend contracts and the local-file backend.

The backend is the opaque decoder capability: creating a handle is the
expensive step (decoder setup), loading swaps the media of an existing
handle, disposing releases whatever the handle holds.
"""

import asyncio
from pathlib import Path
from typing import IO, Protocol

import structlog

from lesson_viewer.core.errors import MediaBackendError
from lesson_viewer.utils.magic_bytes import detect_content_type, is_valid_video


logger = structlog.get_logger(__name__)


class MediaHandle(Protocol):
    """One decode/render session."""

    async def load(self, media_ref: str) -> bool:
        """Load new media in place. Returns False on failure."""
        ...

    def is_initialized(self) -> bool:
        """Whether the decoder finished initializing."""
        ...

    def dispose(self) -> None:
        """Release the session. Idempotent, never raises."""
        ...


class MediaBackend(Protocol):
    """Factory of decode sessions."""

    async def create(self, media_ref: str) -> MediaHandle:
        """Build a session for ``media_ref``.

        Raises:
            MediaBackendError: if the session cannot be created
        """
        ...


# ==============================================================================
# Local file backend
# ==============================================================================


class LocalFileMediaBackend:
    """Backend for media files on the local filesystem.

    A handle keeps the media file open for the lifetime of the session and
    validates the container header before accepting a file.
    """

    def __init__(
        self,
        media_root: Path | str,
        allowed_extensions: list[str] | None = None,
        probe_bytes: int = 512,
    ) -> None:
        self.media_root = Path(media_root)
        self.allowed_extensions = {
            ext.lower() for ext in (allowed_extensions or [".mp4", ".webm", ".mkv"])
        }
        # TS detection needs two packets of header
        self.probe_bytes = max(probe_bytes, 189)

    def resolve(self, media_ref: str) -> Path:
        """Resolve a media reference (absolute or relative to media_root)."""
        path = Path(media_ref).expanduser()
        if not path.is_absolute():
            path = self.media_root / path
        return path

    def open_media(self, media_ref: str) -> IO[bytes]:
        """Open and validate a media file (blocking).

        Raises:
            MediaBackendError: missing, unreadable or not a video container
        """
        path = self.resolve(media_ref)

        if path.suffix.lower() not in self.allowed_extensions:
            raise MediaBackendError(f"Unsupported media type: {path.suffix or path.name}")
        if not path.is_file():
            raise MediaBackendError(f"Video file not found: {media_ref}")

        try:
            stream = path.open("rb")
        except OSError as e:
            raise MediaBackendError(f"Video file not readable: {e}") from e

        try:
            header = stream.read(self.probe_bytes)
        except OSError as e:
            stream.close()
            raise MediaBackendError(f"Video file not readable: {e}") from e

        if not is_valid_video(header):
            stream.close()
            raise MediaBackendError(
                f"Unrecognised video container: {media_ref} "
                f"(detected {detect_content_type(header) or 'unknown'})"
            )

        stream.seek(0)
        return stream

    async def create(self, media_ref: str) -> "LocalFileHandle":
        stream = await asyncio.to_thread(self.open_media, media_ref)
        logger.debug("media_handle_created", media_ref=media_ref)
        return LocalFileHandle(self, media_ref, stream)


class LocalFileHandle:
    """Open media file standing in for a decode session."""

    def __init__(
        self,
        backend: LocalFileMediaBackend,
        media_ref: str,
        stream: IO[bytes],
    ) -> None:
        self.backend = backend
        self.media_ref = media_ref
        self._stream: IO[bytes] | None = stream
        self._disposed = False

    async def load(self, media_ref: str) -> bool:
        if self._disposed:
            return False

        try:
            stream = await asyncio.to_thread(self.backend.open_media, media_ref)
        except MediaBackendError as e:
            logger.warning("media_load_failed", media_ref=media_ref, error=e.message)
            return False

        if self._disposed:
            # Disposed while the new file was being opened
            stream.close()
            return False

        previous, self._stream = self._stream, stream
        self.media_ref = media_ref
        if previous is not None:
            previous.close()
        return True

    def is_initialized(self) -> bool:
        return not self._disposed and self._stream is not None

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.close()
            except OSError as e:
                logger.warning("media_close_failed", media_ref=self.media_ref, error=str(e))
