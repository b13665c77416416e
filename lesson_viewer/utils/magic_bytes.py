"""Magic bytes detection for media container validation.

Checks the actual header of a media file before a decode session is built
for it, so renamed or truncated files fail at load time instead of inside
the decoder.
"""

from typing import NamedTuple


# Minimum bytes needed for detection
MIN_BYTES_FOR_DETECTION = 4
RIFF_HEADER_LENGTH = 12


class MagicSignature(NamedTuple):
    """Magic bytes signature for a container type."""

    bytes_pattern: bytes
    mime_type: str
    offset: int = 0


# Video container signatures
# Reference: https://en.wikipedia.org/wiki/List_of_file_signatures
MAGIC_SIGNATURES: list[MagicSignature] = [
    # ISO base media (MP4, M4V, MOV...) - ....ftyp
    MagicSignature(b"ftypqt", "video/quicktime", offset=4),
    MagicSignature(b"ftyp", "video/mp4", offset=4),
    # QuickTime legacy atoms
    MagicSignature(b"moov", "video/quicktime", offset=4),
    MagicSignature(b"mdat", "video/quicktime", offset=4),
    MagicSignature(b"wide", "video/quicktime", offset=4),
    # Matroska / WebM - EBML header 1A 45 DF A3
    MagicSignature(b"\x1a\x45\xdf\xa3", "video/x-matroska"),
    # FLV
    MagicSignature(b"FLV\x01", "video/x-flv"),
    # MPEG program stream
    MagicSignature(b"\x00\x00\x01\xba", "video/mpeg"),
    # MPEG transport stream (sync byte)
    MagicSignature(b"G", "video/mp2t"),
    # Ogg
    MagicSignature(b"OggS", "video/ogg"),
]

VIDEO_MIME_TYPES = frozenset(sig.mime_type for sig in MAGIC_SIGNATURES) | {
    "video/x-msvideo",
    "video/webm",
}

_TS_PACKET_SIZE = 188


def detect_content_type(data: bytes) -> str | None:
    """Detect container type from file magic bytes.

    Args:
        data: First 64+ bytes of file content.

    Returns:
        Detected MIME type or None if unknown.
    """
    if len(data) < MIN_BYTES_FOR_DETECTION:
        return None

    # AVI specifically (RIFF + AVI at offset 8)
    if data[:4] == b"RIFF":
        if len(data) >= RIFF_HEADER_LENGTH and data[8:12] == b"AVI ":
            return "video/x-msvideo"
        return None

    # WebM is Matroska with a "webm" DocType inside the EBML header
    if data.startswith(b"\x1a\x45\xdf\xa3") and b"webm" in data[:64]:
        return "video/webm"

    for sig in MAGIC_SIGNATURES:
        if sig.mime_type == "video/mp2t":
            # A lone 0x47 is too weak; require a second sync byte one packet later
            if len(data) > _TS_PACKET_SIZE and data[0] == data[_TS_PACKET_SIZE] == 0x47:
                return sig.mime_type
            continue
        if sig.offset > 0:
            end_offset = sig.offset + len(sig.bytes_pattern)
            if (
                len(data) >= end_offset
                and data[sig.offset : end_offset] == sig.bytes_pattern
            ):
                return sig.mime_type
        elif data.startswith(sig.bytes_pattern):
            return sig.mime_type

    return None


def is_valid_video(data: bytes) -> bool:
    """Check if data starts with a recognised video container header."""
    detected = detect_content_type(data)
    return detected is not None and detected in VIDEO_MIME_TYPES
