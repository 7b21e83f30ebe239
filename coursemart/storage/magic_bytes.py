"""Image type detection from file signatures.

The declared Content-Type of an upload is not trusted; the leading bytes of
the file decide what it is.
"""

from typing import NamedTuple


# Bytes of an upload handed to detection
MAX_HEADER_BYTES = 64

# Reference: https://en.wikipedia.org/wiki/List_of_file_signatures
IMAGE_SIGNATURES: dict[bytes, str] = {
    b"\xff\xd8\xff": "image/jpeg",
    b"\x89PNG\r\n\x1a\n": "image/png",
    b"GIF87a": "image/gif",
    b"GIF89a": "image/gif",
}


class ImageCheck(NamedTuple):
    valid: bool
    detected_type: str | None = None
    error: str | None = None


def detect_image_type(header: bytes) -> str | None:
    """MIME type of an image from its first bytes, None if unrecognized."""
    # WebP is a RIFF container: "RIFF" <size:4> "WEBP"
    if header[:4] == b"RIFF" and header[8:12] == b"WEBP":
        return "image/webp"
    for signature, mime_type in IMAGE_SIGNATURES.items():
        if header.startswith(signature):
            return mime_type
    return None


def validate_image_content(header: bytes, allowed_types: frozenset[str]) -> ImageCheck:
    """Check that the bytes are an image of one of the allowed types."""
    detected = detect_image_type(header)
    if detected is None:
        return ImageCheck(False, error="Unable to detect image type from content")
    if detected not in allowed_types:
        return ImageCheck(
            False,
            detected,
            f"Image type '{detected}' is not allowed. "
            f"Allowed: {', '.join(sorted(allowed_types))}",
        )
    return ImageCheck(True, detected)
