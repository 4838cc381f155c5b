"""File validation — magic-byte type checks for listing uploads.

Uses the `filetype` library (don't trust extensions or client MIME types)
for property images, land documents and plan files.

Business Rules:
- Property images: image/* only, max settings.max_image_size_mb (10 MB)
- Land documents and plan files: PDF, images or CAD/zip archives,
  max settings.max_document_size_mb
- Empty files are always rejected
"""
import logging

import filetype

from ..config import settings

log = logging.getLogger(__name__)

MAX_IMAGE_SIZE = settings.max_image_size_mb * 1024 * 1024
MAX_DOCUMENT_SIZE = settings.max_document_size_mb * 1024 * 1024

DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "application/zip",
    "application/x-rar-compressed",
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/tiff",
}

# CAD formats have no reliable magic bytes
EXTENSION_ONLY = {".dwg", ".dxf", ".skp"}


def get_extension(filename: str) -> str:
    """Return lowercase extension including the dot, or ''."""
    if not filename or "." not in filename:
        return ""
    return "." + filename.rsplit(".", 1)[-1].lower()


def validate_image(content: bytes, filename: str) -> tuple[bool, str]:
    """Validate an image upload.

    Returns (True, extension_without_dot) or (False, reason).
    """
    if len(content) == 0:
        return False, "Empty file"
    if len(content) > MAX_IMAGE_SIZE:
        return False, f"Image too large ({len(content)} bytes, max {MAX_IMAGE_SIZE})"

    kind = filetype.guess(content)
    if kind is None or not kind.mime.startswith("image/"):
        detected = kind.mime if kind else "unknown"
        return False, f"{filename} is not an image (detected {detected})"
    return True, kind.extension


def validate_document(content: bytes, filename: str) -> tuple[bool, str]:
    """Validate a document upload (land documents, plan files).

    Returns (True, extension_without_dot) or (False, reason).
    """
    if len(content) == 0:
        return False, "Empty file"
    if len(content) > MAX_DOCUMENT_SIZE:
        return False, f"File too large ({len(content)} bytes, max {MAX_DOCUMENT_SIZE})"

    ext = get_extension(filename)
    if ext in EXTENSION_ONLY:
        return True, ext.lstrip(".")

    kind = filetype.guess(content)
    if kind is None:
        return False, f"Unsupported file type: {ext or 'unknown'}"
    if kind.mime not in DOCUMENT_MIME_TYPES:
        return False, f"Unsupported file type: {kind.mime}"
    return True, kind.extension


def guess_mime(content: bytes) -> str | None:
    kind = filetype.guess(content)
    return kind.mime if kind else None
