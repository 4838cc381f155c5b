"""
test_file_validation.py — Tests for upload validation utilities.

Tests magic-byte detection, size limits and extension handling for
property images, land documents and plan files.

Called by: pytest
Depends on: app/utils/file_validation.py
"""

import pytest

from app.utils.file_validation import (
    MAX_DOCUMENT_SIZE,
    MAX_IMAGE_SIZE,
    get_extension,
    guess_mime,
    validate_document,
    validate_image,
)

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PDF = b"%PDF-1.7\n" + b"0" * 64
ZIP = b"PK\x03\x04" + b"\x00" * 64


# ── get_extension ──────────────────────────────────────────────────


class TestGetExtension:
    @pytest.mark.parametrize("filename,expected", [
        ("deed.PDF", ".pdf"),
        ("site.plan.dwg", ".dwg"),
        ("README", ""),
        ("", ""),
    ])
    def test_extension(self, filename, expected):
        assert get_extension(filename) == expected


# ── validate_image ─────────────────────────────────────────────────


class TestValidateImage:
    def test_png_accepted(self):
        assert validate_image(PNG, "front.png") == (True, "png")

    def test_jpeg_with_wrong_extension_accepted(self):
        ok, ext = validate_image(JPEG, "photo.png")
        assert ok is True
        assert ext == "jpg"

    def test_pdf_rejected(self):
        ok, reason = validate_image(PDF, "brochure.jpg")
        assert ok is False
        assert reason == "brochure.jpg is not an image (detected application/pdf)"

    def test_unknown_bytes_rejected(self):
        ok, reason = validate_image(b"plain text", "notes.png")
        assert ok is False
        assert "detected unknown" in reason

    def test_empty_rejected(self):
        assert validate_image(b"", "a.png") == (False, "Empty file")

    def test_oversized_rejected(self):
        ok, reason = validate_image(PNG + b"\x00" * MAX_IMAGE_SIZE, "big.png")
        assert ok is False
        assert "too large" in reason


# ── validate_document ──────────────────────────────────────────────


class TestValidateDocument:
    @pytest.mark.parametrize("content,filename,ext", [
        (PDF, "title-deed.pdf", "pdf"),
        (PNG, "survey.png", "png"),
        (ZIP, "drawings.zip", "zip"),
    ])
    def test_supported_types(self, content, filename, ext):
        assert validate_document(content, filename) == (True, ext)

    @pytest.mark.parametrize("filename", ["plan.dwg", "plan.DXF", "model.skp"])
    def test_cad_accepted_by_extension(self, filename):
        ok, ext = validate_document(b"AC1032 drawing data", filename)
        assert ok is True
        assert ext == get_extension(filename).lstrip(".")

    def test_unknown_rejected(self):
        ok, reason = validate_document(b"just some text", "notes.txt")
        assert ok is False
        assert reason == "Unsupported file type: .txt"

    def test_empty_cad_rejected(self):
        assert validate_document(b"", "plan.dwg") == (False, "Empty file")

    def test_oversized_rejected(self):
        ok, reason = validate_document(PDF + b"0" * MAX_DOCUMENT_SIZE, "deed.pdf")
        assert ok is False
        assert "too large" in reason


def test_guess_mime():
    assert guess_mime(PDF) == "application/pdf"
    assert guess_mime(b"nothing") is None
