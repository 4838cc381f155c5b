"""
test_storage.py — Tests for the local object storage backend.

Called by: pytest
Depends on: app/storage.py
"""

import pytest

from app.storage import PROPERTY_IMAGES, LocalStorage, StorageError, UploadedFile


class TestLocalStorage:
    def test_upload_returns_public_url(self, storage: LocalStorage, tmp_path):
        url = storage.upload(PROPERTY_IMAGES, "p1/1-0.png", b"data", "image/png")
        assert url == "http://test/media/property-images/p1/1-0.png"
        assert (tmp_path / PROPERTY_IMAGES / "p1" / "1-0.png").read_bytes() == b"data"

    def test_never_overwrites(self, storage: LocalStorage):
        storage.upload(PROPERTY_IMAGES, "p1/a.png", b"first")
        with pytest.raises(StorageError):
            storage.upload(PROPERTY_IMAGES, "p1/a.png", b"second")

    def test_rejects_path_traversal(self, storage: LocalStorage):
        with pytest.raises(StorageError):
            storage.upload(PROPERTY_IMAGES, "../../etc/passwd", b"x")

    def test_remove_is_best_effort(self, storage: LocalStorage):
        storage.upload(PROPERTY_IMAGES, "p1/a.png", b"x")
        storage.remove(PROPERTY_IMAGES, ["p1/a.png", "p1/missing.png", "../../outside"])
        assert not storage.exists(PROPERTY_IMAGES, "p1/a.png")


class TestUploadedFile:
    def test_size(self):
        assert UploadedFile("a.pdf", b"12345").size == 5
