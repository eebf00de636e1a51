"""
Tests for the local upload storage service.
"""
import io
import re

import pytest
from PIL import Image

from app.services.storage import StorageService


def test_save_upload_writes_into_primary_root(storage, upload_roots, make_png):
    data = make_png()

    stored = storage.save_upload(data, "Holiday Photo.PNG", content_type="image/png")

    assert re.fullmatch(r"image-\d+-\d+\.png", stored.stored_filename)
    assert stored.original_name == "Holiday Photo.PNG"
    assert stored.mime_type == "image/png"
    assert stored.size == len(data)
    assert (upload_roots[0] / stored.stored_filename).read_bytes() == data


def test_extension_from_content_type_when_name_has_none(storage, make_png):
    stored = storage.save_upload(make_png(), "blob", content_type="image/webp")

    assert stored.stored_filename.endswith(".webp")


def test_rejects_non_images(storage, upload_roots):
    with pytest.raises(ValueError, match="Only image files"):
        storage.save_upload(b"%PDF-1.4", "doc.pdf", content_type="application/pdf")

    assert list(upload_roots[0].iterdir()) == []


def test_rejects_oversized_uploads(upload_roots):
    small = StorageService(upload_roots[0], max_upload_bytes=10)

    with pytest.raises(ValueError, match="size limit"):
        small.save_upload(b"x" * 11, "big.png", content_type="image/png")


def test_compression_downscales_to_jpeg(upload_roots, make_png):
    service = StorageService(upload_roots[0], max_upload_bytes=5 * 1024 * 1024, compress=True, max_dim=16)

    stored = service.save_upload(make_png(size=(64, 32)), "wide.png", content_type="image/png")

    assert stored.stored_filename.endswith(".jpg")
    assert stored.mime_type == "image/jpeg"
    with Image.open(io.BytesIO((upload_roots[0] / stored.stored_filename).read_bytes())) as img:
        assert img.size == (16, 8)


def test_compression_failure_keeps_original_bytes(upload_roots):
    service = StorageService(upload_roots[0], max_upload_bytes=1024, compress=True)

    stored = service.save_upload(b"not really a png", "broken.png", content_type="image/png")

    assert stored.stored_filename.endswith(".png")
    assert (upload_roots[0] / stored.stored_filename).read_bytes() == b"not really a png"


def test_delete_upload(storage, make_png):
    stored = storage.save_upload(make_png(), "a.png", content_type="image/png")

    assert storage.delete_upload(stored.stored_filename) is True
    assert storage.delete_upload(stored.stored_filename) is False


def test_creates_missing_root(tmp_path, make_png):
    service = StorageService(tmp_path / "new" / "uploads", max_upload_bytes=1024 * 1024)

    stored = service.save_upload(make_png(), "a.png", content_type="image/png")

    assert (tmp_path / "new" / "uploads" / stored.stored_filename).is_file()
