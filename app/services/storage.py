"""Local upload storage for post images.

Responsible for validating incoming image uploads, optional compression, and
writing them into the primary uploads root.  Files are stored flat under a
generated name:

    {uploads_root}/image-{millis}-{random}{ext}

Callers receive an :class:`~app.models.UploadedFile`; the public URL of the
file is always ``/uploads/{stored_filename}``.
"""
from __future__ import annotations

import io
import logging
import secrets
import time
from pathlib import Path, PurePath
from typing import Tuple

from PIL import Image

from app.config import get_settings
from app.models import UploadedFile

logger = logging.getLogger(__name__)
settings = get_settings()


class StorageService:  # pylint: disable=too-few-public-methods
    """Writes validated image uploads into the primary uploads root."""

    _VALID_IMAGE_PREFIX = "image/"

    def __init__(
        self,
        uploads_root: Path | str,
        *,
        max_upload_bytes: int,
        compress: bool = False,
        max_dim: int = 1600,
        quality: int = 85,
    ) -> None:
        self._root = Path(uploads_root)
        self._max_upload_bytes = max_upload_bytes
        self._compress = compress
        self._max_dim = max_dim
        self._quality = quality

    @property
    def root(self) -> Path:
        return self._root

    def ensure_root(self) -> None:
        if not self._root.exists():
            self._root.mkdir(parents=True, exist_ok=True)
            logger.info("Created uploads directory: %s", self._root)

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------

    def save_upload(
        self,
        file_bytes: bytes,
        original_name: str | None,
        *,
        content_type: str | None,
    ) -> UploadedFile:
        """Validate and store one upload.

        Parameters
        ----------
        file_bytes : bytes
            Raw bytes received from the client.
        original_name : str | None
            Client-side filename; only its extension is kept.
        content_type : str | None
            Mime type, must start with ``image/``.

        Raises
        ------
        ValueError
            If the upload is not an image or exceeds the size limit.
        """

        if not content_type or not content_type.lower().startswith(self._VALID_IMAGE_PREFIX):
            raise ValueError("Only image files are allowed, got %s" % (content_type or "unknown type"))

        if len(file_bytes) > self._max_upload_bytes:
            raise ValueError("Image exceeds %d byte size limit." % self._max_upload_bytes)

        data_to_upload = file_bytes
        final_content_type = content_type.lower()
        ext = _file_extension(original_name, final_content_type)

        if self._compress:
            try:
                data_to_upload, final_content_type = _compress_image(
                    file_bytes,
                    max_dim=self._max_dim,
                    quality=self._quality,
                )
                ext = ".jpg"
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Image compression failed, storing original bytes: %s", exc)

        self.ensure_root()
        stored_filename = _generate_filename(ext)
        destination = self._root / stored_filename
        destination.write_bytes(data_to_upload)
        logger.debug("Stored upload %s as %s", original_name, destination)

        return UploadedFile(
            stored_filename=stored_filename,
            original_name=original_name or stored_filename,
            mime_type=final_content_type,
            size=len(data_to_upload),
        )

    def delete_upload(self, stored_filename: str) -> bool:
        path = self._root / PurePath(stored_filename).name
        if path.is_file():
            path.unlink()
            logger.debug("Deleted upload %s", path)
            return True
        return False


# ------------------------------------------------------------------
# Helper functions
# ------------------------------------------------------------------

def _generate_filename(ext: str) -> str:
    suffix = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
    return f"image-{suffix}{ext}"


def _file_extension(original_name: str | None, content_type: str) -> str:
    if original_name:
        suffix = PurePath(original_name).suffix.lower()
        if suffix:
            return suffix
    return "." + _content_type_to_extension(content_type)


def _content_type_to_extension(content_type: str) -> str:
    mapping = {
        "image/jpeg": "jpg",
        "image/jpg": "jpg",
        "image/png": "png",
        "image/gif": "gif",
        "image/webp": "webp",
    }
    return mapping.get(content_type.lower(), "jpg")


def _compress_image(
    file_bytes: bytes,
    *,
    max_dim: int,
    quality: int,
) -> Tuple[bytes, str]:
    """Resize/compress image bytes using Pillow and return (bytes, new_content_type)."""

    with Image.open(io.BytesIO(file_bytes)) as img:
        img = img.convert("RGB")  # ensure RGB for JPEG
        width, height = img.size
        if max(width, height) > max_dim:
            img.thumbnail((max_dim, max_dim))
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality, optimize=True)
        return buffer.getvalue(), "image/jpeg"


# Singleton instance
storage_service = StorageService(
    settings.uploads_root,
    max_upload_bytes=settings.max_upload_bytes,
    compress=settings.compress_uploads,
    max_dim=settings.image_max_dim,
    quality=settings.image_quality,
)


def get_storage_service() -> StorageService:
    """FastAPI dependency returning the shared storage service."""
    return storage_service
