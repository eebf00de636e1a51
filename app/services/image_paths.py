"""Image path normalization and storage lookups.

Every local image reference is stored and served in one canonical form::

    /uploads/<filename>

Historical data and rich-text editors produce many other shapes for the same
file (``../../uploads/x.jpg``, ``/api/uploads/x.jpg``,
``http://localhost:5000/uploads/x.jpg``, ``uploads\\x.jpg``, a bare
``x.jpg``).  :func:`normalize` folds all of them onto the canonical form and
leaves genuinely external URLs untouched.

:class:`ImagePathResolver` answers whether a reference points at a file that
is physically present in one of the two storage roots.  The answer is
advisory: uploads and lookups are not atomic, so callers log a miss and carry
on.
"""
from __future__ import annotations

import logging
import os
import re
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from app.config import get_settings
from app.models import FileLookup, PathResolution

logger = logging.getLogger(__name__)
settings = get_settings()

URL_PREFIX = "/uploads/"

_RELATIVE_UPLOADS = re.compile(r"/?(?:\.\./)+uploads/")
_ABSOLUTE_URL = re.compile(r"^(?:https?://|//[^/]+/)", re.IGNORECASE)
# data:, blob:, ftp: and friends; one-letter schemes are Windows drives
_EXTERNAL = re.compile(r"^(?:[a-z][a-z0-9+.-]+:|//[^/]+/)", re.IGNORECASE)


def is_external(path: str | None) -> bool:
    """True for URLs with a scheme or a host that survived normalization."""
    return bool(path) and _EXTERNAL.match(path) is not None


def normalize(image_path: str | None) -> str | None:
    """Map any image reference onto ``/uploads/<...>`` or an external URL.

    Never raises: on an unexpected failure the input is returned unchanged.
    """
    if not image_path:
        return None

    try:
        value = image_path.strip()
        if not value:
            return None

        value = value.replace("\\", "/")

        if "../uploads/" in value:
            value = _RELATIVE_UPLOADS.sub(URL_PREFIX, value, count=1)

        if value.startswith("/api/uploads/"):
            value = value[len("/api"):]

        if "localhost" in value and URL_PREFIX in value:
            value = value[value.index(URL_PREFIX):]

        if _ABSOLUTE_URL.match(value):
            url_path = urlsplit(value).path
            if URL_PREFIX not in url_path:
                # external image, leave as is
                return value
            value = url_path[url_path.index(URL_PREFIX):]
        elif _EXTERNAL.match(value):
            return value

        if not value.startswith(URL_PREFIX) and "uploads/" in value:
            value = "/" + value[value.index("uploads/"):]

        if not value.startswith(URL_PREFIX):
            value = URL_PREFIX + value.lstrip("/")

        if value != image_path:
            logger.debug("Normalized image path %r -> %r", image_path, value)
        return value
    except Exception:  # pylint: disable=broad-except
        logger.exception("Failed to normalize image path %r", image_path)
        return image_path


class ImagePathResolver:
    """Looks up image references in the primary and public storage roots."""

    def __init__(
        self,
        uploads_root: Path | str,
        public_uploads_root: Path | str,
        app_root: Path | str,
    ) -> None:
        self._roots = (Path(uploads_root), Path(public_uploads_root))
        self._app_root = Path(app_root)

    @property
    def roots(self) -> tuple[Path, Path]:
        return self._roots

    def exists(self, image_path: str | None) -> FileLookup:
        if not image_path:
            return FileLookup(exists=False)

        try:
            filename = PurePosixPath(image_path.replace("\\", "/")).name
            if filename:
                for root in self._roots:
                    candidate = root / filename
                    if candidate.is_file():
                        return FileLookup(exists=True, resolved_path=str(candidate))

            if os.path.isabs(image_path) and Path(image_path).is_file():
                return FileLookup(exists=True, resolved_path=image_path)

            if image_path.startswith(URL_PREFIX):
                candidate = self._app_root / image_path.lstrip("/")
                if candidate.is_file():
                    return FileLookup(exists=True, resolved_path=str(candidate))
        except OSError as exc:
            logger.warning("Image lookup failed for %s: %s", image_path, exc)
            return FileLookup(exists=False)

        logger.debug("Image not found: %s", image_path)
        return FileLookup(exists=False)

    def resolve(self, image_path: str | None) -> PathResolution:
        """Normalize ``image_path`` and check the result against the roots.

        External URLs are never looked up locally.
        """
        normalized = normalize(image_path)
        if normalized is None or is_external(normalized):
            return PathResolution(original=image_path, normalized=normalized)

        lookup = self.exists(normalized)
        return PathResolution(
            original=image_path,
            normalized=normalized,
            exists=lookup.exists,
            resolved_path=lookup.resolved_path,
        )

    def frontend_url(self, image_path: str | None) -> str | None:
        """Return the URL the front-end should render, warning if the file is missing."""
        resolution = self.resolve(image_path)
        if resolution.normalized and not is_external(resolution.normalized) and not resolution.exists:
            logger.warning("Creating URL for non-existent image: %s", resolution.normalized)
        return resolution.normalized

    def absolute_path(self, image_path: str | None) -> str | None:
        """Filesystem path of an image, trying the raw reference before the normalized one."""
        if not image_path:
            return None

        lookup = self.exists(image_path)
        if lookup.exists:
            return lookup.resolved_path

        normalized = normalize(image_path)
        if normalized is None or is_external(normalized):
            return None
        return self.exists(normalized).resolved_path


# Singleton instance
image_path_resolver = ImagePathResolver(
    settings.uploads_root,
    settings.public_uploads_root,
    settings.app_root,
)


def get_path_resolver() -> ImagePathResolver:
    """FastAPI dependency returning the shared resolver."""
    return image_path_resolver
