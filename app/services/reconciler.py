"""Image reconciliation for post create/update requests.

Builds the final ``images`` list and ``thumbnail`` of a post from the files
uploaded with the request, the images embedded in its rich-text content and,
on update, what the post already had.  Each step is a pure function over
immutable values:

    form images -> content images -> merge/dedup -> thumbnail selection

Nothing here touches storage; existence checks are the caller's business.
"""
from __future__ import annotations

import logging
from typing import Iterable, Sequence

from app.models import ImageRef, ReconciliationResult, ThumbnailRef, UploadedFile
from app.services.image_paths import URL_PREFIX, is_external, normalize
from app.utils.html_images import iter_embedded_images

logger = logging.getLogger(__name__)

DEFAULT_ALT = "Blog post image"


def fallback_alt(*candidates: str | None, default: str = DEFAULT_ALT) -> str:
    """First non-blank candidate, else ``default``."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate
    return default


def parse_thumbnail_index(raw: object) -> int | None:
    """Return a non-negative integer index, or None if ``raw`` is not one."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw if raw >= 0 else None
    try:
        value = int(str(raw).strip())
    except ValueError:
        return None
    return value if value >= 0 else None


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def extract_form_images(uploads: Sequence[UploadedFile], *, alt: str) -> tuple[ImageRef, ...]:
    """One ImageRef per uploaded file, in upload order."""
    images = []
    for upload in uploads:
        url = normalize(URL_PREFIX + upload.stored_filename)
        images.append(ImageRef(url=url, alt=alt, origin_filename=upload.stored_filename))
    return tuple(images)


def extract_content_images(
    content: str | None,
    *,
    alt: str,
    known_urls: Iterable[str] = (),
) -> tuple[tuple[ImageRef, ...], tuple[str, ...]]:
    """Local images embedded in ``content`` that are not already known.

    Returns ``(images, warnings)``.  A scanning failure keeps whatever was
    collected before it and is reported as a warning.
    """
    seen = set(known_urls)
    images: list[ImageRef] = []
    warnings: list[str] = []

    try:
        for embedded in iter_embedded_images(content):
            url = normalize(embedded.src)
            if url is None or is_external(url) or not url.startswith(URL_PREFIX):
                logger.debug("Skipping non-local content image %r", embedded.src)
                continue
            if url in seen:
                continue
            seen.add(url)
            images.append(ImageRef(url=url, alt=embedded.alt if embedded.alt is not None else alt))
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Error scanning content for images")
        warnings.append(f"Content image scan stopped early: {exc}")

    return tuple(images), tuple(warnings)


def normalize_existing(images: Iterable[ImageRef]) -> tuple[ImageRef, ...]:
    """Re-canonicalize previously stored references (historical data)."""
    result = []
    for image in images:
        url = normalize(image.url)
        if url is None:
            continue
        result.append(image if url == image.url else image.model_copy(update={"url": url}))
    return tuple(result)


def merge_images(*groups: Iterable[ImageRef]) -> tuple[ImageRef, ...]:
    """Concatenate groups, keeping the first ImageRef for each url."""
    seen: set[str] = set()
    merged = []
    for group in groups:
        for image in group:
            if image.url in seen:
                continue
            seen.add(image.url)
            merged.append(image)
    return tuple(merged)


# ---------------------------------------------------------------------------
# Thumbnail selection
# ---------------------------------------------------------------------------


def select_create_thumbnail(
    form_images: Sequence[ImageRef],
    content_images: Sequence[ImageRef],
    index: int | None,
) -> ImageRef | None:
    if index is not None and index < len(form_images):
        return form_images[index]
    if form_images:
        return form_images[0]
    if content_images:
        return content_images[0]
    return None


def select_update_thumbnail(
    new_images: Sequence[ImageRef],
    merged: Sequence[ImageRef],
    index: int | None,
    previous: ThumbnailRef | None,
) -> ThumbnailRef | None:
    """Pick the thumbnail after an update.

    Precedence: index into the new uploads, index into the merged list, first
    new upload, first merged image when there was no thumbnail, cleared when
    nothing is left, otherwise the previous thumbnail as long as it still
    points into ``merged``.
    """
    if index is not None and index < len(new_images):
        return ThumbnailRef.from_image(new_images[index])
    if index is not None and index < len(merged):
        return ThumbnailRef.from_image(merged[index])
    if new_images:
        return ThumbnailRef.from_image(new_images[0])
    if not merged:
        return None
    if previous is None or not previous.url:
        return ThumbnailRef.from_image(merged[0])
    if previous.url not in {image.url for image in merged}:
        logger.info("Previous thumbnail %s no longer attached, using first image", previous.url)
        return ThumbnailRef.from_image(merged[0])
    return previous


def _finalize_thumbnail(thumbnail: ThumbnailRef | None, warnings: list[str]) -> ThumbnailRef | None:
    if thumbnail is None:
        return None
    if not thumbnail.is_complete:
        warnings.append(f"Thumbnail {thumbnail.url!r} omitted: url and alt are required")
        return None
    return thumbnail


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def reconcile_create(
    uploads: Sequence[UploadedFile],
    content: str | None,
    *,
    title: str | None = None,
    thumbnail_index: object = None,
    default_alt: str = DEFAULT_ALT,
) -> ReconciliationResult:
    alt = fallback_alt(title, default=default_alt)
    warnings: list[str] = []

    form_images = extract_form_images(uploads, alt=alt)
    content_images, scan_warnings = extract_content_images(
        content, alt=alt, known_urls=(image.url for image in form_images)
    )
    warnings.extend(scan_warnings)
    images = merge_images(form_images, content_images)

    index = parse_thumbnail_index(thumbnail_index)
    if thumbnail_index not in (None, "") and (index is None or index >= len(form_images)):
        warnings.append(f"Ignoring thumbnailIndex {thumbnail_index!r}")

    chosen = select_create_thumbnail(form_images, content_images, index)
    thumbnail = _finalize_thumbnail(ThumbnailRef.from_image(chosen) if chosen else None, warnings)

    logger.debug(
        "Reconciled new post: %d form image(s), %d content image(s), thumbnail=%s",
        len(form_images),
        len(content_images),
        thumbnail.url if thumbnail else None,
    )
    return ReconciliationResult(images=images, thumbnail=thumbnail, warnings=tuple(warnings))


def reconcile_update(
    existing_images: Sequence[ImageRef],
    previous_thumbnail: ThumbnailRef | None,
    uploads: Sequence[UploadedFile],
    content: str | None,
    *,
    title: str | None = None,
    post_title: str | None = None,
    thumbnail_index: object = None,
    default_alt: str = DEFAULT_ALT,
) -> ReconciliationResult:
    alt = fallback_alt(title, post_title, default=default_alt)
    warnings: list[str] = []

    existing = merge_images(normalize_existing(existing_images))
    if previous_thumbnail is not None and previous_thumbnail.url:
        url = normalize(previous_thumbnail.url)
        if url and url != previous_thumbnail.url:
            previous_thumbnail = previous_thumbnail.model_copy(update={"url": url})
    new_images = extract_form_images(uploads, alt=alt)
    combined = merge_images(existing, new_images)
    content_images, scan_warnings = extract_content_images(
        content, alt=alt, known_urls=(image.url for image in combined)
    )
    warnings.extend(scan_warnings)
    images = merge_images(combined, content_images)

    index = parse_thumbnail_index(thumbnail_index)
    if thumbnail_index not in (None, "") and (index is None or index >= max(len(new_images), len(images))):
        warnings.append(f"Ignoring thumbnailIndex {thumbnail_index!r}")

    thumbnail = _finalize_thumbnail(
        select_update_thumbnail(new_images, images, index, previous_thumbnail),
        warnings,
    )

    logger.debug(
        "Reconciled post update: %d kept, %d uploaded, %d from content, thumbnail=%s",
        len(existing),
        len(new_images),
        len(content_images),
        thumbnail.url if thumbnail else None,
    )
    return ReconciliationResult(images=images, thumbnail=thumbnail, warnings=tuple(warnings))
