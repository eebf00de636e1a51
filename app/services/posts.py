"""Post create/update orchestration.

Runs image reconciliation for the request, audits the resulting image
references against the storage roots and derives the document fields
(slug, summary, tags) before handing the post to the store.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Sequence

from app.models import ImageRef, Post, PostCategory, ReconciliationResult, UploadedFile
from app.services.firebase_db import FirebaseDB, PostNotFoundError
from app.services.image_paths import ImagePathResolver, is_external, normalize
from app.services.reconciler import fallback_alt, reconcile_create, reconcile_update
from app.utils.text import make_summary, slugify

logger = logging.getLogger(__name__)


def parse_tags(raw: Any) -> list[str] | None:
    """Tags from a JSON array string or a list; None when unparseable."""
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Error parsing tags: %r", raw)
            return None
    if not isinstance(raw, list):
        return []
    return [str(tag).strip() for tag in raw if str(tag).strip()]


def parse_bool(raw: Any) -> bool | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() == "true"


def parse_image_list(raw: Any) -> list[ImageRef] | None:
    """Client-submitted retained images: JSON list of ``{url, alt}`` or of urls."""
    if raw is None:
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except ValueError as exc:
            raise ValueError("existingImages must be a JSON list") from exc
    if not isinstance(raw, list):
        raise ValueError("existingImages must be a JSON list")

    images = []
    for item in raw:
        if isinstance(item, str):
            item = {"url": item}
        if isinstance(item, dict) and item.get("url"):
            images.append(ImageRef(url=item["url"], alt=item.get("alt") or ""))
    return images


class PostService:
    def __init__(self, store: FirebaseDB, resolver: ImagePathResolver, *, default_alt: str) -> None:
        self._store = store
        self._resolver = resolver
        self._default_alt = default_alt

    def audit_images(self, images: Sequence[ImageRef]) -> tuple[str, ...]:
        """Log and report local images that are not on disk. Never blocks the save."""
        warnings = []
        for image in images:
            if is_external(image.url):
                continue
            lookup = self._resolver.exists(image.url)
            if not lookup.exists:
                logger.warning("Image referenced by post is missing on disk: %s", image.url)
                warnings.append(f"Image not found in storage: {image.url}")
        return tuple(warnings)

    def _retained_images(
        self, submitted: Sequence[ImageRef], post: Post, title: str | None
    ) -> list[ImageRef]:
        """Fill in missing alt text on client-submitted images.

        An image already on the post keeps its stored alt; anything else gets
        the request or post title.
        """
        stored_alts = {normalize(image.url): image.alt for image in post.images if image.alt}
        retained = []
        for image in submitted:
            if image.alt:
                retained.append(image)
                continue
            alt = stored_alts.get(normalize(image.url)) or fallback_alt(
                title, post.title, default=self._default_alt
            )
            retained.append(image.model_copy(update={"alt": alt}))
        return retained

    def _unique_slug(self, title: str, *, current_id: str | None = None) -> str:
        base = slugify(title)
        slug, counter = base, 2
        while True:
            existing = self._store.get_post_by_slug(slug)
            if existing is None or existing.id == current_id:
                return slug
            slug = f"{base}-{counter}"
            counter += 1

    def create_post(
        self,
        *,
        title: str,
        content: str,
        author_id: str,
        uploads: Sequence[UploadedFile] = (),
        category: PostCategory | None = None,
        tags: Any = None,
        published: Any = None,
        featured: bool = False,
        summary: str | None = None,
        publish_date: datetime | None = None,
        thumbnail_index: Any = None,
    ) -> tuple[Post, ReconciliationResult]:
        result = reconcile_create(
            uploads,
            content,
            title=title,
            thumbnail_index=thumbnail_index,
            default_alt=self._default_alt,
        )
        result = result.model_copy(update={"warnings": result.warnings + self.audit_images(result.images)})

        now = datetime.now(timezone.utc)
        data: dict[str, Any] = {
            "id": "",
            "title": title,
            "slug": self._unique_slug(title),
            "content": content,
            "summary": summary or make_summary(content),
            "category": category or PostCategory.OTHER,
            "tags": parse_tags(tags) or [],
            "author_id": author_id,
            "featured": featured,
            "published": bool(parse_bool(published)),
            "publish_date": publish_date or now,
            "images": list(result.images),
            "created_at": now,
            "updated_at": now,
        }
        # only a complete thumbnail is ever stored
        if result.thumbnail is not None:
            data["thumbnail"] = result.thumbnail

        post = self._store.create_post(Post.model_validate(data))
        logger.info("Created post %s with %d image(s)", post.id, len(post.images))
        return post, result

    def update_post(
        self,
        post_id: str,
        *,
        uploads: Sequence[UploadedFile] = (),
        title: str | None = None,
        content: str | None = None,
        category: PostCategory | None = None,
        tags: Any = None,
        published: Any = None,
        featured: bool | None = None,
        summary: str | None = None,
        publish_date: datetime | None = None,
        thumbnail_index: Any = None,
        existing_images: Sequence[ImageRef] | None = None,
    ) -> tuple[Post, ReconciliationResult]:
        post = self._store.get_post(post_id)
        if post is None:
            raise PostNotFoundError(post_id)

        result = reconcile_update(
            post.images if existing_images is None else self._retained_images(existing_images, post, title),
            post.thumbnail,
            uploads,
            content if content is not None else post.content,
            title=title,
            post_title=post.title,
            thumbnail_index=thumbnail_index,
            default_alt=self._default_alt,
        )
        result = result.model_copy(update={"warnings": result.warnings + self.audit_images(result.images)})

        changes: dict[str, Any] = {
            "images": [image.model_dump(mode="json", exclude_none=True) for image in result.images],
            "thumbnail": result.thumbnail.model_dump(mode="json") if result.thumbnail else None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if title is not None and title != post.title:
            changes["title"] = title
            changes["slug"] = self._unique_slug(title, current_id=post_id)
        if content is not None:
            changes["content"] = content
            if summary is None:
                changes["summary"] = make_summary(content)
        if summary is not None:
            changes["summary"] = summary
        if category is not None:
            changes["category"] = category.value
        parsed_tags = parse_tags(tags) if tags is not None else None
        if parsed_tags is not None:
            changes["tags"] = parsed_tags
        parsed_published = parse_bool(published)
        if parsed_published is not None:
            changes["published"] = parsed_published
        if featured is not None:
            changes["featured"] = featured
        if publish_date is not None:
            changes["publish_date"] = publish_date.isoformat()

        updated = self._store.update_post(post_id, changes)
        logger.info(
            "Updated post %s: %d image(s), thumbnail=%s",
            post_id,
            len(updated.images),
            updated.thumbnail.url if updated.thumbnail else None,
        )
        return updated, result

