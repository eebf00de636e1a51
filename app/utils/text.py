"""Slug and summary helpers for post documents."""
from __future__ import annotations

import re
import unicodedata

from app.utils.html_images import strip_tags

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
SUMMARY_LENGTH = 200


def slugify(value: str, fallback: str = "post") -> str:
    """Lowercase ASCII slug, e.g. ``"Café & Code!"`` -> ``"cafe-code"``."""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    normalized = SLUG_PATTERN.sub("-", normalized.lower()).strip("-")
    return normalized or fallback


def make_summary(content: str | None, limit: int = SUMMARY_LENGTH) -> str:
    """Plain-text excerpt of ``content`` no longer than ``limit`` characters."""
    text = strip_tags(content)
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."
