"""Tolerant scanner for images embedded in rich-text post content.

This is deliberately not an HTML parser.  The matching contract is:

* a tag starts at the literal ``<img`` token (case-insensitive) and runs to
  the next ``>`` or, for truncated markup, to the end of the text;
* the image source is the *first* ``src="..."`` (or ``src='...'``) attribute
  inside that tag; ``data-src`` and similar attributes are ignored;
* ``alt`` is the first ``alt="..."`` attribute inside the same tag, in any
  position relative to ``src``; an empty ``alt=""`` is reported as ``""``;
* tags without a non-empty ``src`` are skipped.

Swapping this for a real parser only needs to preserve :class:`EmbeddedImage`
and the ordering of :func:`iter_embedded_images`.
"""
from __future__ import annotations

import re
from typing import Iterator, NamedTuple

_IMG_TAG = re.compile(r"<img\b[^>]*>?", re.IGNORECASE)
_SRC_ATTR = re.compile(r"(?<![\w-])src\s*=\s*(?:\"([^\">]*)\"|'([^'>]*)')", re.IGNORECASE)
_ALT_ATTR = re.compile(r"(?<![\w-])alt\s*=\s*(?:\"([^\">]*)\"|'([^'>]*)')", re.IGNORECASE)


class EmbeddedImage(NamedTuple):
    src: str
    alt: str | None
    tag: str


def _attr(pattern: re.Pattern[str], tag: str) -> str | None:
    match = pattern.search(tag)
    if match is None:
        return None
    return match.group(1) if match.group(1) is not None else match.group(2)


def iter_embedded_images(content: str | None) -> Iterator[EmbeddedImage]:
    """Yield embedded images in document order."""
    if not content:
        return
    for match in _IMG_TAG.finditer(content):
        tag = match.group(0)
        src = _attr(_SRC_ATTR, tag)
        if not src or not src.strip():
            continue
        yield EmbeddedImage(src=src.strip(), alt=_attr(_ALT_ATTR, tag), tag=tag)


_TAGS = re.compile(r"</?[^>]+(?:>|$)")
_WHITESPACE = re.compile(r"\s+")


def strip_tags(content: str | None) -> str:
    """Plain text of ``content`` with markup removed and whitespace collapsed."""
    if not content:
        return ""
    return _WHITESPACE.sub(" ", _TAGS.sub(" ", content)).strip()
