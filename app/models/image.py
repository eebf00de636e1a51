from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ImageRef(BaseModel):
    """One image attached to a post. ``url`` is the dedup key."""

    model_config = ConfigDict(frozen=True)

    url: str
    alt: str = ""
    origin_filename: str | None = None


class ThumbnailRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    alt: str

    @classmethod
    def from_image(cls, image: ImageRef) -> "ThumbnailRef":
        return cls(url=image.url, alt=image.alt)

    @property
    def is_complete(self) -> bool:
        return bool(self.url) and bool(self.alt)


class FileLookup(BaseModel):
    exists: bool
    resolved_path: str | None = None


class PathResolution(BaseModel):
    """Transient outcome of normalizing one image reference."""

    original: str | None
    normalized: str | None = None
    exists: bool = False
    resolved_path: str | None = None
