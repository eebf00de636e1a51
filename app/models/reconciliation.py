from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .image import ImageRef, ThumbnailRef


class ReconciliationResult(BaseModel):
    """Final ``images``/``thumbnail`` pair for a post plus non-fatal warnings."""

    model_config = ConfigDict(frozen=True)

    images: tuple[ImageRef, ...] = ()
    thumbnail: ThumbnailRef | None = None
    warnings: tuple[str, ...] = Field(default_factory=tuple)
