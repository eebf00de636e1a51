from __future__ import annotations

from pydantic import BaseModel, Field


class UploadedFile(BaseModel):
    """A file already written to a storage root by the upload receiver."""

    stored_filename: str
    original_name: str
    mime_type: str
    size: int = Field(..., ge=0)
