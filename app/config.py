from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from a .env file if present (local dev only)
load_dotenv()

APP_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application configuration loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    # Firebase
    project_id: Optional[str] = Field(default=None, description="GCP project ID")
    firebase_credentials_json: Optional[str] = Field(
        default=None,
        validation_alias="GOOGLE_APPLICATION_CREDENTIALS",
        description="Path to service-account JSON file or JSON string itself.",
    )
    firebase_database_url: Optional[str] = Field(default=None, validation_alias="FIREBASE_DATABASE_URL")

    # Storage roots
    app_root: Path = Field(APP_ROOT, validation_alias="APP_ROOT")
    uploads_root: Path = Field(APP_ROOT / "uploads", validation_alias="UPLOADS_ROOT")
    public_uploads_root: Path = Field(APP_ROOT / "public" / "uploads", validation_alias="PUBLIC_UPLOADS_ROOT")

    # Uploads
    max_upload_bytes: int = Field(5 * 1024 * 1024, validation_alias="MAX_UPLOAD_BYTES")
    default_image_alt: str = Field("Blog post image", validation_alias="DEFAULT_IMAGE_ALT")
    compress_uploads: bool = Field(False, validation_alias="COMPRESS_UPLOADS")
    image_max_dim: int = Field(1600, validation_alias="IMAGE_MAX_DIM", description="Maximum width or height for compressed uploads (pixels).")
    image_quality: int = Field(85, validation_alias="IMAGE_QUALITY", description="JPEG quality for compressed uploads (1-100).")

    # Access tokens
    api_token: Optional[str] = Field(default=None, validation_alias="API_TOKEN")
    api_author_id: str = Field("admin", validation_alias="API_AUTHOR_ID", description="Author recorded for posts and comments written with the API token.")
    scheduler_token: Optional[str] = Field(default=None, validation_alias="SCHEDULER_TOKEN")

    # Listing
    posts_page_size: int = Field(10, validation_alias="POSTS_PAGE_SIZE")

    @property
    def database_url(self) -> Optional[str]:
        if self.firebase_database_url:
            return self.firebase_database_url
        if self.project_id:
            return f"https://{self.project_id}.firebaseio.com"
        return None


@lru_cache()
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached Settings instance so it is only parsed once."""

    return Settings()
