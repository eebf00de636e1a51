"""REST endpoints for posts, their images and comments."""
from __future__ import annotations

import hmac
import logging
import math
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, UploadFile
from pydantic import BaseModel, ValidationError

from app.config import get_settings
from app.models import PostCategory, UploadedFile
from app.services.firebase_db import (
    CommentNotFoundError,
    FirebaseDB,
    PostNotFoundError,
    get_post_store,
)
from app.services.image_paths import ImagePathResolver, get_path_resolver
from app.services.posts import PostService, parse_image_list
from app.services.storage import StorageService, get_storage_service

router = APIRouter(prefix="/api/posts", tags=["posts"])
settings = get_settings()
logger = logging.getLogger(__name__)


class CommentCreate(BaseModel):
    content: str


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _token_matches(token: str | None) -> bool:
    if not settings.api_token or token is None:
        return False
    return hmac.compare_digest(token.encode(), settings.api_token.encode())


def require_api_token(x_api_token: str | None = Header(None, alias="X-API-Token")) -> str:
    """Return the author id for write requests carrying a valid token."""
    if not _token_matches(x_api_token):
        raise HTTPException(status_code=403, detail="Forbidden")
    return settings.api_author_id


def optional_api_token(x_api_token: str | None = Header(None, alias="X-API-Token")) -> bool:
    return _token_matches(x_api_token)


def get_post_service(
    store: FirebaseDB = Depends(get_post_store),
    resolver: ImagePathResolver = Depends(get_path_resolver),
) -> PostService:
    return PostService(store, resolver, default_alt=settings.default_image_alt)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _store_uploads(files: list[UploadFile] | None, storage: StorageService) -> list[UploadedFile]:
    """Persist uploaded files, rolling back the batch if any of them is rejected."""
    stored: list[UploadedFile] = []
    for upload in files or []:
        if not upload.filename:
            continue
        data = await upload.read()
        try:
            stored.append(storage.save_upload(data, upload.filename, content_type=upload.content_type))
        except ValueError as exc:
            logger.info("Rejected upload %s: %s", upload.filename, exc)
            _discard_uploads(stored, storage)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
    return stored


def _discard_uploads(uploads: list[UploadedFile], storage: StorageService) -> None:
    for saved in uploads:
        storage.delete_upload(saved.stored_filename)


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


@router.get("")
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.posts_page_size, ge=1, le=100),
    category: Optional[PostCategory] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    authorised: bool = Depends(optional_api_token),
    store: FirebaseDB = Depends(get_post_store),
):
    # drafts are only listed for token holders
    posts, total = store.list_posts(
        page=page,
        limit=limit,
        category=category,
        tag=tag,
        search=search,
        published_only=not authorised,
    )
    return {
        "success": True,
        "count": len(posts),
        "pagination": {
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
            "total": total,
        },
        "data": [post.model_dump(mode="json", exclude_none=True) for post in posts],
    }


@router.post("", status_code=201)
async def create_post(
    title: str = Form(..., max_length=100),
    content: str = Form(...),
    category: Optional[PostCategory] = Form(None),
    tags: Optional[str] = Form(None),
    published: Optional[str] = Form(None),
    featured: bool = Form(False),
    summary: Optional[str] = Form(None),
    publish_date: Optional[datetime] = Form(None, alias="publishDate"),
    thumbnail_index: Optional[str] = Form(None, alias="thumbnailIndex"),
    images: Optional[List[UploadFile]] = File(None),
    author_id: str = Depends(require_api_token),
    service: PostService = Depends(get_post_service),
    storage: StorageService = Depends(get_storage_service),
):
    uploads = await _store_uploads(images, storage)
    try:
        post, result = service.create_post(
            title=title,
            content=content,
            author_id=author_id,
            uploads=uploads,
            category=category,
            tags=tags,
            published=published,
            featured=featured,
            summary=summary,
            publish_date=publish_date,
            thumbnail_index=thumbnail_index,
        )
    except (ValidationError, ValueError) as exc:
        _discard_uploads(uploads, storage)
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "success": True,
        "message": "Post created successfully",
        "data": post.model_dump(mode="json", exclude_none=True),
        "warnings": list(result.warnings),
    }


@router.post("/upload-image")
async def upload_image(
    image: Optional[UploadFile] = File(None),
    _author_id: str = Depends(require_api_token),
    storage: StorageService = Depends(get_storage_service),
):
    """Image upload used by the rich-text editor; returns the URL to embed."""
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="Please upload a file")
    (stored,) = await _store_uploads([image], storage)
    logger.info("Editor image uploaded: %s", stored.stored_filename)
    return {"success": True, "location": f"/uploads/{stored.stored_filename}"}


@router.get("/slug/{slug}")
async def get_post_by_slug(slug: str, store: FirebaseDB = Depends(get_post_store)):
    post = store.get_post_by_slug(slug)
    if post is None:
        raise HTTPException(status_code=404, detail=f"Post not found with slug of {slug}")
    return {"success": True, "data": post.model_dump(mode="json", exclude_none=True)}


@router.get("/{post_id}")
async def get_post(post_id: str, store: FirebaseDB = Depends(get_post_store)):
    post = store.get_post(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail=f"Post not found with id of {post_id}")
    return {"success": True, "data": post.model_dump(mode="json", exclude_none=True)}


@router.put("/{post_id}")
async def update_post(
    post_id: str,
    title: Optional[str] = Form(None, max_length=100),
    content: Optional[str] = Form(None),
    category: Optional[PostCategory] = Form(None),
    tags: Optional[str] = Form(None),
    published: Optional[str] = Form(None),
    featured: Optional[bool] = Form(None),
    summary: Optional[str] = Form(None),
    publish_date: Optional[datetime] = Form(None, alias="publishDate"),
    thumbnail_index: Optional[str] = Form(None, alias="thumbnailIndex"),
    existing_images: Optional[str] = Form(None, alias="existingImages"),
    images: Optional[List[UploadFile]] = File(None),
    _author_id: str = Depends(require_api_token),
    service: PostService = Depends(get_post_service),
    storage: StorageService = Depends(get_storage_service),
):
    try:
        retained = parse_image_list(existing_images)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    uploads = await _store_uploads(images, storage)
    try:
        post, result = service.update_post(
            post_id,
            uploads=uploads,
            title=title,
            content=content,
            category=category,
            tags=tags,
            published=published,
            featured=featured,
            summary=summary,
            publish_date=publish_date,
            thumbnail_index=thumbnail_index,
            existing_images=retained,
        )
    except PostNotFoundError as exc:
        _discard_uploads(uploads, storage)
        raise _not_found(exc) from exc
    except (ValidationError, ValueError) as exc:
        _discard_uploads(uploads, storage)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "success": True,
        "data": post.model_dump(mode="json", exclude_none=True),
        "warnings": list(result.warnings),
    }


@router.delete("/{post_id}")
async def delete_post(
    post_id: str,
    _author_id: str = Depends(require_api_token),
    store: FirebaseDB = Depends(get_post_store),
):
    try:
        store.delete_post(post_id)
    except PostNotFoundError as exc:
        raise _not_found(exc) from exc
    return {"success": True, "message": "Post deleted successfully"}


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


@router.get("/{post_id}/comments")
async def get_comments(post_id: str, store: FirebaseDB = Depends(get_post_store)):
    try:
        comments = store.list_comments(post_id)
    except PostNotFoundError as exc:
        raise _not_found(exc) from exc
    return {
        "success": True,
        "count": len(comments),
        "data": [comment.model_dump(mode="json") for comment in comments],
    }


@router.post("/{post_id}/comments", status_code=201)
async def add_comment(
    post_id: str,
    body: CommentCreate,
    author_id: str = Depends(require_api_token),
    store: FirebaseDB = Depends(get_post_store),
):
    if not body.content.strip():
        raise HTTPException(status_code=400, detail="Please provide comment content")
    try:
        comment = store.add_comment(post_id, content=body.content.strip(), author_id=author_id)
    except PostNotFoundError as exc:
        raise _not_found(exc) from exc
    return {"success": True, "data": comment.model_dump(mode="json")}


@router.put("/{post_id}/comments/{comment_id}")
async def update_comment(
    post_id: str,
    comment_id: str,
    body: CommentCreate,
    _author_id: str = Depends(require_api_token),
    store: FirebaseDB = Depends(get_post_store),
):
    if not body.content.strip():
        raise HTTPException(status_code=400, detail="Please provide comment content")
    try:
        comment = store.update_comment(post_id, comment_id, content=body.content.strip())
    except (PostNotFoundError, CommentNotFoundError) as exc:
        raise _not_found(exc) from exc
    return {"success": True, "data": comment.model_dump(mode="json")}


@router.delete("/{post_id}/comments/{comment_id}")
async def delete_comment(
    post_id: str,
    comment_id: str,
    _author_id: str = Depends(require_api_token),
    store: FirebaseDB = Depends(get_post_store),
):
    try:
        store.delete_comment(post_id, comment_id)
    except (PostNotFoundError, CommentNotFoundError) as exc:
        raise _not_found(exc) from exc
    return {"success": True, "message": "Comment removed"}
