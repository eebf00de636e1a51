"""Scheduled endpoints for publishing posts whose publish date has passed."""
from __future__ import annotations

import hmac
import logging
from datetime import datetime, time, timezone

from fastapi import APIRouter, Depends, Header, HTTPException

from app.config import get_settings
from app.services.firebase_db import FirebaseDB, get_post_store

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


def _check_token(header_token: str | None):
    if (
        not settings.scheduler_token
        or header_token is None
        or not hmac.compare_digest(header_token.encode(), settings.scheduler_token.encode())
    ):
        raise HTTPException(status_code=403, detail="Forbidden")


@router.post("/scheduled/publish")
async def publish_scheduled_posts(
    scheduler_token: str | None = Header(None, alias="Scheduler-Token"),
    store: FirebaseDB = Depends(get_post_store),
):
    _check_token(scheduler_token)
    published = store.publish_due_posts(datetime.now(timezone.utc))
    if not published:
        return {"success": True, "count": 0, "message": "No posts to publish"}

    logger.info("Scheduled run published %d post(s)", len(published))
    return {
        "success": True,
        "count": len(published),
        "data": [{"id": post.id, "slug": post.slug, "title": post.title} for post in published],
        "message": f"Published {len(published)} scheduled posts",
    }


@router.get("/scheduled/today")
async def posts_scheduled_for_today(
    scheduler_token: str | None = Header(None, alias="Scheduler-Token"),
    store: FirebaseDB = Depends(get_post_store),
):
    _check_token(scheduler_token)
    today = datetime.now(timezone.utc).date()
    posts = store.query_unpublished(
        start_ts=datetime.combine(today, time.min, tzinfo=timezone.utc),
        end_ts=datetime.combine(today, time.max, tzinfo=timezone.utc),
    )
    return {
        "success": True,
        "count": len(posts),
        "data": [post.model_dump(mode="json", exclude_none=True) for post in posts],
    }
