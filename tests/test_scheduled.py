"""
Tests for the scheduled publishing endpoints.
"""
from datetime import datetime, timedelta, timezone

from app.models import Post

SCHEDULER_HEADERS = {"Scheduler-Token": "scheduler-token"}


def scheduled_post(store, slug, publish_date, published=False):
    now = datetime.now(timezone.utc)
    return store.create_post(
        Post(
            id="",
            title=slug.title(),
            slug=slug,
            content="<p>Scheduled</p>",
            author_id="admin",
            published=published,
            publish_date=publish_date,
            created_at=now,
            updated_at=now,
        )
    )


def test_publish_requires_scheduler_token(client):
    assert client.post("/scheduled/publish").status_code == 403
    assert client.post("/scheduled/publish", headers={"Scheduler-Token": "wrong"}).status_code == 403


def test_publish_with_nothing_due(client, store):
    scheduled_post(store, "future", datetime.now(timezone.utc) + timedelta(days=2))

    body = client.post("/scheduled/publish", headers=SCHEDULER_HEADERS).json()

    assert body == {"success": True, "count": 0, "message": "No posts to publish"}


def test_publish_due_posts(client, store):
    due = scheduled_post(store, "due", datetime.now(timezone.utc) - timedelta(minutes=5))
    future = scheduled_post(store, "future", datetime.now(timezone.utc) + timedelta(days=2))

    body = client.post("/scheduled/publish", headers=SCHEDULER_HEADERS).json()

    assert body["count"] == 1
    assert body["data"] == [{"id": due.id, "slug": "due", "title": "Due"}]
    assert store.get_post(due.id).published is True
    assert store.get_post(future.id).published is False


def test_posts_scheduled_for_today(client, store):
    now = datetime.now(timezone.utc)
    today = scheduled_post(store, "today", now)
    scheduled_post(store, "next-week", now + timedelta(days=7))
    scheduled_post(store, "live", now, published=True)

    body = client.get("/scheduled/today", headers=SCHEDULER_HEADERS).json()

    assert body["count"] == 1
    assert body["data"][0]["id"] == today.id
