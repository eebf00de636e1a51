"""Firebase Realtime Database helper utilities.

This module wraps the CRUD operations for posts and their comments stored
under the following path structure:

/posts/{post_id}
/post_comments/{post_id}/{comment_id}

All data is validated with Pydantic models before being written or
returned.  The Admin SDK is initialised lazily on first use so importing
this module never needs credentials.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, List

import firebase_admin
from firebase_admin import credentials, db

from app.config import get_settings
from app.models import Comment, Post, PostCategory

logger = logging.getLogger(__name__)
settings = get_settings()


class PostNotFoundError(LookupError):
    def __init__(self, post_id: str) -> None:
        super().__init__(f"Post not found with id of {post_id}")
        self.post_id = post_id


class CommentNotFoundError(LookupError):
    def __init__(self, comment_id: str) -> None:
        super().__init__(f"Comment not found with id of {comment_id}")
        self.comment_id = comment_id


def _initialise_app() -> None:
    """Initialise the Firebase Admin SDK exactly once."""
    if firebase_admin._apps:  # type: ignore[attr-defined]
        return
    try:
        if settings.firebase_credentials_json:
            # Accept path or JSON string
            cred_obj: credentials.Base = (
                credentials.Certificate(settings.firebase_credentials_json)
                if settings.firebase_credentials_json.endswith(".json")
                else credentials.Certificate(json.loads(settings.firebase_credentials_json))
            )
        else:
            # Attempt default credentials (useful on Cloud Run with workload identity)
            cred_obj = credentials.ApplicationDefault()

        firebase_admin.initialize_app(cred_obj, {"databaseURL": settings.database_url})
        logger.info("Firebase Admin SDK initialised.")
    except Exception as exc:  # pragma: no cover
        logger.exception("Failed to initialise Firebase Admin SDK: %s", exc)
        raise


def _validate_post_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Validate and normalise a raw post dict, returning the JSON-ready dict."""

    post = Post.model_validate(data)
    return post.model_dump(mode="json", exclude_none=True)


def _validate_comment_dict(data: dict[str, Any]) -> dict[str, Any]:
    comment = Comment.model_validate(data)
    return comment.model_dump(mode="json")


def _timestamp(value: datetime) -> str:
    """Render a datetime the way stored documents serialise it (UTC, trailing Z)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _matches_search(data: dict[str, Any], needle: str) -> bool:
    needle = needle.lower()
    return needle in str(data.get("title", "")).lower() or needle in str(data.get("content", "")).lower()


class FirebaseDB:
    """Wrapper around Firebase Realtime Database post operations."""

    def __init__(self) -> None:
        self._root_ref = None

    @property
    def _root(self):
        if self._root_ref is None:
            _initialise_app()
            self._root_ref = db.reference("/")
        return self._root_ref

    def _posts_ref(self):
        return self._root.child("posts")

    def _comments_ref(self, post_id: str):
        return self._root.child("post_comments").child(post_id)

    # -------------------------------------------------------------------
    # Posts
    # -------------------------------------------------------------------

    def get_post(self, post_id: str, *, as_dict: bool = False) -> Post | dict | None:
        data = self._posts_ref().child(post_id).get()
        if data is None:
            return None
        validated = _validate_post_dict(data)
        return validated if as_dict else Post.model_validate(validated)

    def get_post_by_slug(self, slug: str, *, as_dict: bool = False) -> Post | dict | None:
        raw_items = self._posts_ref().order_by_child("slug").equal_to(slug).limit_to_first(1).get() or {}
        for data in raw_items.values():
            validated = _validate_post_dict(data)
            return validated if as_dict else Post.model_validate(validated)
        return None

    def list_posts(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        category: PostCategory | str | None = None,
        tag: str | None = None,
        search: str | None = None,
        published_only: bool = True,
    ) -> tuple[List[Post], int]:
        """Return one page of posts, newest first, and the total match count."""
        raw_items = self._posts_ref().order_by_child("created_at").get() or {}
        items: list[dict[str, Any]] = list(raw_items.values())

        # In-Python filtering
        if published_only:
            items = [i for i in items if i.get("published", False)]
        if category is not None:
            wanted = category.value if isinstance(category, PostCategory) else category
            items = [i for i in items if i.get("category") == wanted]
        if tag:
            items = [i for i in items if tag in (i.get("tags") or [])]
        if search:
            items = [i for i in items if _matches_search(i, search)]

        items.sort(key=lambda p: p["created_at"], reverse=True)
        total = len(items)
        start = (max(page, 1) - 1) * limit
        return [Post.model_validate(i) for i in items[start:start + limit]], total

    def create_post(self, post: Post | dict[str, Any]) -> Post:
        data = post.model_dump(mode="json", exclude_none=True) if isinstance(post, Post) else dict(post)

        # push() returns a reference with a generated key
        push_ref = self._posts_ref().push()
        data["id"] = push_ref.key  # Store the generated ID inside the document
        validated = _validate_post_dict(data)
        push_ref.set(validated)
        logger.debug("Created post id=%s slug=%s", push_ref.key, validated["slug"])
        return Post.model_validate(validated)

    def update_post(self, post_id: str, changes: dict[str, Any]) -> Post:
        """Apply ``changes`` to a post. A ``None`` value deletes that field."""
        ref = self._posts_ref().child(post_id)
        current = ref.get()
        if current is None:
            raise PostNotFoundError(post_id)

        merged = {**current, **changes, "id": post_id}
        merged = {k: v for k, v in merged.items() if v is not None}
        validated = _validate_post_dict(merged)

        # update() removes keys whose value is None
        payload = {key: validated.get(key) for key in changes if key != "id"}
        ref.update(payload)
        logger.debug("Updated post id=%s fields=%s", post_id, sorted(payload))
        return Post.model_validate(validated)

    def delete_post(self, post_id: str) -> None:
        ref = self._posts_ref().child(post_id)
        if ref.get() is None:
            raise PostNotFoundError(post_id)
        ref.delete()
        self._comments_ref(post_id).delete()
        logger.debug("Deleted post id=%s", post_id)

    # -------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------

    def query_unpublished(
        self,
        *,
        start_ts: datetime | None = None,
        end_ts: datetime | None = None,
    ) -> List[Post]:
        query = self._posts_ref().order_by_child("publish_date")
        if start_ts is not None:
            query = query.start_at(_timestamp(start_ts))
        if end_ts is not None:
            query = query.end_at(_timestamp(end_ts))

        raw_items = query.get() or {}
        items = [i for i in raw_items.values() if not i.get("published", False)]
        items.sort(key=lambda p: p["publish_date"])
        return [Post.model_validate(i) for i in items]

    def publish_due_posts(self, now: datetime | None = None) -> List[Post]:
        now = now or datetime.now(timezone.utc)
        due = self.query_unpublished(end_ts=now)
        if not due:
            return []
        self._posts_ref().update({f"{post.id}/published": True for post in due})
        logger.info("Published %d scheduled post(s) at %s", len(due), now.isoformat())
        return [post.model_copy(update={"published": True}) for post in due]

    # -------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------

    def list_comments(self, post_id: str) -> List[Comment]:
        if self._posts_ref().child(post_id).get() is None:
            raise PostNotFoundError(post_id)
        raw_items = self._comments_ref(post_id).get() or {}
        comments = [Comment.model_validate(_validate_comment_dict(i)) for i in raw_items.values()]
        # newest first
        comments.sort(key=lambda c: c.created_at, reverse=True)
        return comments

    def add_comment(self, post_id: str, *, content: str, author_id: str) -> Comment:
        if self._posts_ref().child(post_id).get() is None:
            raise PostNotFoundError(post_id)
        push_ref = self._comments_ref(post_id).push()
        data = _validate_comment_dict(
            {
                "id": push_ref.key,
                "post_id": post_id,
                "content": content,
                "author_id": author_id,
                "created_at": datetime.now(timezone.utc),
            }
        )
        push_ref.set(data)
        logger.debug("Added comment id=%s to post_id=%s", push_ref.key, post_id)
        return Comment.model_validate(data)

    def get_comment(self, post_id: str, comment_id: str) -> Comment | None:
        data = self._comments_ref(post_id).child(comment_id).get()
        if data is None:
            return None
        return Comment.model_validate(_validate_comment_dict(data))

    def update_comment(self, post_id: str, comment_id: str, *, content: str) -> Comment:
        if self._posts_ref().child(post_id).get() is None:
            raise PostNotFoundError(post_id)
        comment = self.get_comment(post_id, comment_id)
        if comment is None:
            raise CommentNotFoundError(comment_id)
        data = _validate_comment_dict({**comment.model_dump(), "content": content})
        self._comments_ref(post_id).child(comment_id).update({"content": data["content"]})
        logger.debug("Updated comment id=%s on post_id=%s", comment_id, post_id)
        return Comment.model_validate(data)

    def delete_comment(self, post_id: str, comment_id: str) -> None:
        if self._posts_ref().child(post_id).get() is None:
            raise PostNotFoundError(post_id)
        if self.get_comment(post_id, comment_id) is None:
            raise CommentNotFoundError(comment_id)
        self._comments_ref(post_id).child(comment_id).delete()
        logger.debug("Deleted comment id=%s from post_id=%s", comment_id, post_id)


# Instantiate a singleton for app-wide reuse
firebase_db = FirebaseDB()


def get_post_store() -> FirebaseDB:
    """FastAPI dependency returning the shared store."""
    return firebase_db
