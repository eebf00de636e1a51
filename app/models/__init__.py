from .image import FileLookup, ImageRef, PathResolution, ThumbnailRef
from .post import Comment, Post, PostCategory
from .reconciliation import ReconciliationResult
from .upload import UploadedFile

__all__ = [
    "Comment",
    "FileLookup",
    "ImageRef",
    "PathResolution",
    "Post",
    "PostCategory",
    "ReconciliationResult",
    "ThumbnailRef",
    "UploadedFile",
]
