"""Post domain — canonical models, backend variants and slug allocation."""

from blogstore.posts.models import (
    LocalPost,
    Post,
    PostDraft,
    PostStats,
    PostUpdate,
    RemotePostRow,
)
from blogstore.posts.slugs import allocate_slug, slugify

__all__ = [
    "LocalPost",
    "Post",
    "PostDraft",
    "PostStats",
    "PostUpdate",
    "RemotePostRow",
    "allocate_slug",
    "slugify",
]
