"""Post models — the canonical shape plus one variant per backend.

The local collection serialises the read-time field as ``readTime`` while
the remote table calls the column ``read_time``.  Callers only ever see
:class:`Post`; conversion between the shapes lives in
``blogstore.adapter.mapping``.
"""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_READ_TIME = "5 min"


# ── Canonical shapes ─────────────────────────────────────────────


class Post(BaseModel):
    """A blog post as seen by callers of the adapter."""

    id: int
    title: str
    slug: str
    excerpt: str = ""
    content: str
    image: str = ""
    category: str = ""
    date: dt.date
    author: str = ""
    read_time: str = ""
    published: bool = False
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class PostDraft(BaseModel):
    """Fields supplied by the caller when creating a post."""

    title: str
    content: str
    excerpt: str = ""
    image: str = ""
    category: str = ""
    author: str = ""
    read_time: str = ""
    published: bool = False


class PostUpdate(BaseModel):
    """Partial update; only fields explicitly set are applied."""

    title: str | None = None
    excerpt: str | None = None
    content: str | None = None
    image: str | None = None
    category: str | None = None
    date: dt.date | None = None
    author: str | None = None
    read_time: str | None = None
    published: bool | None = None


class PostStats(BaseModel):
    """Collection counters; ``categories`` counts published posts."""

    total: int = 0
    published: int = 0
    drafts: int = 0
    categories: dict[str, int] = Field(default_factory=dict)


# ── Local variant ────────────────────────────────────────────────


class LocalPost(BaseModel):
    """A record of the local collection (``readTime`` on disk)."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    slug: str
    excerpt: str = ""
    content: str
    image: str = ""
    category: str = ""
    date: dt.date
    author: str = ""
    read_time: str = Field(default="", alias="readTime")
    published: bool = False


class LocalPostDraft(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    content: str
    excerpt: str = ""
    image: str = ""
    category: str = ""
    author: str = ""
    read_time: str = Field(default="", alias="readTime")
    published: bool = False


class LocalPostPatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    excerpt: str | None = None
    content: str | None = None
    image: str | None = None
    category: str | None = None
    date: dt.date | None = None
    author: str | None = None
    read_time: str | None = Field(default=None, alias="readTime")
    published: bool | None = None


# ── Remote variant ───────────────────────────────────────────────


class RemotePostRow(BaseModel):
    """A row of the remote ``blog_posts`` table."""

    id: int
    title: str
    slug: str
    excerpt: str = ""
    content: str
    image: str | None = None
    category: str = ""
    date: dt.date
    author: str = ""
    read_time: str = ""
    published: bool = False
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class RemotePostInsert(BaseModel):
    """Insert payload; the store adds ``slug`` and ``date``."""

    title: str
    content: str
    excerpt: str = ""
    image: str | None = None
    category: str = ""
    author: str = ""
    read_time: str = DEFAULT_READ_TIME
    published: bool = False


class RemotePostPatch(BaseModel):
    title: str | None = None
    excerpt: str | None = None
    content: str | None = None
    image: str | None = None
    category: str | None = None
    date: dt.date | None = None
    author: str | None = None
    read_time: str | None = None
    published: bool | None = None
