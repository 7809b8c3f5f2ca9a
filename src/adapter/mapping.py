"""Explicit conversions between the canonical post and the backend variants.

This is the only place that knows the local collection says ``readTime``
and stores an empty image as ``""`` while the remote table says
``read_time`` and allows ``null``.
"""

from __future__ import annotations

from blogstore.posts.models import (
    DEFAULT_READ_TIME,
    LocalPost,
    LocalPostDraft,
    LocalPostPatch,
    Post,
    PostDraft,
    PostUpdate,
    RemotePostInsert,
    RemotePostPatch,
    RemotePostRow,
)
from blogstore.posts.reading_time import format_reading_time

# ── Backend → canonical ──────────────────────────────────────────


def local_to_post(local: LocalPost) -> Post:
    return Post(
        id=local.id,
        title=local.title,
        slug=local.slug,
        excerpt=local.excerpt,
        content=local.content,
        image=local.image,
        category=local.category,
        date=local.date,
        author=local.author,
        read_time=local.read_time,
        published=local.published,
    )


def remote_to_post(row: RemotePostRow) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        slug=row.slug,
        excerpt=row.excerpt,
        content=row.content,
        image=row.image or "",
        category=row.category,
        date=row.date,
        author=row.author,
        read_time=row.read_time,
        published=row.published,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ── Canonical → backend ──────────────────────────────────────────


def draft_to_local(draft: PostDraft) -> LocalPostDraft:
    return LocalPostDraft(
        title=draft.title,
        content=draft.content,
        excerpt=draft.excerpt,
        image=draft.image,
        category=draft.category,
        author=draft.author,
        read_time=draft.read_time or DEFAULT_READ_TIME,
        published=draft.published,
    )


def draft_to_remote(draft: PostDraft) -> RemotePostInsert:
    return RemotePostInsert(
        title=draft.title,
        content=draft.content,
        excerpt=draft.excerpt,
        image=draft.image,
        category=draft.category,
        author=draft.author,
        read_time=draft.read_time or DEFAULT_READ_TIME,
        published=draft.published,
    )


def update_to_local(update: PostUpdate) -> LocalPostPatch:
    """Carry over only the fields the caller set to a value."""
    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    return LocalPostPatch(**changes)


def update_to_remote(update: PostUpdate) -> RemotePostPatch:
    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    return RemotePostPatch(**changes)


def local_to_remote_insert(local: LocalPost) -> RemotePostInsert:
    """Migration payload; computes a read time when the record has none."""
    return RemotePostInsert(
        title=local.title,
        content=local.content,
        excerpt=local.excerpt,
        image=local.image,
        category=local.category,
        author=local.author,
        read_time=local.read_time or format_reading_time(local.content),
        published=local.published,
    )
