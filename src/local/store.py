"""Local post store over an injected key/value storage.

The whole collection is one JSON document, read and rewritten on every
operation.  Storage faults never reach the caller: they are logged and
turned into ``[]``, ``None`` or ``False``.  :meth:`LocalPostStore.snapshot`
is the one read that lets them propagate.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from enum import StrEnum
from typing import Any

from blogstore.errors import ValidationFailure
from blogstore.local.storage import KeyValueStorage
from blogstore.posts.models import LocalPost, LocalPostDraft, LocalPostPatch, PostStats
from blogstore.posts.payloads import (
    dump_posts,
    has_required_fields,
    parse_post_array,
    read_time_of,
)
from blogstore.posts.slugs import allocate_slug
from pydantic import TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

POSTS_KEY = "blogstore_posts"
VERSION_KEY = "blogstore_version"
LAST_ID_KEY = "blogstore_last_id"
BACKUP_KEY = "blogstore_backup"
SCHEMA_VERSION = "2.1"
ALL_CATEGORIES = "all"

STORAGE_FAULTS = (OSError, ValueError, TypeError)

_PostList = TypeAdapter(list[LocalPost])


class VersionMismatchPolicy(StrEnum):
    """What ``load`` does when the stored schema marker is out of date."""

    DISCARD = "discard"
    RESHAPE = "reshape"


def sort_by_date(posts: list[LocalPost]) -> list[LocalPost]:
    """Newest first; posts sharing a date keep their relative order."""
    return sorted(posts, key=lambda p: p.date, reverse=True)


def coerce_records(raw_records: list[Any]) -> list[LocalPost]:
    """Keep the importable records of *raw_records*, dropping the rest.

    Missing slugs are synthesised from the title and any slug already
    used by an earlier record is re-allocated, so the result always has
    unique ids and slugs.
    """
    kept: list[LocalPost] = []
    slugs: dict[int, str] = {}
    for raw in raw_records:
        if not has_required_fields(raw, require_id=True):
            logger.debug("Dropping import record without id/title/content/date: %r", raw)
            continue
        record = dict(raw)
        record["slug"] = record.get("slug") or ""
        record["readTime"] = read_time_of(record)
        record.pop("read_time", None)
        try:
            post = LocalPost.model_validate(record)
        except ValidationError as exc:
            logger.debug("Dropping invalid import record %r: %s", raw.get("id"), exc)
            continue
        if post.id in slugs:
            logger.warning("Dropping import record with duplicate id %d", post.id)
            continue
        if not post.slug or post.slug in slugs.values():
            post.slug = allocate_slug(post.title, slugs)
        slugs[post.id] = post.slug
        kept.append(post)
    return kept


class LocalPostStore:
    """Versioned single-writer post collection.

    Args:
        storage: Backend holding the collection, the schema marker, the
            id high-water mark and the migration backup.
        on_version_mismatch: Policy applied on the first load when the
            stored schema marker differs from :data:`SCHEMA_VERSION`.
        today: Clock used to stamp new posts.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        on_version_mismatch: VersionMismatchPolicy = VersionMismatchPolicy.DISCARD,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._storage = storage
        self._policy = on_version_mismatch
        self._today = today
        self._schema_checked = False

    # ── Private helpers ──────────────────────────────────────────

    def _ensure_schema(self) -> None:
        if self._schema_checked:
            return
        stored = self._storage.get_item(VERSION_KEY)
        if stored != SCHEMA_VERSION:
            self._apply_version_policy(stored)
            self._storage.set_item(VERSION_KEY, SCHEMA_VERSION)
        self._schema_checked = True

    def _apply_version_policy(self, stored: str | None) -> None:
        raw = self._storage.get_item(POSTS_KEY)
        if raw is None:
            logger.info("Initialised local post store at schema %s", SCHEMA_VERSION)
            return
        if self._policy is VersionMismatchPolicy.RESHAPE:
            try:
                kept = coerce_records(parse_post_array(raw))
            except ValidationFailure:
                kept = []
            self._write(kept)
            logger.warning(
                "Local store schema %s -> %s: reshaped collection, kept %d record(s)",
                stored, SCHEMA_VERSION, len(kept),
            )
            return
        self._storage.remove_item(POSTS_KEY)
        logger.warning(
            "Local store schema %s -> %s: discarded existing collection",
            stored, SCHEMA_VERSION,
        )

    def _read(self) -> list[LocalPost]:
        """Return the stored collection; raises on storage or parse faults."""
        self._ensure_schema()
        raw = self._storage.get_item(POSTS_KEY)
        if raw is None:
            return []
        return _PostList.validate_json(raw)

    def _write(self, posts: list[LocalPost]) -> None:
        self._storage.set_item(POSTS_KEY, dump_posts(sort_by_date(posts)))

    def _last_id(self) -> int:
        raw = self._storage.get_item(LAST_ID_KEY)
        return int(raw) if raw else 0

    def _bump_last_id(self, post_id: int) -> None:
        if post_id > self._last_id():
            self._storage.set_item(LAST_ID_KEY, str(post_id))

    # ── Collection operations ────────────────────────────────────

    def load(self) -> list[LocalPost]:
        """Return every post, newest first, or ``[]`` on a storage fault."""
        try:
            return sort_by_date(self._read())
        except STORAGE_FAULTS:
            logger.error("Failed to load local posts", exc_info=True)
            return []

    def snapshot(self) -> list[LocalPost]:
        """Like :meth:`load`, but storage and parse faults propagate.

        Callers about to destroy or copy the collection use this so an
        unreadable store is never mistaken for an empty one.
        """
        return sort_by_date(self._read())

    def save(self, posts: list[LocalPost]) -> bool:
        """Replace the collection with *posts*."""
        try:
            self._ensure_schema()
            self._write(posts)
            if posts:
                self._bump_last_id(max(p.id for p in posts))
        except STORAGE_FAULTS:
            logger.error("Failed to save local posts", exc_info=True)
            return False
        return True

    def clear(self, *, forget_version: bool = False) -> bool:
        """Delete every post; optionally drop the schema marker too."""
        try:
            self._storage.remove_item(POSTS_KEY)
            if forget_version:
                self._storage.remove_item(VERSION_KEY)
                self._schema_checked = False
        except OSError:
            logger.error("Failed to clear local posts", exc_info=True)
            return False
        logger.info("Cleared local post collection")
        return True

    # ── Write operations ─────────────────────────────────────────

    def add(self, draft: LocalPostDraft) -> LocalPost | None:
        """Create a post with a fresh id, a unique slug and today's date."""
        try:
            posts = self._read()
            new_id = max([p.id for p in posts] + [self._last_id()], default=0) + 1
            slug = allocate_slug(draft.title, {p.id: p.slug for p in posts})
            post = LocalPost(
                **draft.model_dump(),
                id=new_id,
                slug=slug,
                date=self._today(),
            )
            posts.insert(0, post)
            self._write(posts)
            self._bump_last_id(new_id)
        except STORAGE_FAULTS:
            logger.error("Failed to add local post %r", draft.title, exc_info=True)
            return None
        logger.debug("Added local post %d (%s)", post.id, post.slug)
        return post

    def update(self, post_id: int, patch: LocalPostPatch) -> LocalPost | None:
        """Merge the set fields of *patch* into post *post_id*.

        A changed title re-allocates the slug, ignoring the post's own
        current slug.  Returns ``None`` when the post does not exist.
        """
        try:
            posts = self._read()
            index = next((i for i, p in enumerate(posts) if p.id == post_id), None)
            if index is None:
                return None
            current = posts[index]
            changes = patch.model_dump(exclude_unset=True)
            updated = current.model_copy(update=changes)
            if patch.title is not None and patch.title != current.title:
                updated.slug = allocate_slug(
                    patch.title, {p.id: p.slug for p in posts}, exclude_id=post_id
                )
            posts[index] = LocalPost.model_validate(updated.model_dump())
            self._write(posts)
        except STORAGE_FAULTS:
            logger.error("Failed to update local post %d", post_id, exc_info=True)
            return None
        return posts[index]

    def delete(self, post_id: int) -> bool:
        """Hard-delete a post; ``False`` when it does not exist."""
        try:
            posts = self._read()
            remaining = [p for p in posts if p.id != post_id]
            if len(remaining) == len(posts):
                return False
            self._write(remaining)
        except STORAGE_FAULTS:
            logger.error("Failed to delete local post %d", post_id, exc_info=True)
            return False
        return True

    # ── Read operations ──────────────────────────────────────────

    def get_by_id(self, post_id: int) -> LocalPost | None:
        return next((p for p in self.load() if p.id == post_id), None)

    def get_by_slug(self, slug: str) -> LocalPost | None:
        return next((p for p in self.load() if p.slug == slug), None)

    def load_published(self) -> list[LocalPost]:
        return [p for p in self.load() if p.published]

    def load_by_category(self, category: str | None) -> list[LocalPost]:
        """Published posts in *category*; ``None`` or ``"all"`` means every one."""
        posts = self.load_published()
        if category is None or category == ALL_CATEGORIES:
            return posts
        return [p for p in posts if p.category == category]

    def search(self, term: str) -> list[LocalPost]:
        """Case-insensitive substring search over published posts."""
        posts = self.load_published()
        needle = term.strip().lower()
        if not needle:
            return posts
        return [
            p
            for p in posts
            if any(needle in field.lower() for field in (p.title, p.excerpt, p.author, p.content))
        ]

    def stats(self) -> PostStats:
        posts = self.load()
        published = [p for p in posts if p.published]
        categories: dict[str, int] = {}
        for post in published:
            categories[post.category] = categories.get(post.category, 0) + 1
        return PostStats(
            total=len(posts),
            published=len(published),
            drafts=len(posts) - len(published),
            categories=categories,
        )

    # ── Import / export ──────────────────────────────────────────

    def export(self) -> str:
        """JSON array of every post, newest first."""
        return dump_posts(self.load())

    def import_posts(self, text: str) -> bool:
        """Replace the collection with the valid records of *text*.

        Returns ``False`` when the payload is not a JSON array; invalid
        records inside a valid array are dropped.
        """
        try:
            records = coerce_records(parse_post_array(text))
        except ValidationFailure as exc:
            logger.warning("Rejected local import: %s", exc)
            return False
        logger.info("Importing %d local post(s)", len(records))
        return self.save(records)

    # ── Backup slot ──────────────────────────────────────────────

    def store_backup(self, document: str) -> bool:
        try:
            self._storage.set_item(BACKUP_KEY, document)
        except OSError:
            logger.error("Failed to persist local backup", exc_info=True)
            return False
        return True

    def load_backup(self) -> str | None:
        try:
            return self._storage.get_item(BACKUP_KEY)
        except OSError:
            logger.error("Failed to read local backup", exc_info=True)
            return None

