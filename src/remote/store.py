"""Remote post store over the PostgREST table client.

Default instances log failures and return ``[]``, ``None`` or ``False``.
:meth:`RemotePostStore.strict` gives a view over the same client that
raises instead, for callers that must tell "failed" from "empty".
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, TypeVar

from blogstore.errors import (
    BackendUnavailableError,
    BlogstoreError,
    RemoteRequestError,
    SlugConflictError,
    ValidationFailure,
)
from blogstore.posts.models import (
    DEFAULT_READ_TIME,
    PostStats,
    RemotePostInsert,
    RemotePostPatch,
    RemotePostRow,
)
from blogstore.posts.payloads import (
    dump_posts,
    has_required_fields,
    parse_post_array,
    read_time_of,
)
from blogstore.posts.slugs import candidate_slugs, slugify
from blogstore.remote.client import Filter, PostgrestClient, eq, ilike_any, neq
from pydantic import TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_SLUG_ATTEMPTS = 5
ALL_CATEGORIES = "all"
LISTING_ORDER = "date.desc,id.desc"
SEARCH_COLUMNS = ["title", "excerpt", "content"]

# Ids start at 1, so "id <> -1" matches every row.
_EVERY_ROW: Filter = ("id", neq(-1))

_RowList = TypeAdapter(list[RemotePostRow])
_Date = TypeAdapter(date)


def _parse_rows(data: list[dict[str, Any]]) -> list[RemotePostRow]:
    try:
        return _RowList.validate_python(data)
    except ValidationError as exc:
        raise BackendUnavailableError(f"unexpected row shape from remote table: {exc}") from exc


class RemotePostStore:
    """Async post collection backed by a remote table.

    Args:
        client: Table client.
        max_slug_attempts: Conflicting writes tolerated per slug
            allocation before :class:`SlugConflictError` is surfaced.
        strict: Raise :class:`BlogstoreError` subclasses instead of
            returning safe defaults.
        today: Clock used to stamp new posts.
    """

    def __init__(
        self,
        client: PostgrestClient,
        *,
        max_slug_attempts: int = DEFAULT_MAX_SLUG_ATTEMPTS,
        strict: bool = False,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._client = client
        self._max_slug_attempts = max_slug_attempts
        self._strict = strict
        self._today = today

    def strict(self) -> RemotePostStore:
        """Return a view over the same client that raises on failure."""
        return RemotePostStore(
            self._client,
            max_slug_attempts=self._max_slug_attempts,
            strict=True,
            today=self._today,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _guard(self, label: str, operation: Awaitable[T], default: T) -> T:
        try:
            return await operation
        except BlogstoreError as exc:
            if self._strict:
                raise
            logger.error("Remote %s failed: %s", label, exc)
            return default

    async def _select_posts(self, filters: list[Filter] | None = None) -> list[RemotePostRow]:
        rows = await self._client.select(filters=filters, order=LISTING_ORDER)
        return _parse_rows(rows)

    async def _select_one(self, filters: list[Filter]) -> RemotePostRow | None:
        rows = _parse_rows(await self._client.select(filters=filters, limit=1))
        return rows[0] if rows else None

    # ── Slug allocation ──────────────────────────────────────────

    async def _slug_taken(self, slug: str, exclude_id: int | None) -> bool:
        filters: list[Filter] = [("slug", eq(slug))]
        if exclude_id is not None:
            filters.append(("id", neq(exclude_id)))
        rows = await self._client.select(columns="id", filters=filters, limit=1)
        return bool(rows)

    async def _write_with_slug(
        self,
        title: str,
        write: Callable[[str], Awaitable[T]],
        exclude_id: int | None = None,
    ) -> T:
        """Look up a free slug, then write; retry on a unique violation.

        The lookup and the write are separate round trips, so another
        writer can claim the slug in between.  Such a conflict moves on to
        the next candidate, at most ``max_slug_attempts`` times.
        """
        base = slugify(title)
        candidates = candidate_slugs(base)
        conflicts = 0
        while True:
            candidate = next(candidates)
            if await self._slug_taken(candidate, exclude_id):
                continue
            try:
                return await write(candidate)
            except RemoteRequestError as exc:
                if not exc.is_unique_violation:
                    raise
                conflicts += 1
                logger.warning(
                    "Slug '%s' claimed concurrently (conflict %d/%d)",
                    candidate, conflicts, self._max_slug_attempts,
                )
                if conflicts >= self._max_slug_attempts:
                    raise SlugConflictError(base, conflicts) from exc

    # ── Read operations ──────────────────────────────────────────

    async def load(self) -> list[RemotePostRow]:
        return await self._guard("load", self._select_posts(), [])

    async def load_published(self) -> list[RemotePostRow]:
        return await self._guard(
            "load published", self._select_posts([("published", eq(True))]), []
        )

    async def get_by_id(self, post_id: int) -> RemotePostRow | None:
        return await self._guard("get by id", self._select_one([("id", eq(post_id))]), None)

    async def get_by_slug(self, slug: str) -> RemotePostRow | None:
        return await self._guard("get by slug", self._select_one([("slug", eq(slug))]), None)

    async def load_by_category(self, category: str | None) -> list[RemotePostRow]:
        filters: list[Filter] = [("published", eq(True))]
        if category is not None and category != ALL_CATEGORIES:
            filters.append(("category", eq(category)))
        return await self._guard("load by category", self._select_posts(filters), [])

    async def search(self, term: str) -> list[RemotePostRow]:
        """Server-side ``ilike`` over title, excerpt and content."""
        if not term.strip():
            return await self.load_published()
        filters = [("published", eq(True)), ilike_any(SEARCH_COLUMNS, term.strip())]
        return await self._guard("search", self._select_posts(filters), [])

    async def _stats(self) -> PostStats:
        rows = await self._client.select(columns="published,category")
        published = [r for r in rows if r.get("published")]
        categories: dict[str, int] = {}
        for row in published:
            category = row.get("category") or ""
            categories[category] = categories.get(category, 0) + 1
        return PostStats(
            total=len(rows),
            published=len(published),
            drafts=len(rows) - len(published),
            categories=categories,
        )

    async def stats(self) -> PostStats:
        return await self._guard("stats", self._stats(), PostStats())

    async def export(self) -> str:
        async def _export() -> str:
            return dump_posts(await self._select_posts())

        return await self._guard("export", _export(), "[]")

    # ── Write operations ─────────────────────────────────────────

    async def _add(self, insert: RemotePostInsert, post_date: date | None) -> RemotePostRow:
        payload = insert.model_dump(mode="json")
        payload["date"] = (post_date or self._today()).isoformat()

        async def _insert(slug: str) -> RemotePostRow:
            row = await self._client.insert({**payload, "slug": slug})
            return _parse_rows([row])[0]

        post = await self._write_with_slug(insert.title, _insert)
        logger.debug("Added remote post %d (%s)", post.id, post.slug)
        return post

    async def add(
        self, insert: RemotePostInsert, *, post_date: date | None = None
    ) -> RemotePostRow | None:
        """Insert a post under a unique slug.

        Args:
            insert: Post fields.
            post_date: Date to keep (imports, migration); defaults to today.
        """
        return await self._guard("add", self._add(insert, post_date), None)

    async def _update(self, post_id: int, patch: RemotePostPatch) -> RemotePostRow | None:
        values = patch.model_dump(mode="json", exclude_unset=True)
        filters: list[Filter] = [("id", eq(post_id))]

        async def _patch(slug: str | None = None) -> RemotePostRow | None:
            body = {**values, "slug": slug} if slug else values
            rows = _parse_rows(await self._client.update(filters, body))
            return rows[0] if rows else None

        if patch.title is not None:
            current = await self._client.select(columns="title", filters=filters, limit=1)
            if current and current[0].get("title") != patch.title:
                return await self._write_with_slug(patch.title, _patch, exclude_id=post_id)
        return await _patch()

    async def update(self, post_id: int, patch: RemotePostPatch) -> RemotePostRow | None:
        """Apply *patch*; re-allocates the slug when the title changes."""
        return await self._guard("update", self._update(post_id, patch), None)

    async def _delete(self, post_id: int) -> bool:
        return bool(await self._client.delete([("id", eq(post_id))]))

    async def delete(self, post_id: int) -> bool:
        return await self._guard("delete", self._delete(post_id), False)

    async def _clear_all(self) -> bool:
        removed = await self._client.delete([_EVERY_ROW])
        logger.info("Cleared %d remote post(s)", len(removed))
        return True

    async def clear_all(self) -> bool:
        return await self._guard("clear", self._clear_all(), False)

    async def _import(self, text: str) -> bool:
        raw_records = parse_post_array(text)
        added = 0
        last_error: BlogstoreError | None = None
        for raw in raw_records:
            if not has_required_fields(raw, require_id=False):
                continue
            try:
                post_date = _Date.validate_python(raw["date"])
                insert = RemotePostInsert(
                    title=raw["title"],
                    content=raw["content"],
                    excerpt=raw.get("excerpt") or "",
                    image=raw.get("image") or "",
                    category=raw.get("category") or "",
                    author=raw.get("author") or "",
                    read_time=read_time_of(raw) or DEFAULT_READ_TIME,
                    published=bool(raw.get("published")),
                )
            except ValidationError:
                logger.debug("Dropping invalid import record %r", raw.get("title"))
                continue
            try:
                row = await self.add(insert, post_date=post_date)
            except (BackendUnavailableError, SlugConflictError) as exc:
                logger.warning("Skipping import record %r: %s", insert.title, exc)
                last_error = exc
                continue
            if row is not None:
                added += 1
        if last_error is not None and not added:
            raise last_error
        logger.info("Imported %d of %d remote post record(s)", added, len(raw_records))
        return True

    async def import_posts(self, text: str) -> bool:
        """Add each valid record of *text*; ``False`` on a non-array payload.

        A record the backend rejects is skipped.  When every attempted
        record is rejected the last failure is handled like any other
        remote error.
        """
        try:
            return await self._guard("import", self._import(text), False)
        except ValidationFailure:
            return False
