"""Backend-selecting post adapter.

Callers talk to :class:`PostAdapter` only.  It picks the local or the
remote store from flags resolved once at start-up, maps every record to
the canonical :class:`~blogstore.posts.models.Post`, falls back to the
local store when a remote *read* fails (if allowed) and refuses any
mutation without an authenticated caller.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TypeVar

from blogstore.adapter.mapping import (
    draft_to_local,
    draft_to_remote,
    local_to_post,
    remote_to_post,
    update_to_local,
    update_to_remote,
)
from blogstore.errors import BlogstoreError, NotAuthenticatedError
from blogstore.identity import Identity, IdentityProvider
from blogstore.local.store import LocalPostStore
from blogstore.posts.models import Post, PostDraft, PostStats, PostUpdate
from blogstore.remote.store import RemotePostStore
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Backend(StrEnum):
    LOCAL = "local"
    REMOTE = "remote"


class BackendInfo(BaseModel):
    backend: Backend
    remote_configured: bool
    fallback_enabled: bool


class PostAdapter:
    """Single entry point over the local and remote post stores.

    Args:
        local: Local store; also the fallback target for remote reads.
        remote: Remote store, or ``None`` when no remote is configured.
        identity: Provider consulted before every mutation.
        use_remote: Route operations to the remote store.
        fallback_to_local: Serve failed remote reads from the local store.
    """

    def __init__(
        self,
        local: LocalPostStore,
        remote: RemotePostStore | None,
        identity: IdentityProvider,
        *,
        use_remote: bool = False,
        fallback_to_local: bool = True,
    ) -> None:
        if use_remote and remote is None:
            raise ValueError("use_remote requires a remote store")
        self._local = local
        self._remote = remote.strict() if remote is not None else None
        self._identity = identity
        self._use_remote = use_remote
        self._fallback = fallback_to_local

    @property
    def backend(self) -> Backend:
        return Backend.REMOTE if self._use_remote else Backend.LOCAL

    def backend_info(self) -> BackendInfo:
        return BackendInfo(
            backend=self.backend,
            remote_configured=self._remote is not None,
            fallback_enabled=self._fallback,
        )

    # ── Private helpers ──────────────────────────────────────────

    async def _require_identity(self, action: str) -> Identity:
        identity = await self._identity.current_identity()
        if identity is None:
            logger.warning("Rejected %s: no authenticated caller", action)
            raise NotAuthenticatedError(f"{action} requires an authenticated caller")
        return identity

    async def _read(
        self,
        label: str,
        remote_read: Callable[[RemotePostStore], Awaitable[T]],
        local_read: Callable[[LocalPostStore], T],
        default: T,
    ) -> T:
        """Run a read on the selected backend, applying the fallback policy."""
        if self._remote is None or not self._use_remote:
            return local_read(self._local)
        try:
            return await remote_read(self._remote)
        except BlogstoreError as exc:
            if self._fallback:
                logger.warning("Remote %s failed (%s); falling back to local store", label, exc)
                return local_read(self._local)
            logger.error("Remote %s failed: %s", label, exc)
            return default

    async def _write(
        self,
        label: str,
        remote_write: Callable[[RemotePostStore], Awaitable[T]],
        local_write: Callable[[LocalPostStore], T],
        default: T,
    ) -> T:
        """Run a write on the selected backend; never falls back."""
        if self._remote is None or not self._use_remote:
            return local_write(self._local)
        try:
            return await remote_write(self._remote)
        except BlogstoreError as exc:
            logger.error("Remote %s failed: %s", label, exc)
            return default

    # ── Reads ────────────────────────────────────────────────────

    async def load_posts(self) -> list[Post]:
        async def remote(store: RemotePostStore) -> list[Post]:
            return [remote_to_post(r) for r in await store.load()]

        return await self._read(
            "load", remote, lambda store: [local_to_post(p) for p in store.load()], []
        )

    async def load_published(self) -> list[Post]:
        async def remote(store: RemotePostStore) -> list[Post]:
            return [remote_to_post(r) for r in await store.load_published()]

        return await self._read(
            "load published",
            remote,
            lambda store: [local_to_post(p) for p in store.load_published()],
            [],
        )

    async def get_by_id(self, post_id: int) -> Post | None:
        async def remote(store: RemotePostStore) -> Post | None:
            row = await store.get_by_id(post_id)
            return remote_to_post(row) if row else None

        def local(store: LocalPostStore) -> Post | None:
            post = store.get_by_id(post_id)
            return local_to_post(post) if post else None

        return await self._read("get by id", remote, local, None)

    async def get_by_slug(self, slug: str) -> Post | None:
        async def remote(store: RemotePostStore) -> Post | None:
            row = await store.get_by_slug(slug)
            return remote_to_post(row) if row else None

        def local(store: LocalPostStore) -> Post | None:
            post = store.get_by_slug(slug)
            return local_to_post(post) if post else None

        return await self._read("get by slug", remote, local, None)

    async def load_by_category(self, category: str | None) -> list[Post]:
        async def remote(store: RemotePostStore) -> list[Post]:
            return [remote_to_post(r) for r in await store.load_by_category(category)]

        return await self._read(
            "load by category",
            remote,
            lambda store: [local_to_post(p) for p in store.load_by_category(category)],
            [],
        )

    async def search(self, term: str) -> list[Post]:
        async def remote(store: RemotePostStore) -> list[Post]:
            return [remote_to_post(r) for r in await store.search(term)]

        return await self._read(
            "search", remote, lambda store: [local_to_post(p) for p in store.search(term)], []
        )

    async def stats(self) -> PostStats:
        async def remote(store: RemotePostStore) -> PostStats:
            return await store.stats()

        return await self._read("stats", remote, lambda store: store.stats(), PostStats())

    async def export(self) -> str:
        async def remote(store: RemotePostStore) -> str:
            return await store.export()

        return await self._read("export", remote, lambda store: store.export(), "[]")

    # ── Mutations ────────────────────────────────────────────────

    async def add(self, draft: PostDraft) -> Post | None:
        """Create a post; raises :class:`NotAuthenticatedError` without a caller."""
        await self._require_identity("add")

        async def remote(store: RemotePostStore) -> Post | None:
            row = await store.add(draft_to_remote(draft))
            return remote_to_post(row) if row else None

        def local(store: LocalPostStore) -> Post | None:
            post = store.add(draft_to_local(draft))
            return local_to_post(post) if post else None

        return await self._write("add", remote, local, None)

    async def update(self, post_id: int, update: PostUpdate) -> Post | None:
        await self._require_identity("update")

        async def remote(store: RemotePostStore) -> Post | None:
            row = await store.update(post_id, update_to_remote(update))
            return remote_to_post(row) if row else None

        def local(store: LocalPostStore) -> Post | None:
            post = store.update(post_id, update_to_local(update))
            return local_to_post(post) if post else None

        return await self._write("update", remote, local, None)

    async def delete(self, post_id: int) -> bool:
        await self._require_identity("delete")

        async def remote(store: RemotePostStore) -> bool:
            return await store.delete(post_id)

        return await self._write("delete", remote, lambda store: store.delete(post_id), False)

    async def import_posts(self, text: str) -> bool:
        await self._require_identity("import")

        async def remote(store: RemotePostStore) -> bool:
            return await store.import_posts(text)

        return await self._write(
            "import", remote, lambda store: store.import_posts(text), False
        )

    async def clear(self) -> bool:
        await self._require_identity("clear")

        async def remote(store: RemotePostStore) -> bool:
            return await store.clear_all()

        return await self._write("clear", remote, lambda store: store.clear(), False)
