"""One-way, backup-guarded copy of the local collection into the remote table.

States: ``IDLE → BACKING_UP → COPYING → DONE | FAILED``.  Nothing is
copied unless a backup was persisted first, posts whose title already
exists remotely (case-insensitive) are skipped, and a failed item never
stops the batch.  The engine never clears the local store on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum

from blogstore.adapter.mapping import local_to_remote_insert
from blogstore.errors import BlogstoreError
from blogstore.local.store import STORAGE_FAULTS, LocalPostStore
from blogstore.migration.backup import (
    ArtifactSink,
    backup_filename,
    build_backup,
    collection_digest,
)
from blogstore.posts.models import LocalPost
from blogstore.remote.store import RemotePostStore
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class MigrationState(StrEnum):
    IDLE = "idle"
    BACKING_UP = "backing_up"
    COPYING = "copying"
    DONE = "done"
    FAILED = "failed"


class MigrationResult(BaseModel):
    """Outcome of a migration run; partial success is ``success=False``."""

    success: bool
    state: MigrationState
    message: str
    local_posts: int = 0
    migrated_posts: int = 0
    skipped_posts: int = 0
    errors: list[str] = Field(default_factory=list)
    backup: str | None = None
    digest: str = ""


class MigrationEngine:
    """Copies local posts to the remote store.

    Args:
        local: Source store (read only, plus the backup slot).
        remote: Destination store.
        sink: Receives the backup artifact.
        clock: Timestamp source for the backup.
    """

    def __init__(
        self,
        local: LocalPostStore,
        remote: RemotePostStore,
        sink: ArtifactSink,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self._local = local
        self._remote = remote.strict()
        self._sink = sink
        self._clock = clock
        self.state = MigrationState.IDLE

    def _enter(self, state: MigrationState) -> None:
        logger.info("Migration %s -> %s", self.state, state)
        self.state = state

    def _fail(self, message: str, **counts: object) -> MigrationResult:
        self._enter(MigrationState.FAILED)
        logger.error("Migration failed: %s", message)
        return MigrationResult(success=False, state=self.state, message=message, **counts)

    # ── Phases ───────────────────────────────────────────────────

    def _back_up(self, posts: list[LocalPost]) -> str | None:
        """Persist a backup of *posts*; ``None`` when it could not be stored."""
        now = self._clock()
        try:
            document = build_backup(posts, now)
        except ValueError:
            logger.error("Failed to serialise backup", exc_info=True)
            return None
        if not self._local.store_backup(document):
            return None
        try:
            self._sink.deliver(backup_filename(now), document.encode("utf-8"))
        except OSError:
            logger.warning("Backup persisted but artifact delivery failed", exc_info=True)
        return document

    async def _copy(self, posts: list[LocalPost], backup: str) -> MigrationResult:
        digest = collection_digest(posts)
        try:
            existing = await self._remote.load()
        except BlogstoreError as exc:
            return self._fail(
                f"Could not list remote posts: {exc}",
                local_posts=len(posts),
                errors=[str(exc)],
                backup=backup,
                digest=digest,
            )
        remote_titles = {row.title.lower() for row in existing}
        if existing:
            logger.info("%d post(s) already remote; skipping title matches", len(existing))

        migrated = skipped = 0
        errors: list[str] = []
        for index, post in enumerate(posts, start=1):
            if post.title.lower() in remote_titles:
                logger.info("Skipping '%s': already present remotely", post.title)
                skipped += 1
                continue
            logger.info("Migrating post %d/%d: '%s'", index, len(posts), post.title)
            try:
                row = await self._remote.add(local_to_remote_insert(post), post_date=post.date)
            except BlogstoreError as exc:
                errors.append(f"Failed to migrate post '{post.title}': {exc}")
                continue
            if row is None:
                errors.append(f"Failed to migrate post '{post.title}'")
                continue
            migrated += 1
            logger.debug("Migrated '%s' as %s", post.title, row.slug)

        counts = {
            "local_posts": len(posts),
            "migrated_posts": migrated,
            "skipped_posts": skipped,
            "errors": errors,
            "backup": backup,
            "digest": digest,
        }
        if migrated + skipped != len(posts):
            return self._fail(
                f"Partial migration: {migrated}/{len(posts) - skipped} post(s) migrated",
                **counts,
            )
        self._enter(MigrationState.DONE)
        message = f"Migration complete: {migrated} post(s) migrated"
        if skipped:
            message += f", {skipped} already present"
        return MigrationResult(success=True, state=self.state, message=message, **counts)

    # ── Entry points ─────────────────────────────────────────────

    async def run(self) -> MigrationResult:
        """Back up the local collection, then copy it to the remote store."""
        self.state = MigrationState.IDLE
        self._enter(MigrationState.BACKING_UP)
        try:
            posts = self._local.snapshot()
        except STORAGE_FAULTS as exc:
            return self._fail(
                "Backup failed; local collection could not be read",
                errors=[f"local store unreadable: {exc}"],
            )
        backup = self._back_up(posts)
        if backup is None:
            return self._fail(
                "Backup failed; migration cancelled",
                errors=["backup could not be persisted"],
            )

        self._enter(MigrationState.COPYING)
        if not posts:
            self._enter(MigrationState.DONE)
            return MigrationResult(
                success=True,
                state=self.state,
                message="No local posts to migrate",
                backup=backup,
                digest=collection_digest(posts),
            )
        return await self._copy(posts, backup)

    async def needs_migration(self) -> bool:
        """Whether the local store holds more posts than the remote one."""
        local_count = len(self._local.load())
        try:
            remote_count = len(await self._remote.load())
        except BlogstoreError as exc:
            logger.warning("Could not count remote posts: %s", exc)
            return local_count > 0
        return local_count > remote_count


def clear_local_after_migration(local: LocalPostStore, result: MigrationResult) -> bool:
    """Clear the local collection after a completed migration.

    Refuses unless *result* is a successful ``DONE`` run and the local
    collection is still exactly the one that was backed up and copied.
    The stored backup is kept.
    """
    if not result.success or result.state != MigrationState.DONE:
        logger.warning("Refusing to clear local posts: migration did not complete")
        return False
    try:
        current = local.snapshot()
    except STORAGE_FAULTS:
        logger.error("Refusing to clear local posts: collection unreadable", exc_info=True)
        return False
    if not result.digest or collection_digest(current) != result.digest:
        logger.warning("Refusing to clear local posts: collection changed since the migration")
        return False
    return local.clear(forget_version=True)
