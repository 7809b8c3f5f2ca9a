"""Backup documents for the local collection and where they get delivered.

A backup is ``{timestamp, version, posts}`` JSON.  The engine persists it
in local storage and hands the same bytes to an :class:`ArtifactSink`;
what the sink does with them (write a file, offer a download) is not the
engine's concern.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol

from blogstore.local.store import SCHEMA_VERSION, LocalPostStore
from blogstore.posts.models import LocalPost
from blogstore.posts.payloads import dump_posts
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class BackupDocument(BaseModel):
    timestamp: str
    version: str = SCHEMA_VERSION
    posts: list[LocalPost] = Field(default_factory=list)


def build_backup(posts: list[LocalPost], now: datetime) -> str:
    """Serialise *posts* into a backup document."""
    document = BackupDocument(timestamp=now.isoformat(), posts=posts)
    return document.model_dump_json(indent=2, by_alias=True)


def backup_filename(now: datetime) -> str:
    return f"blogstore-backup-{now.date().isoformat()}.json"


def collection_digest(posts: list[LocalPost]) -> str:
    """Fingerprint of *posts*, used to tell whether the collection changed."""
    return hashlib.sha256(dump_posts(posts).encode("utf-8")).hexdigest()


class ArtifactSink(Protocol):
    """Receives finished artifacts as raw bytes."""

    def deliver(self, filename: str, data: bytes) -> None: ...


class DirectoryArtifactSink:
    """Writes each artifact into *directory*."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def deliver(self, filename: str, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / filename
        path.write_bytes(data)
        logger.info("Wrote backup artifact %s", path)


class MemoryArtifactSink:
    """Keeps artifacts in memory."""

    def __init__(self) -> None:
        self.artifacts: dict[str, bytes] = {}

    def deliver(self, filename: str, data: bytes) -> None:
        self.artifacts[filename] = data


def restore_from_backup(local: LocalPostStore, text: str) -> bool:
    """Replace the local collection with the posts of a backup document.

    No merge: whatever the collection held before is gone.  Returns
    ``False`` when *text* is not a valid backup.
    """
    try:
        document = BackupDocument.model_validate_json(text)
    except ValidationError as exc:
        logger.error("Invalid backup document: %s", exc)
        return False
    if not local.save(document.posts):
        return False
    logger.info(
        "Restored %d post(s) from backup taken at %s", len(document.posts), document.timestamp
    )
    return True
