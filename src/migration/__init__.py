"""Backup-guarded migration from the local to the remote store."""

from blogstore.migration.backup import (
    ArtifactSink,
    DirectoryArtifactSink,
    MemoryArtifactSink,
    restore_from_backup,
)
from blogstore.migration.engine import (
    MigrationEngine,
    MigrationResult,
    MigrationState,
    clear_local_after_migration,
)

__all__ = [
    "ArtifactSink",
    "DirectoryArtifactSink",
    "MemoryArtifactSink",
    "MigrationEngine",
    "MigrationResult",
    "MigrationState",
    "clear_local_after_migration",
    "restore_from_backup",
]
