"""Local post store and its storage backends."""

from blogstore.local.storage import FileStorage, KeyValueStorage, MemoryStorage
from blogstore.local.store import LocalPostStore, VersionMismatchPolicy

__all__ = [
    "FileStorage",
    "KeyValueStorage",
    "LocalPostStore",
    "MemoryStorage",
    "VersionMismatchPolicy",
]
