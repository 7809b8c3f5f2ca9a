"""Remote post store over a PostgREST table."""

from blogstore.remote.client import PostgrestClient
from blogstore.remote.store import RemotePostStore

__all__ = ["PostgrestClient", "RemotePostStore"]
