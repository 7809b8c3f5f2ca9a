"""Wire stores, identity and flags from a :class:`BlogstoreConfig`."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
from blogstore.adapter.service import PostAdapter
from blogstore.config import BlogstoreConfig
from blogstore.identity import (
    Identity,
    IdentityProvider,
    StaticIdentityProvider,
    SupabaseIdentityProvider,
)
from blogstore.local.storage import FileStorage
from blogstore.local.store import LocalPostStore
from blogstore.remote.client import PostgrestClient
from blogstore.remote.store import RemotePostStore

logger = logging.getLogger(__name__)


def build_local_store(config: BlogstoreConfig) -> LocalPostStore:
    return LocalPostStore(
        FileStorage(Path(config.storage.directory)),
        on_version_mismatch=config.storage.on_version_mismatch,
    )


def build_remote_store(
    config: BlogstoreConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RemotePostStore | None:
    """Return a remote store, or ``None`` when ``[remote]`` is incomplete."""
    remote = config.remote
    if not remote.is_configured:
        return None
    client = PostgrestClient(
        remote.url,
        remote.anon_key,
        table=remote.table,
        access_token=remote.access_token,
        transport=transport,
    )
    return RemotePostStore(client, max_slug_attempts=remote.max_slug_attempts)


def build_identity(
    config: BlogstoreConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> IdentityProvider:
    """Session token first, then a configured local operator, else nobody."""
    remote = config.remote
    if remote.is_configured and remote.access_token:
        return SupabaseIdentityProvider(
            remote.url, remote.anon_key, remote.access_token, transport=transport
        )
    if config.auth.operator:
        return StaticIdentityProvider(Identity(id=config.auth.operator))
    return StaticIdentityProvider(None)


def build_adapter(
    config: BlogstoreConfig,
    *,
    local: LocalPostStore | None = None,
    remote: RemotePostStore | None = None,
    identity: IdentityProvider | None = None,
) -> PostAdapter:
    """Build the adapter; stores and identity default to config-built ones."""
    local = local or build_local_store(config)
    remote = remote or build_remote_store(config)
    use_remote = config.use_remote and remote is not None
    if config.use_remote and remote is None:
        logger.warning("Remote backend requested but [remote] is not configured; using local")
    return PostAdapter(
        local,
        remote,
        identity or build_identity(config),
        use_remote=use_remote,
        fallback_to_local=config.fallback_to_local,
    )
