"""Unified configuration loaded from .blogstore.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.  The result
is resolved once at start-up; nothing re-reads it mid-session.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from blogstore.local.store import VersionMismatchPolicy
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".blogstore.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG = Path.home() / ".config" / "blogstore" / "config.toml"

_TRUTHY = ("true", "1", "yes")


class StorageSectionConfig(BaseModel):
    """[storage] section — the local store."""

    directory: str = "./.blogstore"
    on_version_mismatch: VersionMismatchPolicy = VersionMismatchPolicy.DISCARD


class RemoteSectionConfig(BaseModel):
    """[remote] section — the Supabase/PostgREST table."""

    url: str = ""
    anon_key: str = ""
    access_token: str = ""
    table: str = "blog_posts"
    max_slug_attempts: int = 5

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)


class DatabaseSectionConfig(BaseModel):
    """[database] section — backend selection.

    ``use_remote`` left unset means "use the remote store when one is
    configured".
    """

    use_remote: bool | None = None
    fallback_to_local: bool = True


class AuthSectionConfig(BaseModel):
    """[auth] section — operator identity for local-only mutations."""

    operator: str = ""


class BackupSectionConfig(BaseModel):
    """[backup] section."""

    directory: str = "./backups"


class BlogstoreConfig(BaseModel):
    """Top-level configuration model."""

    storage: StorageSectionConfig = Field(default_factory=StorageSectionConfig)
    remote: RemoteSectionConfig = Field(default_factory=RemoteSectionConfig)
    database: DatabaseSectionConfig = Field(default_factory=DatabaseSectionConfig)
    auth: AuthSectionConfig = Field(default_factory=AuthSectionConfig)
    backup: BackupSectionConfig = Field(default_factory=BackupSectionConfig)

    @property
    def use_remote(self) -> bool:
        """Resolved backend flag."""
        if self.database.use_remote is None:
            return self.remote.is_configured
        return self.database.use_remote

    @property
    def fallback_to_local(self) -> bool:
        return self.database.fallback_to_local


def load_config(path: str | Path | None = None) -> BlogstoreConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .blogstore.toml in CWD
    3. ~/.config/blogstore/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged BlogstoreConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG.exists():
            data = _load_toml(GLOBAL_CONFIG)
            logger.info("Loaded config from %s", GLOBAL_CONFIG)

    config = BlogstoreConfig.model_validate(data) if data else BlogstoreConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: BlogstoreConfig, **cli_kwargs: object) -> BlogstoreConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "data_dir": ("storage", "directory"),
        "backup_dir": ("backup", "directory"),
        "use_remote": ("database", "use_remote"),
        "fallback_to_local": ("database", "fallback_to_local"),
        "remote_url": ("remote", "url"),
        "remote_key": ("remote", "anon_key"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return BlogstoreConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: BlogstoreConfig) -> BlogstoreConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "SUPABASE_URL": ("remote", "url"),
        "SUPABASE_ANON_KEY": ("remote", "anon_key"),
        "SUPABASE_ACCESS_TOKEN": ("remote", "access_token"),
        "BLOGSTORE_DATA_DIR": ("storage", "directory"),
        "BLOGSTORE_BACKUP_DIR": ("backup", "directory"),
        "BLOGSTORE_OPERATOR": ("auth", "operator"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    for env_var, field in [
        ("BLOGSTORE_USE_REMOTE", "use_remote"),
        ("BLOGSTORE_FALLBACK_TO_LOCAL", "fallback_to_local"),
    ]:
        raw = os.environ.get(env_var)
        if raw is not None:
            data["database"][field] = raw.lower() in _TRUTHY

    return BlogstoreConfig.model_validate(data)
