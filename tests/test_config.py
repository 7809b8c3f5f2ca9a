"""Tests for src/config.py — BlogstoreConfig, TOML loading, env vars, CLI overrides."""

from unittest.mock import patch

import pytest
from blogstore.config import (
    BlogstoreConfig,
    load_config,
    merge_cli_overrides,
)
from blogstore.local.store import VersionMismatchPolicy


@pytest.fixture(autouse=True)
def _clean_env(clean_env):
    """Every test starts without blogstore env vars or a global config."""


class TestBlogstoreConfigDefaults:
    def test_default_storage(self):
        cfg = BlogstoreConfig()
        assert cfg.storage.directory == "./.blogstore"
        assert cfg.storage.on_version_mismatch is VersionMismatchPolicy.DISCARD

    def test_default_remote(self):
        cfg = BlogstoreConfig()
        assert cfg.remote.table == "blog_posts"
        assert cfg.remote.max_slug_attempts == 5
        assert cfg.remote.is_configured is False

    def test_backend_follows_remote_configuration(self):
        assert BlogstoreConfig().use_remote is False
        cfg = BlogstoreConfig.model_validate({"remote": {"url": "https://x", "anon_key": "k"}})
        assert cfg.use_remote is True

    def test_explicit_backend_flag_wins(self):
        cfg = BlogstoreConfig.model_validate(
            {"remote": {"url": "https://x", "anon_key": "k"}, "database": {"use_remote": False}}
        )
        assert cfg.use_remote is False

    def test_fallback_on_by_default(self):
        assert BlogstoreConfig().fallback_to_local is True


class TestLoadConfig:
    def test_load_from_explicit_path(self, tmp_path):
        toml_path = tmp_path / ".blogstore.toml"
        toml_path.write_text(
            '[storage]\ndirectory = "/data"\non_version_mismatch = "reshape"\n\n'
            '[remote]\nurl = "https://abc.supabase.co"\nanon_key = "anon"\n'
            "max_slug_attempts = 8\n\n"
            "[database]\nfallback_to_local = false\n"
        )
        cfg = load_config(toml_path)
        assert cfg.storage.directory == "/data"
        assert cfg.storage.on_version_mismatch is VersionMismatchPolicy.RESHAPE
        assert cfg.remote.max_slug_attempts == 8
        assert cfg.use_remote is True
        assert cfg.fallback_to_local is False

    def test_load_missing_path_returns_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "nonexistent.toml")
        assert cfg.storage.directory == "./.blogstore"

    def test_load_searches_cwd(self, tmp_path):
        (tmp_path / ".blogstore.toml").write_text('[backup]\ndirectory = "/bk"\n')
        with patch("blogstore.config.CONFIG_SEARCH_PATHS", [tmp_path]):
            cfg = load_config()
        assert cfg.backup.directory == "/bk"

    def test_invalid_toml_returns_defaults(self, tmp_path):
        toml_path = tmp_path / ".blogstore.toml"
        toml_path.write_text("this is not valid toml {{{")
        cfg = load_config(toml_path)
        assert cfg.remote.url == ""


class TestEnvVarOverrides:
    def test_supabase_env_vars(self, tmp_path, monkeypatch):
        toml_path = tmp_path / ".blogstore.toml"
        toml_path.write_text('[remote]\nurl = "from-toml"\n')
        monkeypatch.setenv("SUPABASE_URL", "from-env")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
        cfg = load_config(toml_path)
        assert cfg.remote.url == "from-env"
        assert cfg.remote.is_configured is True

    def test_boolean_flags(self, monkeypatch):
        monkeypatch.setenv("BLOGSTORE_USE_REMOTE", "yes")
        monkeypatch.setenv("BLOGSTORE_FALLBACK_TO_LOCAL", "0")
        with patch("blogstore.config.CONFIG_SEARCH_PATHS", []):
            cfg = load_config()
        assert cfg.database.use_remote is True
        assert cfg.fallback_to_local is False

    def test_operator_and_directories(self, monkeypatch):
        monkeypatch.setenv("BLOGSTORE_OPERATOR", "ana")
        monkeypatch.setenv("BLOGSTORE_DATA_DIR", "/env/data")
        monkeypatch.setenv("BLOGSTORE_BACKUP_DIR", "/env/backups")
        with patch("blogstore.config.CONFIG_SEARCH_PATHS", []):
            cfg = load_config()
        assert cfg.auth.operator == "ana"
        assert cfg.storage.directory == "/env/data"
        assert cfg.backup.directory == "/env/backups"


class TestMergeCliOverrides:
    def test_override_directories(self):
        merged = merge_cli_overrides(BlogstoreConfig(), data_dir="/cli/data", backup_dir="/cli/bk")
        assert merged.storage.directory == "/cli/data"
        assert merged.backup.directory == "/cli/bk"

    def test_override_backend(self):
        merged = merge_cli_overrides(
            BlogstoreConfig(), use_remote=True, fallback_to_local=False,
            remote_url="https://x", remote_key="k",
        )
        assert merged.use_remote is True
        assert merged.fallback_to_local is False
        assert merged.remote.is_configured is True

    def test_none_values_ignored(self):
        merged = merge_cli_overrides(BlogstoreConfig(), data_dir=None, use_remote=None)
        assert merged.storage.directory == "./.blogstore"
        assert merged.database.use_remote is None
