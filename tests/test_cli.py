"""Smoke tests for the CLI."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from blogstore.cli import MIGRATION_REPORT, app
from typer.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch, clean_env) -> Path:
    """Empty working directory with no config file and a local operator."""
    monkeypatch.setenv("BLOGSTORE_OPERATOR", "ana")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _base_args(workspace: Path) -> list[str]:
    return [
        "--data-dir", str(workspace / "data"),
        "--backup-dir", str(workspace / "backups"),
        "--local",
    ]


def _add(runner: CliRunner, workspace: Path, title: str, *extra: str):
    content = workspace / "content.html"
    content.write_text("<p>Escove os dentes três vezes ao dia.</p>")
    return runner.invoke(
        app,
        [*_base_args(workspace), "add", "--title", title, "--content", str(content), *extra],
    )


class TestCLI:
    def test_main_help(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "migrate" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "blogstore" in result.output

    def test_list_empty(self, runner: CliRunner, workspace: Path) -> None:
        result = runner.invoke(app, [*_base_args(workspace), "list"])
        assert result.exit_code == 0
        assert "No posts found" in result.output

    def test_add_and_show(self, runner: CliRunner, workspace: Path) -> None:
        result = _add(runner, workspace, "Saúde Bucal", "--published")
        assert result.exit_code == 0, result.output
        assert "saude-bucal" in result.output

        shown = runner.invoke(app, [*_base_args(workspace), "show", "saude-bucal"])
        assert shown.exit_code == 0
        assert '"title": "Saúde Bucal"' in shown.output

    def test_add_twice_suffixes_slug(self, runner: CliRunner, workspace: Path) -> None:
        _add(runner, workspace, "Dica 1")
        result = _add(runner, workspace, "Dica 1")
        assert "dica-1-1" in result.output

    def test_add_without_identity(
        self, runner: CliRunner, workspace: Path, monkeypatch
    ) -> None:
        monkeypatch.delenv("BLOGSTORE_OPERATOR")
        result = _add(runner, workspace, "Anon")
        assert result.exit_code == 1
        assert "authenticated" in result.output

    def test_show_missing(self, runner: CliRunner, workspace: Path) -> None:
        result = runner.invoke(app, [*_base_args(workspace), "show", "nope"])
        assert result.exit_code == 1
        assert "No post with slug" in result.output

    def test_search_and_stats(self, runner: CliRunner, workspace: Path) -> None:
        _add(runner, workspace, "Saúde Bucal", "--published", "--category", "saude")
        _add(runner, workspace, "Rascunho")

        found = runner.invoke(app, [*_base_args(workspace), "search", "escove"])
        assert "saude-bucal" in found.output
        assert "rascunho" not in found.output

        stats = json.loads(runner.invoke(app, [*_base_args(workspace), "stats"]).output)
        assert stats == {"total": 2, "published": 1, "drafts": 1, "categories": {"saude": 1}}

    def test_export_import(self, runner: CliRunner, workspace: Path) -> None:
        _add(runner, workspace, "Saúde Bucal")
        out = workspace / "export.json"
        result = runner.invoke(app, [*_base_args(workspace), "export", "-o", str(out)])
        assert result.exit_code == 0

        other = [
            "--data-dir", str(workspace / "other"),
            "--backup-dir", str(workspace / "backups"),
            "--local",
        ]
        imported = runner.invoke(app, [*other, "import", str(out)])
        assert imported.exit_code == 0, imported.output
        listed = runner.invoke(app, [*other, "export"])
        assert json.loads(listed.output)[0]["slug"] == "saude-bucal"

    def test_import_rejects_non_array(self, runner: CliRunner, workspace: Path) -> None:
        bad = workspace / "bad.json"
        bad.write_text('{"posts": []}')
        result = runner.invoke(app, [*_base_args(workspace), "import", str(bad)])
        assert result.exit_code == 1

    def test_delete(self, runner: CliRunner, workspace: Path) -> None:
        _add(runner, workspace, "Temp")
        assert runner.invoke(app, [*_base_args(workspace), "delete", "1"]).exit_code == 0
        assert runner.invoke(app, [*_base_args(workspace), "delete", "1"]).exit_code == 1

    def test_backend(self, runner: CliRunner, workspace: Path) -> None:
        result = runner.invoke(app, [*_base_args(workspace), "backend"])
        info = json.loads(result.output)
        assert info["backend"] == "local"
        assert info["remote_configured"] is False

    def test_backup_and_restore(self, runner: CliRunner, workspace: Path) -> None:
        _add(runner, workspace, "Keep Me")
        result = runner.invoke(app, [*_base_args(workspace), "backup"])
        assert result.exit_code == 0
        backups = list((workspace / "backups").glob("blogstore-backup-*.json"))
        assert len(backups) == 1

        runner.invoke(app, [*_base_args(workspace), "delete", "1"])
        restored = runner.invoke(app, [*_base_args(workspace), "restore", str(backups[0])])
        assert restored.exit_code == 0
        shown = runner.invoke(app, [*_base_args(workspace), "show", "keep-me"])
        assert shown.exit_code == 0

    def test_backup_write_failure(self, runner: CliRunner, workspace: Path) -> None:
        _add(runner, workspace, "Keep Me")
        with patch(
            "blogstore.cli.DirectoryArtifactSink.deliver", side_effect=OSError("disk full")
        ):
            result = runner.invoke(app, [*_base_args(workspace), "backup"])
        assert result.exit_code == 1
        assert "Backup failed" in result.output
        assert "disk full" in result.output
        assert "written" not in result.output


class TestMigrationCommands:
    def test_migrate_requires_remote(self, runner: CliRunner, workspace: Path) -> None:
        result = runner.invoke(app, [*_base_args(workspace), "migrate"])
        assert result.exit_code == 1
        assert "must be configured" in result.output

    def test_migrate_then_clear_local(
        self, runner: CliRunner, workspace: Path, remote_store, fake_table
    ) -> None:
        _add(runner, workspace, "Saúde Bucal")
        with patch("blogstore.cli.build_remote_store", return_value=remote_store):
            result = runner.invoke(app, [*_base_args(workspace), "migrate"])
        assert result.exit_code == 0, result.output
        assert "Migrated: 1" in result.output
        assert [r["slug"] for r in fake_table.rows] == ["saude-bucal"]

        report = json.loads((workspace / "backups" / MIGRATION_REPORT).read_text())
        assert report["success"] is True
        assert "backup" not in report

        refused = runner.invoke(app, [*_base_args(workspace), "clear-local"])
        assert refused.exit_code == 1
        assert "--yes" in refused.output

        cleared = runner.invoke(app, [*_base_args(workspace), "clear-local", "--yes"])
        assert cleared.exit_code == 0
        listed = runner.invoke(app, [*_base_args(workspace), "list"])
        assert "No posts found" in listed.output

    def test_failed_migration_blocks_clear(
        self, runner: CliRunner, workspace: Path, remote_store, fake_table
    ) -> None:
        _add(runner, workspace, "Saúde Bucal")
        fake_table.fail_titles = {"Saúde Bucal"}
        with patch("blogstore.cli.build_remote_store", return_value=remote_store):
            result = runner.invoke(app, [*_base_args(workspace), "migrate"])
        assert result.exit_code == 1
        assert "Partial migration" in result.output

        refused = runner.invoke(app, [*_base_args(workspace), "clear-local", "--yes"])
        assert refused.exit_code == 1
        assert "did not complete" in refused.output

    def test_clear_local_refuses_after_new_post(
        self, runner: CliRunner, workspace: Path, remote_store, fake_table
    ) -> None:
        _add(runner, workspace, "Saúde Bucal")
        with patch("blogstore.cli.build_remote_store", return_value=remote_store):
            migrated = runner.invoke(app, [*_base_args(workspace), "migrate"])
        assert migrated.exit_code == 0, migrated.output

        _add(runner, workspace, "Escrito Depois")
        refused = runner.invoke(app, [*_base_args(workspace), "clear-local", "--yes"])
        assert refused.exit_code == 1
        assert "changed" in refused.output

        listed = runner.invoke(app, [*_base_args(workspace), "export"])
        assert sorted(p["slug"] for p in json.loads(listed.output)) == [
            "escrito-depois",
            "saude-bucal",
        ]

    def test_clear_local_without_report(self, runner: CliRunner, workspace: Path) -> None:
        result = runner.invoke(app, [*_base_args(workspace), "clear-local", "--yes"])
        assert result.exit_code == 1
        assert "No migration report" in result.output
