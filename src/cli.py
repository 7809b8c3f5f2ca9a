"""CLI interface for blogstore."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from blogstore.adapter.factory import build_adapter, build_local_store, build_remote_store
from blogstore.adapter.service import PostAdapter
from blogstore.config import BlogstoreConfig, load_config, merge_cli_overrides
from blogstore.errors import NotAuthenticatedError
from blogstore.local.store import STORAGE_FAULTS
from blogstore.migration.backup import (
    DirectoryArtifactSink,
    backup_filename,
    build_backup,
    restore_from_backup,
)
from blogstore.migration.engine import (
    MigrationEngine,
    MigrationResult,
    clear_local_after_migration,
)
from blogstore.posts.models import Post, PostDraft

MIGRATION_REPORT = "last-migration.json"

app = typer.Typer(
    name="blogstore",
    help="Manage blog posts across the local and remote stores.",
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from blogstore import __version__

        console.print(f"blogstore {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .blogstore.toml file."),
    ] = None,
    data_dir: Annotated[
        Optional[str],
        typer.Option("--data-dir", help="Directory of the local store."),
    ] = None,
    backup_dir: Annotated[
        Optional[str],
        typer.Option("--backup-dir", help="Directory for backups and migration reports."),
    ] = None,
    use_remote: Annotated[
        Optional[bool],
        typer.Option("--remote/--local", help="Force the remote or the local backend."),
    ] = None,
    fallback: Annotated[
        Optional[bool],
        typer.Option(
            "--fallback/--no-fallback",
            help="Serve failed remote reads from the local store.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log to stderr."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """blogstore - blog posts over a local and a remote store."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console, show_path=False)],
        )
    config = load_config(config_path)
    ctx.obj = merge_cli_overrides(
        config,
        data_dir=data_dir,
        backup_dir=backup_dir,
        use_remote=use_remote,
        fallback_to_local=fallback,
    )


@contextlib.asynccontextmanager
async def _open_adapter(config: BlogstoreConfig) -> AsyncIterator[PostAdapter]:
    remote = build_remote_store(config)
    try:
        yield build_adapter(config, remote=remote)
    finally:
        if remote is not None:
            await remote.aclose()


def _posts_table(posts: list[Post], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right")
    table.add_column("Date")
    table.add_column("Slug")
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Published")
    for post in posts:
        table.add_row(
            str(post.id),
            post.date.isoformat(),
            post.slug,
            post.title,
            post.category,
            "yes" if post.published else "no",
        )
    return table


def _report_path(config: BlogstoreConfig) -> Path:
    return Path(config.backup.directory) / MIGRATION_REPORT


# ── Read commands ────────────────────────────────────────────────


@app.command(name="list")
def list_cmd(
    ctx: typer.Context,
    published: Annotated[
        bool,
        typer.Option("--published", help="Only published posts."),
    ] = False,
    category: Annotated[
        Optional[str],
        typer.Option("--category", help="Only published posts in this category."),
    ] = None,
) -> None:
    """List posts, newest first."""

    async def _run() -> list[Post]:
        async with _open_adapter(ctx.obj) as adapter:
            if category is not None:
                return await adapter.load_by_category(category)
            if published:
                return await adapter.load_published()
            return await adapter.load_posts()

    posts = asyncio.run(_run())
    if not posts:
        console.print("[yellow]No posts found.[/yellow]")
        return
    console.print(_posts_table(posts, f"{len(posts)} post(s)"))


@app.command(name="show")
def show_cmd(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Post slug.")],
) -> None:
    """Print one post as JSON."""

    async def _run() -> Post | None:
        async with _open_adapter(ctx.obj) as adapter:
            return await adapter.get_by_slug(slug)

    post = asyncio.run(_run())
    if post is None:
        console.print(f"[red]Error:[/red] No post with slug '{slug}'")
        raise typer.Exit(1)
    console.print_json(post.model_dump_json())


@app.command(name="search")
def search_cmd(
    ctx: typer.Context,
    term: Annotated[str, typer.Argument(help="Text to look for.")],
) -> None:
    """Search published posts."""

    async def _run() -> list[Post]:
        async with _open_adapter(ctx.obj) as adapter:
            return await adapter.search(term)

    posts = asyncio.run(_run())
    if not posts:
        console.print(f"[yellow]No published posts match '{term}'.[/yellow]")
        return
    console.print(_posts_table(posts, f"Results for '{term}'"))


@app.command(name="stats")
def stats_cmd(ctx: typer.Context) -> None:
    """Print post counters as JSON."""

    async def _run() -> str:
        async with _open_adapter(ctx.obj) as adapter:
            return (await adapter.stats()).model_dump_json(indent=2)

    console.print(asyncio.run(_run()), markup=False, highlight=False, soft_wrap=True)


@app.command(name="backend")
def backend_cmd(ctx: typer.Context) -> None:
    """Show which backend is active."""

    async def _run() -> str:
        async with _open_adapter(ctx.obj) as adapter:
            return adapter.backend_info().model_dump_json(indent=2)

    console.print(asyncio.run(_run()), markup=False, highlight=False, soft_wrap=True)


@app.command(name="export")
def export_cmd(
    ctx: typer.Context,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write to this file instead of stdout."),
    ] = None,
) -> None:
    """Export every post as a JSON array."""

    async def _run() -> str:
        async with _open_adapter(ctx.obj) as adapter:
            return await adapter.export()

    payload = asyncio.run(_run())
    if output is None:
        console.print(payload, markup=False, highlight=False, soft_wrap=True)
        return
    output.write_text(payload, encoding="utf-8")
    console.print(f"[green]Exported to {output}[/green]")


# ── Mutations ────────────────────────────────────────────────────


@app.command(name="add")
def add_cmd(
    ctx: typer.Context,
    title: Annotated[str, typer.Option("--title", help="Post title.")],
    content_file: Annotated[
        Path,
        typer.Option("--content", help="File holding the post's HTML content.", exists=True),
    ],
    excerpt: Annotated[str, typer.Option("--excerpt")] = "",
    category: Annotated[str, typer.Option("--category")] = "",
    author: Annotated[str, typer.Option("--author")] = "",
    image: Annotated[str, typer.Option("--image")] = "",
    read_time: Annotated[str, typer.Option("--read-time")] = "",
    published: Annotated[bool, typer.Option("--published/--draft")] = False,
) -> None:
    """Create a post."""
    draft = PostDraft(
        title=title,
        content=content_file.read_text(encoding="utf-8"),
        excerpt=excerpt,
        category=category,
        author=author,
        image=image,
        read_time=read_time,
        published=published,
    )

    async def _run() -> Post | None:
        async with _open_adapter(ctx.obj) as adapter:
            return await adapter.add(draft)

    try:
        post = asyncio.run(_run())
    except NotAuthenticatedError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    if post is None:
        console.print("[red]Error:[/red] Post could not be saved")
        raise typer.Exit(1)
    console.print(f"[green]Created post {post.id}:[/green] {post.slug}")


@app.command(name="delete")
def delete_cmd(
    ctx: typer.Context,
    post_id: Annotated[int, typer.Argument(help="Post id.")],
) -> None:
    """Delete a post."""

    async def _run() -> bool:
        async with _open_adapter(ctx.obj) as adapter:
            return await adapter.delete(post_id)

    try:
        deleted = asyncio.run(_run())
    except NotAuthenticatedError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    if not deleted:
        console.print(f"[red]Error:[/red] Post {post_id} was not deleted")
        raise typer.Exit(1)
    console.print(f"[green]Deleted post {post_id}[/green]")


@app.command(name="import")
def import_cmd(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="JSON array of posts.", exists=True)],
) -> None:
    """Import posts from a JSON export."""

    async def _run() -> bool:
        async with _open_adapter(ctx.obj) as adapter:
            return await adapter.import_posts(source.read_text(encoding="utf-8"))

    try:
        ok = asyncio.run(_run())
    except NotAuthenticatedError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    if not ok:
        console.print(f"[red]Error:[/red] {source} is not an importable post array")
        raise typer.Exit(1)
    console.print(f"[green]Imported {source}[/green]")


# ── Backup and migration ─────────────────────────────────────────


@app.command(name="backup")
def backup_cmd(ctx: typer.Context) -> None:
    """Write a backup of the local store into the backup directory."""
    config: BlogstoreConfig = ctx.obj
    local = build_local_store(config)
    now = datetime.now(tz=UTC)
    sink = DirectoryArtifactSink(Path(config.backup.directory))
    try:
        document = build_backup(local.snapshot(), now)
        sink.deliver(backup_filename(now), document.encode("utf-8"))
    except STORAGE_FAULTS as exc:
        console.print(f"[red]Error:[/red] Backup failed: {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Backup written to {sink.directory / backup_filename(now)}[/green]")


@app.command(name="restore")
def restore_cmd(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Backup document.", exists=True)],
) -> None:
    """Replace the local store with the posts of a backup."""
    local = build_local_store(ctx.obj)
    if not restore_from_backup(local, source.read_text(encoding="utf-8")):
        console.print(f"[red]Error:[/red] Could not restore from {source}")
        raise typer.Exit(1)
    console.print(f"[green]Restored local store from {source}[/green]")


@app.command(name="migrate")
def migrate_cmd(ctx: typer.Context) -> None:
    """Back up the local store and copy its posts to the remote store."""
    config: BlogstoreConfig = ctx.obj
    remote = build_remote_store(config)
    if remote is None:
        console.print("[red]Error:[/red] [remote] url and anon_key must be configured")
        raise typer.Exit(1)

    engine = MigrationEngine(
        build_local_store(config),
        remote,
        DirectoryArtifactSink(Path(config.backup.directory)),
    )

    async def _run() -> MigrationResult:
        try:
            return await engine.run()
        finally:
            await remote.aclose()

    result = asyncio.run(_run())
    report = _report_path(config)
    report.parent.mkdir(parents=True, exist_ok=True)
    report.write_text(result.model_dump_json(indent=2, exclude={"backup"}), encoding="utf-8")

    colour = "green" if result.success else "red"
    console.print(f"[{colour}]{result.message}[/{colour}]")
    console.print(f"  Local posts: {result.local_posts}")
    console.print(f"  Migrated: {result.migrated_posts}")
    console.print(f"  Skipped: {result.skipped_posts}")
    for error in result.errors:
        console.print(f"  [red]-[/red] {error}")
    if not result.success:
        raise typer.Exit(1)


@app.command(name="clear-local")
def clear_local_cmd(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option("--yes", help="Confirm deleting every local post."),
    ] = False,
) -> None:
    """Clear the local store after a completed migration."""
    config: BlogstoreConfig = ctx.obj
    report = _report_path(config)
    if not report.exists():
        console.print("[red]Error:[/red] No migration report found; run 'migrate' first")
        raise typer.Exit(1)
    result = MigrationResult.model_validate(json.loads(report.read_text(encoding="utf-8")))
    if not yes:
        console.print("[yellow]Refusing to clear without --yes.[/yellow]")
        raise typer.Exit(1)
    if not clear_local_after_migration(build_local_store(config), result):
        console.print(
            "[red]Error:[/red] Last migration did not complete or local posts "
            "changed since; local store kept"
        )
        raise typer.Exit(1)
    console.print("[green]Local store cleared.[/green]")


if __name__ == "__main__":
    app()
