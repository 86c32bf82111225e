"""CLI for linkshelf (web server, MCP server, browsing and maintenance)."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from linkshelf.config import Settings, load_settings
from linkshelf.core.importer.bookmarks import merge_bookmarks, parse_bookmarks_html
from linkshelf.core.search.searcher import navigation_stats, search_sites
from linkshelf.core.storage.kv import SqliteKvStore
from linkshelf.core.storage.store import NavigationStore
from linkshelf.core.write.commit import commit, load_for_display, load_for_edit
from linkshelf.errors import LinkshelfError
from linkshelf.favicon import FaviconFetcher, refresh_favicons
from linkshelf.logging_config import configure_logging
from linkshelf.models.node import MAX_TREE_DEPTH, CategoryNode

app = typer.Typer(help="linkshelf: a personal link directory.")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Directory holding the database"),
]
DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Database file (overrides --data-dir)"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log warnings and errors"),
) -> None:
    configure_logging(verbose=verbose, quiet=quiet)


def _settings(data_dir: Path | None, db: Path | None) -> Settings:
    try:
        return load_settings(data_dir=data_dir, db_path=db)
    except ValueError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from None


@contextmanager
def _open_store(data_dir: Path | None, db: Path | None) -> Iterator[NavigationStore]:
    settings = _settings(data_dir, db)
    try:
        kv = SqliteKvStore(settings.db_path)
    except LinkshelfError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from None
    try:
        yield NavigationStore(kv)
    except LinkshelfError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from None
    finally:
        kv.close()


@app.command()
def serve(
    host: Annotated[str | None, typer.Option("--host", help="Interface to bind")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Port to listen on")] = None,
    data_dir: DataDirOption = None,
    db: DbOption = None,
    debug: bool = typer.Option(False, "--debug", help="Run Flask in debug mode"),
) -> None:
    """Run the HTTP API."""
    from linkshelf.web.app import create_app

    settings = _settings(data_dir, db)
    settings = replace(settings, host=host or settings.host, port=port or settings.port)
    if not settings.admin_password:
        logger.warning("LINKSHELF_ADMIN_PASSWORD is not set, admin endpoints are disabled")
    flask_app = create_app(settings)
    logger.info("Serving on http://{}:{}", settings.host, settings.port)
    flask_app.run(host=settings.host, port=settings.port, debug=debug)


@app.command()
def mcp() -> None:
    """Run the MCP server on stdio."""
    from linkshelf.mcp.server import run_mcp_server

    run_mcp_server()


def _echo_category(node: CategoryNode, depth: int, show_sites: bool) -> None:
    indent = "  " * depth
    typer.echo(f"{indent}{node.icon} {node.title} [{node.id or '-'}] ({len(node.sites)} sites)")
    if show_sites:
        for site in node.sites:
            typer.echo(f"{indent}    - {site.title}  {site.url}")
    if depth + 1 >= MAX_TREE_DEPTH:
        return
    for child in node.children:
        _echo_category(child, depth + 1, show_sites)


@app.command()
def tree(
    sites: bool = typer.Option(False, "--sites", "-s", help="List sites under each category"),
    data_dir: DataDirOption = None,
    db: DbOption = None,
) -> None:
    """Print the category tree."""
    with _open_store(data_dir, db) as store:
        for category in load_for_display(store).categories:
            _echo_category(category, 0, sites)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search text"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max results"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    data_dir: DataDirOption = None,
    db: DbOption = None,
) -> None:
    """Search sites by title, description, url and category."""
    with _open_store(data_dir, db) as store:
        hits, total = search_sites(load_for_display(store), query, limit=limit)

    if output_json:
        data = {"results": [h.to_dict() for h in hits], "total": total}
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return
    typer.echo(f"Found {total} results (showing {len(hits)}):\n")
    for hit in hits:
        typer.echo(f"  [{hit.category}] {hit.site.title}")
        typer.echo(f"    {hit.site.url}")


@app.command()
def stats(
    data_dir: DataDirOption = None,
    db: DbOption = None,
) -> None:
    """Show category and site counts."""
    with _open_store(data_dir, db) as store:
        result = navigation_stats(load_for_display(store), last_updated=store.last_updated())
    typer.echo(f"Categories:   {result.total_categories}")
    typer.echo(f"Sites:        {result.total_sites}")
    typer.echo(f"Last updated: {result.last_updated or 'never'}")


@app.command(name="import-bookmarks")
def import_bookmarks(
    file: Annotated[Path, typer.Argument(help="Bookmarks HTML exported from a browser")],
    replace_existing: bool = typer.Option(
        False, "--replace", help="Replace all categories instead of merging"
    ),
    data_dir: DataDirOption = None,
    db: DbOption = None,
) -> None:
    """Import a Netscape bookmarks file."""
    if not file.exists():
        logger.error("File not found: {}", file)
        raise typer.Exit(1)
    parsed = parse_bookmarks_html(file.read_text(encoding="utf-8", errors="replace"))
    if parsed.total_sites == 0:
        logger.error("No bookmarks found in {}", file)
        raise typer.Exit(1)

    with _open_store(data_dir, db) as store:
        old = load_for_edit(store)
        new, summary = merge_bookmarks(old, parsed, "replace" if replace_existing else "merge")
        plan = commit(store, old, new)
    typer.echo(
        f"Imported {summary.added_sites} sites into {summary.added_categories} new categories, "
        f"skipped {summary.skipped_sites} duplicates ({plan.kind} write)"
    )


@app.command(name="refresh-favicons")
def refresh_favicons_cmd(
    force: bool = typer.Option(False, "--force", "-f", help="Refresh icons that are still fresh"),
    data_dir: DataDirOption = None,
    db: DbOption = None,
) -> None:
    """Fetch favicons for all sites into the local cache."""
    settings = _settings(data_dir, db)
    fetcher = FaviconFetcher(timeout=settings.favicon_timeout)
    with _open_store(data_dir, db) as store:
        summary = refresh_favicons(store, fetcher, force=force)
    typer.echo(
        f"Refreshed {summary.refreshed} of {summary.total} hosts, "
        f"updated {summary.updated_sites} sites"
    )
    for host in summary.failed:
        typer.echo(f"  failed: {host}")


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    data_dir: DataDirOption = None,
    db: DbOption = None,
) -> None:
    """Delete the stored directory and the favicon cache."""
    if not yes:
        typer.confirm("Delete all stored categories, sites and favicons?", abort=True)
    with _open_store(data_dir, db) as store:
        cleared = store.clear_all()
    typer.echo(f"Deleted {cleared} keys")
