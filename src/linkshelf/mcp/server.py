"""MCP server exposing link directory browsing, search and editing tools."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from linkshelf.config import load_settings
from linkshelf.core.search.searcher import navigation_stats, search_sites
from linkshelf.core.storage.kv import SqliteKvStore
from linkshelf.core.storage.store import NavigationStore
from linkshelf.core.tree import operations as ops
from linkshelf.core.tree.resolver import Address, resolve
from linkshelf.core.write.commit import commit, load_for_display, load_for_edit
from linkshelf.errors import LinkshelfError
from linkshelf.models.node import NavigationTree
from linkshelf.protocols import KvStoreProtocol


def _address(path: str, by: str = "title") -> Address:
    return Address(by, tuple(s.strip() for s in path.split("/") if s.strip()))


def _prune(category: dict[str, Any], max_depth: int | None) -> dict[str, Any]:
    if max_depth is None:
        return category
    if max_depth <= 1:
        return {**category, "children": [], "childCount": len(category.get("children", []))}
    return {
        **category,
        "children": [_prune(c, max_depth - 1) for c in category.get("children", [])],
    }


def _mutate(store: NavigationStore, op: Callable[[NavigationTree], tuple[NavigationTree, Any]]) -> tuple[str, Any]:
    old = load_for_edit(store)
    new, result = op(old)
    plan = commit(store, old, new)
    return plan.kind, result


# --- Core functions (testable without MCP context) ---


def linkshelf_read_tree(
    store: NavigationStore,
    *,
    path: str | None = None,
    by: str = "title",
    max_depth: int | None = None,
) -> dict[str, Any]:
    """Read the whole directory or the subtree at path.

    Args:
        path: Category path such as "Dev Tools/Editors" (None = whole tree).
        by: How path segments are matched: "title", "id" or "index".
        max_depth: Levels of subcategories to include (None = unlimited).
    """
    tree = load_for_display(store)
    if not path:
        return {
            "profile": dict(tree.profile),
            "categories": [_prune(c.to_dict(), max_depth) for c in tree.categories],
        }
    try:
        resolution = resolve(tree.categories, _address(path, by))
    except LinkshelfError as e:
        return {"error": str(e)}
    return {
        "category": _prune(resolution.target.to_dict(), max_depth),
        "indexPath": list(resolution.index_path),
    }


def linkshelf_search(
    store: NavigationStore,
    *,
    query: str = "",
    limit: int = 20,
    offset: int = 0,
) -> dict[str, Any]:
    """Search sites by title, description, url and category path.

    Args:
        query: Case-insensitive substring.
        limit: Max results (1-50, default 20).
        offset: Pagination offset.
    """
    if not query.strip():
        return {"error": "No search query provided.", "results": [], "count": 0, "total": 0}
    limit = max(1, min(limit, 50))
    hits, total = search_sites(load_for_display(store), query, limit=limit, offset=offset)
    output: dict[str, Any] = {
        "results": [h.to_dict() for h in hits],
        "count": len(hits),
        "total": total,
        "has_more": offset + len(hits) < total,
    }
    if output["has_more"]:
        output["next_offset"] = offset + limit
    return output


def linkshelf_add_site(
    store: NavigationStore,
    *,
    path: str,
    title: str,
    url: str,
    description: str | None = None,
    icon: str | None = None,
    by: str = "title",
) -> dict[str, Any]:
    """Add a site to the category at path."""
    fields = {"title": title, "url": url, "description": description, "icon": icon}
    try:
        address = _address(path, by)
        mode, site = _mutate(store, lambda tree: ops.add_site(tree, address, fields))
    except LinkshelfError as e:
        return {"error": str(e)}
    return {"site": site.to_dict(), "mode": mode}


def linkshelf_move_site(
    store: NavigationStore,
    *,
    path: str,
    title: str,
    target_path: str | None = None,
    by: str = "title",
) -> dict[str, Any]:
    """Move a site to target_path, or to Uncategorized when no target is given."""
    try:
        source = _address(path, by)
        destination = _address(target_path, by) if target_path else None
        mode, site = _mutate(store, lambda tree: ops.move_site(tree, source, title, destination))
    except LinkshelfError as e:
        return {"error": str(e)}
    return {"site": site.to_dict(), "mode": mode}


def linkshelf_delete_site(
    store: NavigationStore,
    *,
    path: str,
    title: str,
    by: str = "title",
) -> dict[str, Any]:
    try:
        address = _address(path, by)
        mode, site = _mutate(store, lambda tree: ops.delete_site(tree, address, title))
    except LinkshelfError as e:
        return {"error": str(e)}
    return {"deleted": site.to_dict(), "mode": mode}


def linkshelf_stats(store: NavigationStore) -> dict[str, Any]:
    try:
        last_updated = store.last_updated()
    except LinkshelfError:
        last_updated = None
    return navigation_stats(load_for_display(store), last_updated=last_updated).to_dict()


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    kv: KvStoreProtocol

    def store(self) -> NavigationStore:
        """A fresh store per tool call so reads never see a stale cache."""
        return NavigationStore(self.kv)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the key-value database on startup, close on shutdown."""
    settings = load_settings()
    kv = SqliteKvStore(settings.db_path)
    logger.info("MCP server using {}", settings.db_path)
    try:
        yield ServerContext(kv=kv)
    finally:
        kv.close()


mcp_server = FastMCP(
    "linkshelf",
    instructions="""\
linkshelf is a personal link directory: nested categories, each holding sites
(title, url, description).

Category paths are "/"-separated titles such as "Dev Tools/Editors". Pass
by="id" to address categories by id, or by="index" for zero-based positions.

## Tips
- Use linkshelf_read_tree_tool with max_depth=1 to see the top-level layout.
- Use linkshelf_search_tool before adding a site to avoid duplicates.
- Moving a site without a target puts it into "Uncategorized".
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def linkshelf_read_tree_tool(
    ctx: Context,
    path: str | None = None,
    by: str = "title",
    max_depth: int | None = None,
) -> dict[str, Any]:
    """Read the link directory, or one category subtree.

    Args:
        path: Category path such as "Dev Tools/Editors" (omit for the whole tree).
        by: Segment matching: "title", "id" or "index".
        max_depth: Levels of subcategories to include (None = unlimited).
    """
    return linkshelf_read_tree(_ctx(ctx).store(), path=path, by=by, max_depth=max_depth)


@mcp_server.tool()
async def linkshelf_search_tool(
    ctx: Context,
    query: str,
    limit: int = 20,
    offset: int = 0,
) -> dict[str, Any]:
    """Search sites by title, description, url or category.

    Pagination: When has_more is true, use next_offset in a follow-up call.

    Args:
        query: Case-insensitive search text.
        limit: Max results (1-50, default 20).
        offset: Pagination offset.
    """
    return linkshelf_search(_ctx(ctx).store(), query=query, limit=limit, offset=offset)


@mcp_server.tool()
async def linkshelf_add_site_tool(
    ctx: Context,
    path: str,
    title: str,
    url: str,
    description: str | None = None,
    icon: str | None = None,
    by: str = "title",
) -> dict[str, Any]:
    """Add a site to a category.

    Fails if the category already holds a site with the same url.

    Args:
        path: Category path.
        title: Site title.
        url: Site url.
        description: Optional description.
        icon: Optional emoji icon.
        by: Segment matching for path: "title", "id" or "index".
    """
    return linkshelf_add_site(
        _ctx(ctx).store(),
        path=path,
        title=title,
        url=url,
        description=description,
        icon=icon,
        by=by,
    )


@mcp_server.tool()
async def linkshelf_move_site_tool(
    ctx: Context,
    path: str,
    title: str,
    target_path: str | None = None,
    by: str = "title",
) -> dict[str, Any]:
    """Move a site between categories.

    Args:
        path: Category path currently holding the site.
        title: Site title.
        target_path: Destination category path (omit for Uncategorized).
        by: Segment matching for both paths.
    """
    return linkshelf_move_site(
        _ctx(ctx).store(), path=path, title=title, target_path=target_path, by=by
    )


@mcp_server.tool()
async def linkshelf_delete_site_tool(
    ctx: Context,
    path: str,
    title: str,
    by: str = "title",
) -> dict[str, Any]:
    """Delete a site from a category.

    Args:
        path: Category path holding the site.
        title: Site title.
        by: Segment matching for path.
    """
    return linkshelf_delete_site(_ctx(ctx).store(), path=path, title=title, by=by)


@mcp_server.tool()
async def linkshelf_stats_tool(ctx: Context) -> dict[str, Any]:
    """Count categories and sites and report when the directory last changed."""
    return linkshelf_stats(_ctx(ctx).store())


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from linkshelf.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
