"""Linear substring search and statistics over the navigation tree."""

from collections.abc import Iterator

from linkshelf.core.tree.operations import count_subtree
from linkshelf.models.node import (
    MAX_TREE_DEPTH,
    CategoryNode,
    NavigationStats,
    NavigationTree,
    SiteHit,
)


def _flatten(
    nodes: tuple[CategoryNode, ...], titles: tuple[str, ...], ids: tuple[str, ...]
) -> Iterator[SiteHit]:
    if len(titles) >= MAX_TREE_DEPTH:
        return
    for node in nodes:
        node_titles = (*titles, node.title)
        node_ids = (*ids, node.id or "")
        category = " / ".join(node_titles)
        category_id = "/".join(i for i in node_ids if i)
        for site in node.sites:
            yield SiteHit(site=site, category=category, category_id=category_id)
        yield from _flatten(node.children, node_titles, node_ids)


def flatten_sites(tree: NavigationTree) -> Iterator[SiteHit]:
    """Yield every site at every depth, pre-order, with its category paths."""
    return _flatten(tree.categories, (), ())


def _matches(hit: SiteHit, needle: str) -> bool:
    return any(
        needle in value.lower()
        for value in (hit.site.title, hit.site.description, hit.site.url, hit.category)
    )


def search_sites(
    tree: NavigationTree,
    query: str,
    *,
    limit: int | None = None,
    offset: int = 0,
) -> tuple[list[SiteHit], int]:
    """Case-insensitive substring search.

    Returns (page of hits, total hits). An empty query matches nothing.
    """
    needle = query.strip().lower()
    if not needle:
        return [], 0
    hits = [hit for hit in flatten_sites(tree) if _matches(hit, needle)]
    offset = max(0, offset)
    page = hits[offset:] if limit is None else hits[offset : offset + max(0, limit)]
    return page, len(hits)


def navigation_stats(tree: NavigationTree, *, last_updated: str | None = None) -> NavigationStats:
    """Count categories and sites at every depth."""
    categories = sites = 0
    for node in tree.categories:
        c, s = count_subtree(node)
        categories += c
        sites += s
    return NavigationStats(total_categories=categories, total_sites=sites, last_updated=last_updated)
