"""Tests for MCP tool core functions."""

from linkshelf.core.storage.store import NavigationStore
from linkshelf.mcp.server import (
    linkshelf_add_site,
    linkshelf_delete_site,
    linkshelf_move_site,
    linkshelf_read_tree,
    linkshelf_search,
    linkshelf_stats,
)


def test_read_whole_tree(seeded_store: NavigationStore) -> None:
    result = linkshelf_read_tree(seeded_store)
    assert [c["title"] for c in result["categories"]] == ["Dev", "Reading", "Uncategorized"]
    assert result["profile"]["name"] == "Test Links"


def test_read_tree_truncates_at_max_depth(seeded_store: NavigationStore) -> None:
    result = linkshelf_read_tree(seeded_store, max_depth=1)
    dev = result["categories"][0]
    assert dev["children"] == []
    assert dev["childCount"] == 1


def test_read_subtree_by_path(seeded_store: NavigationStore) -> None:
    result = linkshelf_read_tree(seeded_store, path="dev/editors", by="id")
    assert result["category"]["title"] == "Editors"
    assert result["indexPath"] == [0, 0]


def test_read_missing_subtree(seeded_store: NavigationStore) -> None:
    result = linkshelf_read_tree(seeded_store, path="Nope")
    assert "error" in result


def test_search_paginates(seeded_store: NavigationStore) -> None:
    result = linkshelf_search(seeded_store, query="git", limit=1)
    assert result["count"] == 1
    assert result["total"] == 2
    assert result["has_more"] is True
    assert result["next_offset"] == 1
    assert result["results"][0]["category"] == "Dev"


def test_search_requires_query(seeded_store: NavigationStore) -> None:
    result = linkshelf_search(seeded_store, query=" ")
    assert "error" in result
    assert result["results"] == []


def test_add_site(seeded_store: NavigationStore) -> None:
    result = linkshelf_add_site(
        seeded_store, path="Dev/Editors", title="Vim", url="https://vim.org"
    )
    assert result["mode"] == "partial"
    assert result["site"]["title"] == "Vim"
    fresh = NavigationStore(seeded_store.kv).read_folder_sites(["Dev", "Editors"])
    assert [s.title for s in fresh] == ["VS Code", "Vim"]


def test_add_duplicate_site_returns_error(seeded_store: NavigationStore) -> None:
    result = linkshelf_add_site(seeded_store, path="Dev", title="Hub", url="https://github.com")
    assert "already exists" in result["error"]


def test_add_site_with_empty_path_returns_error(seeded_store: NavigationStore) -> None:
    result = linkshelf_add_site(seeded_store, path=" / ", title="X", url="https://x.example")
    assert "error" in result


def test_move_site_defaults_to_uncategorized(seeded_store: NavigationStore) -> None:
    result = linkshelf_move_site(seeded_store, path="Dev", title="GitHub")
    assert result["mode"] == "partial"
    fresh = NavigationStore(seeded_store.kv).read_folder_sites(["Uncategorized"])
    assert [s.title for s in fresh] == ["GitHub"]


def test_move_site_by_index(seeded_store: NavigationStore) -> None:
    result = linkshelf_move_site(seeded_store, path="0", title="GitLab", target_path="1", by="index")
    assert "error" not in result
    fresh = NavigationStore(seeded_store.kv).read_folder_sites(["Reading"])
    assert [s.title for s in fresh] == ["Hacker News", "GitLab"]


def test_delete_site(seeded_store: NavigationStore) -> None:
    result = linkshelf_delete_site(seeded_store, path="Reading", title="Hacker News")
    assert result["deleted"]["url"] == "https://news.ycombinator.com"
    missing = linkshelf_delete_site(seeded_store, path="Reading", title="Hacker News")
    assert "error" in missing


def test_stats(seeded_store: NavigationStore) -> None:
    result = linkshelf_stats(seeded_store)
    assert result["totalCategories"] == 4
    assert result["totalSites"] == 4
    assert result["lastUpdated"] is not None
