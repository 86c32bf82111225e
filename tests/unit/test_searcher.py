"""Tests for site search and statistics."""

from linkshelf.core.search.searcher import flatten_sites, navigation_stats, search_sites
from linkshelf.models.node import NavigationTree


def test_flatten_sites_carries_category_paths(sample_tree: NavigationTree) -> None:
    hits = list(flatten_sites(sample_tree))
    assert [h.site.title for h in hits] == ["GitHub", "GitLab", "VS Code", "Hacker News"]
    vscode = hits[2]
    assert vscode.category == "Dev / Editors"
    assert vscode.category_id == "dev/editors"


def test_search_is_case_insensitive_over_title(sample_tree: NavigationTree) -> None:
    hits, total = search_sites(sample_tree, "GIT")
    assert total == 2
    assert [h.site.title for h in hits] == ["GitHub", "GitLab"]


def test_search_matches_description_url_and_category(sample_tree: NavigationTree) -> None:
    assert [h.site.title for h in search_sites(sample_tree, "tech news")[0]] == ["Hacker News"]
    assert [h.site.title for h in search_sites(sample_tree, "visualstudio")[0]] == ["VS Code"]
    assert [h.site.title for h in search_sites(sample_tree, "editors")[0]] == ["VS Code"]


def test_search_pagination(sample_tree: NavigationTree) -> None:
    hits, total = search_sites(sample_tree, "https", limit=2, offset=1)
    assert total == 4
    assert [h.site.title for h in hits] == ["GitLab", "VS Code"]


def test_empty_query_matches_nothing(sample_tree: NavigationTree) -> None:
    assert search_sites(sample_tree, "   ") == ([], 0)


def test_navigation_stats_counts_all_depths(sample_tree: NavigationTree) -> None:
    stats = navigation_stats(sample_tree, last_updated="2026-01-01T00:00:00Z")
    assert stats.to_dict() == {
        "totalCategories": 4,
        "totalSites": 4,
        "lastUpdated": "2026-01-01T00:00:00Z",
    }
