"""Tests for batch site operations."""

from linkshelf.core.tree import operations as ops
from linkshelf.core.tree.operations import SiteRef
from linkshelf.core.tree.resolver import Address
from linkshelf.models.node import NavigationTree

DEV = Address.by_id("dev")
READING = Address.by_id("reading")


def test_batch_delete_partial_success(sample_tree: NavigationTree) -> None:
    tree = sample_tree
    for i in range(3):
        tree, _ = ops.add_site(tree, READING, {"title": f"Blog {i}", "url": f"https://blog{i}.example"})
    refs = [
        SiteRef(READING, "Blog 0"),
        SiteRef(READING, "Missing 1"),
        SiteRef(READING, "Blog 1"),
        SiteRef(READING, "Missing 2"),
        SiteRef(READING, "Blog 2"),
    ]
    new, result = ops.batch_delete_sites(tree, refs)
    assert result.deleted == 3
    assert len(result.errors) == 2
    assert [s.title for s in new.categories[1].sites] == ["Hacker News"]


def test_batch_add_counts_duplicates_as_skipped(sample_tree: NavigationTree) -> None:
    items = [
        (DEV, {"title": "Gitea", "url": "https://gitea.io"}),
        (DEV, {"title": "Hub", "url": "https://github.com"}),
        (Address.by_id("nope"), {"title": "Lost", "url": "https://lost.example"}),
    ]
    new, result = ops.batch_add_sites(sample_tree, items)
    assert result.added == 1
    assert result.skipped == 1
    assert len(result.errors) == 2
    assert [s.title for s in new.categories[0].sites] == ["GitHub", "GitLab", "Gitea"]


def test_batch_update_applies_each_item(sample_tree: NavigationTree) -> None:
    items = [
        (SiteRef(DEV, "GitHub"), {"description": "one"}),
        (SiteRef(READING, "Hacker News"), {"title": "HN"}),
        (SiteRef(READING, "Nope"), {"title": "x"}),
    ]
    new, result = ops.batch_update_sites(sample_tree, items)
    assert result.updated == 2
    assert len(result.errors) == 1
    assert new.categories[0].sites[0].description == "one"
    assert new.categories[1].sites[0].title == "HN"


def test_batch_move_counts_dropped_duplicates(sample_tree: NavigationTree) -> None:
    tree, _ = ops.add_site(sample_tree, READING, {"title": "GH", "url": "https://github.com"})
    refs = [SiteRef(DEV, "GitHub"), SiteRef(DEV, "GitLab"), SiteRef(DEV, "Gone")]
    new, result = ops.batch_move_sites(tree, refs, READING)
    assert result.moved == 2
    assert result.skipped == 1
    assert len(result.errors) == 1
    assert new.categories[0].sites == ()
    assert [s.title for s in new.categories[1].sites] == ["Hacker News", "GH", "GitLab"]


def test_batch_result_to_dict(sample_tree: NavigationTree) -> None:
    _, result = ops.batch_delete_sites(sample_tree, [SiteRef(DEV, "GitHub")])
    assert result.to_dict() == {
        "added": 0,
        "updated": 0,
        "deleted": 1,
        "moved": 0,
        "skipped": 0,
        "errors": [],
    }
