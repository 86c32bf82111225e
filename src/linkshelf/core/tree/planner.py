"""Decide how much of the document a mutation needs to rewrite.

A write is one of three kinds:

* ``none``: old and new trees are equal, nothing is written.
* ``partial``: only site lists changed; each changed list is addressed by
  its title path and written through the bulk site-list write.
* ``full``: the category structure or metadata changed (add, delete,
  rename, reorder, icon change, profile change); the whole document is
  written in one put.
"""

from dataclasses import dataclass
from typing import Any

from loguru import logger

from linkshelf.core.tree.resolver import Address, resolve
from linkshelf.errors import NotFoundError
from linkshelf.models.node import MAX_TREE_DEPTH, CategoryNode, NavigationTree, SiteEntry

WRITE_NONE = "none"
WRITE_PARTIAL = "partial"
WRITE_FULL = "full"


@dataclass(frozen=True)
class SiteListUpdate:
    """Replacement site list for the category at title_path."""

    title_path: tuple[str, ...]
    sites: tuple[SiteEntry, ...]


@dataclass(frozen=True)
class WritePlan:
    kind: str
    updates: tuple[SiteListUpdate, ...] = ()
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "reason": self.reason,
            "updates": [
                {"path": list(u.title_path), "sites": len(u.sites)} for u in self.updates
            ],
        }


def _structure_signature(node: CategoryNode) -> tuple[Any, ...]:
    return (node.id, node.title, tuple((c.id, c.title) for c in node.children))


def _meta_signature(node: CategoryNode) -> tuple[Any, ...]:
    return (node.id, node.title, node.icon)


def is_same_structure(
    old: tuple[CategoryNode, ...], new: tuple[CategoryNode, ...], *, depth: int = 0
) -> bool:
    """True when both levels hold the same categories in the same order, recursively."""
    if len(old) != len(new):
        return False
    if old and depth >= MAX_TREE_DEPTH:
        return False
    for a, b in zip(old, new, strict=True):
        if _structure_signature(a) != _structure_signature(b):
            return False
        if not is_same_structure(a.children, b.children, depth=depth + 1):
            return False
    return True


def is_same_meta(
    old: tuple[CategoryNode, ...], new: tuple[CategoryNode, ...], *, depth: int = 0
) -> bool:
    """True when id, title and icon agree at every node; assumes equal structure."""
    if old and depth >= MAX_TREE_DEPTH:
        return False
    for a, b in zip(old, new, strict=True):
        if _meta_signature(a) != _meta_signature(b):
            return False
        if not is_same_meta(a.children, b.children, depth=depth + 1):
            return False
    return True


def collect_site_updates(
    old: tuple[CategoryNode, ...],
    new: tuple[CategoryNode, ...],
    *,
    _prefix: tuple[str, ...] = (),
) -> list[SiteListUpdate]:
    """Walk both trees in lockstep and collect every changed site list.

    Assumes the structures already compare equal.
    """
    updates: list[SiteListUpdate] = []
    if len(_prefix) >= MAX_TREE_DEPTH:
        return updates
    for a, b in zip(old, new, strict=True):
        path = (*_prefix, b.title)
        if a.sites != b.sites:
            updates.append(SiteListUpdate(title_path=path, sites=b.sites))
        updates.extend(collect_site_updates(a.children, b.children, _prefix=path))
    return updates


def _title_path_is_exact(categories: tuple[CategoryNode, ...], title_path: tuple[str, ...]) -> bool:
    """True when title_path names exactly one node at every level."""
    level = categories
    for title in title_path:
        if sum(1 for node in level if node.title == title) != 1:
            return False
        level = next(node for node in level if node.title == title).children
    return True


def _full(reason: str) -> WritePlan:
    return WritePlan(kind=WRITE_FULL, reason=reason)


def plan_write(old: NavigationTree, new: NavigationTree) -> WritePlan:
    """Compute the cheapest write that turns the stored old tree into new."""
    if dict(old.profile) != dict(new.profile):
        return _full("profile changed")
    if not is_same_structure(old.categories, new.categories):
        return _full("category structure changed")
    if not is_same_meta(old.categories, new.categories):
        return _full("category metadata changed")

    updates = collect_site_updates(old.categories, new.categories)
    if not updates:
        return WritePlan(kind=WRITE_NONE, reason="no changes")

    for update in updates:
        if any(not title.strip() for title in update.title_path):
            logger.warning(
                "Title path {!r} has a blank segment, falling back to a full write",
                list(update.title_path),
            )
            return _full("blank title in path")
        if not _title_path_is_exact(old.categories, update.title_path):
            logger.warning(
                "Title path {} is ambiguous, falling back to a full write",
                " / ".join(update.title_path),
            )
            return _full("ambiguous title path")
        try:
            resolve(old.categories, Address.by_title(*update.title_path))
        except NotFoundError:
            logger.warning(
                "Title path {} does not resolve, falling back to a full write",
                " / ".join(update.title_path),
            )
            return _full("unresolvable title path")

    return WritePlan(kind=WRITE_PARTIAL, updates=tuple(updates), reason="site lists changed")
