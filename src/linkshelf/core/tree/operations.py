"""Pure mutation operations over the navigation tree.

Every function takes a tree and returns a new one; nodes are frozen and
only the spine from the root down to the touched node is rebuilt. Callers
run ``ensure_uncategorized`` first and hand the old and new trees to the
planner (see ``linkshelf.core.write.commit``).
"""

import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from loguru import logger

from linkshelf.core.tree.resolver import (
    Address,
    find_site_by_url,
    replace_at,
    require_site,
    resolve,
)
from linkshelf.errors import ConflictError, LinkshelfError, NotFoundError, ValidationError
from linkshelf.models.node import (
    DEFAULT_CATEGORY_ICON,
    DEFAULT_SITE_ICON,
    MAX_TREE_DEPTH,
    UNCATEGORIZED_ID,
    UNCATEGORIZED_TITLE,
    CategoryNode,
    NavigationTree,
    SiteEntry,
    as_int,
    default_description,
    extract_host,
    favicon_path,
)

_CATEGORY_ID_RE = re.compile(r"^[a-z0-9-]+$")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")

SITE_FIELDS = ("title", "url", "description", "icon", "favicon", "faviconUpdatedAt")


@dataclass(frozen=True)
class SiteRef:
    """One site named by its category address and title."""

    address: Address
    title: str


@dataclass(frozen=True)
class DeletedCategory:
    node: CategoryNode
    categories: int
    sites: int


@dataclass
class BatchResult:
    """Counters for a batch operation. Item failures land in errors."""

    added: int = 0
    updated: int = 0
    deleted: int = 0
    moved: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "added": self.added,
            "updated": self.updated,
            "deleted": self.deleted,
            "moved": self.moved,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


# --- Helpers ---


def _with_categories(tree: NavigationTree, categories: tuple[CategoryNode, ...]) -> NavigationTree:
    return replace(tree, categories=categories)


def _require_title(title: str | None, what: str = "Title") -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        msg = f"{what} must not be empty"
        raise ValidationError(msg)
    return cleaned


def _validate_category_id(category_id: str) -> str:
    cleaned = (category_id or "").strip()
    if not _CATEGORY_ID_RE.match(cleaned):
        msg = f"Category id {category_id!r} must match [a-z0-9-]+"
        raise ValidationError(msg)
    return cleaned


def slugify(title: str) -> str:
    slug = _SLUG_STRIP_RE.sub("-", title.lower()).strip("-")
    return slug or "cat"


def unique_id(base: str, taken: set[str]) -> str:
    candidate = base
    suffix = 2
    while candidate in taken:
        candidate = f"{base}-{suffix}"
        suffix += 1
    return candidate


def count_subtree(node: CategoryNode, *, depth: int = 0) -> tuple[int, int]:
    """Return (categories, sites) in node's subtree, node included."""
    categories, sites = 1, len(node.sites)
    if depth + 1 >= MAX_TREE_DEPTH:
        return categories, sites
    for child in node.children:
        c, s = count_subtree(child, depth=depth + 1)
        categories += c
        sites += s
    return categories, sites


def _update_sites(
    tree: NavigationTree,
    address: Address,
    fn: Callable[[tuple[SiteEntry, ...]], tuple[SiteEntry, ...]],
) -> NavigationTree:
    index_path = resolve(tree.categories, address).index_path
    categories = replace_at(
        tree.categories, index_path, lambda node: replace(node, sites=fn(node.sites))
    )
    return _with_categories(tree, categories)


def uncategorized_position(categories: tuple[CategoryNode, ...]) -> int | None:
    by_id = next((i for i, c in enumerate(categories) if c.id == UNCATEGORIZED_ID), None)
    if by_id is not None:
        return by_id
    return next((i for i, c in enumerate(categories) if c.title == UNCATEGORIZED_TITLE), None)


def uncategorized_address(tree: NavigationTree) -> Address:
    position = uncategorized_position(tree.categories)
    if position is None:
        msg = f"{UNCATEGORIZED_TITLE} category is missing"
        raise NotFoundError(msg)
    return Address.by_index(position)


# --- Uncategorized self-healing ---


def has_complete_uncategorized(raw: Mapping[str, Any]) -> bool:
    """Check a raw stored document for a complete, last-placed reserved category.

    Parsing fills defaults, so missing fields are only visible on the raw shape.
    """
    categories = raw.get("categories")
    if not isinstance(categories, list) or not categories:
        return False
    nodes = [c if isinstance(c, Mapping) else {} for c in categories]
    position = next((i for i, c in enumerate(nodes) if c.get("id") == UNCATEGORIZED_ID), None)
    if position is None:
        position = next(
            (i for i, c in enumerate(nodes) if c.get("title") == UNCATEGORIZED_TITLE), None
        )
    if position != len(nodes) - 1:
        return False
    last = nodes[position]
    return (
        bool(last.get("id"))
        and bool(last.get("title"))
        and bool(last.get("icon"))
        and isinstance(last.get("sites"), list)
        and isinstance(last.get("children"), list)
    )


def ensure_uncategorized(tree: NavigationTree) -> tuple[NavigationTree, bool]:
    """Make sure the reserved category exists, is complete and sits last.

    Idempotent: a second call returns the tree unchanged and False.
    """
    categories = tree.categories
    position = uncategorized_position(categories)
    if position is None:
        node = CategoryNode(title=UNCATEGORIZED_TITLE, id=UNCATEGORIZED_ID)
        logger.info("Created missing {} category", UNCATEGORIZED_TITLE)
        return _with_categories(tree, (*categories, node)), True

    current = categories[position]
    healed = replace(
        current,
        id=current.id or UNCATEGORIZED_ID,
        title=current.title or UNCATEGORIZED_TITLE,
        icon=current.icon or DEFAULT_CATEGORY_ICON,
    )
    rest = categories[:position] + categories[position + 1 :]
    repaired = healed != current or position != len(categories) - 1
    if not repaired:
        return tree, False
    logger.info("Repaired {} category", UNCATEGORIZED_TITLE)
    return _with_categories(tree, (*rest, healed)), True


# --- Categories ---


def add_category(
    tree: NavigationTree, category_id: str, title: str, icon: str | None = None
) -> NavigationTree:
    """Add a top-level category before the reserved Uncategorized entry."""
    category_id = _validate_category_id(category_id)
    title = _require_title(title)
    if any(c.id == category_id for c in tree.categories):
        msg = f"Category id {category_id!r} already exists"
        raise ConflictError(msg)
    node = CategoryNode(title=title, id=category_id, icon=icon or DEFAULT_CATEGORY_ICON)
    categories = tree.categories
    position = uncategorized_position(categories)
    if position is None:
        position = len(categories)
    return _with_categories(tree, categories[:position] + (node,) + categories[position:])


def add_subcategory(
    tree: NavigationTree,
    address: Address,
    title: str,
    icon: str | None = None,
    category_id: str | None = None,
) -> tuple[NavigationTree, CategoryNode]:
    """Append a child category under the category at address.

    Without an explicit id a unique slug of the title is generated.
    """
    title = _require_title(title)
    parent = resolve(tree.categories, address)
    taken = {c.id for c in parent.target.children if c.id}
    if category_id:
        category_id = _validate_category_id(category_id)
        if category_id in taken:
            msg = f"Category id {category_id!r} already exists under {parent.target.title!r}"
            raise ConflictError(msg)
    else:
        category_id = unique_id(slugify(title), taken)
    node = CategoryNode(title=title, id=category_id, icon=icon or DEFAULT_CATEGORY_ICON)
    categories = replace_at(
        tree.categories,
        parent.index_path,
        lambda target: replace(target, children=(*target.children, node)),
    )
    return _with_categories(tree, categories), node


def edit_category(
    tree: NavigationTree,
    address: Address,
    title: str | None = None,
    icon: str | None = None,
) -> NavigationTree:
    if title is None and icon is None:
        msg = "Nothing to update: pass a title or an icon"
        raise ValidationError(msg)
    changes: dict[str, Any] = {}
    if title is not None:
        changes["title"] = _require_title(title)
    if icon is not None:
        changes["icon"] = icon.strip() or DEFAULT_CATEGORY_ICON
    index_path = resolve(tree.categories, address).index_path
    categories = replace_at(tree.categories, index_path, lambda node: replace(node, **changes))
    return _with_categories(tree, categories)


def delete_category(tree: NavigationTree, address: Address) -> tuple[NavigationTree, DeletedCategory]:
    """Remove the category at address together with its whole subtree."""
    target = resolve(tree.categories, address)
    categories, sites = count_subtree(target.target)
    remaining = replace_at(tree.categories, target.index_path, lambda _node: None)
    logger.debug(
        "Deleted category {} ({} categories, {} sites)", target.target.title, categories, sites
    )
    return _with_categories(tree, remaining), DeletedCategory(
        node=target.target, categories=categories, sites=sites
    )


def get_root_category(tree: NavigationTree, category_id: str) -> CategoryNode:
    return resolve(tree.categories, Address.by_id(category_id)).target


def update_root_category(
    tree: NavigationTree, category_id: str, title: str | None = None, icon: str | None = None
) -> NavigationTree:
    return edit_category(tree, Address.by_id(category_id), title=title, icon=icon)


def _reordered(items: Sequence[Any], order: Iterable[str], keys: Callable[[Any], Sequence[str]]) -> tuple[Any, ...]:
    remaining = list(items)
    picked: list[Any] = []
    for wanted in order:
        # Match on the primary key first, then the fallback key.
        for key_index in range(2):
            match = next(
                (i for i, item in enumerate(remaining) if keys(item)[key_index] == wanted), None
            )
            if match is not None:
                picked.append(remaining.pop(match))
                break
    return (*picked, *remaining)


def reorder_categories(
    tree: NavigationTree, parent: Address | None, order: Iterable[str]
) -> NavigationTree:
    """Reorder sibling categories by id (or title); unmentioned ones keep their order at the end."""

    def by_key(node: CategoryNode) -> tuple[str, str]:
        return (node.id or "", node.title)

    if parent is None:
        categories = _reordered(tree.categories, order, by_key)
        reordered, _ = ensure_uncategorized(_with_categories(tree, categories))
        return reordered
    index_path = resolve(tree.categories, parent).index_path
    categories = replace_at(
        tree.categories,
        index_path,
        lambda node: replace(node, children=_reordered(node.children, order, by_key)),
    )
    return _with_categories(tree, categories)


def reorder_sites(tree: NavigationTree, address: Address, order: Iterable[str]) -> NavigationTree:
    """Reorder a category's sites by url (or title)."""
    order = list(order)
    return _update_sites(
        tree, address, lambda sites: _reordered(sites, order, lambda s: (s.url, s.title))
    )


# --- Sites ---


def build_site(fields: Mapping[str, Any]) -> SiteEntry:
    """Validate and complete the fields of a new site."""
    title = _require_title(fields.get("title"))
    url = _require_title(fields.get("url"), "Url")
    host = extract_host(url)
    favicon = str(fields.get("favicon") or "").strip()
    if not favicon and host:
        favicon = favicon_path(host)
    return SiteEntry(
        title=title,
        url=url,
        description=str(fields.get("description") or "").strip() or default_description(title),
        icon=str(fields.get("icon") or "").strip() or DEFAULT_SITE_ICON,
        favicon=favicon,
        favicon_updated_at=as_int(fields.get("faviconUpdatedAt")),
    )


def add_site(
    tree: NavigationTree, address: Address, fields: Mapping[str, Any]
) -> tuple[NavigationTree, SiteEntry]:
    site = build_site(fields)
    target = resolve(tree.categories, address).target
    if find_site_by_url(target, site.url) is not None:
        msg = f"A site with url {site.url!r} already exists in {target.title!r}"
        raise ConflictError(msg)
    return _update_sites(tree, address, lambda sites: (*sites, site)), site


def update_site(
    tree: NavigationTree, address: Address, title: str, changes: Mapping[str, Any]
) -> tuple[NavigationTree, SiteEntry]:
    """Merge changes into the first site titled title."""
    target = resolve(tree.categories, address).target
    index, previous = require_site(target, title)
    overlay = {k: v for k, v in changes.items() if k in SITE_FIELDS}
    updated = previous.merged(overlay)
    if not updated.title.strip() or not updated.url.strip():
        msg = "A site needs a non-empty title and url"
        raise ValidationError(msg)
    if updated.url != previous.url and "favicon" not in overlay:
        host = extract_host(updated.url)
        updated = replace(updated, favicon=favicon_path(host) if host else "", favicon_updated_at=0)

    def swap(sites: tuple[SiteEntry, ...]) -> tuple[SiteEntry, ...]:
        return sites[:index] + (updated,) + sites[index + 1 :]

    return _update_sites(tree, address, swap), updated


def delete_site(
    tree: NavigationTree, address: Address, title: str
) -> tuple[NavigationTree, SiteEntry]:
    target = resolve(tree.categories, address).target
    index, removed = require_site(target, title)
    return _update_sites(tree, address, lambda sites: sites[:index] + sites[index + 1 :]), removed


def _move(
    tree: NavigationTree, source: Address, title: str, destination: Address | None
) -> tuple[NavigationTree, SiteEntry, bool]:
    if destination is None:
        tree, _ = ensure_uncategorized(tree)
        destination = uncategorized_address(tree)
    tree, site = delete_site(tree, source, title)
    dest_target = resolve(tree.categories, destination).target
    if find_site_by_url(dest_target, site.url) is not None:
        logger.debug("{} already holds {}, dropping the moved copy", dest_target.title, site.url)
        return tree, site, False
    return _update_sites(tree, destination, lambda sites: (*sites, site)), site, True


def move_site(
    tree: NavigationTree, source: Address, title: str, destination: Address | None = None
) -> tuple[NavigationTree, SiteEntry]:
    """Move a site to destination, Uncategorized by default.

    If the destination already holds the url, the source entry is still
    removed and nothing is appended.
    """
    tree, site, _ = _move(tree, source, title, destination)
    return tree, site


# --- Batches ---


def _record(result: BatchResult, what: str, exc: LinkshelfError) -> None:
    result.errors.append(f"{what}: {exc}")
    logger.debug("Batch item failed ({}): {}", what, exc)


def batch_add_sites(
    tree: NavigationTree, items: Iterable[tuple[Address, Mapping[str, Any]]]
) -> tuple[NavigationTree, BatchResult]:
    result = BatchResult()
    for address, fields in items:
        try:
            tree, _ = add_site(tree, address, fields)
        except ConflictError as exc:
            result.skipped += 1
            _record(result, f"add {fields.get('title')!r}", exc)
        except LinkshelfError as exc:
            _record(result, f"add {fields.get('title')!r}", exc)
        else:
            result.added += 1
    return tree, result


def batch_update_sites(
    tree: NavigationTree, items: Iterable[tuple[SiteRef, Mapping[str, Any]]]
) -> tuple[NavigationTree, BatchResult]:
    result = BatchResult()
    for ref, changes in items:
        try:
            tree, _ = update_site(tree, ref.address, ref.title, changes)
        except LinkshelfError as exc:
            _record(result, f"update {ref.title!r}", exc)
        else:
            result.updated += 1
    return tree, result


def batch_delete_sites(
    tree: NavigationTree, refs: Iterable[SiteRef]
) -> tuple[NavigationTree, BatchResult]:
    result = BatchResult()
    for ref in refs:
        try:
            tree, _ = delete_site(tree, ref.address, ref.title)
        except NotFoundError as exc:
            _record(result, f"delete {ref.title!r}", exc)
        else:
            result.deleted += 1
    return tree, result


def batch_move_sites(
    tree: NavigationTree, refs: Iterable[SiteRef], destination: Address | None = None
) -> tuple[NavigationTree, BatchResult]:
    result = BatchResult()
    for ref in refs:
        try:
            tree, _, inserted = _move(tree, ref.address, ref.title, destination)
        except NotFoundError as exc:
            _record(result, f"move {ref.title!r}", exc)
            continue
        result.moved += 1
        if not inserted:
            result.skipped += 1
    return tree, result


def map_sites(
    tree: NavigationTree, fn: Callable[[SiteEntry], SiteEntry]
) -> tuple[NavigationTree, int]:
    """Apply fn to every site at every depth. Returns the tree and the number of changed sites."""
    changed = 0

    def walk(nodes: tuple[CategoryNode, ...], depth: int) -> tuple[CategoryNode, ...]:
        nonlocal changed
        if depth >= MAX_TREE_DEPTH:
            return nodes
        rebuilt = []
        for node in nodes:
            sites = tuple(fn(site) for site in node.sites)
            changed += sum(1 for old, new in zip(node.sites, sites, strict=True) if old != new)
            rebuilt.append(replace(node, sites=sites, children=walk(node.children, depth + 1)))
        return tuple(rebuilt)

    categories = walk(tree.categories, 0)
    return _with_categories(tree, categories), changed
