"""Import Netscape bookmark HTML (as exported by Chrome, Firefox, Edge) into the tree."""

from dataclasses import dataclass, field, replace
from html.parser import HTMLParser

from loguru import logger

from linkshelf.core.tree.operations import (
    ensure_uncategorized,
    slugify,
    uncategorized_position,
    unique_id,
)
from linkshelf.errors import ValidationError
from linkshelf.models.node import (
    DEFAULT_CATEGORY_ICON,
    DEFAULT_SITE_ICON,
    MAX_TREE_DEPTH,
    CategoryNode,
    NavigationTree,
    SiteEntry,
)

# Browser toolbar folders; one of them becomes the single import root.
ROOT_CANDIDATES = (
    "Bookmarks Bar",
    "Bookmarks bar",
    "Bookmarks Toolbar",
    "Bookmarks",
    "All Bookmarks",
    "书签栏",
)
DEFAULT_ROOT_TITLE = "Bookmarks Bar"
UNGROUPED_TITLE = "Ungrouped"
DEFAULT_FOLDER_TITLE = "Imported"

MAX_MERGE_DEPTH = 10
IMPORT_MODES = ("merge", "replace")


@dataclass
class _Folder:
    title: str
    sites: list[SiteEntry] = field(default_factory=list)
    children: list["_Folder"] = field(default_factory=list)


@dataclass(frozen=True)
class ParsedBookmarks:
    categories: tuple[CategoryNode, ...]
    total_sites: int


@dataclass
class ImportSummary:
    added_categories: int = 0
    added_sites: int = 0
    skipped_sites: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "addedCategories": self.added_categories,
            "addedSites": self.added_sites,
            "skippedSites": self.skipped_sites,
        }


class NetscapeBookmarksParser(HTMLParser):
    """Collect folders (H3 followed by DL) and links (A) into a folder tree."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = _Folder(title="ROOT")
        self.stack: list[_Folder] = [self.root]
        # One entry per open DL: True when that DL opened a folder.
        self.dl_opened_folder: list[bool] = []
        self.pending_title: str | None = None
        self.in_h3 = False
        self.h3_text: list[str] = []
        self.in_a = False
        self.a_text: list[str] = []
        self.a_href = ""
        self.a_icon = ""

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        tl = tag.lower()
        if tl == "h3":
            self.in_h3 = True
            self.h3_text = []
        elif tl == "dl":
            opened = self.pending_title is not None and len(self.stack) < MAX_TREE_DEPTH
            if opened:
                folder = _Folder(title=self.pending_title or DEFAULT_FOLDER_TITLE)
                self.stack[-1].children.append(folder)
                self.stack.append(folder)
            self.pending_title = None
            self.dl_opened_folder.append(opened)
        elif tl == "a":
            self.in_a = True
            self.a_text = []
            values = {k.lower(): (v or "") for k, v in attrs}
            self.a_href = values.get("href", "").strip()
            self.a_icon = values.get("icon", "").strip()

    def handle_endtag(self, tag: str) -> None:
        tl = tag.lower()
        if tl == "h3" and self.in_h3:
            self.in_h3 = False
            self.pending_title = "".join(self.h3_text).strip() or DEFAULT_FOLDER_TITLE
        elif tl == "dl":
            if self.dl_opened_folder and self.dl_opened_folder.pop() and len(self.stack) > 1:
                self.stack.pop()
        elif tl == "a" and self.in_a:
            self.in_a = False
            if not self.a_href:
                return
            title = "".join(self.a_text).strip() or self.a_href
            self.stack[-1].sites.append(
                SiteEntry(
                    title=title,
                    url=self.a_href,
                    icon="" if self.a_icon else DEFAULT_SITE_ICON,
                    favicon=self.a_icon,
                )
            )

    def handle_data(self, data: str) -> None:
        if self.in_h3:
            self.h3_text.append(data)
        elif self.in_a:
            self.a_text.append(data)


def _category_id(title: str, seq: int) -> str:
    slug = slugify(title)
    return slug if slug != "cat" else f"bm-{seq}"


class _IdSequence:
    def __init__(self) -> None:
        self.n = 0

    def next_id(self, title: str) -> str:
        category_id = _category_id(title, self.n)
        self.n += 1
        return category_id


def _to_node(folder: _Folder, ids: _IdSequence) -> CategoryNode | None:
    """Convert a folder, dropping folders that hold nothing at any depth."""
    children = tuple(
        child for child in (_to_node(c, ids) for c in folder.children) if child is not None
    )
    if not folder.sites and not children:
        return None
    return CategoryNode(
        title=folder.title,
        id=ids.next_id(folder.title),
        icon=DEFAULT_CATEGORY_ICON,
        sites=tuple(folder.sites),
        children=children,
    )


def _count_sites(nodes: tuple[CategoryNode, ...], depth: int = 0) -> int:
    if depth >= MAX_TREE_DEPTH:
        return 0
    return sum(len(n.sites) + _count_sites(n.children, depth + 1) for n in nodes)


def _fold_duplicate_top_levels(categories: list[CategoryNode]) -> list[CategoryNode]:
    """Fold a top-level category into a same-titled child of another top-level category."""
    location: dict[str, tuple[int, int]] = {}
    for p, parent in enumerate(categories):
        for c, child in enumerate(parent.children):
            location.setdefault(child.title, (p, c))

    kept: list[CategoryNode | None] = list(categories)
    for i in range(len(kept)):
        cat = kept[i]
        if cat is None:
            continue
        loc = location.get(cat.title)
        parent = kept[loc[0]] if loc is not None and loc[0] != i else None
        if loc is None or parent is None:
            continue
        p, c = loc
        child = parent.children[c]
        seen = {s.url for s in child.sites}
        extra = []
        for site in cat.sites:
            if site.url not in seen:
                extra.append(site)
                seen.add(site.url)
        titles = {ch.title for ch in child.children}
        merged_child = replace(
            child,
            sites=child.sites + tuple(extra),
            children=child.children + tuple(ch for ch in cat.children if ch.title not in titles),
        )
        kept[p] = replace(
            parent,
            children=parent.children[:c] + (merged_child,) + parent.children[c + 1 :],
        )
        kept[i] = None
    return [cat for cat in kept if cat is not None]


def parse_bookmarks_html(html: str) -> ParsedBookmarks:
    """Parse bookmark HTML and normalize it into importable top-level categories.

    The toolbar folder (or a created one) becomes the single root; other
    top-level folders are moved under it; the root's children are then
    hoisted to top level and links sitting directly on the root go into an
    "Ungrouped" category.
    """
    parser = NetscapeBookmarksParser()
    parser.feed(html)
    parser.close()

    ids = _IdSequence()
    categories = [
        node for node in (_to_node(f, ids) for f in parser.root.children) if node is not None
    ]
    root_index = next((i for i, c in enumerate(categories) if c.title in ROOT_CANDIDATES), None)
    if root_index is None:
        root = CategoryNode(title=DEFAULT_ROOT_TITLE, id=slugify(DEFAULT_ROOT_TITLE))
        others = categories
    else:
        root = categories[root_index]
        others = categories[:root_index] + categories[root_index + 1 :]

    top_level: list[CategoryNode] = []
    root_sites = root.sites + tuple(parser.root.sites)
    if root_sites:
        top_level.append(
            CategoryNode(title=UNGROUPED_TITLE, id=ids.next_id(UNGROUPED_TITLE), sites=root_sites)
        )
    top_level.extend(root.children)
    top_level.extend(others)
    final = tuple(_fold_duplicate_top_levels(top_level))
    total = _count_sites(final)
    logger.debug("Parsed {} bookmarks in {} top-level folders", total, len(final))
    return ParsedBookmarks(categories=final, total_sites=total)


# --- Merge into the navigation tree ---


def _collect_urls(nodes: tuple[CategoryNode, ...], seen: set[str], depth: int = 0) -> None:
    if depth >= MAX_TREE_DEPTH:
        return
    for node in nodes:
        seen.update(s.url for s in node.sites if s.url)
        _collect_urls(node.children, seen, depth + 1)


def _keep_new_sites(
    sites: tuple[SiteEntry, ...], seen: set[str], summary: ImportSummary
) -> tuple[SiteEntry, ...]:
    kept = []
    for site in sites:
        if not site.url:
            continue
        if site.url in seen:
            summary.skipped_sites += 1
            continue
        seen.add(site.url)
        kept.append(site)
        summary.added_sites += 1
    return tuple(kept)


def _filter_subtree(
    node: CategoryNode, seen: set[str], summary: ImportSummary, depth: int = 0
) -> CategoryNode:
    """Drop already-known urls from a subtree that is added wholesale."""
    children = (
        ()
        if depth + 1 >= MAX_TREE_DEPTH
        else tuple(_filter_subtree(c, seen, summary, depth + 1) for c in node.children)
    )
    return replace(node, sites=_keep_new_sites(node.sites, seen, summary), children=children)


def _append_child(children: tuple[CategoryNode, ...], node: CategoryNode) -> tuple[CategoryNode, ...]:
    taken = {c.id for c in children if c.id}
    return (*children, replace(node, id=unique_id(node.id or slugify(node.title), taken)))


def _merge_into(
    target: CategoryNode,
    source: CategoryNode,
    seen: set[str],
    summary: ImportSummary,
    depth: int = 0,
) -> CategoryNode:
    if depth > MAX_MERGE_DEPTH:
        dropped = _count_sites((source,))
        summary.skipped_sites += dropped
        logger.warning(
            "Folder {} is nested too deep to merge, skipped {} sites", source.title, dropped
        )
        return target
    sites = target.sites + _keep_new_sites(source.sites, seen, summary)
    children = target.children
    for src_child in source.children:
        idx = next((i for i, c in enumerate(children) if c.title == src_child.title), None)
        if idx is None:
            children = _append_child(children, _filter_subtree(src_child, seen, summary, depth + 1))
        else:
            merged = _merge_into(children[idx], src_child, seen, summary, depth + 1)
            children = children[:idx] + (merged,) + children[idx + 1 :]
    return replace(target, sites=sites, children=children)


def merge_bookmarks(
    tree: NavigationTree, parsed: ParsedBookmarks, mode: str = "merge"
) -> tuple[NavigationTree, ImportSummary]:
    """Merge parsed bookmarks into tree by category title, or replace its categories.

    Urls already present anywhere in the (remaining) tree are skipped.
    """
    mode = (mode or "merge").lower()
    if mode not in IMPORT_MODES:
        msg = f"Unknown import mode {mode!r}, expected one of {IMPORT_MODES}"
        raise ValidationError(msg)

    categories = () if mode == "replace" else tree.categories
    seen: set[str] = set()
    _collect_urls(categories, seen)
    summary = ImportSummary()

    for imported in parsed.categories:
        idx = next((i for i, c in enumerate(categories) if c.title == imported.title), None)
        if idx is None:
            node = _filter_subtree(imported, seen, summary)
            reserved = uncategorized_position(categories)
            if reserved is None:
                reserved = len(categories)
            taken = {c.id for c in categories if c.id}
            node = replace(node, id=unique_id(node.id or slugify(node.title), taken))
            categories = categories[:reserved] + (node,) + categories[reserved:]
            summary.added_categories += 1
        else:
            merged = _merge_into(categories[idx], imported, seen, summary)
            categories = categories[:idx] + (merged,) + categories[idx + 1 :]

    result, _ = ensure_uncategorized(replace(tree, categories=categories))
    logger.info(
        "Imported bookmarks ({}): {} categories, {} sites added, {} skipped",
        mode,
        summary.added_categories,
        summary.added_sites,
        summary.skipped_sites,
    )
    return result, summary
