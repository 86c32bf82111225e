"""Address resolution: index, title and id paths into the category tree."""

from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from typing import Any

from linkshelf.errors import NotFoundError, ValidationError
from linkshelf.models.node import MAX_TREE_DEPTH, CategoryNode, SiteEntry

KeyStrategy = Callable[[int, CategoryNode], Any]

# One walk, three ways of naming a child.
_KEY_STRATEGIES: dict[str, KeyStrategy] = {
    "index": lambda position, _node: position,
    "title": lambda _position, node: node.title,
    "id": lambda _position, node: node.key,
}

ADDRESS_KINDS = tuple(_KEY_STRATEGIES)


@dataclass(frozen=True)
class Address:
    """A path from the root category list down to one category."""

    kind: str
    keys: tuple[Any, ...]

    def __post_init__(self) -> None:
        if self.kind not in _KEY_STRATEGIES:
            msg = f"Unknown address kind {self.kind!r}, expected one of {ADDRESS_KINDS}"
            raise ValidationError(msg)
        if not self.keys:
            msg = "Address must name at least one category"
            raise ValidationError(msg)
        if self.kind == "index":
            try:
                keys = tuple(int(k) for k in self.keys)
            except (TypeError, ValueError):
                msg = f"Index address must contain integers, got {list(self.keys)!r}"
                raise ValidationError(msg) from None
        else:
            keys = tuple(str(k) for k in self.keys)
        object.__setattr__(self, "keys", keys)

    @classmethod
    def by_index(cls, *indices: int) -> "Address":
        return cls("index", indices)

    @classmethod
    def by_title(cls, *titles: str) -> "Address":
        return cls("title", titles)

    @classmethod
    def by_id(cls, *ids: str) -> "Address":
        return cls("id", ids)

    def describe(self) -> str:
        return " / ".join(str(k) for k in self.keys)


@dataclass(frozen=True)
class Resolution:
    """A resolved address: the node, its parent and where it sits."""

    parent: CategoryNode | None
    target: CategoryNode
    position: int
    index_path: tuple[int, ...]


def _walk(
    categories: tuple[CategoryNode, ...], address: Address
) -> list[tuple[int, CategoryNode]] | None:
    if len(address.keys) > MAX_TREE_DEPTH:
        return None
    key_of = _KEY_STRATEGIES[address.kind]
    level = categories
    trail: list[tuple[int, CategoryNode]] = []
    for wanted in address.keys:
        # First match wins when sibling keys collide.
        position = next(
            (i for i, node in enumerate(level) if key_of(i, node) == wanted), None
        )
        if position is None:
            return None
        node = level[position]
        trail.append((position, node))
        level = node.children
    return trail


def resolve(categories: tuple[CategoryNode, ...], address: Address) -> Resolution:
    """Resolve an address, raising NotFoundError if any level misses."""
    trail = _walk(categories, address)
    if trail is None:
        msg = f"Category not found: {address.describe()}"
        raise NotFoundError(msg)
    parent = trail[-2][1] if len(trail) > 1 else None
    position, target = trail[-1]
    return Resolution(
        parent=parent,
        target=target,
        position=position,
        index_path=tuple(p for p, _ in trail),
    )


def _path_of(
    categories: tuple[CategoryNode, ...], address: Address, key_of: KeyStrategy
) -> tuple[Any, ...]:
    trail = _walk(categories, address)
    if trail is None:
        msg = f"Category not found: {address.describe()}"
        raise NotFoundError(msg)
    return tuple(key_of(position, node) for position, node in trail)


def to_title_path(categories: tuple[CategoryNode, ...], address: Address) -> tuple[str, ...]:
    """Convert any address to the title path partial writes are keyed by."""
    return _path_of(categories, address, _KEY_STRATEGIES["title"])


def to_index_path(categories: tuple[CategoryNode, ...], address: Address) -> tuple[int, ...]:
    return _path_of(categories, address, _KEY_STRATEGIES["index"])


def to_id_path(categories: tuple[CategoryNode, ...], address: Address) -> tuple[str, ...]:
    return _path_of(categories, address, _KEY_STRATEGIES["id"])


def iter_nodes(
    categories: tuple[CategoryNode, ...],
    *,
    _prefix: tuple[int, ...] = (),
) -> Iterator[tuple[tuple[int, ...], CategoryNode]]:
    """Yield (index_path, node) depth-first, pre-order."""
    if len(_prefix) >= MAX_TREE_DEPTH:
        return
    for position, node in enumerate(categories):
        path = (*_prefix, position)
        yield path, node
        yield from iter_nodes(node.children, _prefix=path)


def replace_at(
    categories: tuple[CategoryNode, ...],
    index_path: tuple[int, ...],
    update: Callable[[CategoryNode], CategoryNode | None],
) -> tuple[CategoryNode, ...]:
    """Rebuild the spine down to index_path with update applied to the node.

    Returning None from update removes the node (and its subtree).
    """
    if not index_path:
        msg = "index_path must not be empty"
        raise ValueError(msg)
    head, rest = index_path[0], index_path[1:]
    if not 0 <= head < len(categories):
        msg = f"Category index out of range: {head}"
        raise NotFoundError(msg)
    node = categories[head]
    if rest:
        new_nodes: tuple[CategoryNode, ...] = (
            replace(node, children=replace_at(node.children, rest, update)),
        )
    else:
        result = update(node)
        new_nodes = () if result is None else (result,)
    return categories[:head] + new_nodes + categories[head + 1 :]


def find_site_by_title(node: CategoryNode, title: str) -> int | None:
    """Index of the first direct site with this title.

    Site titles are not unique within a category; the first match is used.
    """
    wanted = title.strip()
    return next((i for i, s in enumerate(node.sites) if s.title == wanted), None)


def find_site_by_url(node: CategoryNode, url: str) -> int | None:
    wanted = url.strip()
    return next((i for i, s in enumerate(node.sites) if s.url == wanted), None)


def require_site(node: CategoryNode, title: str) -> tuple[int, SiteEntry]:
    index = find_site_by_title(node, title)
    if index is None:
        msg = f"Site {title!r} not found in category {node.title!r}"
        raise NotFoundError(msg)
    return index, node.sites[index]
