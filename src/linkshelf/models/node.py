"""Domain models for the link directory."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlsplit

from linkshelf.errors import ValidationError

# Upper bound for every recursive walk over the category tree.
MAX_TREE_DEPTH = 50

DEFAULT_CATEGORY_ICON = "📁"
DEFAULT_SITE_ICON = "🌐"

UNCATEGORIZED_ID = "uncategorized"
UNCATEGORIZED_TITLE = "Uncategorized"


def default_description(title: str) -> str:
    """Placeholder description for a site created without one."""
    return f"{title} website"


def normalize_host(host: str) -> str:
    return host.strip().lower().rstrip(".")


def extract_host(url: str) -> str | None:
    """Return the normalized host of a URL, or None if it has none."""
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    return normalize_host(host) if host else None


def favicon_path(host: str) -> str:
    """Local path under which the cached icon for host is served."""
    return f"/api/favicon/{quote(normalize_host(host), safe='')}"


def as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class SiteEntry:
    """A single link held by a category."""

    title: str
    url: str
    description: str = ""
    icon: str = ""
    favicon: str = ""
    favicon_updated_at: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SiteEntry":
        return cls(
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            description=str(data.get("description") or ""),
            icon=str(data.get("icon") or ""),
            favicon=str(data.get("favicon") or ""),
            favicon_updated_at=as_int(data.get("faviconUpdatedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "description": self.description,
            "icon": self.icon,
            "favicon": self.favicon,
            "faviconUpdatedAt": self.favicon_updated_at,
        }

    def merged(self, changes: Mapping[str, Any]) -> "SiteEntry":
        """Return a copy with the given JSON-style fields overlaid."""
        return SiteEntry.from_dict({**self.to_dict(), **changes})


@dataclass(frozen=True)
class CategoryNode:
    """One directory level: direct sites plus nested subcategories."""

    title: str
    id: str | None = None
    icon: str = DEFAULT_CATEGORY_ICON
    sites: tuple[SiteEntry, ...] = ()
    children: tuple["CategoryNode", ...] = ()

    @property
    def key(self) -> str:
        """Id-path key: the id, falling back to the title."""
        return self.id or self.title

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, depth: int = 0) -> "CategoryNode":
        if depth >= MAX_TREE_DEPTH:
            msg = f"Category tree is deeper than {MAX_TREE_DEPTH} levels"
            raise ValidationError(msg)
        raw_sites = data.get("sites")
        raw_children = data.get("children")
        return cls(
            title=str(data.get("title") or ""),
            id=str(data["id"]) if data.get("id") else None,
            icon=str(data.get("icon") or DEFAULT_CATEGORY_ICON),
            sites=tuple(
                SiteEntry.from_dict(s)
                for s in (raw_sites if isinstance(raw_sites, list) else [])
                if isinstance(s, Mapping)
            ),
            children=tuple(
                cls.from_dict(c, depth=depth + 1)
                for c in (raw_children if isinstance(raw_children, list) else [])
                if isinstance(c, Mapping)
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.id:
            out["id"] = self.id
        out["title"] = self.title
        out["icon"] = self.icon
        out["sites"] = [s.to_dict() for s in self.sites]
        out["children"] = [c.to_dict() for c in self.children]
        return out


@dataclass(frozen=True)
class NavigationTree:
    """The whole persisted document: profile plus root category list."""

    profile: Mapping[str, Any] = field(default_factory=dict)
    categories: tuple[CategoryNode, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NavigationTree":
        raw_profile = data.get("profile")
        raw_categories = data.get("categories")
        if not isinstance(raw_categories, list):
            msg = "Navigation document must have a 'categories' list"
            raise ValidationError(msg)
        return cls(
            profile=dict(raw_profile) if isinstance(raw_profile, Mapping) else {},
            categories=tuple(
                CategoryNode.from_dict(c) for c in raw_categories if isinstance(c, Mapping)
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile": dict(self.profile),
            "categories": [c.to_dict() for c in self.categories],
        }


@dataclass(frozen=True)
class SiteHit:
    """A site together with the category path it was found under."""

    site: SiteEntry
    category: str
    category_id: str

    def to_dict(self) -> dict[str, Any]:
        return {**self.site.to_dict(), "category": self.category, "categoryId": self.category_id}


@dataclass(frozen=True)
class NavigationStats:
    total_categories: int
    total_sites: int
    last_updated: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalCategories": self.total_categories,
            "totalSites": self.total_sites,
            "lastUpdated": self.last_updated,
        }
