"""Favicon fetching and caching."""

import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import quote

import requests
from loguru import logger

from linkshelf.config import FAVICON_MAX_AGE_MS, FAVICON_TIMEOUT, FAVICON_WORKERS
from linkshelf.core.search.searcher import flatten_sites
from linkshelf.core.storage.store import NavigationStore
from linkshelf.core.tree.operations import map_sites
from linkshelf.core.write.commit import commit, load_for_edit
from linkshelf.models.node import SiteEntry, extract_host, favicon_path, normalize_host
from linkshelf.protocols import FaviconFetcherProtocol

ICON_SOURCES = (
    "https://icons.duckduckgo.com/ip3/{host}.ico",
    "https://{host}/favicon.ico",
)


@dataclass(frozen=True)
class FetchedIcon:
    content_type: str
    data: bytes
    source: str


@dataclass
class RefreshSummary:
    total: int = 0
    refreshed: int = 0
    stored: int = 0
    updated_sites: int = 0
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "refreshed": self.refreshed,
            "stored": self.stored,
            "updatedSites": self.updated_sites,
            "failed": list(self.failed),
        }


class FaviconFetcher:
    """Download site icons, trying each icon source in turn."""

    def __init__(self, *, timeout: float = FAVICON_TIMEOUT) -> None:
        self.timeout = timeout
        self.sess = requests.Session()
        self.sess.headers["User-Agent"] = "linkshelf-favicon/1.0"

    def fetch(self, host: str) -> FetchedIcon | None:
        """Return the first image any source serves for host, or None."""
        host = normalize_host(host)
        if not host:
            return None
        for template in ICON_SOURCES:
            url = template.format(host=quote(host, safe=""))
            try:
                r = self.sess.get(url, timeout=self.timeout)
            except requests.RequestException as e:
                logger.debug("Favicon request failed: {} ({})", url, e)
                continue
            if r.status_code != 200:
                logger.debug("Favicon source answered {}: {}", r.status_code, url)
                continue
            content_type = r.headers.get("Content-Type", "image/x-icon").split(";")[0].strip()
            if not content_type.lower().startswith("image/") or not r.content:
                logger.debug("Favicon source returned {} instead of an image: {}", content_type, url)
                continue
            return FetchedIcon(content_type=content_type, data=r.content, source=url)
        return None


def is_stale(updated_at: int, *, now_ms: int | None = None) -> bool:
    """True when a cache stamp is missing or older than the refresh interval."""
    if not updated_at:
        return True
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return now_ms - updated_at > FAVICON_MAX_AGE_MS


def cache_favicon(store: NavigationStore, fetcher: FaviconFetcherProtocol, host: str) -> bool:
    """Fetch one host's icon into the cache. Returns True if an icon was obtained."""
    icon = fetcher.fetch(host)
    if icon is None:
        logger.debug("No favicon found for {}", host)
        return False
    store.put_favicon(host, icon.content_type, icon.data)
    return True


def _hosts_to_refresh(
    store: NavigationStore, urls: Iterable[str] | None, *, force: bool, now_ms: int
) -> list[str]:
    explicit = [h for h in (extract_host(u) for u in urls or ()) if h]
    if explicit:
        return list(dict.fromkeys(explicit))
    tree = load_for_edit(store)
    hosts = []
    for hit in flatten_sites(tree):
        host = extract_host(hit.site.url)
        if host and (force or is_stale(hit.site.favicon_updated_at, now_ms=now_ms)):
            hosts.append(host)
    return list(dict.fromkeys(hosts))


def refresh_favicons(
    store: NavigationStore,
    fetcher: FaviconFetcherProtocol,
    *,
    urls: Iterable[str] | None = None,
    force: bool = False,
    max_workers: int = FAVICON_WORKERS,
) -> RefreshSummary:
    """Refresh cached icons and point the affected sites at them.

    With explicit urls only their hosts are refreshed. Otherwise every host
    in the tree is refreshed when force is set, or just the stale ones.
    """
    now_ms = int(time.time() * 1000)
    hosts = _hosts_to_refresh(store, urls, force=force, now_ms=now_ms)
    summary = RefreshSummary(total=len(hosts))
    if not hosts:
        return summary

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(hosts)))) as pool:
        results = list(pool.map(fetcher.fetch, hosts))

    fetched: dict[str, FetchedIcon] = {}
    for host, icon in zip(hosts, results, strict=True):
        if icon is None:
            summary.failed.append(host)
            continue
        fetched[host] = icon
        if store.put_favicon(host, icon.content_type, icon.data):
            summary.stored += 1
    summary.refreshed = len(fetched)
    logger.info("Refreshed {} of {} favicons", summary.refreshed, summary.total)
    if not fetched:
        return summary

    def point_at_cache(site: SiteEntry) -> SiteEntry:
        host = extract_host(site.url)
        if host is None or host not in fetched:
            return site
        return replace(site, favicon=favicon_path(host), favicon_updated_at=now_ms)

    old = load_for_edit(store)
    new, summary.updated_sites = map_sites(old, point_at_cache)
    commit(store, old, new)
    return summary
