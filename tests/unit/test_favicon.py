"""Tests for favicon fetching and caching."""

from unittest.mock import MagicMock, patch

import requests

from linkshelf.config import FAVICON_MAX_AGE_MS
from linkshelf.core.storage.store import NavigationStore
from linkshelf.favicon import (
    ICON_SOURCES,
    FaviconFetcher,
    cache_favicon,
    is_stale,
    refresh_favicons,
)
from tests.unit.fakes import FakeFetcher, FakeKv


def _response(status: int = 200, content_type: str = "image/png", body: bytes = b"icon") -> MagicMock:
    r = MagicMock()
    r.status_code = status
    r.headers = {"Content-Type": content_type}
    r.content = body
    return r


def test_fetch_returns_first_image() -> None:
    fetcher = FaviconFetcher(timeout=1.0)
    with patch.object(fetcher.sess, "get", return_value=_response()) as get:
        icon = fetcher.fetch("Example.com")
    assert icon is not None
    assert icon.data == b"icon"
    assert icon.content_type == "image/png"
    assert icon.source == ICON_SOURCES[0].format(host="example.com")
    get.assert_called_once_with(icon.source, timeout=1.0)


def test_fetch_falls_through_to_next_source() -> None:
    fetcher = FaviconFetcher()
    responses = [_response(status=404), _response(content_type="image/x-icon; charset=binary")]
    with patch.object(fetcher.sess, "get", side_effect=responses):
        icon = fetcher.fetch("example.com")
    assert icon is not None
    assert icon.content_type == "image/x-icon"
    assert icon.source == "https://example.com/favicon.ico"


def test_fetch_skips_network_errors_and_non_images() -> None:
    fetcher = FaviconFetcher()
    responses = [requests.ConnectionError("down"), _response(content_type="text/html")]
    with patch.object(fetcher.sess, "get", side_effect=responses):
        assert fetcher.fetch("example.com") is None


def test_fetch_rejects_empty_body() -> None:
    fetcher = FaviconFetcher()
    with patch.object(fetcher.sess, "get", return_value=_response(body=b"")):
        assert fetcher.fetch("example.com") is None


def test_fetch_ignores_blank_host() -> None:
    fetcher = FaviconFetcher()
    with patch.object(fetcher.sess, "get") as get:
        assert fetcher.fetch("  ") is None
    get.assert_not_called()


def test_is_stale() -> None:
    now = 10 * FAVICON_MAX_AGE_MS
    assert is_stale(0, now_ms=now)
    assert not is_stale(now - 1000, now_ms=now)
    assert is_stale(now - FAVICON_MAX_AGE_MS - 1, now_ms=now)


def test_cache_favicon(store: NavigationStore, fetcher: FakeFetcher) -> None:
    assert cache_favicon(store, fetcher, "github.com")
    record = store.get_favicon("github.com")
    assert record is not None and record.data == b"\x89PNG-github"
    assert not cache_favicon(store, fetcher, "unknown.example")


def test_refresh_all_points_sites_at_cache(
    seeded_store: NavigationStore, fetcher: FakeFetcher
) -> None:
    summary = refresh_favicons(seeded_store, fetcher, max_workers=2)

    assert summary.total == 4
    assert summary.refreshed == 1
    assert summary.stored == 1
    assert summary.updated_sites == 1
    assert sorted(summary.failed) == [
        "code.visualstudio.com",
        "gitlab.com",
        "news.ycombinator.com",
    ]
    tree = seeded_store.read_document()
    assert tree is not None
    github = tree.categories[0].sites[0]
    assert github.favicon == "/api/favicon/github.com"
    assert github.favicon_updated_at > 0


def test_refresh_skips_fresh_sites_unless_forced(
    seeded_store: NavigationStore, fetcher: FakeFetcher
) -> None:
    refresh_favicons(seeded_store, fetcher)
    fetcher.calls.clear()

    again = refresh_favicons(seeded_store, fetcher)
    assert "github.com" not in fetcher.calls
    assert again.total == 3

    forced = refresh_favicons(seeded_store, fetcher, force=True)
    assert forced.total == 4
    assert forced.stored == 0


def test_refresh_explicit_urls(seeded_store: NavigationStore, fetcher: FakeFetcher) -> None:
    summary = refresh_favicons(
        seeded_store, fetcher, urls=["https://github.com/a", "https://github.com/b"]
    )
    assert summary.total == 1
    assert fetcher.calls == ["github.com"]


def test_refresh_with_no_icons_writes_nothing(seeded_store: NavigationStore, kv: FakeKv) -> None:
    summary = refresh_favicons(seeded_store, FakeFetcher())
    assert summary.refreshed == 0
    assert kv.puts == []
