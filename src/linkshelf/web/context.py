"""Per-application state and response helpers shared by the blueprints."""

import threading
import time
from dataclasses import dataclass, field
from typing import Any

from flask import current_app, g, jsonify
from flask.typing import ResponseReturnValue

from linkshelf.config import Settings
from linkshelf.core.storage.store import NavigationStore
from linkshelf.favicon import is_stale
from linkshelf.protocols import FaviconFetcherProtocol, KvStoreProtocol

EXTENSION_KEY = "linkshelf"


@dataclass
class WebState:
    """Resources owned by one Flask app."""

    settings: Settings
    kv: KvStoreProtocol | None
    fetcher: FaviconFetcherProtocol
    # Refresh stale favicons inline instead of on a daemon thread.
    sync_favicon_refresh: bool = False
    _refresh_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _refreshing: set[str] = field(default_factory=set, init=False, repr=False)
    _checked_at: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def claim_favicon_refresh(self, host: str, *, now_ms: int | None = None) -> bool:
        """Reserve a refresh of host unless one is running or ran within the staleness window."""
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        with self._refresh_lock:
            if host in self._refreshing:
                return False
            checked = self._checked_at.get(host, 0)
            if checked and not is_stale(checked, now_ms=now_ms):
                return False
            self._refreshing.add(host)
            self._checked_at[host] = now_ms
            return True

    def release_favicon_refresh(self, host: str) -> None:
        with self._refresh_lock:
            self._refreshing.discard(host)


def get_state() -> WebState:
    return current_app.extensions[EXTENSION_KEY]  # type: ignore[no-any-return]


def get_store() -> NavigationStore:
    """One NavigationStore (and read cache) per request."""
    if "store" not in g:
        g.store = NavigationStore(get_state().kv)
    return g.store  # type: ignore[no-any-return]


def ok(data: Any = None, status: int = 200) -> ResponseReturnValue:
    return jsonify({"success": True, "data": data}), status


def fail(message: str, status: int = 400, headers: dict[str, str] | None = None) -> ResponseReturnValue:
    return jsonify({"success": False, "error": message}), status, headers or {}
