"""Persistence adapter between the navigation tree and a key-value backend.

Key layout:

* ``nav:__snapshot__``: the whole document as JSON.
* ``last_updated``: ISO-8601 UTC time of the last document write.
* ``fav:<url-encoded host>``: JSON ``{contentType, data, updatedAt}`` with
  base64 icon bytes.

A ``NavigationStore`` is meant to live for one request or one command; it
caches what it reads and refreshes the cache on every write.
"""

import base64
import binascii
import json
import time
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

from loguru import logger

from linkshelf.core.tree.planner import SiteListUpdate
from linkshelf.core.tree.resolver import Address, replace_at, resolve
from linkshelf.errors import NotFoundError, StorageUnavailableError, ValidationError
from linkshelf.models.node import NavigationTree, SiteEntry, normalize_host
from linkshelf.protocols import KvStoreProtocol

NAV_PREFIX = "nav:"
SNAPSHOT_KEY = f"{NAV_PREFIX}__snapshot__"
LAST_UPDATED_KEY = "last_updated"
FAV_PREFIX = "fav:"


def favicon_key(host: str) -> str:
    return FAV_PREFIX + quote(normalize_host(host), safe="")


@dataclass(frozen=True)
class FaviconRecord:
    content_type: str
    data: bytes
    updated_at: int

    @classmethod
    def from_json(cls, raw: bytes) -> "FaviconRecord | None":
        try:
            stored = json.loads(raw)
            data = base64.b64decode(stored["data"], validate=True)
            content_type = str(stored["contentType"])
        except (ValueError, KeyError, TypeError, binascii.Error):
            return None
        if not data or not content_type:
            return None
        return cls(content_type=content_type, data=data, updated_at=int(stored.get("updatedAt") or 0))

    def to_json(self) -> bytes:
        return json.dumps(
            {
                "contentType": self.content_type,
                "data": base64.b64encode(self.data).decode("ascii"),
                "updatedAt": self.updated_at,
            }
        ).encode("utf-8")


def _now_ms() -> int:
    return int(time.time() * 1000)


class NavigationStore:
    """Reads and writes the navigation document and the favicon keyspace."""

    def __init__(self, kv: KvStoreProtocol | None) -> None:
        self.kv = kv
        self._cache: dict[str, bytes | None] = {}

    @property
    def available(self) -> bool:
        return self.kv is not None

    def _kv(self) -> KvStoreProtocol:
        if self.kv is None:
            msg = "Key-value storage is not configured"
            raise StorageUnavailableError(msg)
        return self.kv

    def _get(self, key: str) -> bytes | None:
        if key not in self._cache:
            self._cache[key] = self._kv().get(key)
        return self._cache[key]

    def _put(self, key: str, value: bytes) -> None:
        self._kv().put(key, value)
        self._cache[key] = value

    def clear_cache(self) -> None:
        self._cache.clear()

    # --- Document ---

    def has_document(self) -> bool:
        """True when a snapshot is stored, whether or not it parses."""
        return self._get(SNAPSHOT_KEY) is not None

    def read_raw_document(self) -> dict[str, Any] | None:
        """Return the stored JSON document, or None if nothing usable is stored."""
        raw = self._get(SNAPSHOT_KEY)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Stored navigation document is not valid JSON, ignoring it")
            return None
        if not isinstance(data, dict) or not isinstance(data.get("categories"), list):
            return None
        return data

    def read_document(self) -> NavigationTree | None:
        raw = self.read_raw_document()
        if raw is None:
            return None
        try:
            return NavigationTree.from_dict(raw)
        except ValidationError as e:
            logger.warning("Stored navigation document is unusable: {}", e)
            return None

    def write_document(self, tree: NavigationTree) -> None:
        """Write the whole tree in one put and stamp last_updated."""
        payload = json.dumps(tree.to_dict(), ensure_ascii=False).encode("utf-8")
        self._put(SNAPSHOT_KEY, payload)
        self._touch_last_updated()
        logger.debug("Wrote navigation document ({} bytes)", len(payload))

    def _touch_last_updated(self) -> None:
        stamp = datetime.now(tz=UTC).isoformat().replace("+00:00", "Z")
        self._put(LAST_UPDATED_KEY, stamp.encode("utf-8"))

    def last_updated(self) -> str | None:
        raw = self._get(LAST_UPDATED_KEY)
        return raw.decode("utf-8") if raw is not None else None

    # --- Site lists by title path ---

    def read_folder_sites(self, title_path: Iterable[str]) -> tuple[SiteEntry, ...]:
        tree = self.read_document()
        if tree is None:
            msg = "Navigation document is not initialized"
            raise NotFoundError(msg)
        return resolve(tree.categories, Address.by_title(*title_path)).target.sites

    def write_folder_sites_bulk(self, updates: Iterable[SiteListUpdate]) -> int:
        """Replace several site lists with exactly one document put.

        Title paths are matched exactly as given. Updates for the same path
        are de-duplicated, the last one wins. Every path must resolve, or
        nothing is written. Returns the number of distinct paths written.
        """
        dedup: dict[tuple[str, ...], SiteListUpdate] = {}
        for update in updates:
            path = tuple(update.title_path)
            if not path:
                msg = "Site list update has an empty title path"
                raise ValidationError(msg)
            dedup[path] = update
        if not dedup:
            return 0

        tree = self.read_document()
        if tree is None:
            msg = "Navigation document is not initialized"
            raise NotFoundError(msg)

        categories = tree.categories
        for path, update in dedup.items():
            index_path = resolve(categories, Address.by_title(*path)).index_path
            categories = replace_at(
                categories, index_path, lambda node, sites=update.sites: replace(node, sites=sites)
            )
        self.write_document(replace(tree, categories=categories))
        return len(dedup)

    # --- Favicons ---

    def get_favicon(self, host: str) -> FaviconRecord | None:
        raw = self._get(favicon_key(host))
        return FaviconRecord.from_json(raw) if raw is not None else None

    def put_favicon(self, host: str, content_type: str, data: bytes) -> bool:
        """Store icon bytes for host.

        Returns False, without writing, when the stored bytes are identical.
        """
        existing = self.get_favicon(host)
        if existing and existing.data == data and existing.content_type == content_type:
            return False
        record = FaviconRecord(content_type=content_type, data=data, updated_at=_now_ms())
        self._put(favicon_key(host), record.to_json())
        return True

    # --- Maintenance ---

    def clear_all(self) -> int:
        """Delete the document, the favicon cache and the timestamp."""
        kv = self._kv()
        keys = [*kv.list_keys(NAV_PREFIX), *kv.list_keys(FAV_PREFIX), LAST_UPDATED_KEY]
        for key in keys:
            kv.delete(key)
        self.clear_cache()
        logger.info("Cleared {} stored keys", len(keys))
        return len(keys)

    def storage_info(self) -> dict[str, Any]:
        if self.kv is None:
            return {"available": False, "hasData": False, "lastUpdated": None}
        has_data = bool(self.kv.list_keys(NAV_PREFIX))
        raw = self._get(SNAPSHOT_KEY) if has_data else None
        return {
            "available": True,
            "hasData": has_data,
            "lastUpdated": self.last_updated(),
            "dataSize": len(raw) if raw else 0,
            "favicons": len(self.kv.list_keys(FAV_PREFIX)),
        }
