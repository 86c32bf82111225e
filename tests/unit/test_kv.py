"""Tests for the key-value backends."""

import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from linkshelf.core.storage.kv import MemoryKvStore, SqliteKvStore
from linkshelf.core.storage.schema import SCHEMA_VERSION, get_schema_version
from linkshelf.core.storage.store import NavigationStore
from linkshelf.models.node import NavigationTree
from linkshelf.protocols import KvStoreProtocol


def test_sqlite_store_round_trip(tmp_path: Path) -> None:
    kv = SqliteKvStore(tmp_path / "nested" / "kv.db")
    try:
        kv.put("nav:a", b"one")
        kv.put("nav:a", b"two")
        assert kv.get("nav:a") == b"two"
        assert kv.get("missing") is None
        kv.delete("nav:a")
        kv.delete("nav:a")
        assert kv.get("nav:a") is None
    finally:
        kv.close()


def test_sqlite_store_persists_across_connections(tmp_path: Path) -> None:
    path = tmp_path / "kv.db"
    kv = SqliteKvStore(path)
    kv.put("fav:example.com", b"\x00\x01")
    kv.close()

    reopened = SqliteKvStore(path)
    try:
        assert reopened.get("fav:example.com") == b"\x00\x01"
    finally:
        reopened.close()


def test_sqlite_list_keys_treats_prefix_literally(tmp_path: Path) -> None:
    kv = SqliteKvStore(tmp_path / "kv.db")
    try:
        for key in ("fav:a", "fav:b", "nav:x", "fa%:c", "last_updated"):
            kv.put(key, b"v")
        assert kv.list_keys("fav:") == ["fav:a", "fav:b"]
        assert kv.list_keys("fa%") == ["fa%:c"]
        assert len(kv.list_keys()) == 5
    finally:
        kv.close()


def test_sqlite_schema_is_created(tmp_path: Path) -> None:
    path = tmp_path / "kv.db"
    SqliteKvStore(path).close()
    conn = sqlite3.connect(str(path))
    try:
        assert get_schema_version(conn) == SCHEMA_VERSION
    finally:
        conn.close()


@pytest.fixture(params=["sqlite", "memory"])
def backend(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[KvStoreProtocol]:
    if request.param == "memory":
        yield MemoryKvStore()
        return
    kv = SqliteKvStore(tmp_path / "kv.db")
    try:
        yield kv
    finally:
        kv.close()


def test_backend_contract(backend: KvStoreProtocol) -> None:
    backend.put("nav:a", b"1")
    backend.put("nav:b", b"2")
    backend.put("fav:x", b"\x00")
    assert backend.list_keys("nav:") == ["nav:a", "nav:b"]
    assert backend.list_keys() == ["fav:x", "nav:a", "nav:b"]
    backend.delete("nav:a")
    backend.delete("nav:a")
    assert backend.get("nav:a") is None
    assert backend.get("fav:x") == b"\x00"


def test_navigation_store_over_backend(backend: KvStoreProtocol, sample_tree: NavigationTree) -> None:
    store = NavigationStore(backend)
    store.write_document(sample_tree)
    assert NavigationStore(backend).read_document() == sample_tree
    assert store.clear_all() == 2
    assert backend.list_keys() == []


def test_memory_store_copies_initial_data() -> None:
    initial = {"nav:a": b"1"}
    kv = MemoryKvStore(initial)
    kv.put("nav:b", b"2")
    assert "nav:b" not in initial


def test_backends_satisfy_protocol(tmp_path: Path) -> None:
    sqlite_kv = SqliteKvStore(tmp_path / "kv.db")
    try:
        assert isinstance(sqlite_kv, KvStoreProtocol)
        assert isinstance(MemoryKvStore(), KvStoreProtocol)
    finally:
        sqlite_kv.close()
