"""Personal link directory with a JSON API, an MCP server and a CLI."""

from linkshelf.core.storage.kv import MemoryKvStore, SqliteKvStore
from linkshelf.core.storage.store import NavigationStore
from linkshelf.models.node import CategoryNode, NavigationTree, SiteEntry
from linkshelf.protocols import FaviconFetcherProtocol, KvStoreProtocol

__version__ = "0.1.0"

__all__ = [
    "CategoryNode",
    "FaviconFetcherProtocol",
    "KvStoreProtocol",
    "MemoryKvStore",
    "NavigationStore",
    "NavigationTree",
    "SiteEntry",
    "SqliteKvStore",
]
