"""Protocols for dependency injection in the link directory."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KvStoreProtocol(Protocol):
    """Protocol for key-value backends holding the document and favicons."""

    def get(self, key: str) -> bytes | None:
        """Return the stored value, or None if the key is absent."""
        ...

    def put(self, key: str, value: bytes) -> None:
        """Store value under key, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove key; missing keys are ignored."""
        ...

    def list_keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with prefix, sorted."""
        ...


@runtime_checkable
class FaviconFetcherProtocol(Protocol):
    """Protocol for clients that download site icons."""

    def fetch(self, host: str) -> Any | None:
        """Return a fetched icon for host, or None if every source failed."""
        ...
