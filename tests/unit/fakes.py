"""Fake implementations for testing the link directory."""

from linkshelf.errors import StorageUnavailableError
from linkshelf.favicon import FetchedIcon


class FakeKv:
    """In-memory key-value store that records every write.

    Set ``fail`` to make every call raise StorageUnavailableError.
    """

    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.puts: list[str] = []
        self.deletes: list[str] = []
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            msg = "FakeKv: backend is down"
            raise StorageUnavailableError(msg)

    def get(self, key: str) -> bytes | None:
        self._check()
        return self.data.get(key)

    def put(self, key: str, value: bytes) -> None:
        self._check()
        self.puts.append(key)
        self.data[key] = value

    def delete(self, key: str) -> None:
        self._check()
        self.deletes.append(key)
        self.data.pop(key, None)

    def list_keys(self, prefix: str = "") -> list[str]:
        self._check()
        return sorted(k for k in self.data if k.startswith(prefix))


class FakeFetcher:
    """Serves predefined icons by host and records every lookup."""

    def __init__(self, icons: dict[str, bytes] | None = None) -> None:
        self.icons = dict(icons or {})
        self.calls: list[str] = []

    def fetch(self, host: str) -> FetchedIcon | None:
        self.calls.append(host)
        data = self.icons.get(host)
        if data is None:
            return None
        return FetchedIcon(content_type="image/png", data=data, source=f"fake://{host}")
