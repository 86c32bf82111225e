"""Configuration constants and environment overrides for linkshelf."""

import os
from dataclasses import dataclass
from pathlib import Path

# Data directory. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/linkshelf").expanduser(),
    Path("~/.linkshelf").expanduser(),
]

DB_FILENAME = "linkshelf.db"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8787

# Outbound favicon requests.
FAVICON_TIMEOUT = 5.0
FAVICON_WORKERS = 8
FAVICON_MAX_AGE_MS = 7 * 24 * 60 * 60 * 1000

# Signed admin tokens.
ADMIN_TOKEN_MAX_AGE = 24 * 60 * 60
ADMIN_TOKEN_SALT = "linkshelf-admin"


def resolve_data_directory() -> Path:
    """Return the first existing data directory, or the first candidate."""
    env_dir = os.environ.get("LINKSHELF_DATA_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    for d in DATA_DIRECTORIES:
        if d.exists():
            return d
    return DATA_DIRECTORIES[0]


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the web server, MCP server and CLI."""

    data_dir: Path
    db_path: Path
    admin_password: str | None = None
    secret_key: str | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    favicon_timeout: float = FAVICON_TIMEOUT

    @property
    def signing_key(self) -> str | None:
        """Key for signed admin tokens; falls back to the admin password."""
        return self.secret_key or self.admin_password


def load_settings(
    *,
    data_dir: Path | None = None,
    db_path: Path | None = None,
) -> Settings:
    """Build settings from arguments, then environment variables, then defaults."""
    resolved_dir = data_dir or resolve_data_directory()
    env_db = os.environ.get("LINKSHELF_DB_PATH")
    resolved_db = db_path or (Path(env_db).expanduser() if env_db else resolved_dir / DB_FILENAME)
    port_env = os.environ.get("LINKSHELF_PORT", "")
    try:
        port = int(port_env) if port_env else DEFAULT_PORT
    except ValueError:
        msg = f"LINKSHELF_PORT must be an integer, got {port_env!r}"
        raise ValueError(msg) from None
    return Settings(
        data_dir=resolved_dir,
        db_path=resolved_db,
        admin_password=os.environ.get("LINKSHELF_ADMIN_PASSWORD") or None,
        secret_key=os.environ.get("LINKSHELF_SECRET_KEY") or None,
        host=os.environ.get("LINKSHELF_HOST") or DEFAULT_HOST,
        port=port,
    )
