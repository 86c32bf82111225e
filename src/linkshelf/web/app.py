"""Flask application factory."""

from flask import Flask
from flask.typing import ResponseReturnValue
from loguru import logger
from werkzeug.exceptions import HTTPException

from linkshelf.config import Settings, load_settings
from linkshelf.core.storage.kv import SqliteKvStore
from linkshelf.errors import LinkshelfError
from linkshelf.favicon import FaviconFetcher
from linkshelf.protocols import FaviconFetcherProtocol, KvStoreProtocol
from linkshelf.web.admin import admin_bp
from linkshelf.web.context import EXTENSION_KEY, WebState, fail
from linkshelf.web.public import public_bp


def create_app(
    settings: Settings | None = None,
    *,
    kv: KvStoreProtocol | None = None,
    fetcher: FaviconFetcherProtocol | None = None,
) -> Flask:
    """Build the app around one KV store and one favicon fetcher.

    Without an explicit kv the SQLite database at settings.db_path is opened.
    """
    settings = settings or load_settings()
    if kv is None:
        settings.db_path.parent.mkdir(parents=True, exist_ok=True)
        kv = SqliteKvStore(settings.db_path)
    if fetcher is None:
        fetcher = FaviconFetcher(timeout=settings.favicon_timeout)

    app = Flask(__name__)
    app.json.ensure_ascii = False  # type: ignore[attr-defined]
    app.extensions[EXTENSION_KEY] = WebState(settings=settings, kv=kv, fetcher=fetcher)
    app.register_blueprint(public_bp)
    app.register_blueprint(admin_bp)

    @app.errorhandler(LinkshelfError)
    def handle_linkshelf_error(e: LinkshelfError) -> ResponseReturnValue:
        if e.status_code >= 500:
            logger.error("{}", e)
        else:
            logger.debug("Request failed ({}): {}", e.status_code, e)
        return fail(str(e), e.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException) -> ResponseReturnValue:
        return fail(e.description or e.name, e.code or 500)

    logger.debug("Created web app with database {}", settings.db_path)
    return app
