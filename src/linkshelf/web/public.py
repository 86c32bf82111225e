"""Public, read-only endpoints."""

import threading
from datetime import UTC, datetime

from flask import Blueprint, Response, request
from flask.typing import ResponseReturnValue
from loguru import logger

from linkshelf.core.search.searcher import flatten_sites, navigation_stats, search_sites
from linkshelf.core.storage.store import NavigationStore
from linkshelf.core.write.commit import load_for_display
from linkshelf.errors import LinkshelfError, StorageUnavailableError
from linkshelf.favicon import cache_favicon, is_stale
from linkshelf.models.node import normalize_host
from linkshelf.web.context import WebState, fail, get_state, get_store, ok

public_bp = Blueprint("public", __name__, url_prefix="/api")

FAVICON_CACHE_CONTROL = "public, max-age=604800"


@public_bp.get("/navigation")
def navigation() -> ResponseReturnValue:
    return ok(load_for_display(get_store()).to_dict())


@public_bp.get("/sites")
def sites() -> ResponseReturnValue:
    tree = load_for_display(get_store())
    return ok([hit.to_dict() for hit in flatten_sites(tree)])


@public_bp.get("/search")
def search() -> ResponseReturnValue:
    query = request.args.get("q", "").strip()
    if not query:
        return fail("Search query must not be empty", 400)
    limit = request.args.get("limit", type=int)
    offset = request.args.get("offset", default=0, type=int)
    hits, total = search_sites(load_for_display(get_store()), query, limit=limit, offset=offset)
    return ok({"query": query, "results": [h.to_dict() for h in hits], "total": total})


@public_bp.get("/stats")
def stats() -> ResponseReturnValue:
    store = get_store()
    try:
        last_updated = store.last_updated()
    except StorageUnavailableError:
        last_updated = None
    tree = load_for_display(store)
    result = navigation_stats(
        tree, last_updated=last_updated or datetime.now(tz=UTC).isoformat()
    )
    return ok(result.to_dict())


def _refresh_in_background(state: WebState, host: str) -> None:
    def work() -> None:
        # The request-scoped store must not cross threads.
        try:
            cache_favicon(NavigationStore(state.kv), state.fetcher, host)
        except LinkshelfError as e:
            logger.warning("Background favicon refresh for {} failed: {}", host, e)
        finally:
            state.release_favicon_refresh(host)

    threading.Thread(target=work, name=f"favicon-{host}", daemon=True).start()


@public_bp.get("/favicon/<path:host>")
def favicon(host: str) -> ResponseReturnValue:
    host = normalize_host(host)
    if not host:
        return fail("Host must not be empty", 400)
    state = get_state()
    store = get_store()
    record = store.get_favicon(host)
    if (record is None or is_stale(record.updated_at)) and state.claim_favicon_refresh(host):
        if state.sync_favicon_refresh:
            try:
                cache_favicon(store, state.fetcher, host)
            finally:
                state.release_favicon_refresh(host)
            record = store.get_favicon(host)
        else:
            _refresh_in_background(state, host)
    if record is None:
        return fail("Favicon not cached", 404)
    return Response(
        record.data,
        status=200,
        mimetype=record.content_type,
        headers={"Cache-Control": FAVICON_CACHE_CONTROL},
    )
