"""Admin endpoints. Every mutation loads, applies one operation and commits through the planner."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from flask import Blueprint, make_response, request
from flask.typing import ResponseReturnValue
from loguru import logger

from linkshelf.config import ADMIN_TOKEN_MAX_AGE
from linkshelf.core.importer.bookmarks import merge_bookmarks, parse_bookmarks_html
from linkshelf.core.tree import operations as ops
from linkshelf.core.tree.planner import WritePlan
from linkshelf.core.tree.resolver import Address
from linkshelf.core.write.commit import commit, load_for_edit, save_document
from linkshelf.errors import ValidationError
from linkshelf.favicon import refresh_favicons
from linkshelf.models.node import NavigationTree
from linkshelf.web.auth import TOKEN_COOKIE, check_admin, issue_token, password_matches
from linkshelf.web.context import fail, get_state, get_store, ok
from linkshelf.web.payloads import (
    items_from,
    json_body,
    optional_address,
    require_address,
    site_refs_from,
)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

_PUBLIC_ENDPOINTS = {"admin.login"}


@admin_bp.before_request
def require_admin() -> ResponseReturnValue | None:
    if request.endpoint in _PUBLIC_ENDPOINTS:
        return None
    return check_admin()


def _apply(op: Callable[[NavigationTree], tuple[NavigationTree, Any]]) -> tuple[WritePlan, Any]:
    store = get_store()
    old = load_for_edit(store)
    new, result = op(old)
    plan = commit(store, old, new)
    return plan, result


def _committed(plan: WritePlan, data: dict[str, Any], status: int = 200) -> ResponseReturnValue:
    return ok({**data, "mode": plan.kind}, status)


def _text(body: dict[str, Any], key: str) -> str | None:
    value = body.get(key)
    return None if value is None else str(value)


def _order(body: dict[str, Any]) -> list[str]:
    order = body.get("order")
    if not isinstance(order, list):
        msg = "order must be a list"
        raise ValidationError(msg)
    return [str(o) for o in order]


def _target(body: dict[str, Any]) -> Address | None:
    if body.get("targetCategoryId"):
        return Address.by_id(str(body["targetCategoryId"]))
    target = body.get("target")
    return optional_address(target) if isinstance(target, dict) else None


# --- Auth ---


@admin_bp.post("/auth/login")
def login() -> ResponseReturnValue:
    if not get_state().settings.admin_password:
        return fail("Admin password is not configured", 503)
    body = json_body()
    if not password_matches(str(body.get("password") or "")):
        logger.warning("Rejected admin login from {}", request.remote_addr)
        return fail("Invalid password", 401)
    token = issue_token()
    response = make_response(ok({"token": token, "expiresIn": ADMIN_TOKEN_MAX_AGE}))
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=ADMIN_TOKEN_MAX_AGE,
        httponly=True,
        samesite="Lax",
        secure=request.is_secure,
    )
    return response


# --- Whole document ---


@admin_bp.get("/data")
def read_data() -> ResponseReturnValue:
    store = get_store()
    tree = load_for_edit(store)
    return ok({"data": tree.to_dict(), "dataSource": "kv", "storageInfo": store.storage_info()})


@admin_bp.post("/data")
def save_data() -> ResponseReturnValue:
    body = json_body()
    payload = body.get("data", body)
    if not isinstance(payload, dict):
        msg = "data must be a navigation document"
        raise ValidationError(msg)
    store = get_store()
    plan = save_document(store, NavigationTree.from_dict(payload))
    timestamp = store.last_updated() or datetime.now(tz=UTC).isoformat()
    return _committed(plan, {"plan": plan.to_dict(), "timestamp": timestamp})


@admin_bp.delete("/data")
def reset_data() -> ResponseReturnValue:
    cleared = get_store().clear_all()
    return ok({"cleared": cleared})


# --- Root categories by id ---


@admin_bp.post("/categories")
def create_category() -> ResponseReturnValue:
    body = json_body()
    category_id = str(body.get("id") or "")

    def op(tree: NavigationTree) -> tuple[NavigationTree, None]:
        return ops.add_category(tree, category_id, str(body.get("title") or ""), _text(body, "icon")), None

    plan, _ = _apply(op)
    return _committed(plan, {"id": category_id}, 201)


@admin_bp.put("/categories/<category_id>")
def update_category(category_id: str) -> ResponseReturnValue:
    body = json_body()

    def op(tree: NavigationTree) -> tuple[NavigationTree, Any]:
        new = ops.update_root_category(tree, category_id, _text(body, "title"), _text(body, "icon"))
        return new, ops.get_root_category(new, category_id)

    plan, node = _apply(op)
    return _committed(plan, {"category": node.to_dict()})


@admin_bp.delete("/categories/<category_id>")
def remove_category(category_id: str) -> ResponseReturnValue:
    plan, deleted = _apply(lambda tree: ops.delete_category(tree, Address.by_id(category_id)))
    return _committed(
        plan,
        {"deletedCategories": deleted.categories, "deletedSites": deleted.sites},
    )


# --- Categories by any address ---


@admin_bp.post("/categories/path")
def create_subcategory() -> ResponseReturnValue:
    body = json_body()
    address = require_address(body)
    plan, node = _apply(
        lambda tree: ops.add_subcategory(
            tree,
            address,
            str(body.get("title") or ""),
            _text(body, "icon"),
            _text(body, "id"),
        )
    )
    return _committed(plan, {"category": node.to_dict()}, 201)


@admin_bp.patch("/categories/path")
def edit_category() -> ResponseReturnValue:
    body = json_body()
    address = require_address(body)
    plan, _ = _apply(
        lambda tree: (ops.edit_category(tree, address, _text(body, "title"), _text(body, "icon")), None)
    )
    return _committed(plan, {"path": address.describe()})


@admin_bp.delete("/categories/path")
def delete_category() -> ResponseReturnValue:
    address = require_address(json_body())
    plan, deleted = _apply(lambda tree: ops.delete_category(tree, address))
    return _committed(
        plan,
        {"deletedCategories": deleted.categories, "deletedSites": deleted.sites},
    )


@admin_bp.post("/categories/reorder")
def reorder_categories() -> ResponseReturnValue:
    body = json_body()
    order = _order(body)
    parent = optional_address({"path": body.get("parentPath"), "by": body.get("by")})
    plan, _ = _apply(lambda tree: (ops.reorder_categories(tree, parent, order), None))
    return _committed(plan, {"order": order})


# --- Sites ---


@admin_bp.post("/sites")
def create_site() -> ResponseReturnValue:
    body = json_body()
    if body.get("categoryId"):
        address = Address.by_id(str(body["categoryId"]))
    else:
        address = require_address(body)
    fields = body.get("site") if isinstance(body.get("site"), dict) else body
    plan, site = _apply(lambda tree: ops.add_site(tree, address, fields))
    return _committed(plan, {"site": site.to_dict()}, 201)


@admin_bp.put("/sites")
def batch_upsert_sites() -> ResponseReturnValue:
    body = json_body()
    mode = str(body.get("mode") or "add")
    items = items_from(body)
    if mode == "add":
        additions = [
            (require_address(item), item.get("site") if isinstance(item.get("site"), dict) else {})
            for item in items
        ]
        plan, result = _apply(lambda tree: ops.batch_add_sites(tree, additions))
    elif mode == "update":
        updates = [
            (
                ops.SiteRef(address=require_address(item), title=str(item.get("title") or "")),
                item.get("update") if isinstance(item.get("update"), dict) else {},
            )
            for item in items
        ]
        plan, result = _apply(lambda tree: ops.batch_update_sites(tree, updates))
    else:
        msg = f"Unknown batch mode {mode!r}, expected add or update"
        raise ValidationError(msg)
    return _committed(plan, result.to_dict())


@admin_bp.patch("/sites")
def batch_move_sites() -> ResponseReturnValue:
    body = json_body()
    refs = site_refs_from(items_from(body))
    destination = _target(body)
    plan, result = _apply(lambda tree: ops.batch_move_sites(tree, refs, destination))
    return _committed(plan, result.to_dict())


@admin_bp.delete("/sites")
def batch_delete_sites() -> ResponseReturnValue:
    refs = site_refs_from(items_from(json_body()))
    plan, result = _apply(lambda tree: ops.batch_delete_sites(tree, refs))
    return _committed(plan, result.to_dict())


@admin_bp.post("/sites/reorder")
def reorder_sites() -> ResponseReturnValue:
    body = json_body()
    address = require_address(body)
    order = _order(body)
    plan, _ = _apply(lambda tree: (ops.reorder_sites(tree, address, order), None))
    return _committed(plan, {"order": order})


@admin_bp.put("/sites/<category_id>/<path:title>")
def update_site(category_id: str, title: str) -> ResponseReturnValue:
    changes = json_body()
    plan, site = _apply(
        lambda tree: ops.update_site(tree, Address.by_id(category_id), title, changes)
    )
    return _committed(plan, {"site": site.to_dict()})


@admin_bp.delete("/sites/<category_id>/<path:title>")
def delete_site(category_id: str, title: str) -> ResponseReturnValue:
    plan, site = _apply(lambda tree: ops.delete_site(tree, Address.by_id(category_id), title))
    return _committed(plan, {"site": site.to_dict()})


@admin_bp.patch("/sites/<category_id>/<path:title>/move")
def move_site(category_id: str, title: str) -> ResponseReturnValue:
    destination = _target(json_body(required=False))
    plan, site = _apply(
        lambda tree: ops.move_site(tree, Address.by_id(category_id), title, destination)
    )
    return _committed(plan, {"site": site.to_dict()})


# --- Favicons and import ---


@admin_bp.post("/sites/favicon/refresh")
def refresh_site_favicons() -> ResponseReturnValue:
    body = json_body(required=False)
    urls = body.get("urls")
    if urls is not None and not isinstance(urls, list):
        msg = "urls must be a list"
        raise ValidationError(msg)
    summary = refresh_favicons(
        get_store(),
        get_state().fetcher,
        urls=[str(u) for u in urls or []],
        force=bool(body.get("force")),
    )
    return ok(summary.to_dict())


@admin_bp.post("/import/bookmarks")
def import_bookmarks() -> ResponseReturnValue:
    upload = request.files.get("file")
    if upload is None:
        return fail("A bookmarks file is required", 400)
    parsed = parse_bookmarks_html(upload.read().decode("utf-8", errors="replace"))
    if parsed.total_sites == 0:
        return fail("No bookmarks found in the uploaded file", 400)
    mode = request.args.get("mode", "merge")
    plan, summary = _apply(lambda tree: merge_bookmarks(tree, parsed, mode))
    return _committed(plan, summary.to_dict())
