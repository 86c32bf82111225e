"""Parse JSON request bodies into addresses and site references."""

from typing import Any

from flask import request

from linkshelf.core.tree.operations import SiteRef
from linkshelf.core.tree.resolver import Address
from linkshelf.errors import ValidationError


def json_body(*, required: bool = True) -> dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None and not required:
        return {}
    if not isinstance(body, dict):
        msg = "Request body must be a JSON object"
        raise ValidationError(msg)
    return body


def split_segments(value: Any) -> tuple[Any, ...]:
    """Accept ["a", "b"] or "a/b"; blank segments are dropped."""
    if isinstance(value, (list, tuple)):
        items = [v for v in value if v is not None]
        return tuple(v if isinstance(v, int) else str(v).strip() for v in items if str(v).strip())
    if isinstance(value, str):
        return tuple(s.strip() for s in value.split("/") if s.strip())
    return ()


def optional_address(payload: dict[str, Any]) -> Address | None:
    """Read a category address from a payload.

    ``indexPath`` and ``idPath`` select those schemes; ``path`` (or
    ``segments``) is a title path unless ``by`` names another scheme.
    """
    if payload.get("indexPath") is not None:
        return Address("index", split_segments(payload["indexPath"]))
    if payload.get("idPath") is not None:
        return Address("id", split_segments(payload["idPath"]))
    raw = payload.get("path", payload.get("segments"))
    keys = split_segments(raw)
    if not keys:
        return None
    return Address(str(payload.get("by") or "title"), keys)


def require_address(payload: dict[str, Any]) -> Address:
    address = optional_address(payload)
    if address is None:
        msg = "A category path is required"
        raise ValidationError(msg)
    return address


def items_from(body: dict[str, Any]) -> list[dict[str, Any]]:
    items = body.get("items")
    if not isinstance(items, list) or not items:
        msg = "items must be a non-empty list"
        raise ValidationError(msg)
    return [item for item in items if isinstance(item, dict)]


def site_refs_from(items: list[dict[str, Any]]) -> list[SiteRef]:
    """Expand [{path, titles: [...]}, ...] into one reference per title."""
    refs = []
    for item in items:
        address = require_address(item)
        titles = item.get("titles")
        if titles is None and item.get("title"):
            titles = [item["title"]]
        for title in titles or []:
            if str(title).strip():
                refs.append(SiteRef(address=address, title=str(title).strip()))
    return refs
