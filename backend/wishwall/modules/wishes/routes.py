import logging

from flask import Blueprint, request, jsonify, g

from ...models.types import isoformat
from ...models.wish import Wish
from ...pagination import page_args, pagination_dict
from ...schemas.wish import BatchWishSchema, DonorInfoSchema, WishSchema
from ...security import ROLE_USER
from ...services import catalog, importer, records
from ..records.routes import record_to_dict

logger = logging.getLogger(__name__)

bp = Blueprint("wishes", __name__, url_prefix="/wishes")

_wish_schema = WishSchema()
_batch_schema = BatchWishSchema()
_donor_schema = DonorInfoSchema()


def _json_error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def _wish_to_dict(w: Wish) -> dict:
    return {
        "id": w.id,
        "childName": w.child_name,
        "gender": w.gender,
        "content": w.content,
        "reason": w.reason,
        "grade": w.grade,
        "photoUrl": w.photo_url,
        "isPublished": bool(w.is_published),
        "isDone": w.is_claimed,
        "activeRecordId": w.active_record_id,
        "createdAt": isoformat(w.created_at),
        "updatedAt": isoformat(w.updated_at),
    }


def _parse_flag(value):
    """'true'/'false' -> bool, 'all' or missing -> None (no filter)."""
    v = (value or "").strip().lower()
    if v in ("true", "1", "yes"):
        return True
    if v in ("false", "0", "no"):
        return False
    return None


def _require_admin():
    principal = getattr(g, "principal", None)
    if principal is None:
        return _json_error("Authentication required", 401)
    if not principal.is_admin:
        return _json_error("Forbidden", 403)
    return None


@bp.get("")
def list_wishes():
    """List the wall.

    Query params:
    - content: substring match on the wish text
    - isDone: 'true' | 'false' (default) | 'all'
    - isPublished: admins only; donors always see published wishes
    - pageIndex, pageSize
    """
    principal = getattr(g, "principal", None)
    if principal is None:
        return _json_error("Authentication required", 401)

    page, page_size = page_args(request.args)
    content = (request.args.get("content") or "").strip() or None
    claimed = _parse_flag(request.args.get("isDone", "false"))
    if principal.is_admin:
        published = _parse_flag(request.args.get("isPublished"))
    else:
        published = True

    items, total = catalog.list_wishes(
        content=content, claimed=claimed, published=published, page=page, page_size=page_size
    )
    return jsonify({
        "items": [_wish_to_dict(w) for w in items],
        "pagination": pagination_dict(total, page, page_size),
    })


@bp.get("/<int:wish_id>")
def get_wish(wish_id: int):
    principal = getattr(g, "principal", None)
    if principal is None:
        return _json_error("Authentication required", 401)
    wish = catalog.get_wish(wish_id)
    if not principal.is_admin and not wish.is_published:
        return _json_error("Wish not found", 404)
    return jsonify(_wish_to_dict(wish))


@bp.post("")
def create_wish():
    denied = _require_admin()
    if denied:
        return denied
    attrs = _wish_schema.load(request.get_json(silent=True) or {})
    wish = catalog.create_wish(attrs)
    return jsonify(_wish_to_dict(wish)), 201


@bp.post("/batch")
def batch_create():
    """Bulk import.

    Accepts either JSON { data: [wish, ...] } or a multipart upload with an
    Excel workbook in the ``file`` field. All rows are inserted or none are.
    """
    denied = _require_admin()
    if denied:
        return denied

    upload = request.files.get("file")
    if upload is not None:
        items = importer.parse_workbook(upload.stream, upload.filename or "")
    else:
        items = _batch_schema.load(request.get_json(silent=True) or {})["data"]

    wishes = catalog.batch_create_wishes(items)
    logger.info(
        "Admin %s imported %d wishes (%s)",
        g.principal.id, len(wishes), upload.filename if upload is not None else "json",
    )
    return jsonify({
        "count": len(wishes),
        "items": [_wish_to_dict(w) for w in wishes],
    }), 201


@bp.put("/<int:wish_id>")
def update_wish(wish_id: int):
    denied = _require_admin()
    if denied:
        return denied
    attrs = _wish_schema.load(request.get_json(silent=True) or {}, partial=True)
    wish = catalog.update_wish(wish_id, attrs)
    return jsonify(_wish_to_dict(wish))


@bp.delete("/<int:wish_id>")
def delete_wish(wish_id: int):
    denied = _require_admin()
    if denied:
        return denied
    catalog.delete_wish(wish_id)
    return jsonify({"ok": True})


@bp.post("/<int:wish_id>/claim")
def claim_wish(wish_id: int):
    """Body JSON: { donorName, donorMobile, address, comment? }"""
    principal = getattr(g, "principal", None)
    if principal is None:
        return _json_error("Authentication required", 401)
    if principal.role != ROLE_USER:
        return _json_error("Only donors can claim wishes", 403)
    donor_info = _donor_schema.load(request.get_json(silent=True) or {})
    record = records.create_claim(wish_id, principal.id, donor_info, actor=principal)
    return jsonify(record_to_dict(record)), 201
