from flask import Blueprint, request, jsonify, g

from ...models.types import isoformat
from ...models.wish_record import WishRecord
from ...pagination import page_args, pagination_dict
from ...schemas.record import ShippingInfoSchema, TransitionSchema
from ...security import ROLE_USER
from ...services import progress, records

bp = Blueprint("records", __name__)

_transition_schema = TransitionSchema()
_shipping_schema = ShippingInfoSchema()


def _json_error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def record_to_dict(r: WishRecord) -> dict:
    wish = r.wish
    return {
        "id": r.id,
        "status": r.status,
        "statusLabel": records.STATUS_LABELS.get(r.status, r.status),
        "wishId": r.wish_id,
        "donorId": r.donor_id,
        "childName": wish.child_name if wish else None,
        "wishContent": wish.content if wish else None,
        "donorName": r.donor_name,
        "donorMobile": r.donor_mobile,
        "donorAddress": r.donor_address,
        "donorComment": r.donor_comment,
        "shippingNumber": r.shipping_number,
        "shippingTime": isoformat(r.shipping_time),
        "confirmationMessage": r.confirmation_message,
        "confirmationPhotos": r.confirmation_photos,
        "confirmationTime": isoformat(r.confirmation_time),
        "deliveryNumber": r.delivery_number,
        "deliveryTime": isoformat(r.delivery_time),
        "receiptMessage": r.receipt_message,
        "receiptPhotos": r.receipt_photos,
        "receiptTime": isoformat(r.receipt_time),
        "platformGiftMessage": r.platform_gift_message,
        "platformGiftPhotos": r.platform_gift_photos,
        "platformGiftTime": isoformat(r.platform_gift_time),
        "ownerGiftMessage": r.owner_gift_message,
        "ownerGiftPhotos": r.owner_gift_photos,
        "ownerGiftTime": isoformat(r.owner_gift_time),
        "cancellationTime": isoformat(r.cancellation_time),
        "createdAt": isoformat(r.created_at),
        "updatedAt": isoformat(r.updated_at),
    }


def _page_response(items, total, page, page_size):
    return jsonify({
        "items": [record_to_dict(r) for r in items],
        "pagination": pagination_dict(total, page, page_size),
    })


@bp.get("/user/records")
def my_records():
    """Records donated by the current user. Query: status?, pageIndex, pageSize"""
    principal = getattr(g, "principal", None)
    if principal is None or principal.role != ROLE_USER:
        return _json_error("Authentication required", 401)
    page, page_size = page_args(request.args)
    status = (request.args.get("status") or "").strip() or None
    items, total = records.list_records_for_donor(principal.id, status, page, page_size)
    return _page_response(items, total, page, page_size)


@bp.get("/admin/records")
def admin_records():
    principal = getattr(g, "principal", None)
    if principal is None:
        return _json_error("Authentication required", 401)
    if not principal.is_admin:
        return _json_error("Forbidden", 403)
    page, page_size = page_args(request.args)
    status = (request.args.get("status") or "").strip() or None
    items, total = records.list_records(status, page, page_size)
    return _page_response(items, total, page, page_size)


@bp.get("/records/<int:record_id>")
def record_detail(record_id: int):
    principal = getattr(g, "principal", None)
    if principal is None:
        return _json_error("Authentication required", 401)
    return jsonify(progress.get_record_detail(record_id, principal))


@bp.put("/records/<int:record_id>/status")
def update_status(record_id: int):
    """Advance a record.

    Body JSON: { status, shippingNumber?, deliveryNumber?, confirmationMessage?, ... }
    Donors may only report shipment or cancel; every other move is admin-only.
    """
    principal = getattr(g, "principal", None)
    if principal is None:
        return _json_error("Authentication required", 401)
    payload = _transition_schema.load(request.get_json(silent=True) or {})
    target = payload.pop("status")
    record = records.transition(record_id, target, payload, actor=principal)
    return jsonify(record_to_dict(record))


@bp.put("/records/<int:record_id>/shipping")
def update_shipping(record_id: int):
    """Body JSON: { donorName?, donorMobile?, address? }"""
    principal = getattr(g, "principal", None)
    if principal is None:
        return _json_error("Authentication required", 401)
    data = _shipping_schema.load(request.get_json(silent=True) or {})
    record = records.update_shipping_info(
        record_id,
        name=data.get("name"),
        mobile=data.get("mobile"),
        address=data.get("address"),
        actor=principal,
    )
    return jsonify(record_to_dict(record))
