"""Read-side projection of a claim record into a progress timeline."""

from __future__ import annotations

from typing import Optional

from ..errors import Forbidden
from ..models import WishRecord
from ..models.enums import (
    AWAITING_RECEIPT,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    GIFT_RETURNED,
    PENDING_CONFIRMATION,
    PENDING_SHIPMENT,
)
from ..models.types import as_utc, isoformat
from ..security import Principal, can_access_record
from .records import get_record

# (kind, status, time field, message field, photos field, tracking number field)
# Listed latest stage first so equal timestamps keep a deterministic order with creation last.
STAGES = (
    ("cancellation", CANCELLED, "cancellation_time", None, None, None),
    ("owner_gift", GIFT_RETURNED, "owner_gift_time", "owner_gift_message", "owner_gift_photos", None),
    ("platform_gift", GIFT_RETURNED, "platform_gift_time", "platform_gift_message", "platform_gift_photos", None),
    ("receipt", COMPLETED, "receipt_time", "receipt_message", "receipt_photos", None),
    ("delivery", AWAITING_RECEIPT, "delivery_time", None, None, "delivery_number"),
    ("confirmation", CONFIRMED, "confirmation_time", "confirmation_message", "confirmation_photos", None),
    ("shipping", PENDING_CONFIRMATION, "shipping_time", None, None, "shipping_number"),
)


def build_progress(record: WishRecord) -> list[dict]:
    """One event per stage that has happened, newest first. Creation is always present."""
    events = []
    for kind, status, time_field, message_field, photos_field, number_field in STAGES:
        when = as_utc(getattr(record, time_field))
        if when is None:
            continue
        events.append({
            "type": kind,
            "status": status,
            "timestamp": when,
            "message": getattr(record, message_field) if message_field else None,
            "photos": getattr(record, photos_field) if photos_field else None,
            "trackingNumber": getattr(record, number_field) if number_field else None,
        })
    events.append({
        "type": "creation",
        "status": PENDING_SHIPMENT,
        "timestamp": as_utc(record.created_at),
        "message": None,
        "photos": None,
        "trackingNumber": None,
    })
    # sorted() is stable: ties keep the STAGES order
    events = sorted(events, key=lambda e: e["timestamp"], reverse=True)
    for e in events:
        e["timestamp"] = e["timestamp"].isoformat()
    return events


def get_record_detail(record_id: int, principal: Optional[Principal]) -> dict:
    record = get_record(record_id)
    if not can_access_record(principal, record):
        raise Forbidden("You are not allowed to view this record")
    wish = record.wish
    return {
        "id": record.id,
        "status": record.status,
        "createdAt": isoformat(record.created_at),
        "updatedAt": isoformat(record.updated_at),
        "progress": build_progress(record),
        "wishId": record.wish_id,
        "childName": wish.child_name if wish else None,
        "wishContent": wish.content if wish else None,
        "wishReason": wish.reason if wish else None,
        "claimedAt": isoformat(record.created_at),
        "donorName": record.donor_name,
        "donorMobile": record.donor_mobile,
        "donorAddress": record.donor_address,
        "donorComment": record.donor_comment,
    }
