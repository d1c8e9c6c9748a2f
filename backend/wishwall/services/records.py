"""Claim record engine.

A donor's claim on a wish moves through a fixed sequence of fulfillment
stages. Every transition is validated against ``TRANSITIONS`` and stamps the
matching stage timestamp; the status change, the stage fields and the audit
entry commit together or not at all.

    pending_shipment -> pending_confirmation -> confirmed -> awaiting_receipt
        -> completed -> gift_returned
    (any stage before completed) -> cancelled
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from . import catalog
from ..errors import (
    AlreadyClaimed,
    Forbidden,
    InvalidTransition,
    NotFound,
    StoreError,
    ValidationError,
    WishWallError,
)
from ..extensions import db
from ..models import AuditLog, User, Wish, WishRecord
from ..models.enums import (
    AWAITING_RECEIPT,
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    GIFT_RETURNED,
    PENDING_CONFIRMATION,
    PENDING_SHIPMENT,
    RECORD_STATUSES,
)
from ..models.types import utcnow
from ..pagination import paginate
from ..security import Principal, can_access_record

logger = logging.getLogger(__name__)

TRANSITIONS: dict[str, tuple[str, ...]] = {
    PENDING_SHIPMENT: (PENDING_CONFIRMATION, CANCELLED),
    PENDING_CONFIRMATION: (CONFIRMED, CANCELLED),
    CONFIRMED: (AWAITING_RECEIPT, CANCELLED),
    AWAITING_RECEIPT: (COMPLETED, CANCELLED),
    COMPLETED: (GIFT_RETURNED,),
    # Re-entering gift_returned only fills in the remaining gift fields
    GIFT_RETURNED: (GIFT_RETURNED,),
    CANCELLED: (),
}

# Targets a donor may request on their own record; everything else is admin-only.
DONOR_TARGETS = frozenset({PENDING_CONFIRMATION, CANCELLED})

GIFT_SIDES = ("platform", "owner")

STATUS_LABELS = {
    PENDING_SHIPMENT: "Awaiting shipment",
    PENDING_CONFIRMATION: "Shipped, awaiting confirmation",
    CONFIRMED: "Received by platform",
    AWAITING_RECEIPT: "Out for delivery",
    COMPLETED: "Delivered",
    GIFT_RETURNED: "Thank-you gift sent",
    CANCELLED: "Cancelled",
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, ())


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _audit(actor: Optional[Principal], action: str, record: WishRecord, details: dict) -> None:
    db.session.add(
        AuditLog(
            actor_id=actor.id if actor else None,
            actor_role=actor.role if actor else None,
            action=action,
            entity_type="wish_record",
            entity_id=int(record.id),
            details=details,
        )
    )


def _locked_record(record_id: int) -> WishRecord:
    record = (
        WishRecord.query
        .filter(WishRecord.id == record_id, WishRecord.deleted_at.is_(None))
        .with_for_update()
        .first()
    )
    if record is None:
        raise NotFound("Record not found")
    return record


def get_record(record_id: int) -> WishRecord:
    record = (
        WishRecord.query
        .options(joinedload(WishRecord.wish))
        .filter(WishRecord.id == record_id, WishRecord.deleted_at.is_(None))
        .first()
    )
    if record is None:
        raise NotFound("Record not found")
    return record


def create_claim(
    wish_id: int,
    donor_id: int,
    donor_info: Mapping[str, Any],
    actor: Optional[Principal] = None,
) -> WishRecord:
    """Claim a wish for a donor.

    The wish row is locked for the whole check-and-set; the conditional
    back-link write and the unique ``wish_records.wish_id`` constraint catch
    a concurrent claim on stores that ignore ``FOR UPDATE``.
    """
    try:
        wish = (
            Wish.query
            .filter(Wish.id == wish_id, Wish.deleted_at.is_(None))
            .with_for_update()
            .first()
        )
        if wish is None:
            raise NotFound("Wish not found")
        donor = db.session.get(User, donor_id)
        if donor is None or donor.deleted_at is not None:
            raise NotFound("Donor not found")
        if wish.active_record_id is not None:
            raise AlreadyClaimed("This wish has already been claimed")
        if not catalog.claimable(wish):
            # Unpublished wishes are invisible to donors
            raise NotFound("Wish not found")

        record = WishRecord(
            status=PENDING_SHIPMENT,
            wish_id=wish.id,
            donor_id=donor.id,
            donor_name=_text(donor_info.get("name")),
            donor_mobile=_text(donor_info.get("mobile")),
            donor_address=_text(donor_info.get("address")),
            donor_comment=_text(donor_info.get("comment")),
        )
        db.session.add(record)
        db.session.flush()
        catalog.mark_claimed(wish, record.id)
        _audit(actor, "claim_created", record, {"wishId": int(wish.id), "donorId": int(donor.id)})
        db.session.commit()
    except WishWallError:
        db.session.rollback()
        raise
    except IntegrityError as exc:
        db.session.rollback()
        if "wish_id" in str(exc.orig) or "uq_wish_records_wish" in str(exc.orig):
            raise AlreadyClaimed("This wish has already been claimed") from exc
        raise StoreError("Database error, please retry") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Database error, please retry") from exc

    logger.info("Wish %s claimed by user %s (record %s)", wish_id, donor_id, record.id)
    return record


def _authorize_transition(actor: Principal, record: WishRecord, target: str) -> None:
    if actor.is_admin:
        return
    if not can_access_record(actor, record) or target not in DONOR_TARGETS:
        raise Forbidden("Only administrators can move this record to that status")


def _optional_fields(payload: Mapping[str, Any], *keys: str) -> dict:
    return {k: payload[k] for k in keys if payload.get(k) is not None}


def _stage_changes(record: WishRecord, target: str, payload: Mapping[str, Any], now) -> dict:
    """Field writes for entering ``target``. Raises ValidationError before anything is written."""
    if target == PENDING_CONFIRMATION:
        number = _text(payload.get("shipping_number"))
        if not number:
            raise ValidationError("A shipping tracking number is required")
        return {"shipping_number": number, "shipping_time": now}

    if target == CONFIRMED:
        changes = _optional_fields(payload, "confirmation_message", "confirmation_photos")
        changes["confirmation_time"] = now
        return changes

    if target == AWAITING_RECEIPT:
        number = _text(payload.get("delivery_number"))
        if not number:
            raise ValidationError("A delivery tracking number is required")
        return {"delivery_number": number, "delivery_time": now}

    if target == COMPLETED:
        changes = _optional_fields(payload, "receipt_message", "receipt_photos")
        changes["receipt_time"] = now
        return changes

    if target == GIFT_RETURNED:
        changes = {}
        for side in GIFT_SIDES:
            message_key, photos_key, time_key = f"{side}_gift_message", f"{side}_gift_photos", f"{side}_gift_time"
            changes.update(_optional_fields(payload, message_key, photos_key))
            message = changes.get(message_key, getattr(record, message_key))
            photos = changes.get(photos_key, getattr(record, photos_key))
            # Stamp once: a later partial update must not move an earlier completion time
            if getattr(record, time_key) is None and (message or photos):
                changes[time_key] = now
        return changes

    if target == CANCELLED:
        return {"cancellation_time": now}

    return {}


def transition(
    record_id: int,
    target_status: str,
    payload: Optional[Mapping[str, Any]] = None,
    actor: Optional[Principal] = None,
) -> WishRecord:
    """Move a record to ``target_status``.

    ``payload`` carries the stage data (snake_case keys such as
    ``shipping_number`` or ``platform_gift_message``). ``actor`` is None for
    internal calls, which skip the role check.
    """
    payload = payload or {}
    if target_status not in RECORD_STATUSES:
        raise ValidationError(f"Unknown status: {target_status}")

    try:
        record = _locked_record(record_id)
        if actor is not None:
            _authorize_transition(actor, record, target_status)
        current = record.status
        if not can_transition(current, target_status):
            raise InvalidTransition(f"Cannot move a record from {current} to {target_status}")

        now = utcnow()
        changes = _stage_changes(record, target_status, payload, now)
        changes["status"] = target_status
        changes["updated_at"] = now
        # Guard on the status read above: a concurrent transition that committed first wins
        result = db.session.execute(
            update(WishRecord)
            .where(WishRecord.id == record.id, WishRecord.status == current)
            .values(**changes)
        )
        if result.rowcount != 1:
            raise InvalidTransition("The record changed while it was being updated; reload and retry")
        _audit(actor, "status_changed", record, {"fromStatus": current, "toStatus": target_status})
        db.session.commit()
    except WishWallError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Database error, please retry") from exc

    logger.info("Record %s moved from %s to %s", record_id, current, target_status)
    return get_record(record_id)


def update_shipping_info(
    record_id: int,
    name: Optional[str] = None,
    mobile: Optional[str] = None,
    address: Optional[str] = None,
    actor: Optional[Principal] = None,
) -> WishRecord:
    """Correct the donor contact snapshot. Status and stage fields are untouched."""
    try:
        record = _locked_record(record_id)
        if actor is not None and not can_access_record(actor, record):
            raise Forbidden("You cannot edit this record")
        changed = []
        for field, value in (("donor_name", name), ("donor_mobile", mobile), ("donor_address", address)):
            if value is not None:
                setattr(record, field, _text(value))
                changed.append(field)
        if changed:
            _audit(actor, "shipping_info_updated", record, {"fields": changed})
        db.session.commit()
    except WishWallError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Database error, please retry") from exc
    return record


def _records_query(status: Optional[str]):
    q = (
        WishRecord.query
        .options(joinedload(WishRecord.wish))
        .filter(WishRecord.deleted_at.is_(None))
    )
    if status:
        if status not in RECORD_STATUSES:
            raise ValidationError(f"Unknown status: {status}")
        q = q.filter(WishRecord.status == status)
    return q.order_by(WishRecord.created_at.desc(), WishRecord.id.desc())


def list_records(status: Optional[str] = None, page: int = 1, page_size: int = 10) -> tuple[list[WishRecord], int]:
    return paginate(_records_query(status), page, page_size)


def list_records_for_donor(
    donor_id: int, status: Optional[str] = None, page: int = 1, page_size: int = 10
) -> tuple[list[WishRecord], int]:
    q = _records_query(status).filter(WishRecord.donor_id == donor_id)
    return paginate(q, page, page_size)
