from sqlalchemy import func, UniqueConstraint, Index
from ..extensions import db
from .enums import record_status_enum, PENDING_SHIPMENT
from .types import BigIntId, utcnow


class WishRecord(db.Model):
    """A donor's claim on one wish, tracked through the fulfillment stages."""

    __tablename__ = "wish_records"

    id = db.Column(BigIntId, primary_key=True)
    status = db.Column(record_status_enum, nullable=False, default=PENDING_SHIPMENT, server_default=PENDING_SHIPMENT)
    wish_id = db.Column(BigIntId, db.ForeignKey("wishes.id", ondelete="CASCADE"), nullable=False)
    donor_id = db.Column(BigIntId, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Contact snapshot captured at claim time; not synced with the donor's profile
    donor_name = db.Column(db.String(120), nullable=False, default="")
    donor_mobile = db.Column(db.String(40), nullable=False, default="")
    donor_address = db.Column(db.Text, nullable=False, default="")
    donor_comment = db.Column(db.Text, nullable=False, default="")

    # Shipping (donor -> platform)
    shipping_number = db.Column(db.String(120))
    shipping_time = db.Column(db.DateTime(timezone=True))
    # Platform confirms the gift arrived
    confirmation_message = db.Column(db.Text)
    confirmation_photos = db.Column(db.Text)
    confirmation_time = db.Column(db.DateTime(timezone=True))
    # Delivery (platform -> child)
    delivery_number = db.Column(db.String(120))
    delivery_time = db.Column(db.DateTime(timezone=True))
    # Child received the gift
    receipt_message = db.Column(db.Text)
    receipt_photos = db.Column(db.Text)
    receipt_time = db.Column(db.DateTime(timezone=True))
    # Thank-you gifts back to the donor
    platform_gift_message = db.Column(db.Text)
    platform_gift_photos = db.Column(db.Text)
    platform_gift_time = db.Column(db.DateTime(timezone=True))
    owner_gift_message = db.Column(db.Text)
    owner_gift_photos = db.Column(db.Text)
    owner_gift_time = db.Column(db.DateTime(timezone=True))

    cancellation_time = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)
    deleted_at = db.Column(db.DateTime(timezone=True))

    # Relationships
    wish = db.relationship("Wish", foreign_keys=[wish_id])
    donor = db.relationship("User", back_populates="records", foreign_keys=[donor_id])

    __table_args__ = (
        # One claim record per wish; backs up the row lock taken during claiming
        UniqueConstraint("wish_id", name="uq_wish_records_wish"),
        Index("idx_wish_records_donor", "donor_id"),
        Index("idx_wish_records_status", "status"),
    )
