from sqlalchemy import func, Index
from ..extensions import db
from .enums import gender_enum
from .types import BigIntId, utcnow


class Wish(db.Model):
    __tablename__ = "wishes"

    id = db.Column(BigIntId, primary_key=True)
    child_name = db.Column(db.String(120), nullable=False)
    gender = db.Column(gender_enum, nullable=False)
    content = db.Column(db.Text, nullable=False)
    reason = db.Column(db.Text, nullable=False, default="")
    grade = db.Column(db.String(50))
    photo_url = db.Column(db.String(512))
    is_published = db.Column(db.Boolean, nullable=False, default=False, server_default="0")
    # Set exactly once, by the claim transaction. NULL means the wish is still claimable.
    active_record_id = db.Column(
        BigIntId,
        db.ForeignKey("wish_records.id", use_alter=True, name="fk_wishes_active_record_id", ondelete="SET NULL"),
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)
    deleted_at = db.Column(db.DateTime(timezone=True))

    # Relationships
    active_record = db.relationship("WishRecord", foreign_keys=[active_record_id], post_update=True)

    __table_args__ = (
        Index("idx_wishes_created_at", "created_at"),
        Index("idx_wishes_published", "is_published"),
    )

    @property
    def is_claimed(self) -> bool:
        return self.active_record_id is not None
