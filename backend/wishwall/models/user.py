from sqlalchemy import func
from ..extensions import db
from .types import BigIntId, utcnow


class User(db.Model):
    """WeChat mini-program user (donor)."""

    __tablename__ = "users"

    id = db.Column(BigIntId, primary_key=True)
    wechat_openid = db.Column(db.String(128), unique=True, nullable=False)
    wechat_unionid = db.Column(db.String(128))
    nickname = db.Column(db.String(120))
    avatar_url = db.Column(db.String(512))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)
    deleted_at = db.Column(db.DateTime(timezone=True))

    # Relationships
    records = db.relationship(
        "WishRecord",
        back_populates="donor",
        foreign_keys="WishRecord.donor_id",
        lazy=True,
    )
