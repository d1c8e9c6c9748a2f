from sqlalchemy import func
from ..extensions import db
from .types import BigIntId, utcnow


class Admin(db.Model):
    """Back-office operator account (username + password)."""

    __tablename__ = "admins"

    id = db.Column(BigIntId, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.Text, nullable=False)
    last_login_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), onupdate=utcnow)
    deleted_at = db.Column(db.DateTime(timezone=True))
