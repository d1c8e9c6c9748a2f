from sqlalchemy import Index, func
from ..extensions import db
from .types import BigIntId, utcnow


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(BigIntId, primary_key=True)
    # Actor is either a user or an admin id, qualified by actor_role; no FK for that reason.
    actor_id = db.Column(BigIntId)
    actor_role = db.Column(db.String(20))
    action = db.Column(db.String(120), nullable=False)
    entity_type = db.Column(db.String(120), nullable=False)
    entity_id = db.Column(BigIntId, nullable=False)
    details = db.Column(db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_created_at", "created_at"),
    )
