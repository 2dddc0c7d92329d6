from __future__ import annotations

from ..extensions import db
from ..ids import make_id
from labstock.time_utils import to_utc_z, utcnow

SYSTEM_ACTOR_ID = "system"
SYSTEM_ACTOR_NAME = "System"


class AuditLog(db.Model):
    """
    Append-only audit trail.

    IMMUTABLE: Never update or delete. The only exception is a full backup
    restore, which replaces the whole store (including this table).

    target is the id of the entity the action concerns (request, item, user,
    department name, or "system").
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_created", "created_at"),
        db.Index("ix_audit_logs_actor", "actor_id"),
        db.Index("ix_audit_logs_target", "target"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: make_id("LOG"))
    actor_id = db.Column(db.String(64), nullable=False)
    actor_name = db.Column(db.String(120), nullable=False)
    action = db.Column(db.String(64), nullable=False, index=True)
    target = db.Column(db.String(64), nullable=False)
    details = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "action": self.action,
            "target": self.target,
            "details": self.details,
            "created_at": to_utc_z(self.created_at),
        }
