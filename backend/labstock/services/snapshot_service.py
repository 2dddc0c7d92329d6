# Overview: Service-layer read model; builds the full state snapshot and filters it per viewer.

"""
Snapshot projection.

build_snapshot() reads the five collections from committed state.
project_snapshot() is a pure function of (snapshot, viewer): nothing here
touches the database, so the same snapshot can be projected for any number
of viewers and the result is deterministic.

STAFF VISIBILITY:
- users: only their own record
- inventory: items of their own department
- requests: their own requests
- audit_logs: entries they authored, or entries targeting one of their requests
- permissions: their own department's row

Department names compare case-insensitively.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..extensions import db
from ..models import AuditLog, DepartmentPermission, InventoryItem, InventoryRequest, User
from ..models.auth import ROLE_ADMIN


@dataclass(frozen=True)
class Snapshot:
    users: tuple = field(default_factory=tuple)
    inventory: tuple = field(default_factory=tuple)
    requests: tuple = field(default_factory=tuple)
    audit_logs: tuple = field(default_factory=tuple)
    permissions: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "users": [dict(row) for row in self.users],
            "inventory": [dict(row) for row in self.inventory],
            "requests": [dict(row) for row in self.requests],
            "audit_logs": [dict(row) for row in self.audit_logs],
            "permissions": [dict(row) for row in self.permissions],
        }


@dataclass(frozen=True)
class Viewer:
    id: str
    role: str
    department: str

    @classmethod
    def from_user(cls, user: User) -> "Viewer":
        return cls(id=user.id, role=user.role, department=user.department)


def build_snapshot() -> Snapshot:
    users = db.session.query(User).order_by(User.id).all()
    items = db.session.query(InventoryItem).order_by(InventoryItem.id).all()
    requests = db.session.query(InventoryRequest).order_by(
        InventoryRequest.request_date.desc(), InventoryRequest.id.desc()
    ).all()
    audits = db.session.query(AuditLog).order_by(
        AuditLog.created_at.desc(), AuditLog.id.desc()
    ).all()
    permissions = db.session.query(DepartmentPermission).order_by(DepartmentPermission.department).all()

    return Snapshot(
        users=tuple(u.to_dict() for u in users),
        inventory=tuple(i.to_dict() for i in items),
        requests=tuple(r.to_dict() for r in requests),
        audit_logs=tuple(a.to_dict() for a in audits),
        permissions=tuple(p.to_dict() for p in permissions),
    )


def _same_department(a: str | None, b: str | None) -> bool:
    return (a or "").lower() == (b or "").lower()


def project_snapshot(snapshot: Snapshot, viewer: Viewer) -> Snapshot:
    if viewer.role == ROLE_ADMIN:
        return snapshot

    own_requests = tuple(r for r in snapshot.requests if r["requester_id"] == viewer.id)
    own_request_ids = {r["id"] for r in own_requests}

    return Snapshot(
        users=tuple(u for u in snapshot.users if u["id"] == viewer.id),
        inventory=tuple(
            i for i in snapshot.inventory if _same_department(i["department"], viewer.department)
        ),
        requests=own_requests,
        audit_logs=tuple(
            a for a in snapshot.audit_logs
            if a["actor_id"] == viewer.id or a["target"] in own_request_ids
        ),
        permissions=tuple(
            p for p in snapshot.permissions if _same_department(p["department"], viewer.department)
        ),
    )


def snapshot_for(viewer: Viewer) -> Snapshot:
    """Fresh projection for one viewer; never cached."""
    return project_snapshot(build_snapshot(), viewer)
