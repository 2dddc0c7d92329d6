# Overview: Service-layer operations for the audit ledger.

from __future__ import annotations

from ..extensions import db
from ..models import AuditLog
from ..models.audit import SYSTEM_ACTOR_ID, SYSTEM_ACTOR_NAME
from labstock.time_utils import utcnow
"""
LabStock Audit Ledger Invariants (authoritative)

- Append-only log of actions; no updates or deletes except a full restore.
- Entries are written inside the same DB transaction as the change they record,
  so a rolled-back change never leaves an orphan entry (and vice versa).
- Every mutating operation writes exactly one entry, plus one system-authored
  low_stock_alert when a stock write crosses the minimum threshold.
"""

ACTION_LOGIN = "login"
ACTION_REQUEST_SUBMITTED = "request_submitted"
ACTION_REQUEST_APPROVED = "request_approved"
ACTION_REQUEST_PARTIALLY_APPROVED = "request_partially_approved"
ACTION_REQUEST_REJECTED = "request_rejected"
ACTION_LOW_STOCK_ALERT = "low_stock_alert"
ACTION_INVENTORY_CREATED = "inventory_created"
ACTION_INVENTORY_UPDATED = "inventory_updated"
ACTION_USER_CREATED = "user_created"
ACTION_USER_UPDATED = "user_updated"
ACTION_USER_ACTIVATED = "user_activated"
ACTION_USER_DEACTIVATED = "user_deactivated"
ACTION_DEPARTMENT_CREATED = "department_created"
ACTION_PERMISSIONS_UPDATED = "permissions_updated"
ACTION_DATA_RESTORE = "data_restore"


def append_audit_event(
    *,
    actor_id: str,
    actor_name: str,
    action: str,
    target: str,
    details: str = "",
) -> AuditLog:
    """
    Append-only audit event.

    - No domain logic here.
    - Flushes without committing; the caller owns the transaction.
    """
    entry = AuditLog(
        actor_id=actor_id,
        actor_name=actor_name,
        action=action,
        target=target,
        details=details,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def append_system_event(*, action: str, target: str, details: str = "") -> AuditLog:
    """Append an entry authored by the reserved system actor."""
    return append_audit_event(
        actor_id=SYSTEM_ACTOR_ID,
        actor_name=SYSTEM_ACTOR_NAME,
        action=action,
        target=target,
        details=details,
    )
