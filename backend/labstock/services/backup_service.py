# Overview: Service-layer operations for full backup export and restore.

"""
Backup & restore.

A backup is the admin snapshot plus `exported_at` and `app`. Restore replaces
the whole store (users, items, requests, audit trail, permissions) in one
transaction. Live sessions are wiped with it.

Restored accounts do not carry password hashes: every restored user gets the
configured initial password for their role.
"""

from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import AuditLog, DepartmentPermission, InventoryItem, InventoryRequest, SessionToken, User
from ..models.auth import ROLE_ADMIN, ROLES
from ..models.inventory import PRIORITIES, REQUEST_STATUS_PENDING, REQUEST_STATUS_REJECTED, REQUEST_STATUSES
from ..validation import (
    coerce_int,
    validate_choice,
    validate_department_name,
    validate_email,
    validate_optional_text,
)
from labstock.time_utils import parse_iso_datetime, to_utc_z, utcnow
from . import audit_service, snapshot_service
from .account_service import claim_admin_roster
from .auth_service import default_password_for, hash_password, require_admin
from .concurrency import run_in_transaction


APP_NAME = "Lab Inventory Management System"
BACKUP_SECTIONS = ("users", "inventory", "requests", "audit_logs", "permissions")


def export_backup() -> dict:
    data = snapshot_service.build_snapshot().to_dict()
    return {"exported_at": to_utc_z(utcnow()), "app": APP_NAME, **data}


def _text(row: dict, key: str, *, required: bool = True) -> str | None:
    value = row.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"Invalid backup payload: {key} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Invalid backup payload: {key} must be a string")
    return value.strip()


def _datetime(row: dict, key: str):
    value = row.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Invalid backup payload: {key} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid backup payload: {key} must be an ISO-8601 datetime") from exc


def _flag(row: dict, key: str, default: bool) -> bool:
    value = row.get(key, default)
    if not isinstance(value, bool):
        raise ValidationError(f"Invalid backup payload: {key} must be a boolean")
    return value


def _non_negative(row: dict, key: str) -> int:
    number = coerce_int(row.get(key), key)
    if number < 0:
        raise ValidationError(f"Invalid backup payload: {key} must be >= 0")
    return number


def _rows(payload: dict, section: str) -> list[dict]:
    rows = payload.get(section)
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise ValidationError(f"Invalid backup payload: {section} must be a list of objects")
    return rows


def _unique(objects: list, key: str, section: str) -> list:
    seen = set()
    for obj in objects:
        value = getattr(obj, key)
        normalized = value if key == "id" else value.lower()
        if normalized in seen:
            raise ValidationError(f"Invalid backup payload: duplicate {key} {value} in {section}")
        seen.add(normalized)
    return objects


def _build_users(rows: list[dict]) -> list[User]:
    users = []
    seen_emails = set()
    hashes = {role: hash_password(default_password_for(role)) for role in ROLES}
    for row in rows:
        role = validate_choice(row.get("role"), ROLES, "role")
        email = validate_email(row.get("email"))
        if email in seen_emails:
            raise ValidationError(f"Invalid backup payload: duplicate email {email}")
        seen_emails.add(email)
        users.append(User(
            id=_text(row, "id"),
            name=_text(row, "name"),
            email=email,
            role=role,
            department=validate_department_name(row.get("department")),
            is_active=_flag(row, "is_active", True),
            password_hash=hashes[role],
        ))
    return users


def _build_permissions(rows: list[dict]) -> list[DepartmentPermission]:
    return [
        DepartmentPermission(
            department=validate_department_name(row.get("department")),
            can_request=_flag(row, "can_request", True),
            can_approve=_flag(row, "can_approve", False),
            can_edit_inventory=_flag(row, "can_edit_inventory", False),
        )
        for row in rows
    ]


def _build_items(rows: list[dict]) -> list[InventoryItem]:
    return [
        InventoryItem(
            id=_text(row, "id"),
            name=_text(row, "name"),
            category=_text(row, "category"),
            department=validate_department_name(row.get("department")),
            current_stock=_non_negative(row, "current_stock"),
            min_stock=_non_negative(row, "min_stock"),
            unit=_text(row, "unit"),
            last_updated=_datetime(row, "last_updated") or utcnow(),
        )
        for row in rows
    ]


def _build_requests(rows: list[dict]) -> list[InventoryRequest]:
    requests = []
    for row in rows:
        status = validate_choice(row.get("status"), REQUEST_STATUSES, "status")
        requested_qty = coerce_int(row.get("requested_qty"), "requested_qty")
        if requested_qty <= 0:
            raise ValidationError("Invalid backup payload: requested_qty must be positive")

        approved_qty = row.get("approved_qty")
        if approved_qty is not None:
            approved_qty = coerce_int(approved_qty, "approved_qty")
            if not 0 < approved_qty <= requested_qty:
                raise ValidationError("Invalid backup payload: approved_qty out of range")
        approved = status not in (REQUEST_STATUS_PENDING, REQUEST_STATUS_REJECTED)
        if approved != (approved_qty is not None):
            raise ValidationError("Invalid backup payload: approved_qty does not match status")

        requests.append(InventoryRequest(
            id=_text(row, "id"),
            requester_id=_text(row, "requester_id"),
            requester_name=_text(row, "requester_name"),
            department=validate_department_name(row.get("department")),
            item_id=_text(row, "item_id"),
            item_name=_text(row, "item_name"),
            unit=_text(row, "unit"),
            requested_qty=requested_qty,
            approved_qty=approved_qty,
            status=status,
            priority=validate_choice(row.get("priority", "medium"), PRIORITIES, "priority"),
            request_date=_datetime(row, "request_date") or utcnow(),
            reviewed_by=_text(row, "reviewed_by", required=False),
            reviewed_date=_datetime(row, "reviewed_date"),
            review_note=validate_optional_text(row.get("review_note"), "review_note"),
        ))
    return requests


def _build_audit_logs(rows: list[dict]) -> list[AuditLog]:
    return [
        AuditLog(
            id=_text(row, "id"),
            actor_id=_text(row, "actor_id"),
            actor_name=_text(row, "actor_name"),
            action=_text(row, "action"),
            target=_text(row, "target"),
            details=row.get("details") if isinstance(row.get("details"), str) else "",
            created_at=_datetime(row, "created_at") or utcnow(),
        )
        for row in rows
    ]


def _link_departments(permissions: list[DepartmentPermission], **sections) -> None:
    """Point every row at a restored department, using its stored spelling."""
    canonical = {p.department.lower(): p.department for p in permissions}
    for section, objects in sections.items():
        for obj in objects:
            department = canonical.get(obj.department.lower())
            if department is None:
                raise ValidationError(
                    f"Invalid backup payload: {section} row {obj.id} references unknown department {obj.department}"
                )
            obj.department = department


def restore_from_backup(payload, actor_id: str) -> dict:
    """
    Replace the whole store with the contents of a backup (admin action).

    Every row is validated before anything is deleted. The restored user set
    must contain at least one active admin.

    Returns per-section row counts.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid backup payload.")
    for section in BACKUP_SECTIONS:
        _rows(payload, section)

    users = _unique(_build_users(payload["users"]), "id", "users")
    if not any(u.role == ROLE_ADMIN and u.is_active for u in users):
        raise ValidationError("Invalid backup payload: at least one active admin account is required.")
    permissions = _unique(_build_permissions(payload["permissions"]), "department", "permissions")
    items = _unique(_build_items(payload["inventory"]), "id", "inventory")
    requests = _unique(_build_requests(payload["requests"]), "id", "requests")
    _link_departments(permissions, users=users, inventory=items, requests=requests)
    audit_logs = _unique(_build_audit_logs(payload["audit_logs"]), "id", "audit_logs")

    def _op():
        claim_admin_roster()
        actor = require_admin(actor_id)
        actor_ref = (actor.id, actor.name)

        # Detach everything loaded so far before the bulk deletes
        db.session.expunge_all()
        for model in (SessionToken, AuditLog, InventoryRequest, InventoryItem, DepartmentPermission, User):
            db.session.query(model).delete(synchronize_session=False)
        db.session.flush()

        db.session.add_all(users)
        db.session.add_all(permissions)
        db.session.add_all(items)
        db.session.add_all(requests)
        db.session.add_all(audit_logs)
        db.session.flush()

        audit_service.append_audit_event(
            actor_id=actor_ref[0],
            actor_name=actor_ref[1],
            action=audit_service.ACTION_DATA_RESTORE,
            target="system",
            details="System data restored from backup",
        )
        return {
            "users": len(users),
            "inventory": len(items),
            "requests": len(requests),
            "audit_logs": len(audit_logs),
            "permissions": len(permissions),
        }

    counts = run_in_transaction(_op)
    current_app.logger.warning("Data restored from backup by %s: %s", actor_id, counts)
    return counts
