# Overview: Service-layer operations for department permissions (the permission gate).

"""
Department permission gate.

WHY: Each department carries three capability toggles. Mutating operations
consult them before touching anything.

ENFORCEMENT:
- can_request gates request submission (request_service.submit_request).
- can_approve and can_edit_inventory are stored, toggled and projected but
  not consulted: review and inventory edits are gated by the admin role only.

Department names are compared case-insensitively everywhere.
"""

from __future__ import annotations

from sqlalchemy import func

from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError, KIND_PERMISSION_DENIED
from ..extensions import db
from ..models import DepartmentPermission
from ..validation import ModelValidationPolicy, validate_department_name, validate_payload
from . import audit_service
from .auth_service import require_admin
from .concurrency import lock_for_update, run_in_transaction


CAPABILITIES = ("can_request", "can_approve", "can_edit_inventory")

PERMISSION_PATCH_POLICY = ModelValidationPolicy(writable_fields=set(CAPABILITIES))


def _department_query(name: str):
    return db.session.query(DepartmentPermission).filter(
        func.lower(DepartmentPermission.department) == name.lower()
    )


def get_permission(department: str, *, lock: bool = False) -> DepartmentPermission | None:
    """Case-insensitive lookup of a department's permission row."""
    query = _department_query(department)
    if lock:
        query = lock_for_update(query)
    return query.first()


def resolve_department(department) -> str:
    """
    Return the canonical (stored) department name or raise NotFoundError.
    """
    name = validate_department_name(department)
    permission = get_permission(name)
    if permission is None:
        raise NotFoundError(f"Department {name} does not exist.")
    return permission.department


def require_capability(department: str, capability: str) -> DepartmentPermission:
    """
    Raise AuthorizationError unless the department has the capability.

    Fails closed: a department without a permission row has no capabilities.
    """
    if capability not in CAPABILITIES:
        raise ValueError(f"Unknown capability: {capability}")

    permission = get_permission(department)
    if permission is None or not getattr(permission, capability):
        label = capability.replace("can_", "").replace("_", " ")
        raise AuthorizationError(
            f"The {label} permission is disabled for your department.",
            kind=KIND_PERMISSION_DENIED,
        )
    return permission


def list_departments() -> list[DepartmentPermission]:
    return db.session.query(DepartmentPermission).order_by(DepartmentPermission.department).all()


def create_department(name, actor_id: str) -> DepartmentPermission:
    """
    Register a department with default capabilities
    (can_request on, can_approve and can_edit_inventory off).
    """
    department = validate_department_name(name)

    def _op():
        actor = require_admin(actor_id)

        if get_permission(department) is not None:
            raise ConflictError("Department already exists.")

        permission = DepartmentPermission(
            department=department,
            can_request=True,
            can_approve=False,
            can_edit_inventory=False,
        )
        db.session.add(permission)
        db.session.flush()

        audit_service.append_audit_event(
            actor_id=actor.id,
            actor_name=actor.name,
            action=audit_service.ACTION_DEPARTMENT_CREATED,
            target=department,
            details=f"Department {department} created",
        )
        return permission

    return run_in_transaction(_op)


def set_department_permission(department, patch: dict, actor_id: str) -> DepartmentPermission:
    """
    Apply a partial update of capability flags.

    Raises:
        ValidationError: invalid name, empty patch or non-boolean values
        NotFoundError: department not registered
    """
    name = validate_department_name(department)
    cleaned = validate_payload(
        model=DepartmentPermission,
        payload=patch,
        policy=PERMISSION_PATCH_POLICY,
        partial=True,
    )
    if not cleaned:
        raise ValidationError("No permission fields provided.")

    def _op():
        actor = require_admin(actor_id)

        permission = get_permission(name, lock=True)
        if permission is None:
            raise NotFoundError("Department not found.")

        for key, value in cleaned.items():
            setattr(permission, key, value)

        changes = ", ".join(f"{k}={'on' if v else 'off'}" for k, v in sorted(cleaned.items()))
        audit_service.append_audit_event(
            actor_id=actor.id,
            actor_name=actor.name,
            action=audit_service.ACTION_PERMISSIONS_UPDATED,
            target=permission.department,
            details=f"Department permissions changed ({changes})",
        )
        return permission

    return run_in_transaction(_op)
