# Overview: Service-layer operations for user accounts and their invariants.

"""
Account guard.

INVARIANTS:
- At least one active admin exists at all times.
- An admin cannot deactivate their own account.
- Accounts are never deleted, only deactivated.

LOCKING: role changes and activation toggles first bump the AdminRoster row
(claim_admin_roster), then count active admins. The bump is a write, so it
holds a row lock on Postgres and the database write lock on SQLite until
commit. Two admins demoting or deactivating each other therefore run one
after the other, and the second one sees the first one's result.
"""

from __future__ import annotations

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    KIND_LAST_ADMIN_PROTECTED,
    KIND_SELF_DEACTIVATION,
)
from ..extensions import db
from ..models import AdminRoster, User
from ..models.auth import ROLE_ADMIN, ROLES
from ..validation import (
    validate_choice,
    validate_department_name,
    validate_email,
)
from . import audit_service, department_service, session_service
from .auth_service import PasswordValidationError, default_password_for, hash_password, require_admin
from .concurrency import lock_for_update, run_in_transaction


LAST_ADMIN_MESSAGE = "At least one active admin account is required."
ADMIN_ROSTER_ID = 1


def claim_admin_roster() -> None:
    """
    Serialize changes to the set of active admins.

    Must be the first statement of the transaction so that every read after
    it happens under the claim.
    """
    stmt = (
        update(AdminRoster)
        .where(AdminRoster.id == ADMIN_ROSTER_ID)
        .values(revision=AdminRoster.revision + 1)
    )
    if db.session.execute(stmt).rowcount:
        return

    db.session.add(AdminRoster(id=ADMIN_ROSTER_ID, revision=1))
    try:
        db.session.flush()
    except IntegrityError:
        # Another transaction created the row first
        db.session.rollback()
        if not db.session.execute(stmt).rowcount:
            raise


def _lock_user(user_id: str) -> User:
    user = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
    if user is None:
        raise NotFoundError("User not found.")
    return user


def _active_admin_count() -> int:
    admins = lock_for_update(
        db.session.query(User).filter(User.role == ROLE_ADMIN, User.is_active.is_(True))
    ).all()
    return len(admins)


def _guard_last_admin(target: User) -> None:
    """Fail if target is an active admin and no other active admin exists."""
    if target.role == ROLE_ADMIN and target.is_active and _active_admin_count() <= 1:
        raise AuthorizationError(LAST_ADMIN_MESSAGE, kind=KIND_LAST_ADMIN_PROTECTED)


def list_users(*, include_inactive: bool = True) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(User.id).all()


def create_user(
    actor_id: str,
    *,
    name,
    email,
    role,
    department,
    password: str | None = None,
) -> User:
    """
    Create an account (admin action).

    When no password is supplied the configured initial password for the
    role is used.

    Raises:
        ValidationError: malformed name/email/role/department
        NotFoundError: department not registered
        ConflictError: email already in use
    """
    if not isinstance(name, str) or not name.strip() or len(name.strip()) > 120:
        raise ValidationError("name is required (max 120 characters)")
    clean_name = name.strip()
    clean_email = validate_email(email)
    clean_role = validate_choice(role, ROLES, "role")
    validate_department_name(department)
    try:
        password_hash = hash_password(password or default_password_for(clean_role))
    except PasswordValidationError as exc:
        raise ValidationError(str(exc)) from exc

    def _op():
        actor = require_admin(actor_id)
        canonical_department = department_service.resolve_department(department)

        existing = db.session.query(User).filter(func.lower(User.email) == clean_email).first()
        if existing:
            raise ConflictError("Email already exists.")

        user = User(
            name=clean_name,
            email=clean_email,
            role=clean_role,
            department=canonical_department,
            is_active=True,
            password_hash=password_hash,
        )
        db.session.add(user)
        db.session.flush()

        audit_service.append_audit_event(
            actor_id=actor.id,
            actor_name=actor.name,
            action=audit_service.ACTION_USER_CREATED,
            target=user.id,
            details=f"{clean_name} ({clean_role}) created",
        )
        return user

    return run_in_transaction(_op)


def update_user(target_id: str, actor_id: str, patch: dict) -> User:
    """
    Patch name, department and/or role.

    Demoting the only active admin fails with last_admin_protected.
    """
    if not isinstance(patch, dict):
        raise ValidationError("Invalid update payload.")
    unknown = set(patch) - {"name", "department", "role"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    cleaned: dict = {}
    if patch.get("name") is not None:
        name = patch["name"]
        if not isinstance(name, str) or not name.strip() or len(name.strip()) > 120:
            raise ValidationError("name must be 1-120 characters")
        cleaned["name"] = name.strip()
    if patch.get("department") is not None:
        cleaned["department"] = validate_department_name(patch["department"])
    if patch.get("role") is not None:
        cleaned["role"] = validate_choice(patch["role"], ROLES, "role")
    if not cleaned:
        raise ValidationError("No update fields provided.")

    def _op():
        if "role" in cleaned:
            claim_admin_roster()
        actor = require_admin(actor_id)
        user = _lock_user(target_id)

        if "role" in cleaned and cleaned["role"] != user.role:
            _guard_last_admin(user)
        if "department" in cleaned:
            cleaned["department"] = department_service.resolve_department(cleaned["department"])

        for key, value in cleaned.items():
            setattr(user, key, value)

        changed = ", ".join(sorted(cleaned))
        audit_service.append_audit_event(
            actor_id=actor.id,
            actor_name=actor.name,
            action=audit_service.ACTION_USER_UPDATED,
            target=user.id,
            details=f"User profile updated ({changed})",
        )
        return user

    return run_in_transaction(_op)


def change_role(target_id: str, new_role: str, actor_id: str) -> User:
    return update_user(target_id, actor_id, {"role": new_role})


def toggle_user_active(target_id: str, actor_id: str) -> User:
    """
    Flip a user's active flag.

    Raises:
        NotFoundError: target missing
        AuthorizationError(self_deactivation): actor deactivating themselves
        AuthorizationError(last_admin_protected): target is the only active admin
    """
    def _op():
        claim_admin_roster()
        actor = require_admin(actor_id)
        user = _lock_user(target_id)

        if user.id == actor.id and user.is_active:
            raise AuthorizationError(
                "You cannot deactivate your own account.",
                kind=KIND_SELF_DEACTIVATION,
            )
        _guard_last_admin(user)

        user.is_active = not user.is_active
        if not user.is_active:
            session_service.revoke_user_sessions(user.id, "User account deactivated")

        state = "activated" if user.is_active else "deactivated"
        audit_service.append_audit_event(
            actor_id=actor.id,
            actor_name=actor.name,
            action=(
                audit_service.ACTION_USER_ACTIVATED
                if user.is_active
                else audit_service.ACTION_USER_DEACTIVATED
            ),
            target=user.id,
            details=f"{user.name} account {state}",
        )
        return user

    return run_in_transaction(_op)
