# Overview: Service-layer operations for auth; password hashing and actor resolution.

"""
Authentication and actor resolution.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters with upper/lower case, digit and special character
- Session tokens managed separately (see session_service.py)

Every service that mutates state resolves its actor through require_user /
require_admin so that deactivated accounts cannot act even with a live session.
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy import func

from ..errors import AuthorizationError, NotFoundError
from ..extensions import db
from ..models import SessionToken, User
from . import audit_service, session_service
from .concurrency import run_in_transaction


class PasswordValidationError(ValueError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() is timing-safe. A malformed hash never authenticates.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def default_password_for(role: str) -> str:
    """Initial password handed out for new or restored accounts."""
    if role == "admin":
        return current_app.config["DEFAULT_ADMIN_PASSWORD"]
    return current_app.config["DEFAULT_STAFF_PASSWORD"]


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate an active user by email and password.

    Returns None on any mismatch (unknown email, wrong password, inactive).
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_user(user_id: str) -> User | None:
    return db.session.query(User).filter_by(id=user_id).first()


def require_user(user_id: str) -> User:
    """Resolve an acting user; must exist and be active."""
    user = get_user(user_id)
    if user is None:
        raise NotFoundError("User not found.")
    if not user.is_active:
        raise AuthorizationError("Account is deactivated.")
    return user


def require_admin(user_id: str) -> User:
    """Resolve an acting user who must be an active admin."""
    user = require_user(user_id)
    if not user.is_admin:
        raise AuthorizationError("Administrator role required.")
    return user


def login(
    email: str,
    password: str,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[User, SessionToken, str] | None:
    """
    Authenticate and open a session in one transaction, recording a login
    audit entry.

    Returns (user, session, plaintext_token), or None if authentication failed.
    """
    user = authenticate(email, password)
    if user is None:
        return None

    def _op():
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        audit_service.append_audit_event(
            actor_id=user.id,
            actor_name=user.name,
            action=audit_service.ACTION_LOGIN,
            target=user.id,
            details="User logged in",
        )
        return session, token

    session, token = run_in_transaction(_op)
    return user, session, token
