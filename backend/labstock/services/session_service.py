# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Bearer session tokens.

The client holds a random 64-char hex token; the database keeps only its
SHA-256 digest. A session dies when any of these happen:
- its absolute lifetime (SESSION_ABSOLUTE_TIMEOUT_HOURS) runs out
- it sits unused longer than SESSION_IDLE_TIMEOUT_HOURS
- the user logs out or is deactivated
- a backup restore wipes the session table

Role and department are never cached on the session. SessionContext reads
them from the user row, so a promotion or department move applies on the
next request.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from labstock.time_utils import utcnow

REASON_LOGOUT = "User logout"
REASON_IDLE = "Idle timeout"
REASON_DEACTIVATED = "User account deactivated"


@dataclass
class SessionContext:
    user: User
    session: SessionToken

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def department(self) -> str:
        return self.user.department


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _hours(key: str, default: int) -> timedelta:
    return timedelta(hours=current_app.config.get(key, default))


def _live_session(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(token_hash=_digest(token), is_revoked=False).first()


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def create_session(
    user_id: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for user_id and return (row, plaintext token).

    Flushes but does not commit; login wraps this together with its audit
    entry in one transaction.
    """
    if db.session.get(User, user_id) is None:
        raise ValueError("User not found")

    token = secrets.token_hex(32)
    opened_at = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=_digest(token),
        created_at=opened_at,
        last_used_at=opened_at,
        expires_at=opened_at + _hours("SESSION_ABSOLUTE_TIMEOUT_HOURS", 8),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.flush()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its SessionContext, or None.

    Idle sessions and sessions of deactivated users are revoked on the spot.
    A successful lookup refreshes last_used_at. Commits.
    """
    session = _live_session(token)
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    reason = None
    if now - session.last_used_at > _hours("SESSION_IDLE_TIMEOUT_HOURS", 2):
        reason = REASON_IDLE
    elif session.user is None or not session.user.is_active:
        reason = REASON_DEACTIVATED

    if reason is not None:
        _revoke(session, reason)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=session.user, session=session)


def revoke_session(token: str, reason: str = REASON_LOGOUT) -> bool:
    session = _live_session(token)
    if session is None:
        return False
    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_user_sessions(user_id: str, reason: str) -> int:
    """Revoke every live session of a user. Does not commit."""
    sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    for session in sessions:
        _revoke(session, reason)
    return len(sessions)
