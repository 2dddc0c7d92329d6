# backend/labstock/routes/system.py
"""
System health endpoints.

/health is a liveness check with a database ping; /health/ready additionally
confirms the schema is populated with at least one active admin.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text
from ..extensions import db
from ..models import DepartmentPermission, User
from ..models.auth import ROLE_ADMIN
from labstock.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Ping the database.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_bootstrap_health() -> dict:
    try:
        departments = db.session.query(DepartmentPermission).count()
        active_admins = db.session.query(User).filter(
            User.role == ROLE_ADMIN, User.is_active.is_(True)
        ).count()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Bootstrap health check failed")
        return {"status": "unhealthy", "error": "Database error"}

    if active_admins == 0:
        return {
            "status": "degraded",
            "warning": "No active admin account; run `flask system init`",
            "details": {"departments": departments, "active_admins": active_admins},
        }
    return {
        "status": "healthy",
        "details": {"departments": departments, "active_admins": active_admins},
    }


@system_bp.get("/health")
def health():
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503
    return {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }, http_status


@system_bp.get("/health/ready")
def ready():
    """
    Readiness check.

    Returns:
    - 200: database reachable and an active admin exists
    - 503: database unreachable or not bootstrapped
    """
    start_time = time.time()
    database_health = check_database_health()
    bootstrap_health = (
        check_bootstrap_health()
        if database_health["status"] == "healthy"
        else {"status": "unhealthy", "error": "Database unavailable"}
    )

    ready_flag = database_health["status"] == "healthy" and bootstrap_health["status"] == "healthy"
    total_elapsed_ms = (time.time() - start_time) * 1000

    return {
        "status": "ready" if ready_flag else "not_ready",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "bootstrap": bootstrap_health,
        }
    }, 200 if ready_flag else 503
