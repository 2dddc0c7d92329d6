# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/labstock/routes/admin.py
"""
Admin routes for departments, accounts and backups.

Provides endpoints for:
- Department management (list, create, toggle capabilities)
- User management (list, create, update, activate/deactivate)
- Backup export and restore

All endpoints require an authenticated admin.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import LabStockError, error_response
from ..models.auth import ROLE_ADMIN
from ..services import account_service, backup_service, department_service
from ..validation import require_json_object
from ..decorators import require_auth, require_role

admin_bp = Blueprint("admin", __name__, url_prefix="/api")


def _internal_error(message: str):
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "kind": "internal"}), 500


# =============================================================================
# DEPARTMENTS & PERMISSIONS
# =============================================================================

@admin_bp.get("/departments")
@require_auth
@require_role(ROLE_ADMIN)
def list_departments():
    permissions = department_service.list_departments()
    return jsonify({"departments": [p.to_dict() for p in permissions], "count": len(permissions)})


@admin_bp.post("/departments")
@require_auth
@require_role(ROLE_ADMIN)
def create_department():
    """
    Register a department.

    Request body: {"name": str}
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        permission = department_service.create_department(data.get("name"), g.current_user.id)
        return jsonify(permission.to_dict()), 201
    except LabStockError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to create department")


@admin_bp.patch("/permissions/<department>")
@require_auth
@require_role(ROLE_ADMIN)
def update_permissions(department: str):
    """
    Toggle department capabilities.

    Request body: any subset of {"can_request", "can_approve", "can_edit_inventory"} (booleans)
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        permission = department_service.set_department_permission(department, data, g.current_user.id)
        return jsonify(permission.to_dict())
    except LabStockError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to update department permissions")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_role(ROLE_ADMIN)
def list_users():
    """
    List all users.

    Query params:
    - include_inactive: bool (default true)
    """
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    users = account_service.list_users(include_inactive=include_inactive)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@admin_bp.post("/users")
@require_auth
@require_role(ROLE_ADMIN)
def create_user():
    """
    Create an account.

    Request body:
    {
        "name": str,
        "email": str,
        "role": "admin" | "staff",
        "department": str,
        "password": str (optional, defaults to the role's initial password)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        user = account_service.create_user(
            g.current_user.id,
            name=data.get("name"),
            email=data.get("email"),
            role=data.get("role"),
            department=data.get("department"),
            password=data.get("password"),
        )
        return jsonify(user.to_dict()), 201
    except LabStockError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to create user")


@admin_bp.patch("/users/<user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user(user_id: str):
    try:
        data = require_json_object(request.get_json(silent=True))
        user = account_service.update_user(user_id, g.current_user.id, data)
        return jsonify(user.to_dict())
    except LabStockError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to update user")


@admin_bp.post("/users/<user_id>/toggle-status")
@require_auth
@require_role(ROLE_ADMIN)
def toggle_user_status(user_id: str):
    try:
        user = account_service.toggle_user_active(user_id, g.current_user.id)
        return jsonify(user.to_dict())
    except LabStockError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to toggle user status")


# =============================================================================
# BACKUP
# =============================================================================

@admin_bp.get("/admin/backup/export")
@require_auth
@require_role(ROLE_ADMIN)
def export_backup():
    try:
        return jsonify(backup_service.export_backup())
    except Exception:
        return _internal_error("Failed to export backup")


@admin_bp.post("/admin/backup/import")
@require_auth
@require_role(ROLE_ADMIN)
def import_backup():
    """
    Replace all data with a backup produced by /admin/backup/export.

    Every session (including the caller's) is revoked by the restore.
    """
    try:
        counts = backup_service.restore_from_backup(
            request.get_json(silent=True), g.current_user.id
        )
        return jsonify({"ok": True, "restored": counts})
    except LabStockError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Failed to restore backup")
