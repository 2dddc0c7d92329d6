# backend/labstock/routes/inventory.py
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import LabStockError, error_response
from ..models.auth import ROLE_ADMIN
from ..services import stock_service
from ..validation import require_json_object
from ..decorators import require_auth, require_role

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_auth
def list_inventory():
    """Admins see every item; staff see their own department's items."""
    user = g.current_user
    department = None if user.role == ROLE_ADMIN else user.department
    items = stock_service.list_items(department)
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})


@inventory_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_item():
    try:
        data = require_json_object(request.get_json(silent=True))
        item = stock_service.create_item(g.current_user.id, data)
        return jsonify(item.to_dict()), 201
    except LabStockError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error", "kind": "internal"}), 500


@inventory_bp.patch("/<item_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_item(item_id: str):
    """
    Patch an item. Accepts any of: name, category, current_stock, min_stock, unit.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        item = stock_service.update_item(item_id, g.current_user.id, data)
        return jsonify(item.to_dict())
    except LabStockError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "Internal server error", "kind": "internal"}), 500
