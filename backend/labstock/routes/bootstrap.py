# backend/labstock/routes/bootstrap.py
"""
Snapshot endpoint: everything the UI needs after login, filtered per viewer.
"""
from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_auth
from ..errors import LabStockError, error_response
from ..services import snapshot_service


bootstrap_bp = Blueprint("bootstrap", __name__, url_prefix="/api")


@bootstrap_bp.get("/bootstrap")
@require_auth
def bootstrap():
    try:
        viewer = snapshot_service.Viewer.from_user(g.current_user)
        return jsonify(snapshot_service.snapshot_for(viewer).to_dict())
    except LabStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build snapshot")
        return jsonify({"error": "Internal server error", "kind": "internal"}), 500
