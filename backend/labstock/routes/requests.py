# backend/labstock/routes/requests.py
"""
Inventory request API routes.

Staff submit; admins review. Status transitions, stock movement and audit
entries all happen inside request_service in one transaction.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import LabStockError, error_response
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import request_service
from ..validation import require_json_object
from ..decorators import require_auth, require_role


requests_bp = Blueprint("requests", __name__, url_prefix="/api/requests")


@requests_bp.get("")
@require_auth
def list_requests():
    """
    Admins see every request (optionally ?status=pending); staff see their own.
    """
    user = g.current_user
    requester_id = None if user.role == ROLE_ADMIN else user.id
    requests = request_service.list_requests(
        requester_id=requester_id,
        status=request.args.get("status"),
    )
    return jsonify({"requests": [r.to_dict() for r in requests], "count": len(requests)})


@requests_bp.post("")
@require_auth
@require_role(ROLE_STAFF)
def submit_request():
    """
    Submit a request.

    Request body:
    {
        "item_id": str,
        "requested_qty": int (> 0),
        "priority": "high" | "medium" | "low",
        "note": str (optional)
    }

    Returns:
        201: Request created (pending)
        400: Invalid payload
        403: Department cannot request / item in another department
        404: Item not found
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        inventory_request = request_service.submit_request(
            g.current_user.id,
            data.get("item_id"),
            data.get("requested_qty"),
            data.get("priority", "medium"),
            data.get("note"),
        )
        return jsonify(inventory_request.to_dict()), 201
    except LabStockError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to submit request")
        return jsonify({"error": "Internal server error", "kind": "internal"}), 500


@requests_bp.post("/<request_id>/review")
@require_auth
@require_role(ROLE_ADMIN)
def review_request(request_id: str):
    """
    Review a pending request.

    Request body:
    {
        "status": "approved" | "partially_approved" | "rejected",
        "approved_qty": int (optional),
        "review_note": str (optional)
    }

    Returns:
        200: Reviewed request
        403: Self-review
        404: Request or item missing
        409: Already reviewed
        503: Contention persisted; retry
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        inventory_request = request_service.review_request(
            request_id,
            g.current_user.id,
            data.get("status"),
            approved_qty=data.get("approved_qty"),
            note=data.get("review_note"),
        )
        return jsonify(inventory_request.to_dict())
    except LabStockError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to review request")
        return jsonify({"error": "Internal server error", "kind": "internal"}), 500
