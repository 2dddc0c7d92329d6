# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/labstock/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Login rate limited per client address (Flask-Limiter)
- Session management with opaque bearer tokens
- Deactivated accounts cannot log in and lose live sessions
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import LabStockError, error_response
from ..services import auth_service
from ..services import session_service
from ..extensions import limiter
from ..decorators import bearer_token, require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def login_rate_limit() -> str:
    """Read at request time so config changes apply without a restart."""
    return "{} per {} seconds".format(
        current_app.config["LOGIN_RATE_LIMIT_MAX_REQUESTS"],
        current_app.config["LOGIN_RATE_LIMIT_WINDOW_SECONDS"],
    )


@auth_bp.post("/login")
@limiter.limit(login_rate_limit)
def login_route():
    """
    Authenticate user and create session token.

    Returns user info and session token on success.
    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email") if isinstance(data, dict) else None
        password = data.get("password") if isinstance(data, dict) else None

        if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
            return jsonify({"error": "email and password required", "kind": "invalid_payload"}), 400

        result = auth_service.login(
            email,
            password,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        if result is None:
            return jsonify({"error": "Invalid credentials", "kind": "invalid_credentials"}), 401

        user, session, token = result
        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except LabStockError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error", "kind": "internal"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required", "kind": "unauthenticated"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token", "kind": "unauthenticated"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error", "kind": "internal"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()})
