# Overview: Error taxonomy shared by services and routes.

"""
LabStock error taxonomy.

Every business failure carries:
- kind: stable machine-readable tag (e.g. "already_reviewed")
- message: human readable text for the UI layer
- status_code: HTTP status used by the route layer

Services raise these before mutating anything; the transaction helper in
services/concurrency.py rolls the session back on the way out.
"""

from __future__ import annotations

from flask import jsonify


class LabStockError(Exception):
    """Base class for all errors surfaced to callers."""

    status_code = 500
    default_kind = "internal"

    def __init__(self, message: str, *, kind: str | None = None):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(LabStockError, ValueError):
    """400-level input problem, detected before any lock is taken."""

    status_code = 400
    default_kind = "invalid_payload"


class AuthorizationError(LabStockError):
    """Role, department or account-invariant violation."""

    status_code = 403
    default_kind = "forbidden"


class ConflictError(LabStockError, ValueError):
    """409-level business rule conflict (already reviewed, duplicates)."""

    status_code = 409
    default_kind = "duplicate"


class NotFoundError(LabStockError):
    status_code = 404
    default_kind = "not_found"


class ResourceContentionError(LabStockError):
    """Lock timeout or concurrent write; the caller may retry."""

    status_code = 503
    default_kind = "resource_contention"


class InternalError(LabStockError):
    status_code = 500
    default_kind = "internal"


# Kinds used by the request workflow and account guard
KIND_PERMISSION_DENIED = "permission_denied"
KIND_CROSS_DEPARTMENT = "cross_department"
KIND_ALREADY_REVIEWED = "already_reviewed"
KIND_SELF_REVIEW = "self_review"
KIND_ITEM_MISSING = "item_missing"
KIND_SELF_DEACTIVATION = "self_deactivation"
KIND_LAST_ADMIN_PROTECTED = "last_admin_protected"


def error_response(exc: LabStockError):
    """JSON response tuple for a LabStockError."""
    return jsonify(exc.to_dict()), exc.status_code
