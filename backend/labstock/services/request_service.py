# backend/labstock/services/request_service.py
"""
Inventory request workflow.

WHY: Staff ask for commodities from their department's stock; an admin
releases (all or part of) the quantity or rejects the request. The review is
the only path that moves stock out on behalf of a request, so the status
change, the stock decrement and the audit entries must commit together.

LIFECYCLE:
1. PENDING: submitted by staff
2. APPROVED: full requested quantity released
3. PARTIALLY_APPROVED: less than requested released (capped by stock or by admin)
4. REJECTED: nothing released

All non-pending states are terminal. A request cannot be withdrawn.

LOCKING:
review_request locks the request row, then the item row. A second reviewer
of the same request blocks on the request lock and then fails with
already_reviewed. Reviews of different requests against the same item
serialize on the item lock, so stock is never double-decremented.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    KIND_ALREADY_REVIEWED,
    KIND_CROSS_DEPARTMENT,
    KIND_ITEM_MISSING,
    KIND_SELF_REVIEW,
)
from ..extensions import db
from ..models import InventoryRequest, User
from ..models.auth import ROLE_STAFF
from ..models.inventory import (
    PRIORITIES,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_PARTIALLY_APPROVED,
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_REJECTED,
    TERMINAL_STATUSES,
)
from ..validation import (
    validate_choice,
    validate_non_negative_int,
    validate_optional_text,
    validate_positive_int,
)
from labstock.time_utils import utcnow
from . import audit_service, department_service, stock_service
from .auth_service import require_admin
from .concurrency import lock_for_update, run_in_transaction


REVIEW_ACTIONS = {
    REQUEST_STATUS_APPROVED: audit_service.ACTION_REQUEST_APPROVED,
    REQUEST_STATUS_PARTIALLY_APPROVED: audit_service.ACTION_REQUEST_PARTIALLY_APPROVED,
    REQUEST_STATUS_REJECTED: audit_service.ACTION_REQUEST_REJECTED,
}


@dataclass(frozen=True)
class ReviewOutcome:
    status: str
    approved_qty: int | None


def compute_review_outcome(
    *,
    decision: str,
    requested_qty: int,
    current_stock: int,
    approved_qty: int | None = None,
) -> ReviewOutcome:
    """
    Decide the final status and released quantity of a review.

    The release never exceeds the requested quantity nor the stock on hand.
    An approval that would release nothing becomes a rejection.
    """
    if decision == REQUEST_STATUS_REJECTED:
        return ReviewOutcome(REQUEST_STATUS_REJECTED, None)

    desired = approved_qty if approved_qty is not None else requested_qty
    bounded = min(desired, requested_qty, current_stock)
    if bounded <= 0:
        return ReviewOutcome(REQUEST_STATUS_REJECTED, None)
    if bounded < requested_qty:
        return ReviewOutcome(REQUEST_STATUS_PARTIALLY_APPROVED, bounded)
    return ReviewOutcome(REQUEST_STATUS_APPROVED, bounded)


def list_requests(*, requester_id: str | None = None, status: str | None = None) -> list[InventoryRequest]:
    query = db.session.query(InventoryRequest)
    if requester_id is not None:
        query = query.filter(InventoryRequest.requester_id == requester_id)
    if status is not None:
        query = query.filter(InventoryRequest.status == status)
    return query.order_by(InventoryRequest.request_date.desc(), InventoryRequest.id.desc()).all()


def submit_request(
    requester_id: str,
    item_id: str,
    requested_qty,
    priority,
    note=None,
) -> InventoryRequest:
    """
    Submit a pending request (staff action).

    Requester and item details are copied onto the request so later renames
    never alter the record.

    Raises:
        ValidationError: non-positive/non-integer quantity, unknown priority
        NotFoundError: requester or item missing
        AuthorizationError: requester inactive or not staff (forbidden),
            department lacks can_request (permission_denied),
            item belongs to another department (cross_department)
    """
    qty = validate_positive_int(requested_qty, "requested_qty")
    clean_priority = validate_choice(priority, PRIORITIES, "priority")
    clean_note = validate_optional_text(note, "note")

    def _op():
        requester = db.session.query(User).filter_by(id=requester_id).first()
        if requester is None:
            raise NotFoundError("User not found.")
        if not requester.is_active:
            raise AuthorizationError("Account is deactivated.")
        if requester.role != ROLE_STAFF:
            raise AuthorizationError("Only staff can submit requests.")

        department_service.require_capability(requester.department, "can_request")

        item = stock_service.get_item(item_id)
        if item is None:
            raise NotFoundError("Inventory item not found.")
        if item.department.lower() != requester.department.lower():
            raise AuthorizationError(
                "Cannot request items outside your department.",
                kind=KIND_CROSS_DEPARTMENT,
            )

        request = InventoryRequest(
            requester_id=requester.id,
            requester_name=requester.name,
            department=requester.department,
            item_id=item.id,
            item_name=item.name,
            unit=item.unit,
            requested_qty=qty,
            approved_qty=None,
            status=REQUEST_STATUS_PENDING,
            priority=clean_priority,
            request_date=utcnow(),
            review_note=clean_note,
        )
        db.session.add(request)
        db.session.flush()

        audit_service.append_audit_event(
            actor_id=requester.id,
            actor_name=requester.name,
            action=audit_service.ACTION_REQUEST_SUBMITTED,
            target=request.id,
            details=f"{item.name}: {qty} {item.unit}",
        )
        return request

    return run_in_transaction(_op)


def review_request(
    request_id: str,
    reviewer_id: str,
    decision,
    approved_qty=None,
    note=None,
) -> InventoryRequest:
    """
    Review a pending request (admin action) in a single transaction.

    decision: "approved", "partially_approved" or "rejected". Any non-rejected
    decision takes the approval path; the final status is derived from the
    quantity actually released.

    Raises:
        ValidationError: bad decision / quantity / note
        NotFoundError(not_found): request missing
        ConflictError(already_reviewed): request no longer pending
        AuthorizationError(self_review): reviewer is the requester
        NotFoundError(item_missing): request references a vanished item
        ResourceContentionError: lock contention persisted through retries
    """
    clean_decision = validate_choice(decision, TERMINAL_STATUSES, "status")
    clean_qty = None if approved_qty is None else validate_non_negative_int(approved_qty, "approved_qty")
    clean_note = validate_optional_text(note, "review_note")

    def _op():
        reviewer = require_admin(reviewer_id)

        # 1. lock the request row
        request = lock_for_update(
            db.session.query(InventoryRequest).filter_by(id=request_id)
        ).first()
        if request is None:
            raise NotFoundError("Request not found.")

        # 2. terminal states never transition again
        if request.status != REQUEST_STATUS_PENDING:
            raise ConflictError("Request already reviewed.", kind=KIND_ALREADY_REVIEWED)

        # 3. no self-review, whatever the reviewer's role or department
        if request.requester_id == reviewer.id:
            raise AuthorizationError("Cannot review your own request.", kind=KIND_SELF_REVIEW)

        # 4. lock the item row
        item = stock_service.get_item(request.item_id, lock=True)
        if item is None:
            raise NotFoundError("Inventory item missing.", kind=KIND_ITEM_MISSING)

        # 5. final status and quantity
        outcome = compute_review_outcome(
            decision=clean_decision,
            requested_qty=request.requested_qty,
            current_stock=item.current_stock,
            approved_qty=clean_qty,
        )

        # 6. persist the review; a blank note keeps the submission note
        request.status = outcome.status
        request.approved_qty = outcome.approved_qty
        request.reviewed_by = reviewer.name
        request.reviewed_date = utcnow()
        if clean_note:
            request.review_note = clean_note

        # 7. release stock (emits low_stock_alert on crossing)
        if outcome.approved_qty:
            stock_service.release_stock(item, outcome.approved_qty)

        # 8. primary audit entry
        if outcome.status == REQUEST_STATUS_REJECTED:
            details = f"Rejected {request.item_name}. {clean_note or 'No reason provided'}"
        else:
            details = (
                f"Approved {outcome.approved_qty}/{request.requested_qty} "
                f"{request.unit} for {request.item_name}"
            )
        audit_service.append_audit_event(
            actor_id=reviewer.id,
            actor_name=reviewer.name,
            action=REVIEW_ACTIONS[outcome.status],
            target=request.id,
            details=details,
        )
        db.session.flush()
        return request

    request = run_in_transaction(_op)
    current_app.logger.info(
        "Request %s reviewed by %s: %s (%s/%s)",
        request.id, reviewer_id, request.status, request.approved_qty, request.requested_qty,
    )
    return request
