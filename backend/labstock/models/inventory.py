from __future__ import annotations

from ..extensions import db
from ..ids import make_id
from labstock.time_utils import to_utc_z, utcnow

REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_APPROVED = "approved"
REQUEST_STATUS_PARTIALLY_APPROVED = "partially_approved"
REQUEST_STATUS_REJECTED = "rejected"

REQUEST_STATUSES = (
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_PARTIALLY_APPROVED,
    REQUEST_STATUS_REJECTED,
)
TERMINAL_STATUSES = (
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_PARTIALLY_APPROVED,
    REQUEST_STATUS_REJECTED,
)

PRIORITIES = ("high", "medium", "low")


class InventoryItem(db.Model):
    """
    Commodity stock held by a single department.

    current_stock is a mutable on-hand counter. It is written only by admin
    edits (stock_service) and by request approvals (request_service), always
    under a row lock. version_id makes a stale concurrent write fail with
    StaleDataError on stores that ignore SELECT ... FOR UPDATE.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_inventory_items_current_stock_nonneg"),
        db.CheckConstraint("min_stock >= 0", name="ck_inventory_items_min_stock_nonneg"),
        db.Index("ix_inventory_items_department_name", "department", "name"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: make_id("INV"))
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False)
    department = db.Column(db.String(64), nullable=False, index=True)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=False)

    last_updated = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} stock={self.current_stock}/{self.min_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "department": self.department,
            "current_stock": self.current_stock,
            "min_stock": self.min_stock,
            "unit": self.unit,
            "last_updated": to_utc_z(self.last_updated),
        }


class InventoryRequest(db.Model):
    """
    A staff consumption request.

    Requester name, department, item name and unit are copied at submission
    time so later renames never alter history. item_id is deliberately not a
    foreign key: a review against a vanished item fails with item_missing.

    LIFECYCLE:
    pending -> approved | partially_approved | rejected (all terminal)

    INVARIANT: approved_qty is set iff status is approved/partially_approved,
    and never exceeds requested_qty.
    """
    __tablename__ = "inventory_requests"
    __table_args__ = (
        db.CheckConstraint("requested_qty > 0", name="ck_inventory_requests_requested_qty_pos"),
        db.CheckConstraint(
            "approved_qty IS NULL OR (approved_qty > 0 AND approved_qty <= requested_qty)",
            name="ck_inventory_requests_approved_qty_bounds",
        ),
        db.Index("ix_inventory_requests_status", "status"),
        db.Index("ix_inventory_requests_requester", "requester_id"),
    )

    id = db.Column(db.String(64), primary_key=True, default=lambda: make_id("REQ"))

    requester_id = db.Column(db.String(64), nullable=False)
    requester_name = db.Column(db.String(120), nullable=False)
    department = db.Column(db.String(64), nullable=False, index=True)

    item_id = db.Column(db.String(64), nullable=False, index=True)
    item_name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False)

    requested_qty = db.Column(db.Integer, nullable=False)
    approved_qty = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(32), nullable=False, default=REQUEST_STATUS_PENDING)
    priority = db.Column(db.String(16), nullable=False, default="medium")

    request_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    reviewed_by = db.Column(db.String(120), nullable=True)
    reviewed_date = db.Column(db.DateTime(timezone=True), nullable=True)
    review_note = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryRequest id={self.id} status={self.status} qty={self.requested_qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "requester_name": self.requester_name,
            "department": self.department,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "requested_qty": self.requested_qty,
            "approved_qty": self.approved_qty,
            "unit": self.unit,
            "status": self.status,
            "priority": self.priority,
            "request_date": to_utc_z(self.request_date),
            "reviewed_by": self.reviewed_by,
            "reviewed_date": to_utc_z(self.reviewed_date),
            "review_note": self.review_note,
        }
