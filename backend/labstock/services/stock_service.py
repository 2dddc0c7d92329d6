# Overview: Service-layer operations for inventory stock; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryItem
from ..validation import ModelValidationPolicy, enforce_rules_inventory_item, validate_payload
from labstock.time_utils import utcnow
from . import audit_service, department_service
from .auth_service import require_admin
from .concurrency import lock_for_update, run_in_transaction
"""
LabStock Stock Invariants (authoritative)

Stock model:
- current_stock is a stored counter per item, never negative (writes clamp at 0).
- last_updated is refreshed on every stock-affecting write.

Writers:
- Request approvals, via release_stock(), only inside the review transaction
  that already holds the item row lock.
- Admin edits, via update_item() / set_stock(), which lock the row themselves.

Low-stock alerts (crossing check):
- An alert fires when a write moves the item from above its minimum
  (stock > min) to at-or-below it (stock <= min).
- An item that was already at or below its minimum never re-alerts until it
  has been restocked above the minimum.
- Alerts are authored by the reserved system actor in the same transaction.
"""


ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "department", "current_stock", "min_stock", "unit"},
    required_on_create={"name", "category", "department", "current_stock", "min_stock", "unit"},
)

ITEM_PATCH_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "current_stock", "min_stock", "unit"},
)


def crosses_minimum(*, old_stock: int, old_min: int, new_stock: int, new_min: int) -> bool:
    """True when a write takes the item from above its minimum to at-or-below it."""
    return old_stock > old_min and new_stock <= new_min


def _emit_low_stock_alert(item: InventoryItem, details: str) -> None:
    audit_service.append_system_event(
        action=audit_service.ACTION_LOW_STOCK_ALERT,
        target=item.id,
        details=details,
    )
    current_app.logger.info(
        "Low stock alert for %s (%s): %s/%s %s",
        item.id, item.name, item.current_stock, item.min_stock, item.unit,
    )


def get_item(item_id: str, *, lock: bool = False) -> InventoryItem | None:
    query = db.session.query(InventoryItem).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def list_items(department: str | None = None) -> list[InventoryItem]:
    query = db.session.query(InventoryItem)
    if department is not None:
        query = query.filter(InventoryItem.department == department)
    return query.order_by(InventoryItem.id).all()


def release_stock(item: InventoryItem, quantity: int) -> int:
    """
    Decrement a locked item's stock by quantity (clamped at 0).

    Must only be called inside a transaction that already holds the item row
    lock. Runs the crossing check against the pre-decrement stock.

    Returns the new stock level.
    """
    old_stock = item.current_stock
    new_stock = max(0, old_stock - quantity)

    item.current_stock = new_stock
    item.last_updated = utcnow()

    if crosses_minimum(old_stock=old_stock, old_min=item.min_stock, new_stock=new_stock, new_min=item.min_stock):
        _emit_low_stock_alert(item, f"{item.name} reached critical stock level")

    return new_stock


def create_item(actor_id: str, payload: dict) -> InventoryItem:
    """
    Create an inventory item in an existing department (admin action).

    Raises:
        ValidationError: payload problems
        NotFoundError: department not registered
        ConflictError: item name already used in the department
    """
    patch = validate_payload(
        model=InventoryItem,
        payload=payload,
        policy=ITEM_CREATE_POLICY,
        partial=False,
    )
    enforce_rules_inventory_item(patch)

    def _op():
        actor = require_admin(actor_id)
        department = department_service.resolve_department(patch["department"])

        duplicate = db.session.query(InventoryItem).filter(
            func.lower(InventoryItem.name) == patch["name"].lower(),
            InventoryItem.department == department,
        ).first()
        if duplicate:
            raise ConflictError("Item already exists in this department.")

        item = InventoryItem(
            name=patch["name"],
            category=patch["category"],
            department=department,
            current_stock=patch["current_stock"],
            min_stock=patch["min_stock"],
            unit=patch["unit"],
            last_updated=utcnow(),
        )
        db.session.add(item)
        db.session.flush()

        audit_service.append_audit_event(
            actor_id=actor.id,
            actor_name=actor.name,
            action=audit_service.ACTION_INVENTORY_CREATED,
            target=item.id,
            details=f"{item.name} added ({item.current_stock} {item.unit})",
        )
        return item

    return run_in_transaction(_op)


def _apply_item_patch(item: InventoryItem, patch: dict, actor) -> InventoryItem:
    old_stock = item.current_stock
    old_min = item.min_stock

    for key, value in patch.items():
        setattr(item, key, value)
    item.current_stock = max(0, item.current_stock)
    item.last_updated = utcnow()

    audit_service.append_audit_event(
        actor_id=actor.id,
        actor_name=actor.name,
        action=audit_service.ACTION_INVENTORY_UPDATED,
        target=item.id,
        details=f"{item.name} stock updated to {item.current_stock}",
    )

    if crosses_minimum(
        old_stock=old_stock,
        old_min=old_min,
        new_stock=item.current_stock,
        new_min=item.min_stock,
    ):
        _emit_low_stock_alert(item, f"{item.name} dropped below minimum stock")

    return item


def update_item(item_id: str, actor_id: str, patch: dict) -> InventoryItem:
    """
    Patch an item (admin action): stock, minimum, name, category or unit.

    Re-runs the crossing check and appends its own low_stock_alert when the
    edit moves the item to or below its minimum.
    """
    cleaned = validate_payload(
        model=InventoryItem,
        payload=patch,
        policy=ITEM_PATCH_POLICY,
        partial=True,
    )
    enforce_rules_inventory_item(cleaned)
    if not cleaned:
        raise ValidationError("No update fields provided.")

    def _op():
        actor = require_admin(actor_id)
        item = get_item(item_id, lock=True)
        if item is None:
            raise NotFoundError("Inventory item not found.")

        if "name" in cleaned and cleaned["name"].lower() != item.name.lower():
            duplicate = db.session.query(InventoryItem).filter(
                func.lower(InventoryItem.name) == cleaned["name"].lower(),
                InventoryItem.department == item.department,
                InventoryItem.id != item.id,
            ).first()
            if duplicate:
                raise ConflictError("Item already exists in this department.")

        return _apply_item_patch(item, cleaned, actor)

    return run_in_transaction(_op)


def set_stock(item_id: str, new_current_stock: int, actor_id: str) -> InventoryItem:
    """
    Direct admin stock correction. Negative values clamp to 0.
    """
    if isinstance(new_current_stock, bool) or not isinstance(new_current_stock, int):
        raise ValidationError("current_stock must be an integer")

    def _op():
        actor = require_admin(actor_id)
        item = get_item(item_id, lock=True)
        if item is None:
            raise NotFoundError("Inventory item not found.")
        return _apply_item_patch(item, {"current_stock": max(0, new_current_stock)}, actor)

    return run_in_transaction(_op)
