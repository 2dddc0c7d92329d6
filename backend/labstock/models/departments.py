from __future__ import annotations

from ..extensions import db


class DepartmentPermission(db.Model):
    """
    Per-department capability toggles.

    can_request gates request submission. can_approve and can_edit_inventory
    are stored and exposed but not consulted by the review or edit paths.
    """
    __tablename__ = "department_permissions"

    department = db.Column(db.String(64), primary_key=True)
    can_request = db.Column(db.Boolean, nullable=False, default=True)
    can_approve = db.Column(db.Boolean, nullable=False, default=False)
    can_edit_inventory = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "department": self.department,
            "can_request": self.can_request,
            "can_approve": self.can_approve,
            "can_edit_inventory": self.can_edit_inventory,
        }
