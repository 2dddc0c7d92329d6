from .auth import AdminRoster, User, SessionToken
from .departments import DepartmentPermission
from .inventory import InventoryItem, InventoryRequest
from .audit import AuditLog

__all__ = [
    'AdminRoster', 'User', 'SessionToken',
    'DepartmentPermission',
    'InventoryItem', 'InventoryRequest',
    'AuditLog',
]
