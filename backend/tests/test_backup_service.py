import pytest

from labstock.errors import AuthorizationError, ValidationError
from labstock.extensions import db
from labstock.models import AuditLog, InventoryItem, InventoryRequest, SessionToken, User
from labstock.services import audit_service, auth_service, backup_service, request_service, session_service


@pytest.fixture
def populated(admin, staff, item):
    req = request_service.submit_request(staff.id, item.id, 3, "high", "weekly run")
    request_service.review_request(req.id, admin.id, "approved")
    return {"admin_id": admin.id, "staff_id": staff.id, "item_id": item.id, "request_id": req.id}


class TestExportBackup:

    def test_contains_all_sections(self, populated):
        data = backup_service.export_backup()

        assert data["app"] == "Lab Inventory Management System"
        assert data["exported_at"].endswith("Z")
        for section in ("users", "inventory", "requests", "audit_logs", "permissions"):
            assert isinstance(data[section], list)
        assert len(data["users"]) == 2
        assert data["inventory"][0]["current_stock"] == 12
        assert data["requests"][0]["status"] == "approved"
        assert all("password_hash" not in u for u in data["users"])


class TestRestoreFromBackup:

    def test_round_trip_replaces_state(self, populated, make_item):
        backup = backup_service.export_backup()
        admin_id = populated["admin_id"]

        # Diverge from the backup
        make_item("Swabs")
        request_service.submit_request(populated["staff_id"], populated["item_id"], 1, "low")
        _, token = session_service.create_session(admin_id)
        db.session.commit()

        counts = backup_service.restore_from_backup(backup, admin_id)

        assert counts == {
            "users": 2,
            "inventory": 1,
            "requests": 1,
            "audit_logs": len(backup["audit_logs"]),
            "permissions": 3,
        }
        assert db.session.query(InventoryItem).count() == 1
        assert db.session.get(InventoryItem, populated["item_id"]).current_stock == 12
        restored = db.session.get(InventoryRequest, populated["request_id"])
        assert restored.status == "approved"
        assert restored.approved_qty == 3
        assert restored.review_note == "weekly run"

        # Sessions are wiped, restored users get the initial passwords
        assert db.session.query(SessionToken).count() == 0
        assert session_service.validate_session(token) is None
        assert auth_service.authenticate("ada@lab.local", "Adminset@lab01").id == admin_id
        assert auth_service.authenticate("sam@lab.local", "Staffset@lab01") is not None

        restore_entries = db.session.query(AuditLog).filter_by(action=audit_service.ACTION_DATA_RESTORE).all()
        assert len(restore_entries) == 1
        assert restore_entries[0].actor_id == admin_id
        assert restore_entries[0].target == "system"
        assert db.session.query(AuditLog).count() == len(backup["audit_logs"]) + 1

    def test_requires_active_admin_in_backup(self, populated):
        backup = backup_service.export_backup()
        for user in backup["users"]:
            if user["role"] == "admin":
                user["is_active"] = False

        with pytest.raises(ValidationError):
            backup_service.restore_from_backup(backup, populated["admin_id"])
        assert db.session.query(User).filter_by(is_active=True).count() == 2

    @pytest.mark.parametrize("section", ["users", "inventory", "requests", "audit_logs", "permissions"])
    def test_missing_section(self, populated, section):
        backup = backup_service.export_backup()
        del backup[section]
        with pytest.raises(ValidationError):
            backup_service.restore_from_backup(backup, populated["admin_id"])

    def test_not_an_object(self, populated):
        with pytest.raises(ValidationError):
            backup_service.restore_from_backup([1, 2, 3], populated["admin_id"])

    def test_invalid_rows_leave_state_untouched(self, populated):
        backup = backup_service.export_backup()
        backup["inventory"][0]["current_stock"] = -4

        with pytest.raises(ValidationError):
            backup_service.restore_from_backup(backup, populated["admin_id"])
        assert db.session.get(InventoryItem, populated["item_id"]).current_stock == 12

    def test_approved_qty_must_match_status(self, populated):
        backup = backup_service.export_backup()
        backup["requests"][0]["approved_qty"] = None
        with pytest.raises(ValidationError):
            backup_service.restore_from_backup(backup, populated["admin_id"])

    @pytest.mark.parametrize("section", ["users", "inventory", "requests"])
    def test_rows_must_reference_a_restored_department(self, populated, section):
        backup = backup_service.export_backup()
        row = next(r for r in backup[section] if r["department"] == "Laboratory")
        row["department"] = "Ghost Ward"

        with pytest.raises(ValidationError):
            backup_service.restore_from_backup(backup, populated["admin_id"])
        assert db.session.get(User, populated["staff_id"]).department == "Laboratory"

    def test_department_spelling_follows_permission_row(self, populated):
        backup = backup_service.export_backup()
        for section in ("users", "inventory", "requests"):
            for row in backup[section]:
                if row["department"] == "Laboratory":
                    row["department"] = "LABORATORY"

        backup_service.restore_from_backup(backup, populated["admin_id"])

        assert db.session.get(User, populated["staff_id"]).department == "Laboratory"
        assert db.session.get(InventoryItem, populated["item_id"]).department == "Laboratory"
        assert db.session.get(InventoryRequest, populated["request_id"]).department == "Laboratory"

    def test_duplicate_ids(self, populated):
        backup = backup_service.export_backup()
        backup["inventory"].append(dict(backup["inventory"][0], name="Copy"))
        with pytest.raises(ValidationError):
            backup_service.restore_from_backup(backup, populated["admin_id"])

    def test_staff_cannot_restore(self, populated):
        backup = backup_service.export_backup()
        with pytest.raises(AuthorizationError):
            backup_service.restore_from_backup(backup, populated["staff_id"])
        assert db.session.query(AuditLog).filter_by(action=audit_service.ACTION_DATA_RESTORE).count() == 0
