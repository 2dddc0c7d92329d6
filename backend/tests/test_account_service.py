"""
Account guard tests.

Verifies:
- Admin-only account creation with default passwords
- At least one active admin always remains
- Admins cannot deactivate themselves
- Deactivation revokes live sessions
- Changes to the admin set claim the admin roster row
"""

import pytest

from labstock.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from labstock.extensions import db
from labstock.models import AdminRoster, AuditLog, User
from labstock.services import account_service, audit_service, auth_service, session_service, snapshot_service


class TestCreateUser:

    def test_creates_staff_with_default_password(self, admin):
        user = account_service.create_user(
            admin.id,
            name="  Nora Nurse ",
            email="Nora@Lab.Local",
            role="staff",
            department="laboratory",
        )

        assert user.id.startswith("USR-")
        assert user.name == "Nora Nurse"
        assert user.email == "nora@lab.local"
        assert user.department == "Laboratory"
        assert user.is_active is True
        assert auth_service.authenticate("nora@lab.local", "Staffset@lab01").id == user.id

        entry = db.session.query(AuditLog).filter_by(target=user.id).one()
        assert entry.action == audit_service.ACTION_USER_CREATED

    def test_explicit_password(self, admin):
        user = account_service.create_user(
            admin.id, name="Ola", email="ola@lab.local", role="staff",
            department="Laboratory", password="Another#Pass9",
        )
        assert auth_service.authenticate("ola@lab.local", "Another#Pass9").id == user.id

    def test_weak_password(self, admin):
        with pytest.raises(ValidationError):
            account_service.create_user(
                admin.id, name="Ola", email="ola@lab.local", role="staff",
                department="Laboratory", password="short",
            )

    def test_duplicate_email_case_insensitive(self, admin, staff):
        with pytest.raises(ConflictError):
            account_service.create_user(
                admin.id, name="Sam Again", email="SAM@lab.local", role="staff", department="Laboratory",
            )

    def test_unknown_department(self, admin):
        with pytest.raises(NotFoundError):
            account_service.create_user(
                admin.id, name="Ola", email="ola@lab.local", role="staff", department="Cardiology",
            )

    @pytest.mark.parametrize(
        "field,value",
        [("email", "not-an-email"), ("role", "manager"), ("name", ""), ("department", "1abc")],
    )
    def test_invalid_fields(self, admin, field, value):
        kwargs = dict(name="Ola", email="ola@lab.local", role="staff", department="Laboratory")
        kwargs[field] = value
        with pytest.raises(ValidationError):
            account_service.create_user(admin.id, **kwargs)

    def test_staff_cannot_create(self, staff):
        with pytest.raises(AuthorizationError):
            account_service.create_user(
                staff.id, name="Ola", email="ola@lab.local", role="staff", department="Laboratory",
            )


class TestUpdateUser:

    def test_moves_department_and_renames(self, admin, staff):
        user = account_service.update_user(staff.id, admin.id, {"department": "radiology", "name": "Sam S."})
        assert user.department == "Radiology"
        assert user.name == "Sam S."

    def test_unknown_field(self, admin, staff):
        with pytest.raises(ValidationError):
            account_service.update_user(staff.id, admin.id, {"email": "x@lab.local"})

    def test_demoting_only_admin_fails(self, admin):
        with pytest.raises(AuthorizationError) as exc:
            account_service.change_role(admin.id, "staff", admin.id)
        assert exc.value.kind == "last_admin_protected"
        assert db.session.get(User, admin.id).role == "admin"

    def test_demoting_one_of_two_admins(self, admin, second_admin):
        user = account_service.change_role(second_admin.id, "staff", admin.id)
        assert user.role == "staff"

    def test_unknown_user(self, admin):
        with pytest.raises(NotFoundError):
            account_service.update_user("USR-missing", admin.id, {"name": "X"})


class TestToggleUserActive:

    def test_self_deactivation_refused(self, admin, second_admin):
        with pytest.raises(AuthorizationError) as exc:
            account_service.toggle_user_active(admin.id, admin.id)
        assert exc.value.kind == "self_deactivation"

    def test_last_admin_guard(self, admin):
        with pytest.raises(AuthorizationError) as exc:
            account_service._guard_last_admin(db.session.get(User, admin.id))
        assert exc.value.kind == "last_admin_protected"
        db.session.rollback()

    def test_deactivating_non_last_admin_shows_in_snapshot(self, admin, second_admin):
        account_service.toggle_user_active(second_admin.id, admin.id)

        viewer = snapshot_service.Viewer.from_user(db.session.get(User, admin.id))
        users = {u["id"]: u for u in snapshot_service.snapshot_for(viewer).users}
        assert users[second_admin.id]["is_active"] is False

        entry = db.session.query(AuditLog).filter_by(
            target=second_admin.id, action=audit_service.ACTION_USER_DEACTIVATED
        ).one()
        assert entry.actor_id == admin.id

    def test_deactivated_admin_cannot_act(self, admin, second_admin, staff):
        account_service.toggle_user_active(second_admin.id, admin.id)
        with pytest.raises(AuthorizationError):
            account_service.toggle_user_active(staff.id, second_admin.id)

    def test_deactivation_revokes_sessions_and_reactivation_restores_login(self, admin, staff):
        _, token = session_service.create_session(staff.id)
        db.session.commit()
        assert session_service.validate_session(token) is not None

        account_service.toggle_user_active(staff.id, admin.id)
        assert session_service.validate_session(token) is None
        assert auth_service.authenticate("sam@lab.local", "Staffset@lab01") is None

        user = account_service.toggle_user_active(staff.id, admin.id)
        assert user.is_active is True
        assert auth_service.authenticate("sam@lab.local", "Staffset@lab01") is not None
        assert db.session.query(AuditLog).filter_by(
            target=staff.id, action=audit_service.ACTION_USER_ACTIVATED
        ).count() == 1


class TestAdminRoster:

    def _revision(self):
        roster = db.session.get(AdminRoster, account_service.ADMIN_ROSTER_ID)
        return None if roster is None else roster.revision

    def test_role_change_and_toggle_claim_the_roster(self, admin, second_admin, staff):
        account_service.change_role(staff.id, "admin", admin.id)
        assert self._revision() == 1

        account_service.toggle_user_active(second_admin.id, admin.id)
        db.session.expire_all()
        assert self._revision() == 2

    def test_edits_without_role_leave_roster_alone(self, admin, staff):
        account_service.update_user(staff.id, admin.id, {"name": "Sam S."})
        assert self._revision() is None

    def test_refused_demotion_rolls_back_the_claim(self, admin):
        with pytest.raises(AuthorizationError):
            account_service.change_role(admin.id, "staff", admin.id)
        assert self._revision() is None
