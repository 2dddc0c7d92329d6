"""
Concurrency tests for the review workflow.

Runs against a file-backed SQLite database so worker threads use separate
connections. SQLite ignores SELECT ... FOR UPDATE; the version_id columns make
the losing writer fail with StaleDataError and retry.
"""
import os
import tempfile
import threading
import time

import pytest

from labstock import create_app
from labstock.errors import LabStockError
from labstock.extensions import db
from labstock.models import AuditLog, DepartmentPermission, InventoryItem, InventoryRequest, User
from labstock.services import account_service, audit_service, request_service
from labstock.services.auth_service import hash_password

from conftest import TEST_CONFIG

WORKERS = 5


@pytest.fixture
def file_app():
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        **TEST_CONFIG,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'DB_RETRY_ATTEMPTS': 8,
        'DB_RETRY_BACKOFF_SECONDS': 0.01,
    })

    with app.app_context():
        db.create_all()

        db.session.add(DepartmentPermission(department="Laboratory", can_request=True))
        db.session.add(DepartmentPermission(department="Administration", can_request=True))
        staff = User(
            name="Sam Staff", email="sam@lab.local", role="staff", department="Laboratory",
            password_hash=hash_password("Staffset@lab01"),
        )
        db.session.add(staff)
        admins = [
            User(
                name=f"Admin {n}", email=f"admin{n}@lab.local", role="admin", department="Administration",
                password_hash=hash_password("Adminset@lab01"),
            )
            for n in range(WORKERS)
        ]
        db.session.add_all(admins)
        item = InventoryItem(
            name="Glucose strips", category="Consumables", department="Laboratory",
            current_stock=10, min_stock=2, unit="box",
        )
        db.session.add(item)
        db.session.commit()

        app.config["SEED"] = {
            "staff_id": staff.id,
            "admin_ids": [a.id for a in admins],
            "item_id": item.id,
        }

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
    tmpdir.cleanup()


def _run_workers(app, jobs):
    """Run each job in its own thread with its own app context; collect outcomes."""
    barrier = threading.Barrier(len(jobs))
    results = []
    lock = threading.Lock()

    def worker(job):
        with app.app_context():
            try:
                barrier.wait()
                job()
                outcome = "ok"
            except LabStockError as e:
                outcome = e.kind
            except Exception as e:
                outcome = f"unexpected: {e!r}"
            finally:
                db.session.remove()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(job,)) for job in jobs]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_reviewers_exactly_one_wins(file_app):
    seed = file_app.config["SEED"]
    with file_app.app_context():
        req = request_service.submit_request(seed["staff_id"], seed["item_id"], 4, "high")
        request_id = req.id

    jobs = [
        (lambda admin_id=admin_id: request_service.review_request(request_id, admin_id, "approved"))
        for admin_id in seed["admin_ids"]
    ]
    results = _run_workers(file_app, jobs)

    assert results.count("ok") == 1
    assert set(results) - {"ok"} <= {"already_reviewed", "resource_contention"}

    with file_app.app_context():
        assert db.session.get(InventoryItem, seed["item_id"]).current_stock == 6
        assert db.session.get(InventoryRequest, request_id).approved_qty == 4
        assert db.session.query(AuditLog).filter_by(
            target=request_id, action=audit_service.ACTION_REQUEST_APPROVED
        ).count() == 1


def test_concurrent_reviews_of_one_item_never_oversell(file_app):
    seed = file_app.config["SEED"]
    with file_app.app_context():
        request_ids = [
            request_service.submit_request(seed["staff_id"], seed["item_id"], 4, "medium").id
            for _ in range(4)
        ]

    jobs = [
        (lambda request_id=request_id, admin_id=admin_id: request_service.review_request(
            request_id, admin_id, "approved"
        ))
        for request_id, admin_id in zip(request_ids, seed["admin_ids"])
    ]
    _run_workers(file_app, jobs)

    with file_app.app_context():
        stock = db.session.get(InventoryItem, seed["item_id"]).current_stock
        released = sum(
            r.approved_qty or 0
            for r in db.session.query(InventoryRequest).filter(InventoryRequest.id.in_(request_ids))
        )
        assert stock >= 0
        assert stock + released == 10


@pytest.fixture
def two_admins(file_app):
    """Leave exactly two active admins in the file-backed database."""
    admin_ids = file_app.config["SEED"]["admin_ids"]
    with file_app.app_context():
        for admin_id in admin_ids[2:]:
            db.session.get(User, admin_id).is_active = False
        db.session.commit()
    return admin_ids[0], admin_ids[1]


def _slow_admin_count(monkeypatch):
    """Hold each transaction open between counting admins and writing."""
    count = account_service._active_admin_count

    def _count():
        result = count()
        time.sleep(0.3)
        return result

    monkeypatch.setattr(account_service, "_active_admin_count", _count)


def _demote(target_id, actor_id):
    return lambda: account_service.change_role(target_id, "staff", actor_id)


def _deactivate(target_id, actor_id):
    return lambda: account_service.toggle_user_active(target_id, actor_id)


@pytest.mark.parametrize("change", [_demote, _deactivate], ids=["demote", "deactivate"])
def test_admins_changing_each_other_keep_an_active_admin(file_app, two_admins, monkeypatch, change):
    first, second = two_admins
    _slow_admin_count(monkeypatch)

    results = _run_workers(file_app, [change(second, first), change(first, second)])

    assert results.count("ok") == 1
    assert set(results) - {"ok"} <= {"forbidden", "last_admin_protected", "resource_contention"}
    with file_app.app_context():
        active_admins = db.session.query(User).filter_by(role="admin", is_active=True).count()
        assert active_admins == 1
