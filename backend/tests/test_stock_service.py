import pytest

from labstock.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from labstock.extensions import db
from labstock.models import AuditLog, InventoryItem
from labstock.services import audit_service, stock_service
from labstock.services.stock_service import crosses_minimum


ITEM_PAYLOAD = {
    "name": "Latex gloves",
    "category": "PPE",
    "department": "laboratory",
    "current_stock": 40,
    "min_stock": 10,
    "unit": "pack",
}


def _alerts(item_id):
    return db.session.query(AuditLog).filter_by(
        action=audit_service.ACTION_LOW_STOCK_ALERT, target=item_id
    ).all()


@pytest.mark.parametrize(
    "old_stock,old_min,new_stock,new_min,expected",
    [
        (15, 10, 12, 10, False),
        (12, 10, 9, 10, True),
        (11, 10, 10, 10, True),
        (9, 10, 8, 10, False),
        (10, 10, 0, 10, False),
        (15, 10, 15, 20, True),
        (5, 10, 20, 10, False),
    ],
)
def test_crosses_minimum(old_stock, old_min, new_stock, new_min, expected):
    assert crosses_minimum(
        old_stock=old_stock, old_min=old_min, new_stock=new_stock, new_min=new_min
    ) is expected


class TestCreateItem:

    def test_creates_item_in_canonical_department(self, admin):
        item = stock_service.create_item(admin.id, dict(ITEM_PAYLOAD))

        assert item.id.startswith("INV-")
        assert item.department == "Laboratory"
        assert item.current_stock == 40
        assert item.last_updated is not None

        entry = db.session.query(AuditLog).filter_by(target=item.id).one()
        assert entry.action == audit_service.ACTION_INVENTORY_CREATED
        assert entry.details == "Latex gloves added (40 pack)"

    def test_duplicate_name_in_department(self, admin):
        stock_service.create_item(admin.id, dict(ITEM_PAYLOAD))
        with pytest.raises(ConflictError):
            stock_service.create_item(admin.id, {**ITEM_PAYLOAD, "name": "LATEX GLOVES"})

    def test_same_name_in_other_department(self, admin):
        stock_service.create_item(admin.id, dict(ITEM_PAYLOAD))
        other = stock_service.create_item(admin.id, {**ITEM_PAYLOAD, "department": "Radiology"})
        assert other.department == "Radiology"

    def test_unknown_department(self, admin):
        with pytest.raises(NotFoundError):
            stock_service.create_item(admin.id, {**ITEM_PAYLOAD, "department": "Cardiology"})

    @pytest.mark.parametrize(
        "patch",
        [
            {"current_stock": -1},
            {"min_stock": -5},
            {"current_stock": "4.5"},
            {"name": ""},
            {"unit": 12},
            {"id": "INV-1"},
        ],
    )
    def test_invalid_payload(self, admin, patch):
        with pytest.raises(ValidationError):
            stock_service.create_item(admin.id, {**ITEM_PAYLOAD, **patch})
        assert db.session.query(InventoryItem).count() == 0

    def test_missing_fields(self, admin):
        with pytest.raises(ValidationError):
            stock_service.create_item(admin.id, {"name": "Only a name"})

    def test_staff_cannot_create(self, staff):
        with pytest.raises(AuthorizationError):
            stock_service.create_item(staff.id, dict(ITEM_PAYLOAD))


class TestUpdateItem:

    def test_stock_edit_crossing_minimum_alerts(self, admin, item):
        updated = stock_service.update_item(item.id, admin.id, {"current_stock": 7})

        assert updated.current_stock == 7
        alerts = _alerts(item.id)
        assert len(alerts) == 1
        assert alerts[0].details == "Glucose strips dropped below minimum stock"

        entry = db.session.query(AuditLog).filter_by(
            target=item.id, action=audit_service.ACTION_INVENTORY_UPDATED
        ).one()
        assert entry.details == "Glucose strips stock updated to 7"

    def test_raising_minimum_above_stock_alerts(self, admin, item):
        stock_service.update_item(item.id, admin.id, {"min_stock": 20})
        assert len(_alerts(item.id)) == 1

    def test_edit_that_stays_above_minimum(self, admin, item):
        stock_service.update_item(item.id, admin.id, {"current_stock": 30, "unit": "carton"})
        assert _alerts(item.id) == []
        assert db.session.get(InventoryItem, item.id).unit == "carton"

    def test_restock_then_drop_alerts_again(self, admin, item):
        stock_service.update_item(item.id, admin.id, {"current_stock": 5})
        stock_service.update_item(item.id, admin.id, {"current_stock": 4})
        stock_service.update_item(item.id, admin.id, {"current_stock": 50})
        stock_service.update_item(item.id, admin.id, {"current_stock": 10})
        assert len(_alerts(item.id)) == 2

    def test_department_is_not_writable(self, admin, item):
        with pytest.raises(ValidationError):
            stock_service.update_item(item.id, admin.id, {"department": "Radiology"})

    def test_empty_patch(self, admin, item):
        with pytest.raises(ValidationError):
            stock_service.update_item(item.id, admin.id, {})

    def test_rename_to_existing_name(self, admin, item, make_item):
        make_item("Swabs")
        with pytest.raises(ConflictError):
            stock_service.update_item(item.id, admin.id, {"name": "swabs"})

    def test_unknown_item(self, admin):
        with pytest.raises(NotFoundError):
            stock_service.update_item("INV-missing", admin.id, {"current_stock": 1})


class TestSetStock:

    def test_negative_value_clamps_to_zero(self, admin, item):
        updated = stock_service.set_stock(item.id, -5, admin.id)
        assert updated.current_stock == 0
        assert len(_alerts(item.id)) == 1

    def test_rejects_non_integer(self, admin, item):
        with pytest.raises(ValidationError):
            stock_service.set_stock(item.id, "3", admin.id)

    def test_refreshes_last_updated(self, admin, item):
        before = db.session.get(InventoryItem, item.id).last_updated
        updated = stock_service.set_stock(item.id, 30, admin.id)
        assert updated.last_updated >= before


class TestReleaseStock:

    def test_release_never_goes_negative(self, item):
        locked = stock_service.get_item(item.id, lock=True)
        assert stock_service.release_stock(locked, 100) == 0
        db.session.commit()
        assert db.session.get(InventoryItem, item.id).current_stock == 0


def test_list_items_by_department(item, make_item):
    make_item("X-ray film", department="Radiology")
    assert [i.name for i in stock_service.list_items("Laboratory")] == ["Glucose strips"]
    assert len(stock_service.list_items()) == 2
