from decimal import Decimal

import pytest

from db.models import Staff
from schema.roles import StaffRole
from schema.units import MeasurementUnit
from services.consumables_service import ConsumablesService
from services.errors import ValidationError
from services.staff_service import StaffService
from services.stats_service import StatsService
from tests.factories import ConsumableFactory, StaffFactory, ToolFactory


# ── Consumables ────────────────────────────────────────────────────────

def test_create_consumable_starts_empty(session, issuer):
    c = ConsumablesService.create(session, {"name": "PVA", "category": "Wood Glue"}, issuer)
    session.commit()
    assert c.unique_id.startswith("C")
    assert c.qr_payload == f"CONSUMABLE#{c.unique_id}"
    assert c.current_quantity == Decimal("0")
    assert c.measurement_unit is MeasurementUnit.LITERS


def test_create_consumable_validation(session, issuer):
    with pytest.raises(ValidationError):
        ConsumablesService.create(session, {"name": "PVA"}, issuer)
    with pytest.raises(ValidationError, match="Unknown unit"):
        ConsumablesService.create(session, {"name": "PVA", "category": "Glue",
                                            "unit": "gallons"}, issuer)
    with pytest.raises(ValidationError):
        ConsumablesService.create(session, {"name": "PVA", "category": "Glue",
                                            "min_quantity": 10, "max_quantity": 5}, issuer)


def test_update_cannot_touch_stock(session):
    c = ConsumableFactory()
    with pytest.raises(ValidationError):
        ConsumablesService.update(session, c, {"current_quantity": 99})
    ConsumablesService.update(session, c, {"min_quantity": "4", "notes": "shelf 3"})
    assert c.min_quantity == Decimal("4")
    assert c.notes == "shelf 3"


def test_search_by_level_and_low_stock(session):
    low = ConsumableFactory(current_quantity=Decimal("1"))
    ConsumableFactory(current_quantity=Decimal("20"))
    ConsumableFactory(current_quantity=Decimal("0"))
    retired = ConsumableFactory(current_quantity=Decimal("1"), is_active=False)

    rows, total = ConsumablesService.search(session, level="low")
    assert total == 1 and rows[0].id == low.id
    assert len(ConsumablesService.low_stock(session)) == 2

    _, total = ConsumablesService.search(session, include_inactive=True)
    assert total == 4
    assert retired.id not in [c.id for c in ConsumablesService.search(session)[0]]


def test_find_consumable_by_qr(session):
    c = ConsumableFactory()
    assert ConsumablesService.find_by_qr(session, c.qr_payload).id == c.id
    assert ConsumablesService.find_by_qr(session, c.unique_id).id == c.id
    assert ConsumablesService.find_by_qr(session, "TOOL#T1") is None


def test_deactivate_is_soft(session):
    c = ConsumableFactory()
    ConsumablesService.deactivate(session, c)
    session.commit()
    assert ConsumablesService.get(session, c.id).is_active is False


# ── Staff ──────────────────────────────────────────────────────────────

def test_create_staff_normalises(session):
    staff = StaffService.create(session, {"full_name": "Ada Lovelace",
                                          "job_code": "w-12", "email": "Ada@Example.com"})
    session.commit()
    assert staff.job_code == "W-12"
    assert staff.email == "ada@example.com"
    assert staff.staff_role is StaffRole.WORKER
    assert staff.initials == "AL"
    with pytest.raises(ValidationError):
        StaffService.create(session, {"full_name": "Other", "job_code": "W-12",
                                      "email": "other@example.com"})


def test_ensure_admin_is_idempotent(session):
    first = StaffService.ensure_admin(session, "boss@example.com", "Boss", "ADMIN")
    session.commit()
    assert first.staff_role is StaffRole.ADMIN
    assert StaffService.ensure_admin(session, "boss@example.com", "Boss", "ADMIN") is None
    assert session.query(Staff).count() == 1


def test_ensure_admin_promotes_existing(session):
    worker = StaffFactory(email="lead@example.com")
    promoted = StaffService.ensure_admin(session, "lead@example.com", "Lead", "LEAD")
    assert promoted.uid == worker.uid
    assert promoted.staff_role is StaffRole.ADMIN


def test_deactivated_staff_is_not_active(session):
    staff = StaffFactory()
    StaffService.set_active(session, staff.uid, False)
    session.commit()
    assert StaffService.get_active(session, staff.uid) is None


# ── Dashboard ──────────────────────────────────────────────────────────

def test_summary_counts(session):
    ToolFactory()
    ConsumableFactory(current_quantity=Decimal("1"))
    ConsumableFactory(current_quantity=Decimal("10"))
    StaffFactory()

    summary = StatsService.summary(session)
    assert summary["tools"]["total"] == 1
    assert summary["consumables"]["active"] == 2
    assert summary["consumables"]["low_stock"] == 1
    assert summary["staff"]["active"] == 1
    assert summary["transactions"]["recent"] == 0
