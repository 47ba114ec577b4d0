from decimal import Decimal

import pytest

from schema.roles import StaffRole
from schema.stock_levels import StockLevel, classify, stock_percentage
from schema.units import (
    MeasurementUnit,
    default_unit_for_category,
    format_quantity,
    is_whole,
    to_quantity,
    units_for_category,
)


@pytest.mark.parametrize("qty, level", [
    (0, StockLevel.OUT_OF_STOCK),
    (-1, StockLevel.OUT_OF_STOCK),
    (2, StockLevel.LOW),
    (3, StockLevel.NORMAL),
    (50, StockLevel.OVERSTOCKED),
    (80, StockLevel.OVERSTOCKED),
])
def test_classify(qty, level):
    assert classify(qty, 2, 50) is level


def test_no_maximum_never_overstocked():
    assert classify(10_000, 1, 0) is StockLevel.NORMAL


def test_stock_level_display():
    assert StockLevel.LOW.label == "Low Stock"
    assert StockLevel.OUT_OF_STOCK.color.startswith("#")


def test_stock_percentage():
    assert stock_percentage(25, 50) == 50.0
    assert stock_percentage(80, 50) == 100.0
    assert stock_percentage(5, 0) == 0.0


def test_unit_properties():
    assert MeasurementUnit.LITERS.abbreviation == "L"
    assert MeasurementUnit.LITERS.allows_decimals
    assert not MeasurementUnit.PIECES.allows_decimals
    assert MeasurementUnit.from_string("Square Meters") is MeasurementUnit.SQUARE_METERS
    assert MeasurementUnit.from_string("bogus") is MeasurementUnit.PIECES
    assert set(units_for_category("Weight")) == {MeasurementUnit.KILOGRAMS,
                                                 MeasurementUnit.GRAMS}


@pytest.mark.parametrize("category, unit", [
    ("Wood Glue", MeasurementUnit.LITERS),
    ("Masking tape", MeasurementUnit.METERS),
    ("Sandpaper", MeasurementUnit.SHEETS),
    ("Screws", MeasurementUnit.PIECES),
])
def test_default_unit_for_category(category, unit):
    assert default_unit_for_category(category) is unit


def test_to_quantity():
    assert to_quantity("2.5") == Decimal("2.5")
    assert to_quantity(0.1) == Decimal("0.100")
    assert to_quantity(4) == Decimal("4")
    for bad in ("", "abc", None, True, "nan", "inf"):
        with pytest.raises(ValueError):
            to_quantity(bad)


def test_format_quantity():
    assert format_quantity(Decimal("2.500"), MeasurementUnit.LITERS) == "2.5 L"
    assert format_quantity(Decimal("12"), MeasurementUnit.PIECES) == "12 pcs"
    assert is_whole(Decimal("3.000"))
    assert not is_whole(Decimal("3.5"))


def test_roles():
    assert StaffRole.from_string("ADMIN") is StaffRole.ADMIN
    assert StaffRole.from_string(None) is StaffRole.WORKER
    assert StaffRole.SUPERVISOR.can_authorize_checkouts
    assert not StaffRole.SUPERVISOR.can_manage_tools
    assert not StaffRole.WORKER.can_view_audit_logs


@pytest.mark.parametrize("raw", ["2.0005", "0.0001", 1.23456])
def test_to_quantity_never_rounds(raw):
    with pytest.raises(ValueError, match="decimal places"):
        to_quantity(raw)


def test_to_quantity_accepts_trailing_zeros():
    assert to_quantity("2.50000") == Decimal("2.5")
