"""
schema.units - Measurement units for consumables.

Each unit knows its display name, abbreviation, measurement category
and whether fractional quantities make sense for it.
"""

from __future__ import annotations

import enum
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

import config


class MeasurementUnit(str, enum.Enum):
    LITERS = "liters"
    MILLILITERS = "milliliters"
    METERS = "meters"
    CENTIMETERS = "centimeters"
    PIECES = "pieces"
    SHEETS = "sheets"
    ROLLS = "rolls"
    KILOGRAMS = "kilograms"
    GRAMS = "grams"
    SQUARE_METERS = "square_meters"

    @property
    def display_name(self) -> str:
        return _UNIT_INFO[self][0]

    @property
    def abbreviation(self) -> str:
        return _UNIT_INFO[self][1]

    @property
    def category(self) -> str:
        return _UNIT_INFO[self][2]

    @property
    def allows_decimals(self) -> bool:
        return _UNIT_INFO[self][3]

    @classmethod
    def from_string(cls, value: str | None) -> "MeasurementUnit":
        """Case-insensitive lookup; unknown values fall back to pieces."""
        key = (value or "").strip().lower().replace(" ", "_")
        if key == "squaremeters":
            key = "square_meters"
        for unit in cls:
            if unit.value == key:
                return unit
        return cls.PIECES


# unit → (display name, abbreviation, category, allows decimals)
_UNIT_INFO: dict[MeasurementUnit, tuple[str, str, str, bool]] = {
    MeasurementUnit.LITERS:        ("Liters", "L", "Volume", True),
    MeasurementUnit.MILLILITERS:   ("Milliliters", "ml", "Volume", True),
    MeasurementUnit.METERS:        ("Meters", "m", "Length", True),
    MeasurementUnit.CENTIMETERS:   ("Centimeters", "cm", "Length", True),
    MeasurementUnit.PIECES:        ("Pieces", "pcs", "Count", False),
    MeasurementUnit.SHEETS:        ("Sheets", "sheets", "Count", False),
    MeasurementUnit.ROLLS:         ("Rolls", "rolls", "Count", False),
    MeasurementUnit.KILOGRAMS:     ("Kilograms", "kg", "Weight", True),
    MeasurementUnit.GRAMS:         ("Grams", "g", "Weight", True),
    MeasurementUnit.SQUARE_METERS: ("Square Meters", "m²", "Area", True),
}

# consumable-category keyword → default unit (first match wins)
_CATEGORY_DEFAULTS: list[tuple[tuple[str, ...], MeasurementUnit]] = [
    (("glue", "adhesive", "stain", "finish", "oil", "spirit"), MeasurementUnit.LITERS),
    (("tape", "string"), MeasurementUnit.METERS),
    (("paper", "sheet"), MeasurementUnit.SHEETS),
    (("roll",), MeasurementUnit.ROLLS),
]

_QUANT = Decimal(1).scaleb(-config.QUANTITY_PLACES)


def units_for_category(category: str) -> list[MeasurementUnit]:
    return [u for u in MeasurementUnit if u.category == category]


def default_unit_for_category(consumable_category: str) -> MeasurementUnit:
    cat = (consumable_category or "").lower()
    for keywords, unit in _CATEGORY_DEFAULTS:
        if any(k in cat for k in keywords):
            return unit
    return MeasurementUnit.PIECES


def to_quantity(value) -> Decimal:
    """
    Coerce user input (str/int/float/Decimal) to a stored quantity.

    Raises ValueError for anything that is not a finite number or that
    carries more than QUANTITY_PLACES significant decimals; input is
    never rounded.  Booleans are rejected even though Python treats
    them as ints.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"not a number: {value!r}")
    try:
        if isinstance(value, float):
            qty = Decimal(repr(value))
        else:
            qty = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"not a number: {value!r}") from None
    if not qty.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    try:
        stored = qty.quantize(_QUANT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"number out of range: {value!r}") from None
    if stored != qty:
        raise ValueError(
            f"at most {config.QUANTITY_PLACES} decimal places allowed: {value!r}")
    return stored


def is_whole(qty: Decimal) -> bool:
    return qty == qty.to_integral_value()


def format_quantity(quantity, unit: MeasurementUnit) -> str:
    """'2.5 L', '12 pcs' - decimals trimmed to two places at most."""
    qty = Decimal(quantity if quantity is not None else 0)
    if unit.allows_decimals:
        text = f"{qty:.2f}".rstrip("0").rstrip(".")
        return f"{text} {unit.abbreviation}"
    return f"{int(qty)} {unit.abbreviation}"
