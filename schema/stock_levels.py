"""
schema.stock_levels - Classification of a consumable's remaining stock.

Rules, checked top to bottom (boundaries inclusive):

    out_of_stock   quantity <= 0
    low            quantity <= min_quantity
    overstocked    max_quantity > 0 and quantity >= max_quantity
    normal         everything else

Labels and colors are fixed here so every presentation layer shows the
same thing.
"""

from __future__ import annotations

import enum
from decimal import Decimal


class StockLevel(str, enum.Enum):
    OUT_OF_STOCK = "out_of_stock"
    LOW = "low"
    NORMAL = "normal"
    OVERSTOCKED = "overstocked"

    @property
    def label(self) -> str:
        return STOCK_LEVEL_DISPLAY[self][0]

    @property
    def color(self) -> str:
        return STOCK_LEVEL_DISPLAY[self][1]


STOCK_LEVEL_DISPLAY: dict[StockLevel, tuple[str, str]] = {
    StockLevel.OUT_OF_STOCK: ("Out of Stock", "#D32F2F"),
    StockLevel.LOW:          ("Low Stock", "#F57C00"),
    StockLevel.NORMAL:       ("Normal", "#388E3C"),
    StockLevel.OVERSTOCKED:  ("Overstocked", "#1976D2"),
}


def classify(quantity, min_quantity=None, max_quantity=None) -> StockLevel:
    q = Decimal(quantity if quantity is not None else 0)
    lo = Decimal(min_quantity if min_quantity is not None else 0)
    hi = Decimal(max_quantity if max_quantity is not None else 0)

    if q <= 0:
        return StockLevel.OUT_OF_STOCK
    if q <= lo:
        return StockLevel.LOW
    if hi > 0 and q >= hi:
        return StockLevel.OVERSTOCKED
    return StockLevel.NORMAL


def stock_percentage(quantity, max_quantity) -> float:
    """Fill level 0-100 against max_quantity (0 when no maximum is set)."""
    hi = Decimal(max_quantity if max_quantity is not None else 0)
    if hi <= 0:
        return 0.0
    pct = Decimal(quantity if quantity is not None else 0) / hi * 100
    return float(min(max(pct, Decimal(0)), Decimal(100)))
