"""
schema - Fixed classifications shared by the store, services and API.

Public API:
    numbering.build_unique_id / build_qr_payload / parse_qr_payload
    units.MeasurementUnit / to_quantity / format_quantity
    stock_levels.StockLevel / classify
    roles.StaffRole
"""

from schema.numbering import (                               # noqa: F401
    KIND_CONSUMABLE,
    KIND_TOOL,
    build_qr_payload,
    build_unique_id,
    parse_qr_payload,
)
from schema.units import (                                   # noqa: F401
    MeasurementUnit,
    default_unit_for_category,
    format_quantity,
    to_quantity,
    units_for_category,
)
from schema.stock_levels import StockLevel, classify         # noqa: F401
from schema.roles import StaffRole                           # noqa: F401
