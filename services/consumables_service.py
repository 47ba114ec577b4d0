"""
services.consumables_service - Consumable catalogue CRUD.

Stock is not written here.  current_quantity changes only through
services.ledger_service.  An opening quantity is booked by the caller
through ConsumableLedger.book_opening_stock in the same transaction as
the new row.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import or_
from sqlalchemy.orm import Session

import config
from db.models import Consumable
from schema.numbering import KIND_CONSUMABLE, parse_qr_payload
from schema.stock_levels import StockLevel
from schema.units import MeasurementUnit, default_unit_for_category, to_quantity
from services.errors import ValidationError
from services.identity_service import IdentityIssuer

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "category")
TEXT_FIELDS = ("name", "category", "brand", "sku", "notes")
LEDGER_OWNED = frozenset({"current_quantity"})
IMMUTABLE_FIELDS = frozenset({"id", "unique_id", "qr_payload", "created_at"})


def _clean(data: dict, key: str) -> str:
    return str(data.get(key, "") or "").strip()


def _threshold(data: dict, key: str, default: Decimal) -> Decimal:
    if data.get(key) in (None, ""):
        return default
    try:
        val = to_quantity(data[key])
    except ValueError:
        raise ValidationError(f"{key} must be a number") from None
    if val < 0:
        raise ValidationError(f"{key} cannot be negative")
    return val


def _unit(data: dict, category: str) -> MeasurementUnit:
    raw = _clean(data, "unit")
    if not raw:
        return default_unit_for_category(category)
    try:
        return MeasurementUnit(raw.lower().replace(" ", "_"))
    except ValueError:
        raise ValidationError(f"Unknown unit: {raw}") from None


class ConsumablesService:

    # ── Create ─────────────────────────────────────────────────────────

    @staticmethod
    def create(session: Session, data: dict, issuer: IdentityIssuer) -> Consumable:
        """
        Create a Consumable with zero stock.  Required keys: name, category.
        The opening quantity (if any) is booked by the caller through the
        ledger so it shows up in the transaction log.
        """
        values = {k: _clean(data, k) for k in TEXT_FIELDS}
        missing = [k for k in REQUIRED_FIELDS if not values[k]]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

        min_q = _threshold(data, "min_quantity", config.DEFAULT_MIN_QUANTITY)
        max_q = _threshold(data, "max_quantity", config.DEFAULT_MAX_QUANTITY)
        if max_q and min_q > max_q:
            raise ValidationError("min_quantity cannot exceed max_quantity")

        unique_id, qr_payload = issuer.issue(KIND_CONSUMABLE)
        consumable = Consumable(
            unique_id=unique_id,
            qr_payload=qr_payload,
            unit=_unit(data, values["category"]).value,
            current_quantity=Decimal("0"),
            min_quantity=min_q,
            max_quantity=max_q,
            unit_price=_threshold(data, "unit_price", Decimal("0")),
            is_active=True,
            name=values["name"],
            category=values["category"],
            brand=values["brand"],
            sku=values["sku"] or None,
            notes=values["notes"],
        )
        session.add(consumable)
        session.flush()
        logger.info("Consumable created: %s %s (%s)",
                    consumable.unique_id, consumable.name, consumable.id)
        return consumable

    # ── Read ───────────────────────────────────────────────────────────

    @staticmethod
    def get(session: Session, consumable_id: str) -> Consumable | None:
        return session.get(Consumable, consumable_id)

    @staticmethod
    def get_by_unique_id(session: Session, unique_id: str) -> Consumable | None:
        uid = (unique_id or "").strip().upper()
        return session.query(Consumable).filter(Consumable.unique_id == uid).one_or_none()

    @staticmethod
    def find_by_qr(session: Session, payload: str) -> Consumable | None:
        found = session.query(Consumable).filter(
            Consumable.qr_payload == payload).one_or_none()
        if found:
            return found
        parsed = parse_qr_payload(payload)
        if parsed is None or parsed[0] != KIND_CONSUMABLE:
            return None
        return ConsumablesService.get_by_unique_id(session, parsed[1])

    @staticmethod
    def search(session: Session, q: str = "", category: str = "",
               level: str = "", include_inactive: bool = False,
               limit: int = 100, offset: int = 0) -> tuple[list[Consumable], int]:
        """
        List consumables by name.  The stock-level filter runs in Python
        because the level is derived, not stored.
        """
        query = session.query(Consumable)
        if not include_inactive:
            query = query.filter(Consumable.is_active.is_(True))
        if category:
            query = query.filter(Consumable.category == category)
        if q:
            like = f"%{q}%"
            query = query.filter(or_(
                Consumable.name.ilike(like),
                Consumable.brand.ilike(like),
                Consumable.sku.ilike(like),
                Consumable.unique_id.ilike(like),
            ))
        query = query.order_by(Consumable.name)

        if level:
            wanted = StockLevel(level)
            rows = [c for c in query.all() if c.stock_level is wanted]
            return rows[offset:offset + limit], len(rows)

        total = query.count()
        return query.offset(offset).limit(limit).all(), total

    @staticmethod
    def low_stock(session: Session) -> list[Consumable]:
        """Active consumables at or below their minimum (out of stock included)."""
        rows = (session.query(Consumable)
                .filter(Consumable.is_active.is_(True))
                .order_by(Consumable.name).all())
        return [c for c in rows
                if c.stock_level in (StockLevel.LOW, StockLevel.OUT_OF_STOCK)]

    @staticmethod
    def categories(session: Session) -> list[str]:
        rows = (session.query(Consumable.category)
                .filter(Consumable.is_active.is_(True))
                .distinct().all())
        return sorted(r[0] for r in rows if r[0])

    # ── Update ─────────────────────────────────────────────────────────

    @staticmethod
    def update(session: Session, consumable: Consumable, data: dict) -> Consumable:
        """Update catalogue fields.  Stock changes are rejected here."""
        if LEDGER_OWNED & set(data):
            raise ValidationError(
                "current_quantity changes only through usage, restock or adjustment")
        for key in IMMUTABLE_FIELDS & set(data):
            if key != "created_at" and data[key] != getattr(consumable, key):
                raise ValidationError(f"{key} cannot be changed once issued")

        for key in TEXT_FIELDS:
            if key in data:
                val = _clean(data, key)
                if key in REQUIRED_FIELDS and not val:
                    raise ValidationError(f"{key} cannot be empty")
                setattr(consumable, key, val if key != "sku" else (val or None))

        if "unit" in data:
            consumable.unit = _unit(data, consumable.category).value
        for key in ("min_quantity", "max_quantity", "unit_price"):
            if key in data:
                setattr(consumable, key, _threshold(data, key, getattr(consumable, key)))
        if consumable.max_quantity and consumable.min_quantity > consumable.max_quantity:
            raise ValidationError("min_quantity cannot exceed max_quantity")

        consumable.updated_at = datetime.now(timezone.utc)
        session.flush()
        return consumable

    # ── Delete ─────────────────────────────────────────────────────────

    @staticmethod
    def deactivate(session: Session, consumable: Consumable) -> None:
        """Soft delete; the transaction history stays intact."""
        consumable.is_active = False
        consumable.updated_at = datetime.now(timezone.utc)
        session.flush()
        logger.info("Consumable deactivated: %s", consumable.unique_id)
