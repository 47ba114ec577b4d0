"""
db.models - SQLAlchemy ORM declarations.

Tables
------
staff                    - people who record, receive and hold things.
tools                    - one row per physical tool.  unique_id/qr_payload
                           are issued once and never rewritten.
tool_history             - append-only check-out / check-in log.
consumables              - fungible stock.  current_quantity is written
                           only by services.ledger_service.
consumable_transactions  - append-only usage / restock / adjustment log.
auth_events              - append-only sign-in / sign-out log.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer,
    Numeric, String, Text, event,
)
from sqlalchemy.orm import DeclarativeBase, relationship

import config
from schema.roles import StaffRole
from schema.stock_levels import StockLevel, classify
from schema.units import MeasurementUnit, format_quantity


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _quantity_column(**kw) -> Column:
    return Column(Numeric(14, config.QUANTITY_PLACES, asdecimal=True), **kw)


def _num(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class Base(DeclarativeBase):
    pass


class Staff(Base):
    __tablename__ = "staff"

    uid          = Column(String(32), primary_key=True, default=_new_id)
    full_name    = Column(String(200), nullable=False)
    job_code     = Column(String(50), nullable=False, unique=True, index=True)
    email        = Column(String(200), nullable=False, unique=True, index=True)
    role         = Column(String(20), nullable=False, default=StaffRole.WORKER.value)
    is_active    = Column(Boolean, nullable=False, default=True)

    created_at   = Column(DateTime, default=_utcnow)
    updated_at   = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    last_sign_in = Column(DateTime, nullable=True)

    @property
    def staff_role(self) -> StaffRole:
        return StaffRole.from_string(self.role)

    @property
    def initials(self) -> str:
        names = (self.full_name or "").split()
        if len(names) >= 2:
            return f"{names[0][0]}{names[-1][0]}".upper()
        if names:
            return names[0][0].upper()
        return "?"

    def to_dict(self) -> dict:
        role = self.staff_role
        return {
            "uid": self.uid,
            "full_name": self.full_name,
            "job_code": self.job_code,
            "email": self.email,
            "role": role.value,
            "is_active": bool(self.is_active),
            "initials": self.initials,
            "permissions": {
                "manage_tools": role.can_manage_tools,
                "manage_staff": role.can_manage_staff,
                "authorize_checkouts": role.can_authorize_checkouts,
                "view_audit_logs": role.can_view_audit_logs,
            },
            "created_at": _iso(self.created_at),
            "last_sign_in": _iso(self.last_sign_in),
        }


class Tool(Base):
    __tablename__ = "tools"

    id        = Column(String(32), primary_key=True, default=_new_id)

    # ── Identity (issued once, see services.identity_service) ──────────
    unique_id  = Column(String(40), nullable=False, unique=True, index=True)
    qr_payload = Column(String(80), nullable=False, unique=True, index=True)

    # ── Descriptive ────────────────────────────────────────────────────
    name  = Column(String(200), nullable=False)
    brand = Column(String(200), nullable=False)
    model = Column(String(200), nullable=False)
    num   = Column(String(50), default="")

    # ── Custody ────────────────────────────────────────────────────────
    status            = Column(String(20), nullable=False, default="available", index=True)
    current_holder_id = Column(String(32), ForeignKey("staff.uid"), nullable=True, index=True)

    # category, condition, notes, created_by, last_modified_by …
    meta_json = Column(Text, default="{}")

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    current_holder = relationship("Staff", lazy="joined")

    @property
    def meta(self) -> dict:
        if not self.meta_json:
            return {}
        try:
            return json.loads(self.meta_json)
        except (json.JSONDecodeError, TypeError):
            return {}

    @meta.setter
    def meta(self, value: dict) -> None:
        self.meta_json = json.dumps(value or {}, ensure_ascii=False)

    @property
    def is_available(self) -> bool:
        return self.status == "available"

    @property
    def display_name(self) -> str:
        return f"{self.brand or ''} {self.model or ''} {self.name or ''}".strip()

    def to_dict(self) -> dict:
        holder = self.current_holder
        return {
            "id": self.id,
            "unique_id": self.unique_id,
            "qr_payload": self.qr_payload,
            "name": self.name,
            "brand": self.brand,
            "model": self.model,
            "num": self.num or "",
            "display_name": self.display_name,
            "status": self.status,
            "current_holder": self.current_holder_id,
            "current_holder_name": holder.full_name if holder else None,
            "meta": self.meta,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ToolHistory(Base):
    __tablename__ = "tool_history"

    id             = Column(Integer, primary_key=True, autoincrement=True)
    tool_id        = Column(String(32), ForeignKey("tools.id", ondelete="CASCADE"),
                            nullable=False, index=True)
    action         = Column(String(20), nullable=False)          # checkout | checkin
    by_id          = Column(String(32), ForeignKey("staff.uid"), nullable=False)
    assigned_to_id = Column(String(32), ForeignKey("staff.uid"), nullable=True)
    notes          = Column(Text, default="")
    batch_id       = Column(String(32), nullable=True)
    timestamp      = Column(DateTime, default=_utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tool_id": self.tool_id,
            "action": self.action,
            "by": self.by_id,
            "assigned_to": self.assigned_to_id,
            "notes": self.notes or "",
            "batch_id": self.batch_id,
            "timestamp": _iso(self.timestamp),
        }


class Consumable(Base):
    __tablename__ = "consumables"

    id         = Column(String(32), primary_key=True, default=_new_id)
    unique_id  = Column(String(40), nullable=False, unique=True, index=True)
    qr_payload = Column(String(80), nullable=False, unique=True, index=True)

    name     = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, default="Uncategorized", index=True)
    brand    = Column(String(200), default="")
    unit     = Column(String(30), nullable=False, default=MeasurementUnit.PIECES.value)
    sku      = Column(String(100), nullable=True)
    notes    = Column(Text, default="")

    # ── Stock (current_quantity is ledger-owned) ───────────────────────
    current_quantity = _quantity_column(nullable=False, default=Decimal("0"))
    min_quantity     = _quantity_column(nullable=False, default=Decimal("0"))
    max_quantity     = _quantity_column(nullable=False, default=Decimal("0"))
    unit_price       = Column(Numeric(12, 2, asdecimal=True), nullable=False,
                              default=Decimal("0"))

    is_active  = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint("current_quantity >= 0", name="ck_consumable_qty_nonneg"),
    )

    @property
    def measurement_unit(self) -> MeasurementUnit:
        return MeasurementUnit.from_string(self.unit)

    @property
    def stock_level(self) -> StockLevel:
        return classify(self.current_quantity, self.min_quantity, self.max_quantity)

    @property
    def total_value(self) -> Decimal:
        return (self.current_quantity or Decimal("0")) * (self.unit_price or Decimal("0"))

    def to_dict(self) -> dict:
        unit = self.measurement_unit
        level = self.stock_level
        return {
            "id": self.id,
            "unique_id": self.unique_id,
            "qr_payload": self.qr_payload,
            "name": self.name,
            "category": self.category,
            "brand": self.brand or "",
            "sku": self.sku,
            "notes": self.notes or "",
            "unit": {
                "name": unit.value,
                "display_name": unit.display_name,
                "abbreviation": unit.abbreviation,
                "allows_decimals": unit.allows_decimals,
            },
            "current_quantity": _num(self.current_quantity),
            "formatted_quantity": format_quantity(self.current_quantity, unit),
            "min_quantity": _num(self.min_quantity),
            "max_quantity": _num(self.max_quantity),
            "unit_price": _num(self.unit_price),
            "total_value": _num(self.total_value),
            "stock_level": {
                "name": level.value,
                "label": level.label,
                "color": level.color,
            },
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class ConsumableTransaction(Base):
    __tablename__ = "consumable_transactions"

    id             = Column(String(32), primary_key=True, default=_new_id)
    consumable_id  = Column(String(32), ForeignKey("consumables.id"),
                            nullable=False, index=True)
    action         = Column(String(20), nullable=False)      # usage | restock | adjustment

    quantity_before = _quantity_column(nullable=False)
    quantity_change = _quantity_column(nullable=False)       # negative for usage
    quantity_after  = _quantity_column(nullable=False)

    used_by_id     = Column(String(32), ForeignKey("staff.uid"), nullable=True, index=True)
    assigned_to_id = Column(String(32), ForeignKey("staff.uid"), nullable=True)
    approved_by_id = Column(String(32), ForeignKey("staff.uid"), nullable=True)
    project_name   = Column(String(200), nullable=True)
    notes          = Column(Text, nullable=True)
    timestamp      = Column(DateTime, nullable=False, default=_utcnow, index=True)

    __table_args__ = (
        Index("ix_txn_consumable_time", "consumable_id", "timestamp"),
    )

    @property
    def quantity(self) -> Decimal:
        """Absolute amount moved."""
        return abs(self.quantity_change)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "consumable_id": self.consumable_id,
            "action": self.action,
            "quantity": _num(self.quantity),
            "quantity_before": _num(self.quantity_before),
            "quantity_change": _num(self.quantity_change),
            "quantity_after": _num(self.quantity_after),
            "used_by": self.used_by_id,
            "assigned_to": self.assigned_to_id,
            "approved_by": self.approved_by_id,
            "project_name": self.project_name,
            "notes": self.notes,
            "timestamp": _iso(self.timestamp),
        }


@event.listens_for(ConsumableTransaction, "before_update")
def _transactions_are_append_only(_mapper, _conn, target):
    raise ValueError(
        f"consumable transaction {target.id} is immutable; "
        "record a correcting adjustment instead"
    )


class AuthEvent(Base):
    __tablename__ = "auth_events"

    id         = Column(Integer, primary_key=True, autoincrement=True)
    staff_uid  = Column(String(32), ForeignKey("staff.uid"), nullable=True, index=True)
    action     = Column(String(20), nullable=False)         # login | logout | login_failed
    identifier = Column(String(200), default="")            # job code / email as typed
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(300), nullable=True)
    timestamp  = Column(DateTime, nullable=False, default=_utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_uid": self.staff_uid,
            "action": self.action,
            "identifier": self.identifier or "",
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "timestamp": _iso(self.timestamp),
        }


@event.listens_for(AuthEvent, "before_update")
def _auth_events_are_append_only(_mapper, _conn, target):
    raise ValueError(f"auth event {target.id} is immutable")
