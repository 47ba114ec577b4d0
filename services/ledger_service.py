"""
services.ledger_service - Consumable usage / restock / adjustment ledger.

The ledger is the only writer of consumables.current_quantity.  Every
stock change is one database transaction that

  1. runs a guarded compare-and-decrement:
         UPDATE consumables
            SET current_quantity = round(current_quantity + :delta, 3)
          WHERE id = :id AND is_active AND current_quantity >= :needed
  2. inserts the ConsumableTransaction row with before/after amounts

and commits both or neither.  Validation happens first in a separate,
already-closed read session; the guard in step 1 re-checks stock at
commit time so two concurrent requests cannot both spend the same units.
The write transaction starts with the UPDATE, so on SQLite it takes the
write lock before reading anything.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from sqlalchemy import func, select, true, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
from db.engine import get_session
from db.models import Consumable, ConsumableTransaction
from schema.stock_levels import StockLevel, classify
from schema.units import is_whole, to_quantity
from services.errors import (
    ActorUnresolved,
    ConsumableNotFound,
    InsufficientStock,
    InvalidQuantity,
    LedgerError,
    RecipientRequired,
    RecordingFailed,
    ValidationError,
)
from services.staff_service import StaffService

logger = logging.getLogger(__name__)

ACTION_USAGE = "usage"
ACTION_RESTOCK = "restock"
ACTION_ADJUSTMENT = "adjustment"
ACTIONS = (ACTION_USAGE, ACTION_RESTOCK, ACTION_ADJUSTMENT)


def _parse_quantity(raw, *, signed: bool = False) -> Decimal:
    try:
        qty = to_quantity(raw)
    except ValueError as exc:
        raise InvalidQuantity(f"Please enter a valid quantity ({exc})") from None
    if signed:
        if qty == 0:
            raise InvalidQuantity("Adjustment must change the quantity")
    elif qty <= 0:
        raise InvalidQuantity("Quantity must be greater than zero")
    return qty


def stock_level(consumable: Consumable) -> StockLevel:
    return classify(consumable.current_quantity,
                    consumable.min_quantity, consumable.max_quantity)


class ConsumableLedger:
    """
    Stateless apart from the session factory it is given; build one per
    application and pass it to whoever records stock changes.
    """

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    # ── Usage ──────────────────────────────────────────────────────────

    def record_usage(self, consumable_id: str, quantity, used_by: str | None,
                     assigned_to: str | None, notes: str | None = None,
                     project_name: str | None = None) -> ConsumableTransaction:
        """
        Record that `assigned_to` received `quantity` of a consumable,
        handed out by `used_by` (the signed-in actor).

        Checks, in order: quantity, stock, actor, recipient.  The first
        failure is raised and nothing is written.
        """
        qty = _parse_quantity(quantity)

        session = self._session_factory()
        try:
            consumable = self._load(session, consumable_id)
            self._check_unit(consumable, qty)
            if qty > consumable.current_quantity:
                raise InsufficientStock(qty, consumable.current_quantity)
            actor = self._resolve_actor(session, used_by)
            if not assigned_to:
                raise RecipientRequired("Please select who received the consumable")
            recipient = StaffService.get_active(session, assigned_to)
            if recipient is None:
                raise RecipientRequired(
                    f"Recipient {assigned_to} is not an active staff member")
            actor_uid, recipient_uid = actor.uid, recipient.uid
        finally:
            session.close()

        return self._commit(
            consumable_id, ACTION_USAGE, -qty,
            used_by_id=actor_uid,
            assigned_to_id=recipient_uid,
            notes=notes or None,
            project_name=project_name or None,
        )

    # ── Restock / adjustment ───────────────────────────────────────────

    def record_restock(self, consumable_id: str, quantity, restocked_by: str | None,
                       notes: str | None = None) -> ConsumableTransaction:
        qty = _parse_quantity(quantity)

        session = self._session_factory()
        try:
            consumable = self._load(session, consumable_id)
            self._check_unit(consumable, qty)
            actor_uid = self._resolve_actor(session, restocked_by).uid
        finally:
            session.close()

        return self._commit(consumable_id, ACTION_RESTOCK, qty,
                            approved_by_id=actor_uid, notes=notes or None)

    def record_adjustment(self, consumable_id: str, delta, approved_by: str | None,
                          notes: str | None) -> ConsumableTransaction:
        """
        Signed correction (stock count, breakage, a mis-recorded usage).
        Past transactions are never edited; this appends a new one.
        """
        change = _parse_quantity(delta, signed=True)

        session = self._session_factory()
        try:
            consumable = self._load(session, consumable_id)
            self._check_unit(consumable, abs(change))
            if change < 0 and -change > consumable.current_quantity:
                raise InsufficientStock(-change, consumable.current_quantity)
            actor_uid = self._resolve_actor(session, approved_by).uid
        finally:
            session.close()

        if not (notes or "").strip():
            raise ValidationError("A reason is required for stock adjustments")

        return self._commit(consumable_id, ACTION_ADJUSTMENT, change,
                            approved_by_id=actor_uid, notes=notes.strip())

    @staticmethod
    def book_opening_stock(session: Session, consumable: Consumable, quantity,
                           restocked_by: str,
                           notes: str = "Opening stock") -> ConsumableTransaction:
        """
        Book the first restock of a consumable that is being created in
        `session`.  Nothing is committed here: the caller commits the new
        row and this transaction together, or rolls both back.
        """
        qty = _parse_quantity(quantity)
        ConsumableLedger._check_unit(consumable, qty)
        if consumable.current_quantity:
            raise ValidationError("Opening stock can only be booked on a new consumable")

        consumable.current_quantity = qty
        txn = ConsumableTransaction(
            consumable_id=consumable.id,
            action=ACTION_RESTOCK,
            quantity_before=Decimal("0"),
            quantity_change=qty,
            quantity_after=qty,
            approved_by_id=restocked_by,
            notes=notes,
        )
        session.add(txn)
        session.flush()
        return txn

    # ── Reads ──────────────────────────────────────────────────────────

    @staticmethod
    def history_for_consumable(session: Session, consumable_id: str,
                               limit: int = config.RECENT_TRANSACTIONS):
        return (session.query(ConsumableTransaction)
                .filter(ConsumableTransaction.consumable_id == consumable_id)
                .order_by(ConsumableTransaction.timestamp.desc())
                .limit(limit).all())

    @staticmethod
    def history_for_staff(session: Session, staff_uid: str,
                          limit: int = config.RECENT_TRANSACTIONS):
        """Transactions the staff member recorded, received or approved."""
        return (session.query(ConsumableTransaction)
                .filter((ConsumableTransaction.used_by_id == staff_uid)
                        | (ConsumableTransaction.assigned_to_id == staff_uid)
                        | (ConsumableTransaction.approved_by_id == staff_uid))
                .order_by(ConsumableTransaction.timestamp.desc())
                .limit(limit).all())

    @staticmethod
    def recent_transactions(session: Session, action: str = "",
                            limit: int = config.RECENT_TRANSACTIONS):
        q = session.query(ConsumableTransaction)
        if action:
            q = q.filter(ConsumableTransaction.action == action)
        return q.order_by(ConsumableTransaction.timestamp.desc()).limit(limit).all()

    @staticmethod
    def stock_level(consumable: Consumable) -> StockLevel:
        return stock_level(consumable)

    # ── Private helpers ────────────────────────────────────────────────

    @staticmethod
    def _load(session: Session, consumable_id: str) -> Consumable:
        consumable = session.get(Consumable, consumable_id) if consumable_id else None
        if consumable is None or not consumable.is_active:
            raise ConsumableNotFound(f"Consumable not found: {consumable_id}")
        return consumable

    @staticmethod
    def _check_unit(consumable: Consumable, qty: Decimal) -> None:
        unit = consumable.measurement_unit
        if not unit.allows_decimals and not is_whole(qty):
            raise InvalidQuantity(
                f"{unit.display_name} must be recorded in whole numbers")

    @staticmethod
    def _resolve_actor(session: Session, uid: str | None):
        if not uid:
            raise ActorUnresolved("No signed-in staff member is linked to this session")
        actor = StaffService.get_active(session, uid)
        if actor is None:
            raise ActorUnresolved(f"Staff member {uid} is unknown or inactive")
        return actor

    def _commit(self, consumable_id: str, action: str, delta: Decimal,
                **fields) -> ConsumableTransaction:
        """Apply delta and append the transaction in one DB transaction."""
        now = datetime.now(timezone.utc)
        needed = -delta if delta < 0 else Decimal("0")
        guard = Consumable.current_quantity >= needed if delta < 0 else true()

        session = self._session_factory()
        try:
            stmt = (
                update(Consumable)
                .where(Consumable.id == consumable_id,
                       Consumable.is_active.is_(True),
                       guard)
                .values(
                    current_quantity=func.round(Consumable.current_quantity + delta,
                                                config.QUANTITY_PLACES),
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if session.execute(stmt).rowcount != 1:
                session.rollback()
                raise self._lost_race(session, consumable_id, needed)

            after = to_quantity(session.execute(
                select(Consumable.current_quantity)
                .where(Consumable.id == consumable_id)
            ).scalar_one())

            txn = ConsumableTransaction(
                consumable_id=consumable_id,
                action=action,
                quantity_before=after - delta,
                quantity_change=delta,
                quantity_after=after,
                timestamp=now,
                **fields,
            )
            session.add(txn)
            session.commit()
        except LedgerError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Recording %s on %s failed", action, consumable_id)
            raise RecordingFailed(
                "Could not record the transaction; nothing was saved, please retry"
            ) from exc
        finally:
            session.close()

        logger.info("Recorded %s of %s on %s (%s → %s)", action, abs(delta),
                    consumable_id, txn.quantity_before, txn.quantity_after)
        return txn

    @staticmethod
    def _lost_race(session: Session, consumable_id: str, needed: Decimal) -> LedgerError:
        """Explain why the guarded update matched no row."""
        current = session.get(Consumable, consumable_id)
        if current is None or not current.is_active:
            return ConsumableNotFound(f"Consumable not found: {consumable_id}")
        logger.warning("Stock for %s changed before commit: needed %s, have %s",
                       consumable_id, needed, current.current_quantity)
        return InsufficientStock(needed, current.current_quantity)
