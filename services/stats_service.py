"""
services.stats_service - Counts for the home dashboard.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from db.models import Consumable, ConsumableTransaction, Staff
from schema.stock_levels import StockLevel
from services.tools_service import ToolsService


class StatsService:

    @staticmethod
    def summary(session: Session, window_days: int = 7) -> dict:
        consumables = (session.query(Consumable)
                       .filter(Consumable.is_active.is_(True)).all())
        levels = {level.value: 0 for level in StockLevel}
        for c in consumables:
            levels[c.stock_level.value] += 1

        since = datetime.now(timezone.utc) - timedelta(days=window_days)
        recent = (session.query(ConsumableTransaction)
                  .filter(ConsumableTransaction.timestamp >= since).count())

        return {
            "tools": ToolsService.counts(session),
            "consumables": {
                "active": len(consumables),
                "low_stock": levels[StockLevel.LOW.value],
                "out_of_stock": levels[StockLevel.OUT_OF_STOCK.value],
                "by_level": levels,
            },
            "staff": {
                "active": session.query(Staff).filter(Staff.is_active.is_(True)).count(),
            },
            "transactions": {
                "window_days": window_days,
                "recent": recent,
            },
        }
