"""
api.routes_overview - Cross-cutting read endpoints: transaction log,
dashboard counts, unit catalogue, health.
"""

from flask import request, jsonify

from api import api_bp
from api.actors import require_actor
from db import get_session
from schema.stock_levels import StockLevel
from schema.units import MeasurementUnit
from services.consumables_service import ConsumablesService
from services.errors import ValidationError
from services.ledger_service import ACTIONS, ConsumableLedger
from services.stats_service import StatsService
import config


@api_bp.route("/transactions")
def list_transactions():
    """GET /api/v1/transactions?action=usage|restock|adjustment&limit=100  (supervisor+)"""
    action = request.args.get("action", "").strip()
    if action and action not in ACTIONS:
        raise ValidationError(f"Unknown action: {action}")
    limit = min(int(request.args.get("limit", config.RECENT_TRANSACTIONS)),
                config.API_MAX_LIMIT)

    session = get_session()
    try:
        require_actor(session, "can_view_audit_logs")
        txns = ConsumableLedger.recent_transactions(session, action=action, limit=limit)
        return jsonify({"transactions": [t.to_dict() for t in txns]})
    finally:
        session.close()


@api_bp.route("/dashboard")
def dashboard():
    session = get_session()
    try:
        summary = StatsService.summary(session)
        summary["low_stock"] = [c.to_dict() for c in ConsumablesService.low_stock(session)]
        return jsonify(summary)
    finally:
        session.close()


@api_bp.route("/units")
def list_units():
    """Measurement units and stock levels, for form dropdowns and legends."""
    return jsonify({
        "units": [
            {
                "value": u.value,
                "display_name": u.display_name,
                "abbreviation": u.abbreviation,
                "category": u.category,
                "allows_decimals": u.allows_decimals,
            }
            for u in MeasurementUnit
        ],
        "stock_levels": [
            {"value": s.value, "label": s.label, "color": s.color}
            for s in StockLevel
        ],
    })


@api_bp.route("/health")
def health():
    return jsonify({"ok": True})
