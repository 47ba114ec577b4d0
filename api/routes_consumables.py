"""
api.routes_consumables - /api/v1/consumables endpoints.

Catalogue edits go through ConsumablesService; every stock change goes
through the application's ConsumableLedger.
"""

from flask import request, jsonify, Response

from api import api_bp
from api.actors import current_uid, issuer, ledger, require_actor
from db import get_session
from schema.stock_levels import StockLevel
from services.consumables_service import ConsumablesService
from services.errors import NotFound, ValidationError
from services.ledger_service import ConsumableLedger
from services.qr_service import generate_qr_png, generate_qr_svg
import config


def _get_or_404(session, consumable_id: str):
    consumable = ConsumablesService.get(session, consumable_id)
    if consumable is None:
        raise NotFound(f"Consumable not found: {consumable_id}")
    return consumable


def _fresh(consumable_id: str) -> dict:
    session = get_session()
    try:
        return _get_or_404(session, consumable_id).to_dict()
    finally:
        session.close()


def _ledger_response(txn):
    return jsonify({
        "transaction": txn.to_dict(),
        "consumable": _fresh(txn.consumable_id),
    }), 201


@api_bp.route("/consumables")
def list_consumables():
    """
    GET /api/v1/consumables?q=&category=&level=&all=0|1&limit=100&offset=0
    """
    q        = request.args.get("q", "").strip()
    category = request.args.get("category", "").strip()
    level    = request.args.get("level", "").strip()
    include_inactive = request.args.get("all", "0") == "1"
    limit  = min(int(request.args.get("limit", config.API_DEFAULT_LIMIT)),
                 config.API_MAX_LIMIT)
    offset = int(request.args.get("offset", 0))

    if level and level not in {s.value for s in StockLevel}:
        raise ValidationError(f"Unknown stock level: {level}")

    session = get_session()
    try:
        rows, total = ConsumablesService.search(
            session, q=q, category=category, level=level,
            include_inactive=include_inactive, limit=limit, offset=offset)
        return jsonify({
            "total": total,
            "offset": offset,
            "limit": limit,
            "consumables": [c.to_dict() for c in rows],
        })
    finally:
        session.close()


@api_bp.route("/consumables", methods=["POST"])
def create_consumable():
    """
    POST /api/v1/consumables

    JSON body: {name, category, unit?, min_quantity?, max_quantity?,
    unit_price?, brand?, sku?, notes?, initial_quantity?}.
    initial_quantity is booked as the first restock in the same
    transaction as the new row; a bad quantity saves neither.
    """
    data = request.get_json(force=True)
    session = get_session()
    try:
        actor = require_actor(session, "can_manage_tools")
        consumable = ConsumablesService.create(session, data, issuer())
        initial = data.get("initial_quantity")
        if initial not in (None, "", 0, "0"):
            ledger().book_opening_stock(session, consumable, initial, actor.uid)
        session.commit()
        return jsonify(consumable.to_dict()), 201
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/consumables/<consumable_id>")
def get_consumable(consumable_id: str):
    """GET /api/v1/consumables/{id}"""
    session = get_session()
    try:
        return jsonify(_get_or_404(session, consumable_id).to_dict())
    finally:
        session.close()


@api_bp.route("/consumables/by-qr/<path:payload>")
def get_consumable_by_qr(payload: str):
    session = get_session()
    try:
        consumable = ConsumablesService.find_by_qr(session, payload)
        if consumable is None:
            raise NotFound(f"No consumable matches QR code: {payload}")
        return jsonify(consumable.to_dict())
    finally:
        session.close()


@api_bp.route("/consumables/<consumable_id>", methods=["PUT"])
def update_consumable(consumable_id: str):
    """PUT /api/v1/consumables/{id}  (catalogue fields only)"""
    data = request.get_json(force=True)
    session = get_session()
    try:
        require_actor(session, "can_manage_tools")
        consumable = _get_or_404(session, consumable_id)
        ConsumablesService.update(session, consumable, data)
        session.commit()
        return jsonify(consumable.to_dict())
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/consumables/<consumable_id>", methods=["DELETE"])
def delete_consumable(consumable_id: str):
    """DELETE /api/v1/consumables/{id} - soft delete, history is kept."""
    session = get_session()
    try:
        require_actor(session, "can_manage_tools")
        consumable = _get_or_404(session, consumable_id)
        ConsumablesService.deactivate(session, consumable)
        session.commit()
        return jsonify({"deleted": consumable_id})
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/consumables/<consumable_id>/qr.svg")
def consumable_qr_svg(consumable_id: str):
    session = get_session()
    try:
        payload = _get_or_404(session, consumable_id).qr_payload
    finally:
        session.close()
    return Response(generate_qr_svg(payload), mimetype="image/svg+xml")


@api_bp.route("/consumables/<consumable_id>/qr.png")
def consumable_qr_png(consumable_id: str):
    session = get_session()
    try:
        payload = _get_or_404(session, consumable_id).qr_payload
    finally:
        session.close()
    return Response(generate_qr_png(payload), mimetype="image/png")


# ── Ledger ─────────────────────────────────────────────────────────────

@api_bp.route("/consumables/<consumable_id>/usage", methods=["POST"])
def record_usage(consumable_id: str):
    """
    POST /api/v1/consumables/{id}/usage
         {quantity, assigned_to, notes?, project_name?}

    The signed-in staff member is recorded as used_by.
    """
    data = request.get_json(force=True)
    txn = ledger().record_usage(
        consumable_id,
        data.get("quantity"),
        used_by=current_uid(),
        assigned_to=str(data.get("assigned_to") or "").strip() or None,
        notes=data.get("notes"),
        project_name=data.get("project_name"),
    )
    return _ledger_response(txn)


@api_bp.route("/consumables/<consumable_id>/restock", methods=["POST"])
def record_restock(consumable_id: str):
    """POST /api/v1/consumables/{id}/restock  {quantity, notes?}"""
    data = request.get_json(force=True)
    txn = ledger().record_restock(consumable_id, data.get("quantity"),
                                  current_uid(), notes=data.get("notes"))
    return _ledger_response(txn)


@api_bp.route("/consumables/<consumable_id>/adjustments", methods=["POST"])
def record_adjustment(consumable_id: str):
    """POST /api/v1/consumables/{id}/adjustments  {delta, notes}  (supervisor+)"""
    data = request.get_json(force=True)
    session = get_session()
    try:
        actor = require_actor(session, "is_supervisor")
    finally:
        session.close()
    txn = ledger().record_adjustment(consumable_id, data.get("delta"),
                                     actor.uid, notes=data.get("notes"))
    return _ledger_response(txn)


@api_bp.route("/consumables/<consumable_id>/transactions")
def consumable_transactions(consumable_id: str):
    limit = min(int(request.args.get("limit", config.RECENT_TRANSACTIONS)),
                config.API_MAX_LIMIT)
    session = get_session()
    try:
        consumable = _get_or_404(session, consumable_id)
        txns = ConsumableLedger.history_for_consumable(session, consumable.id, limit)
        return jsonify({
            "consumable_id": consumable.id,
            "transactions": [t.to_dict() for t in txns],
        })
    finally:
        session.close()
