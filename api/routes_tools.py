"""
api.routes_tools - /api/v1/tools endpoints.
"""

from flask import request, jsonify, Response

from api import api_bp
from api.actors import issuer, require_actor
from db import get_session
from services.errors import NotFound
from services.qr_service import generate_qr_png, generate_qr_svg
from services.tools_service import ToolsService
import config


def _get_or_404(session, tool_id: str):
    tool = ToolsService.get(session, tool_id)
    if tool is None:
        raise NotFound(f"Tool not found: {tool_id}")
    return tool


@api_bp.route("/tools")
def list_tools():
    """
    GET /api/v1/tools?q=&status=&holder=&limit=100&offset=0
    """
    q      = request.args.get("q", "").strip()
    status = request.args.get("status", "").strip()
    holder = request.args.get("holder", "").strip()
    limit  = min(int(request.args.get("limit", config.API_DEFAULT_LIMIT)),
                 config.API_MAX_LIMIT)
    offset = int(request.args.get("offset", 0))

    session = get_session()
    try:
        tools, total = ToolsService.search(session, q=q, status=status,
                                           holder=holder, limit=limit, offset=offset)
        return jsonify({
            "total": total,
            "offset": offset,
            "limit": limit,
            "tools": [t.to_dict() for t in tools],
        })
    finally:
        session.close()


@api_bp.route("/tools", methods=["POST"])
def create_tool():
    """
    POST /api/v1/tools

    JSON body: {name, brand, model, num?, category?, condition?, notes?, meta?}.
    unique_id and qr_payload are issued by the server.
    """
    data = request.get_json(force=True)
    session = get_session()
    try:
        actor = require_actor(session, "can_manage_tools")
        tool = ToolsService.create(session, data, issuer(), created_by=actor.uid)
        session.commit()
        return jsonify(tool.to_dict()), 201
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/tools/<tool_id>")
def get_tool(tool_id: str):
    """GET /api/v1/tools/{id}"""
    session = get_session()
    try:
        return jsonify(_get_or_404(session, tool_id).to_dict())
    finally:
        session.close()


@api_bp.route("/tools/by-qr/<path:payload>")
def get_tool_by_qr(payload: str):
    """GET /api/v1/tools/by-qr/TOOL%23T… (or a bare unique ID)"""
    session = get_session()
    try:
        tool = ToolsService.find_by_qr(session, payload)
        if tool is None:
            raise NotFound(f"No tool matches QR code: {payload}")
        return jsonify(tool.to_dict())
    finally:
        session.close()


@api_bp.route("/tools/<tool_id>", methods=["PUT"])
def update_tool(tool_id: str):
    """PUT /api/v1/tools/{id}  (JSON body with fields to update)"""
    data = request.get_json(force=True)
    session = get_session()
    try:
        actor = require_actor(session, "can_manage_tools")
        tool = _get_or_404(session, tool_id)
        ToolsService.update(session, tool, data, modified_by=actor.uid)
        session.commit()
        return jsonify(tool.to_dict())
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/tools/<tool_id>/qr.svg")
def tool_qr_svg(tool_id: str):
    session = get_session()
    try:
        payload = _get_or_404(session, tool_id).qr_payload
    finally:
        session.close()
    return Response(generate_qr_svg(payload), mimetype="image/svg+xml")


@api_bp.route("/tools/<tool_id>/qr.png")
def tool_qr_png(tool_id: str):
    session = get_session()
    try:
        payload = _get_or_404(session, tool_id).qr_payload
    finally:
        session.close()
    return Response(generate_qr_png(payload), mimetype="image/png")


# ── Custody ────────────────────────────────────────────────────────────

@api_bp.route("/tools/<tool_id>/checkout", methods=["POST"])
def checkout_tool(tool_id: str):
    """POST /api/v1/tools/{id}/checkout  {staff_uid, notes?, batch_id?}"""
    data = request.get_json(force=True)
    session = get_session()
    try:
        actor = require_actor(session, "can_authorize_checkouts")
        tool = _get_or_404(session, tool_id)
        entry = ToolsService.check_out(session, tool, str(data.get("staff_uid", "")),
                                       actor.uid, notes=data.get("notes", ""),
                                       batch_id=data.get("batch_id"))
        session.commit()
        return jsonify({"tool": tool.to_dict(), "history": entry.to_dict()})
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/tools/<tool_id>/checkin", methods=["POST"])
def checkin_tool(tool_id: str):
    """POST /api/v1/tools/{id}/checkin  {notes?}"""
    data = request.get_json(silent=True) or {}
    session = get_session()
    try:
        actor = require_actor(session, "can_authorize_checkouts")
        tool = _get_or_404(session, tool_id)
        entry = ToolsService.check_in(session, tool, actor.uid,
                                      notes=data.get("notes", ""),
                                      batch_id=data.get("batch_id"))
        session.commit()
        return jsonify({"tool": tool.to_dict(), "history": entry.to_dict()})
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/tools/<tool_id>/history")
def tool_history(tool_id: str):
    session = get_session()
    try:
        tool = _get_or_404(session, tool_id)
        return jsonify({
            "tool_id": tool.id,
            "history": [h.to_dict() for h in ToolsService.history(session, tool)],
        })
    finally:
        session.close()


# ── Batch custody ──────────────────────────────────────────────────────

@api_bp.route("/tools/batch/checkout", methods=["POST"])
def batch_checkout_tools():
    """
    POST /api/v1/tools/batch/checkout  {tool_ids: [...], staff_uid, notes?}

    All tools move to staff_uid under one batch_id, or none do.
    """
    data = request.get_json(force=True)
    session = get_session()
    try:
        actor = require_actor(session, "can_authorize_checkouts")
        batch_id, entries = ToolsService.batch_check_out(
            session, data.get("tool_ids"), str(data.get("staff_uid", "")),
            actor.uid, notes=data.get("notes", ""))
        session.commit()
        return jsonify({"batch_id": batch_id,
                        "history": [e.to_dict() for e in entries]})
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/tools/batch/checkin", methods=["POST"])
def batch_checkin_tools():
    """POST /api/v1/tools/batch/checkin  {tool_ids: [...], notes?}"""
    data = request.get_json(force=True)
    session = get_session()
    try:
        actor = require_actor(session, "can_authorize_checkouts")
        batch_id, entries = ToolsService.batch_check_in(
            session, data.get("tool_ids"), actor.uid, notes=data.get("notes", ""))
        session.commit()
        return jsonify({"batch_id": batch_id,
                        "history": [e.to_dict() for e in entries]})
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
