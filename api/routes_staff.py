"""
api.routes_staff - /api/v1/staff endpoints.
"""

from flask import request, jsonify

from api import api_bp
from api.actors import require_actor
from db import get_session
from services.auth_history_service import AuthHistoryService
from services.errors import NotFound
from services.ledger_service import ConsumableLedger
from services.staff_service import StaffService
from services.tools_service import ToolsService


@api_bp.route("/staff")
def list_staff():
    """GET /api/v1/staff?all=0|1&role="""
    active_only = request.args.get("all", "0") != "1"
    role = request.args.get("role", "").strip() or None
    session = get_session()
    try:
        require_actor(session)
        staff = StaffService.list_all(session, active_only=active_only, role=role)
        return jsonify({"total": len(staff), "staff": [s.to_dict() for s in staff]})
    finally:
        session.close()


@api_bp.route("/staff", methods=["POST"])
def create_staff():
    """POST /api/v1/staff  {full_name, job_code, email, role}  (admin only)"""
    data = request.get_json(force=True)
    session = get_session()
    try:
        require_actor(session, "can_manage_staff")
        staff = StaffService.create(session, data)
        session.commit()
        return jsonify(staff.to_dict()), 201
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/staff/<uid>")
def get_staff(uid: str):
    """GET /api/v1/staff/{uid} - profile plus held tools and recent usage."""
    session = get_session()
    try:
        require_actor(session)
        staff = StaffService.get(session, uid)
        if staff is None:
            raise NotFound(f"Staff member not found: {uid}")
        tools, _ = ToolsService.search(session, holder=staff.uid)
        txns = ConsumableLedger.history_for_staff(session, staff.uid, limit=20)
        d = staff.to_dict()
        d["tools"] = [t.to_dict() for t in tools]
        d["recent_transactions"] = [t.to_dict() for t in txns]
        last = AuthHistoryService.last_login(session, staff.uid)
        d["login_count"] = AuthHistoryService.login_count(session, staff.uid)
        d["last_login"] = last.isoformat() if last else None
        return jsonify(d)
    finally:
        session.close()


@api_bp.route("/staff/<uid>/deactivate", methods=["POST"])
def deactivate_staff(uid: str):
    session = get_session()
    try:
        require_actor(session, "can_manage_staff")
        staff = StaffService.set_active(session, uid, False)
        session.commit()
        return jsonify(staff.to_dict())
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/staff/<uid>/reactivate", methods=["POST"])
def reactivate_staff(uid: str):
    session = get_session()
    try:
        require_actor(session, "can_manage_staff")
        staff = StaffService.set_active(session, uid, True)
        session.commit()
        return jsonify(staff.to_dict())
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
