"""
api.routes_session - /api/v1/session: bind a staff member to the session.
"""

from flask import request, jsonify

from api import api_bp
from api.actors import current_uid, require_actor, resolver
from db import get_session
from services.auth_history_service import EVENTS, AuthHistoryService
from services.errors import ActorUnresolved, ValidationError
from services.staff_service import StaffService
import config


def _request_info() -> dict:
    return {
        "ip_address": request.remote_addr,
        "user_agent": request.headers.get("User-Agent"),
    }


@api_bp.route("/session", methods=["POST"])
def create_session():
    """
    POST /api/v1/session  {job_code} or {email}

    Links the browser/app session to an active staff member and returns
    the staff record plus a signed bearer token for cookie-less clients.
    """
    data = request.get_json(silent=True) or {}
    job_code = str(data.get("job_code", "")).strip()
    email = str(data.get("email", "")).strip()
    if not (job_code or email):
        raise ValidationError("job_code or email is required")

    session = get_session()
    try:
        staff = (StaffService.get_by_job_code(session, job_code) if job_code
                 else StaffService.get_by_email(session, email))
        if staff is None or not staff.is_active:
            AuthHistoryService.record_failed(session, job_code or email, **_request_info())
            session.commit()
            raise ActorUnresolved("No active staff member matches those details")
        AuthHistoryService.record_login(session, staff, **_request_info())
        session.commit()
        resolver().sign_in(staff)
        body = staff.to_dict()
        body["token"] = resolver().issue_token(staff)
        return jsonify(body)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@api_bp.route("/session")
def get_current_session():
    """GET /api/v1/session - the staff member behind this request, if any."""
    uid = current_uid()
    session = get_session()
    try:
        staff = StaffService.get_active(session, uid)
        if staff is None:
            return jsonify({"staff": None})
        return jsonify({"staff": staff.to_dict()})
    finally:
        session.close()


@api_bp.route("/session", methods=["DELETE"])
def delete_session():
    uid = current_uid()
    if uid:
        session = get_session()
        try:
            AuthHistoryService.record_logout(session, uid, **_request_info())
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
    resolver().sign_out()
    return jsonify({"signed_out": True})


@api_bp.route("/auth-events")
def list_auth_events():
    """GET /api/v1/auth-events?staff_uid=&action=&limit=100  (supervisor+)"""
    staff_uid = request.args.get("staff_uid", "").strip()
    action = request.args.get("action", "").strip()
    if action and action not in EVENTS:
        raise ValidationError(f"Unknown auth event: {action}")
    limit = min(int(request.args.get("limit", config.AUTH_EVENTS_LIMIT)),
                config.API_MAX_LIMIT)

    session = get_session()
    try:
        require_actor(session, "can_view_audit_logs")
        events = AuthHistoryService.recent(session, staff_uid=staff_uid,
                                           action=action, limit=limit)
        return jsonify({"events": [e.to_dict() for e in events]})
    finally:
        session.close()
