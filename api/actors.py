"""
api.actors - Who is making this request.

Two ways to carry the signed-in staff uid, both signed with the app's
secret key:

  * the Flask session cookie (set by POST /api/v1/session), and
  * an ``Authorization: Bearer <token>`` header holding the token that
    POST /api/v1/session returns, for API clients without cookies.

Anything unsigned is ignored.  The resolver only reports the uid;
whether that uid is an active staff member is decided by the services.
"""

from __future__ import annotations

import logging

from flask import current_app, request, session as flask_session
from itsdangerous import BadSignature, URLSafeTimedSerializer
from sqlalchemy.orm import Session

import config
from db.models import Staff
from services.errors import ActorUnresolved, PermissionDenied
from services.staff_service import StaffService

logger = logging.getLogger(__name__)

SESSION_KEY = "staff_uid"
BEARER = "Bearer "


class SessionActorResolver:

    @staticmethod
    def _serializer() -> URLSafeTimedSerializer:
        return URLSafeTimedSerializer(current_app.secret_key, salt=config.TOKEN_SALT)

    def resolve_actor_from_session(self) -> str | None:
        uid = flask_session.get(SESSION_KEY)
        if uid:
            return uid
        auth = request.headers.get("Authorization", "")
        if auth.startswith(BEARER):
            return self.uid_from_token(auth[len(BEARER):].strip())
        return None

    def issue_token(self, staff: Staff) -> str:
        return self._serializer().dumps({"uid": staff.uid})

    def uid_from_token(self, token: str) -> str | None:
        try:
            data = self._serializer().loads(token, max_age=config.TOKEN_MAX_AGE)
        except BadSignature as exc:
            logger.warning("Rejected API token: %s", exc)
            return None
        return data.get("uid") if isinstance(data, dict) else None

    @staticmethod
    def sign_in(staff: Staff) -> None:
        flask_session[SESSION_KEY] = staff.uid

    @staticmethod
    def sign_out() -> None:
        flask_session.pop(SESSION_KEY, None)


# ── Per-app collaborators ─────────────────────────────────────────────

def _ext() -> dict:
    return current_app.extensions["toolcrib"]


def issuer():
    return _ext()["issuer"]


def ledger():
    return _ext()["ledger"]


def resolver() -> SessionActorResolver:
    return _ext()["actors"]


def current_uid() -> str | None:
    return resolver().resolve_actor_from_session()


def require_actor(session: Session, permission: str | None = None) -> Staff:
    """
    Return the active staff member behind this request.

    permission names a StaffRole property ('can_manage_tools', …) the
    actor must have.
    """
    uid = current_uid()
    if not uid:
        raise ActorUnresolved("No signed-in staff member is linked to this session")
    staff = StaffService.get_active(session, uid)
    if staff is None:
        raise ActorUnresolved(f"Staff member {uid} is unknown or inactive")
    if permission and not getattr(staff.staff_role, permission):
        raise PermissionDenied(
            f"{staff.full_name} ({staff.staff_role.value}) is not allowed to do this")
    return staff
