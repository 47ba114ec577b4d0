"""
services.auth_history_service - Sign-in / sign-out audit log.

All session management is the caller's responsibility.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

import config
from db.models import AuthEvent, Staff
from services.staff_service import StaffService

logger = logging.getLogger(__name__)

EVENT_LOGIN = "login"
EVENT_LOGOUT = "logout"
EVENT_LOGIN_FAILED = "login_failed"
EVENTS = (EVENT_LOGIN, EVENT_LOGOUT, EVENT_LOGIN_FAILED)


class AuthHistoryService:

    @staticmethod
    def record(session: Session, action: str, staff_uid: str | None = None,
               identifier: str = "", ip_address: str | None = None,
               user_agent: str | None = None) -> AuthEvent:
        entry = AuthEvent(staff_uid=staff_uid, action=action,
                          identifier=identifier or "",
                          ip_address=ip_address,
                          user_agent=(user_agent or "")[:300] or None)
        session.add(entry)
        session.flush()
        logger.info("Auth event %s for %s", action, staff_uid or identifier or "?")
        return entry

    @staticmethod
    def record_login(session: Session, staff: Staff, **request_info) -> AuthEvent:
        """Log a successful sign-in and refresh staff.last_sign_in."""
        StaffService.touch_sign_in(session, staff)
        return AuthHistoryService.record(session, EVENT_LOGIN, staff.uid,
                                         identifier=staff.job_code, **request_info)

    @staticmethod
    def record_logout(session: Session, staff_uid: str, **request_info) -> AuthEvent:
        return AuthHistoryService.record(session, EVENT_LOGOUT, staff_uid, **request_info)

    @staticmethod
    def record_failed(session: Session, identifier: str, **request_info) -> AuthEvent:
        return AuthHistoryService.record(session, EVENT_LOGIN_FAILED, None,
                                         identifier=identifier, **request_info)

    # ── Reads ──────────────────────────────────────────────────────────

    @staticmethod
    def recent(session: Session, staff_uid: str = "", action: str = "",
               limit: int = config.AUTH_EVENTS_LIMIT) -> list[AuthEvent]:
        q = session.query(AuthEvent)
        if staff_uid:
            q = q.filter(AuthEvent.staff_uid == staff_uid)
        if action:
            q = q.filter(AuthEvent.action == action)
        return (q.order_by(AuthEvent.timestamp.desc(), AuthEvent.id.desc())
                .limit(limit).all())

    @staticmethod
    def login_count(session: Session, staff_uid: str) -> int:
        return (session.query(AuthEvent)
                .filter(AuthEvent.staff_uid == staff_uid,
                        AuthEvent.action == EVENT_LOGIN).count())

    @staticmethod
    def last_login(session: Session, staff_uid: str) -> datetime | None:
        entry = (session.query(AuthEvent)
                 .filter(AuthEvent.staff_uid == staff_uid,
                         AuthEvent.action == EVENT_LOGIN)
                 .order_by(AuthEvent.timestamp.desc(), AuthEvent.id.desc())
                 .first())
        return entry.timestamp if entry else None
