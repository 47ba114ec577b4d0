"""
services.staff_service - Staff records, lookups and admin bootstrap.

All session management is the caller's responsibility.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from db.models import Staff
from schema.roles import StaffRole
from services.errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("full_name", "job_code", "email")


class StaffService:

    @staticmethod
    def create(session: Session, data: dict) -> Staff:
        """Create a staff member.  Required keys: full_name, job_code, email."""
        values = {k: str(data.get(k, "") or "").strip() for k in REQUIRED_FIELDS}
        missing = [k for k, v in values.items() if not v]
        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

        values["job_code"] = values["job_code"].upper()
        values["email"] = values["email"].lower()

        if StaffService.get_by_job_code(session, values["job_code"]):
            raise ValidationError(f"Job code already in use: {values['job_code']}")
        if StaffService.get_by_email(session, values["email"]):
            raise ValidationError(f"Email already in use: {values['email']}")

        role = StaffRole.from_string(data.get("role"))
        staff = Staff(role=role.value, is_active=True, **values)
        session.add(staff)
        session.flush()
        logger.info("Staff created: %s (%s, %s)", staff.job_code, staff.uid, role.value)
        return staff

    # ── Lookups ────────────────────────────────────────────────────────

    @staticmethod
    def get(session: Session, uid: str) -> Staff | None:
        if not uid:
            return None
        return session.get(Staff, uid)

    @staticmethod
    def get_active(session: Session, uid: str | None) -> Staff | None:
        """The staff member behind uid, or None if unknown or deactivated."""
        staff = StaffService.get(session, uid) if uid else None
        if staff is None or not staff.is_active:
            return None
        return staff

    @staticmethod
    def get_by_job_code(session: Session, job_code: str) -> Staff | None:
        code = (job_code or "").strip().upper()
        if not code:
            return None
        return session.query(Staff).filter(Staff.job_code == code).one_or_none()

    @staticmethod
    def get_by_email(session: Session, email: str) -> Staff | None:
        addr = (email or "").strip().lower()
        if not addr:
            return None
        return session.query(Staff).filter(func.lower(Staff.email) == addr).one_or_none()

    @staticmethod
    def list_all(session: Session, active_only: bool = True,
                 role: str | None = None) -> list[Staff]:
        q = session.query(Staff)
        if active_only:
            q = q.filter(Staff.is_active.is_(True))
        if role:
            q = q.filter(Staff.role == StaffRole.from_string(role).value)
        return q.order_by(Staff.full_name).all()

    # ── Mutations ──────────────────────────────────────────────────────

    @staticmethod
    def set_active(session: Session, uid: str, active: bool) -> Staff:
        staff = StaffService.get(session, uid)
        if staff is None:
            raise NotFound(f"Staff member not found: {uid}")
        staff.is_active = active
        session.flush()
        logger.info("Staff %s %s", staff.job_code,
                    "reactivated" if active else "deactivated")
        return staff

    @staticmethod
    def touch_sign_in(session: Session, staff: Staff) -> None:
        staff.last_sign_in = datetime.now(timezone.utc)
        session.flush()

    # ── Bootstrap ──────────────────────────────────────────────────────

    @staticmethod
    def ensure_admin(session: Session, email: str, full_name: str,
                     job_code: str) -> Staff | None:
        """
        Create the first admin when the table has none.

        Returns the new admin, or None if an active admin already exists.
        An existing non-admin with the same email is promoted instead.
        """
        existing_admin = session.query(Staff).filter(
            Staff.role == StaffRole.ADMIN.value,
            Staff.is_active.is_(True),
        ).first()
        if existing_admin:
            return None

        staff = StaffService.get_by_email(session, email)
        if staff:
            staff.role = StaffRole.ADMIN.value
            staff.is_active = True
            session.flush()
            logger.info("Promoted %s to admin", staff.email)
            return staff

        return StaffService.create(session, {
            "full_name": full_name,
            "job_code": job_code,
            "email": email,
            "role": StaffRole.ADMIN.value,
        })
