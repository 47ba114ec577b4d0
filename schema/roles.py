"""
schema.roles - Staff roles and what each may do.
"""

from __future__ import annotations

import enum


class StaffRole(str, enum.Enum):
    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    WORKER = "worker"

    @classmethod
    def from_string(cls, value: str | None) -> "StaffRole":
        """Unknown or empty roles degrade to worker."""
        key = (value or "").strip().lower()
        for role in cls:
            if role.value == key:
                return role
        return cls.WORKER

    @property
    def is_admin(self) -> bool:
        return self is StaffRole.ADMIN

    @property
    def is_supervisor(self) -> bool:
        return self is StaffRole.SUPERVISOR or self.is_admin

    @property
    def can_manage_tools(self) -> bool:
        return self.is_admin

    @property
    def can_manage_staff(self) -> bool:
        return self.is_admin

    @property
    def can_authorize_checkouts(self) -> bool:
        return self.is_supervisor

    @property
    def can_view_audit_logs(self) -> bool:
        return self.is_supervisor
