"""
services.errors - Exceptions raised by the service layer.

User-input errors carry a message that can be shown verbatim.
RecordingFailed is the only transient one; a caller may retry the
whole operation because nothing was committed.
"""

from __future__ import annotations

from decimal import Decimal


def _fmt(value) -> str:
    """Decimal → shortest readable text ('7', '3.2')."""
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return str(value)


class ServiceError(Exception):
    """Base class for every error a service raises on purpose."""

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationError(ServiceError):
    """Bad field values on a tool, consumable or staff record."""
    pass


class NotFound(ServiceError):
    pass


class PermissionDenied(ServiceError):
    pass


class LedgerError(ServiceError):
    pass


class InvalidQuantity(LedgerError):
    pass


class InsufficientStock(LedgerError):

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock: requested {_fmt(requested)}, "
            f"but only {_fmt(available)} available"
        )


class ActorUnresolved(LedgerError):
    pass


class RecipientRequired(LedgerError):
    pass


class ConsumableNotFound(LedgerError, NotFound):
    pass


class RecordingFailed(LedgerError):
    """Storage fault during the atomic commit.  Safe to retry."""
    pass
