"""
services.identity_service - Unique-ID issuance for tools and consumables.

IDs are drawn from the OS CSPRNG, so any number of clients can issue
them at the same time without a shared counter.  With 60 random bits a
collision is astronomically unlikely; if one ever happens the UNIQUE
constraint on tools.unique_id rejects the insert.
"""

from __future__ import annotations

import secrets

import config
from schema.numbering import (
    ALPHABET,
    KIND_CONSUMABLE,
    KIND_TOOL,
    build_qr_payload,
    build_unique_id,
    parse_qr_payload,
)


class IdentityIssuer:
    """Stateless; construct one and hand it to whatever needs IDs."""

    def __init__(self, length: int = config.UNIQUE_ID_LENGTH):
        self.length = length

    def _random_body(self) -> str:
        return "".join(secrets.choice(ALPHABET) for _ in range(self.length))

    # ── Tools ──────────────────────────────────────────────────────────

    def generate_unique_id(self) -> str:
        return build_unique_id(KIND_TOOL, self._random_body())

    @staticmethod
    def generate_qr_payload(unique_id: str) -> str:
        """TOOL#<unique_id>.  Same input, same output, forever."""
        return build_qr_payload(KIND_TOOL, unique_id)

    # ── Consumables ────────────────────────────────────────────────────

    def generate_consumable_id(self) -> str:
        return build_unique_id(KIND_CONSUMABLE, self._random_body())

    @staticmethod
    def generate_consumable_qr_payload(unique_id: str) -> str:
        return build_qr_payload(KIND_CONSUMABLE, unique_id)

    # ── Both ───────────────────────────────────────────────────────────

    def issue(self, kind: str = KIND_TOOL) -> tuple[str, str]:
        """Return a fresh (unique_id, qr_payload) pair."""
        if kind == KIND_CONSUMABLE:
            uid = self.generate_consumable_id()
            return uid, self.generate_consumable_qr_payload(uid)
        uid = self.generate_unique_id()
        return uid, self.generate_qr_payload(uid)

    @staticmethod
    def parse(payload: str) -> tuple[str, str] | None:
        return parse_qr_payload(payload)
