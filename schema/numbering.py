"""
schema.numbering - Unique-ID and QR-payload formats.

Format:  <prefix><12 × Crockford base-32>
         prefix  T = tool, C = consumable
QR:      TOOL#<unique_id> / CONSUMABLE#<unique_id>

The payload scheme is frozen: a printed label must keep resolving
for the whole life of the asset.
"""

from __future__ import annotations

from typing import Optional

import config

# Crockford base-32: no I, L, O, U
ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

KIND_TOOL = "tool"
KIND_CONSUMABLE = "consumable"

_ID_PREFIX = {
    KIND_TOOL: config.TOOL_ID_PREFIX,
    KIND_CONSUMABLE: config.CONSUMABLE_ID_PREFIX,
}
_QR_PREFIX = {
    KIND_TOOL: config.TOOL_QR_PREFIX,
    KIND_CONSUMABLE: config.CONSUMABLE_QR_PREFIX,
}


def build_unique_id(kind: str, body: str) -> str:
    """Assemble a canonical unique ID from its random body."""
    return f"{_ID_PREFIX[kind]}{body.upper()}"


def build_qr_payload(kind: str, unique_id: str) -> str:
    return f"{_QR_PREFIX[kind]}{unique_id}"


def kind_of(unique_id: str) -> Optional[str]:
    """Infer tool/consumable from the ID prefix, None if neither."""
    uid = unique_id.strip().upper()
    for kind, prefix in _ID_PREFIX.items():
        if uid.startswith(prefix) and len(uid) > len(prefix):
            return kind
    return None


def parse_qr_payload(payload: str) -> Optional[tuple[str, str]]:
    """
    Parse 'TOOL#T…' / 'CONSUMABLE#C…' → (kind, unique_id).

    A bare unique ID (label typed in by hand) is accepted too.
    Returns None on any format violation.
    """
    raw = (payload or "").strip()
    if not raw:
        return None

    if "#" in raw:
        head, _, uid = raw.rpartition("#")
        head = f"{head.upper()}#"
        for kind, prefix in _QR_PREFIX.items():
            if head == prefix and uid:
                return kind, uid
        return None

    kind = kind_of(raw)
    if kind is None:
        return None
    return kind, raw
