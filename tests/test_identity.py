import pytest

from schema.numbering import ALPHABET, KIND_CONSUMABLE, KIND_TOOL, parse_qr_payload
from services.identity_service import IdentityIssuer
from services.qr_service import generate_qr_png, generate_qr_svg


def test_generated_ids_are_distinct():
    issuer = IdentityIssuer()
    ids = {issuer.generate_unique_id() for _ in range(100_000)}
    assert len(ids) == 100_000


def test_tool_id_format():
    uid = IdentityIssuer().generate_unique_id()
    assert uid.startswith("T")
    assert len(uid) == 13
    assert all(ch in ALPHABET for ch in uid[1:])


def test_consumable_id_format():
    uid = IdentityIssuer().generate_consumable_id()
    assert uid.startswith("C")
    assert len(uid) == 13


def test_qr_payload_is_deterministic():
    first = IdentityIssuer.generate_qr_payload("TOOL-ABC123")
    second = IdentityIssuer.generate_qr_payload("TOOL-ABC123")
    assert first == second == "TOOL#TOOL-ABC123"


def test_issue_returns_matching_pair():
    issuer = IdentityIssuer()
    uid, payload = issuer.issue(KIND_TOOL)
    assert payload == f"TOOL#{uid}"
    uid, payload = issuer.issue(KIND_CONSUMABLE)
    assert payload == f"CONSUMABLE#{uid}"


@pytest.mark.parametrize("payload, expected", [
    ("TOOL#T0123456789AB", (KIND_TOOL, "T0123456789AB")),
    ("tool#T0123456789AB", (KIND_TOOL, "T0123456789AB")),
    ("CONSUMABLE#C0123456789AB", (KIND_CONSUMABLE, "C0123456789AB")),
    ("T0123456789AB", (KIND_TOOL, "T0123456789AB")),
    ("  c0123456789ab ", (KIND_CONSUMABLE, "c0123456789ab")),
    ("PART#X1", None),
    ("TOOL#", None),
    ("", None),
    ("X123", None),
])
def test_parse_qr_payload(payload, expected):
    assert parse_qr_payload(payload) == expected


def test_issued_payload_parses_back():
    issuer = IdentityIssuer()
    uid, payload = issuer.issue()
    assert issuer.parse(payload) == (KIND_TOOL, uid)


def test_qr_rendering():
    svg = generate_qr_svg("TOOL#T0123456789AB")
    assert "<svg" in svg
    png = generate_qr_png("TOOL#T0123456789AB")
    assert png.startswith(b"\x89PNG")
