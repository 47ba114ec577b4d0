from decimal import Decimal

import pytest

from db import get_session
from db.models import AuthEvent, Consumable
from tests.factories import ConsumableFactory, StaffFactory, ToolFactory


def _sign_in(client, staff):
    """Bind the test client's session cookie to staff; returns the bearer token."""
    response = client.post("/api/v1/session", json={"job_code": staff.job_code})
    assert response.status_code == 200
    return response.get_json()["token"]


@pytest.fixture
def admin(session):
    return StaffFactory(admin=True)


@pytest.fixture
def worker(session):
    return StaffFactory()


def test_health_ok(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.get_json() == {"ok": True}


def test_units_catalogue(client):
    data = client.get("/api/v1/units").get_json()
    assert {u["value"] for u in data["units"]} >= {"liters", "pieces"}
    assert [s["value"] for s in data["stock_levels"]][0] == "out_of_stock"


# ── Session ────────────────────────────────────────────────────────────

def test_sign_in_by_job_code(client, worker):
    response = client.post("/api/v1/session", json={"job_code": worker.job_code.lower()})
    assert response.status_code == 200
    assert response.get_json()["token"]
    assert client.get("/api/v1/session").get_json()["staff"]["uid"] == worker.uid

    client.delete("/api/v1/session")
    assert client.get("/api/v1/session").get_json() == {"staff": None}


def test_sign_in_unknown(client):
    response = client.post("/api/v1/session", json={"job_code": "NOPE"})
    assert response.status_code == 401
    assert response.get_json()["code"] == "ActorUnresolved"


def test_bearer_token_identifies_actor(app, client, admin):
    token = _sign_in(client, admin)
    cookieless = app.test_client()
    response = cookieless.post("/api/v1/tools",
                               headers={"Authorization": f"Bearer {token}"},
                               json={"name": "Drill", "brand": "Bosch", "model": "X"})
    assert response.status_code == 201


def test_tampered_token_is_rejected(app, client, admin):
    token = _sign_in(client, admin)
    cookieless = app.test_client()
    response = cookieless.post("/api/v1/tools",
                               headers={"Authorization": f"Bearer {token}x"},
                               json={"name": "Drill", "brand": "Bosch", "model": "X"})
    assert response.status_code == 401


def test_unsigned_staff_uid_header_is_ignored(client, admin):
    response = client.post("/api/v1/tools", headers={"X-Staff-Uid": admin.uid},
                           json={"name": "Drill", "brand": "Bosch", "model": "X"})
    assert response.status_code == 401


def test_staff_directory_requires_sign_in(client, worker):
    assert client.get("/api/v1/staff").status_code == 401
    _sign_in(client, worker)
    assert client.get("/api/v1/staff").get_json()["total"] == 1


def test_auth_events_are_logged(session, client, admin, worker):
    client.post("/api/v1/session", json={"job_code": "NOPE"})
    _sign_in(client, worker)
    client.delete("/api/v1/session")
    _sign_in(client, admin)

    session.expire_all()
    actions = [e.action for e in session.query(AuthEvent).order_by(AuthEvent.id)]
    assert actions == ["login_failed", "login", "logout", "login"]

    events = client.get(f"/api/v1/auth-events?staff_uid={worker.uid}").get_json()["events"]
    assert [e["action"] for e in events] == ["logout", "login"]

    profile = client.get(f"/api/v1/staff/{worker.uid}").get_json()
    assert profile["login_count"] == 1
    assert profile["last_login"] is not None


def test_auth_events_need_supervisor(client, worker):
    _sign_in(client, worker)
    assert client.get("/api/v1/auth-events").status_code == 403


# ── Tools ──────────────────────────────────────────────────────────────

def test_create_tool_and_scan(client, admin):
    _sign_in(client, admin)
    response = client.post("/api/v1/tools",
                           json={"name": "Drill", "brand": "Bosch", "model": "GSR 18V"})
    assert response.status_code == 201
    tool = response.get_json()
    assert tool["qr_payload"] == f"TOOL#{tool['unique_id']}"
    assert tool["status"] == "available"

    by_qr = client.get(f"/api/v1/tools/by-qr/TOOL%23{tool['unique_id']}")
    assert by_qr.status_code == 200
    assert by_qr.get_json()["id"] == tool["id"]

    svg = client.get(f"/api/v1/tools/{tool['id']}/qr.svg")
    assert svg.mimetype == "image/svg+xml"


def test_echoed_tool_body_can_be_put_back(client, admin):
    _sign_in(client, admin)
    created = client.post("/api/v1/tools",
                          json={"name": "Drill", "brand": "Bosch", "model": "X"}).get_json()
    created["name"] = "Hammer drill"
    response = client.put(f"/api/v1/tools/{created['id']}", json=created)
    assert response.status_code == 200
    assert response.get_json()["name"] == "Hammer drill"
    assert response.get_json()["unique_id"] == created["unique_id"]


def test_create_tool_requires_admin(client, worker):
    response = client.post("/api/v1/tools",
                           json={"name": "Drill", "brand": "Bosch", "model": "X"})
    assert response.status_code == 401
    _sign_in(client, worker)
    response = client.post("/api/v1/tools",
                           json={"name": "Drill", "brand": "Bosch", "model": "X"})
    assert response.status_code == 403


def test_create_tool_missing_field(client, admin):
    _sign_in(client, admin)
    response = client.post("/api/v1/tools", json={"name": "Drill", "brand": "Bosch"})
    assert response.status_code == 400
    assert response.get_json()["code"] == "ValidationError"


def test_update_rejects_identity_change(client, admin):
    tool = ToolFactory()
    _sign_in(client, admin)
    response = client.put(f"/api/v1/tools/{tool.id}",
                          json={"qr_payload": "TOOL#SOMETHING-ELSE"})
    assert response.status_code == 400


def test_checkout_flow(client, admin, worker):
    tool = ToolFactory()
    _sign_in(client, admin)
    out = client.post(f"/api/v1/tools/{tool.id}/checkout", json={"staff_uid": worker.uid})
    assert out.status_code == 200
    assert out.get_json()["tool"]["current_holder"] == worker.uid

    held = client.get(f"/api/v1/tools?holder={worker.uid}").get_json()
    assert held["total"] == 1

    back = client.post(f"/api/v1/tools/{tool.id}/checkin")
    assert back.get_json()["tool"]["status"] == "available"
    history = client.get(f"/api/v1/tools/{tool.id}/history").get_json()["history"]
    assert len(history) == 2


def test_batch_checkout_and_checkin(client, admin, worker):
    tools = [ToolFactory(), ToolFactory()]
    ids = [t.id for t in tools]
    _sign_in(client, admin)

    out = client.post("/api/v1/tools/batch/checkout",
                      json={"tool_ids": ids, "staff_uid": worker.uid})
    assert out.status_code == 200
    body = out.get_json()
    assert {h["batch_id"] for h in body["history"]} == {body["batch_id"]}
    assert client.get(f"/api/v1/tools?holder={worker.uid}").get_json()["total"] == 2

    back = client.post("/api/v1/tools/batch/checkin", json={"tool_ids": ids})
    assert back.status_code == 200
    assert back.get_json()["batch_id"] != body["batch_id"]
    assert client.get("/api/v1/tools?status=available").get_json()["total"] == 2


def test_batch_checkout_is_all_or_nothing(client, admin, worker):
    free = ToolFactory()
    taken = ToolFactory(status="checked_out", current_holder_id=admin.uid)
    _sign_in(client, admin)

    response = client.post("/api/v1/tools/batch/checkout",
                           json={"tool_ids": [free.id, taken.id], "staff_uid": worker.uid})
    assert response.status_code == 400
    assert client.get(f"/api/v1/tools/{free.id}").get_json()["status"] == "available"
    assert client.get(f"/api/v1/tools/{free.id}/history").get_json()["history"] == []


def test_unknown_tool_is_404(client):
    response = client.get("/api/v1/tools/does-not-exist")
    assert response.status_code == 404
    assert response.get_json()["code"] == "NotFound"


# ── Consumables ────────────────────────────────────────────────────────

def test_create_consumable_with_opening_stock(client, admin):
    _sign_in(client, admin)
    response = client.post("/api/v1/consumables",
                           json={"name": "Wood glue", "category": "Glue",
                                 "unit": "liters", "initial_quantity": 10})
    assert response.status_code == 201
    c = response.get_json()
    assert c["current_quantity"] == 10.0
    assert c["unit"]["abbreviation"] == "L"

    txns = client.get(f"/api/v1/consumables/{c['id']}/transactions").get_json()
    assert [t["action"] for t in txns["transactions"]] == ["restock"]
    assert txns["transactions"][0]["approved_by"] == admin.uid


@pytest.mark.parametrize("initial", ["2.5", "-3", "lots"])
def test_bad_opening_stock_saves_nothing(client, admin, initial):
    _sign_in(client, admin)
    response = client.post("/api/v1/consumables",
                           json={"name": "Sandpaper", "category": "Abrasives",
                                 "unit": "sheets", "initial_quantity": initial})
    assert response.status_code == 400
    assert response.get_json()["code"] == "InvalidQuantity"

    s = get_session()
    try:
        assert s.query(Consumable).count() == 0
    finally:
        s.close()


def test_usage_then_overdraw(client, worker):
    glue = ConsumableFactory(current_quantity=Decimal("10"))
    recipient = StaffFactory()
    _sign_in(client, worker)

    used = client.post(f"/api/v1/consumables/{glue.id}/usage",
                       json={"quantity": 4, "assigned_to": recipient.uid})
    assert used.status_code == 201
    body = used.get_json()
    assert body["transaction"]["used_by"] == worker.uid
    assert body["transaction"]["assigned_to"] == recipient.uid
    assert body["consumable"]["current_quantity"] == 6.0

    over = client.post(f"/api/v1/consumables/{glue.id}/usage",
                       json={"quantity": 7, "assigned_to": recipient.uid})
    assert over.status_code == 409
    err = over.get_json()
    assert err["code"] == "InsufficientStock"
    assert err["requested"] == 7.0 and err["available"] == 6.0


@pytest.mark.parametrize("payload, status, code", [
    ({"quantity": 0, "assigned_to": "x"}, 400, "InvalidQuantity"),
    ({"quantity": "1.0005", "assigned_to": "x"}, 400, "InvalidQuantity"),
    ({"quantity": 1}, 400, "RecipientRequired"),
])
def test_usage_rejections(client, worker, payload, status, code):
    glue = ConsumableFactory()
    _sign_in(client, worker)
    response = client.post(f"/api/v1/consumables/{glue.id}/usage", json=payload)
    assert response.status_code == status
    assert response.get_json()["code"] == code


def test_usage_without_actor(session, client):
    glue = ConsumableFactory()
    recipient = StaffFactory()
    response = client.post(f"/api/v1/consumables/{glue.id}/usage",
                           json={"quantity": 1, "assigned_to": recipient.uid})
    assert response.status_code == 401


def test_put_cannot_set_stock(client, admin):
    glue = ConsumableFactory()
    _sign_in(client, admin)
    response = client.put(f"/api/v1/consumables/{glue.id}",
                          json={"current_quantity": 500})
    assert response.status_code == 400


def test_adjustment_requires_supervisor(client, worker):
    glue = ConsumableFactory()
    boss = StaffFactory(supervisor=True)

    _sign_in(client, worker)
    response = client.post(f"/api/v1/consumables/{glue.id}/adjustments",
                           json={"delta": -1, "notes": "broken"})
    assert response.status_code == 403

    _sign_in(client, boss)
    response = client.post(f"/api/v1/consumables/{glue.id}/adjustments",
                           json={"delta": -1, "notes": "broken"})
    assert response.status_code == 201
    assert response.get_json()["consumable"]["current_quantity"] == 9.0


def test_delete_is_soft(client, admin):
    glue = ConsumableFactory()
    _sign_in(client, admin)
    assert client.delete(f"/api/v1/consumables/{glue.id}").status_code == 200
    listed = client.get("/api/v1/consumables").get_json()
    assert listed["total"] == 0
    assert client.get(f"/api/v1/consumables/{glue.id}").get_json()["is_active"] is False


def test_dashboard_and_transactions(client, admin, worker):
    glue = ConsumableFactory(current_quantity=Decimal("3"))
    _sign_in(client, worker)
    client.post(f"/api/v1/consumables/{glue.id}/usage",
                json={"quantity": 2, "assigned_to": worker.uid})

    dash = client.get("/api/v1/dashboard").get_json()
    assert dash["consumables"]["low_stock"] == 1
    assert dash["low_stock"][0]["id"] == glue.id

    assert client.get("/api/v1/transactions").status_code == 403
    _sign_in(client, admin)
    log = client.get("/api/v1/transactions?action=usage").get_json()
    assert len(log["transactions"]) == 1
