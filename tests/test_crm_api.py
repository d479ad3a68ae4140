from datetime import datetime, timedelta

from conftest import FINALIZE_PATH, walk_to
from tgest.models.models import ServiceOrder


def _finalized_order(client, db, customer, vehicle, part, days_ago, quantity=1):
    order = client.post(
        "/api/ordens-servico", json={"customer_id": customer["id"], "vehicle_id": vehicle["id"]}
    ).json()
    client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": quantity})
    walk_to(client, order["id"], *FINALIZE_PATH)
    db.expire_all()
    row = db.get(ServiceOrder, order["id"])
    row.closed_at = datetime.utcnow() - timedelta(days=days_ago)
    db.commit()
    return order


def test_customer_without_orders_has_no_history(client, customer):
    analysis = client.get("/api/crm/retencao").json()
    row = next(r for r in analysis["customers"] if r["customer_id"] == customer["id"])
    assert row["retention_status"] == "NO_HISTORY"
    assert analysis["summary"]["NO_HISTORY"]["count"] == 1


def test_retention_follows_last_finalized_order(client, db, customer, vehicle, part):
    _finalized_order(client, db, customer, vehicle, part, days_ago=200)
    rows = client.get("/api/crm/retencao", params={"status": "INACTIVE"}).json()["customers"]
    assert [r["customer_id"] for r in rows] == [customer["id"]]

    _finalized_order(client, db, customer, vehicle, part, days_ago=5)
    rows = client.get("/api/crm/retencao").json()["customers"]
    row = next(r for r in rows if r["customer_id"] == customer["id"])
    assert row["retention_status"] == "ACTIVE"
    assert row["total_visits"] == 2
    assert row["lifetime_value"] == 20


def test_invalid_retention_filter(client):
    assert client.get("/api/crm/retencao", params={"status": "GONE"}).status_code == 400


def test_loss_risk(client, db, customer, vehicle, part):
    _finalized_order(client, db, customer, vehicle, part, days_ago=400)
    risk = client.get(f"/api/crm/clientes/{customer['id']}/risco-perda").json()
    # 40 (over a year) + 30 (single visit) + 20 (low ticket)
    assert risk["score"] == 90
    assert risk["level"] == "CRITICAL"
    assert risk["retention_status"] == "LOST"


def test_profile_and_history(client, customer, order):
    r = client.post(
        f"/api/crm/clientes/{customer['id']}/historico",
        json={"type": "CONTACT", "description": "Ligou pedindo orçamento", "user": "ana"},
    )
    assert r.status_code == 201

    profile = client.get(f"/api/crm/clientes/{customer['id']}/perfil").json()
    assert profile["customer"]["name"] == "Jane"
    assert profile["open_orders"] == 1
    assert profile["retention_status"] == "NO_HISTORY"
    assert profile["preferences"]["receive_reminders"] is True
    types = [h["type"] for h in profile["recent_history"]]
    assert "CONTACT" in types and "ORDER_CREATED" in types

    contacts = client.get(f"/api/crm/clientes/{customer['id']}/historico", params={"type": "CONTACT"}).json()
    assert [h["user"] for h in contacts] == ["ana"]


def test_preferences_update(client, customer):
    r = client.put(
        f"/api/crm/clientes/{customer['id']}/preferencias",
        json={"receive_promotions": False, "preferred_channel": "EMAIL"},
    )
    assert r.status_code == 200
    prefs = client.get(f"/api/crm/clientes/{customer['id']}/preferencias").json()
    assert prefs["receive_promotions"] is False
    assert prefs["preferred_channel"] == "EMAIL"
    assert prefs["receive_surveys"] is True


def test_unknown_customer_profile_is_a_404(client):
    assert client.get("/api/crm/clientes/999/perfil").status_code == 404


def test_dashboard(client, customer):
    r = client.get("/api/crm/dashboard")
    assert r.status_code == 200
    assert r.json()["retention"]["NO_HISTORY"]["count"] == 1
