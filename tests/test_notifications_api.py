from datetime import timedelta

from tgest.models.models import Notification
from tgest.services.notifications import SimulatedSender
from tgest.services.time_rules import local_today


def _reminder(client, customer, vehicle, days=3):
    r = client.post(
        "/api/lembretes",
        json={
            "customer_id": customer["id"],
            "vehicle_id": vehicle["id"],
            "type": "OIL_CHANGE",
            "description": "Troca de óleo",
            "due_date": (local_today() + timedelta(days=days)).isoformat(),
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_send_notification(client, sender, customer):
    r = client.post(
        "/api/notificacoes/enviar",
        json={"customer_id": customer["id"], "type": "CAMPAIGN", "channel": "EMAIL", "message": "Promoção de inverno"},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "SENT"
    assert body["recipient"] == "jane@example.com"
    assert body["attempts"] == 1
    assert sender.sent == [
        {"channel": "EMAIL", "recipient": "jane@example.com", "type": "CAMPAIGN", "message": "Promoção de inverno"}
    ]


def test_failed_delivery_can_be_resent_up_to_the_limit(client, sender, customer):
    sender.fail = True
    r = client.post(
        "/api/notificacoes/enviar",
        json={"customer_id": customer["id"], "type": "CAMPAIGN", "channel": "SMS", "message": "Oi"},
    )
    notification = r.json()
    assert notification["status"] == "ERROR"
    assert notification["error_message"] == "Forced failure"

    url = f"/api/notificacoes/{notification['id']}/reenviar"
    assert client.post(url).json()["attempts"] == 2
    assert client.post(url).json()["attempts"] == 3
    r = client.post(url)
    assert r.status_code == 400

    stats = client.get("/api/notificacoes/estatisticas").json()
    assert stats["by_status"] == {"ERROR": 1}
    assert stats["success_rate"] == 0


def test_delivered_notification_is_not_resent(client, customer):
    r = client.post(
        "/api/notificacoes/enviar",
        json={"customer_id": customer["id"], "type": "CAMPAIGN", "channel": "SMS", "message": "Oi"},
    )
    assert client.post(f"/api/notificacoes/{r.json()['id']}/reenviar").status_code == 400


def test_opt_out_is_respected(client, sender, customer):
    client.put(f"/api/crm/clientes/{customer['id']}/preferencias", json={"receive_promotions": False})
    r = client.post(
        "/api/notificacoes/enviar",
        json={"customer_id": customer["id"], "type": "CAMPAIGN", "channel": "SMS", "message": "Oi"},
    )
    assert r.status_code == 400
    assert sender.sent == []


def test_bulk_send_skips_missing_customers(client, customer):
    r = client.post(
        "/api/notificacoes/enviar-em-lote",
        json={"customer_ids": [customer["id"], 999], "channel": "WHATSAPP", "message": "Feliz Natal"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert (body["total"], body["sent"], body["failed"]) == (2, 1, 0)
    assert [s["customer_id"] for s in body["skipped"]] == [999]


def test_crm_settings(client):
    current = client.get("/api/notificacoes/configuracoes").json()
    assert current
    key = sorted(current)[0]
    r = client.put("/api/notificacoes/configuracoes", json={"values": {key: "42"}})
    assert r.status_code == 200
    assert r.json()[key] == "42"
    assert client.put("/api/notificacoes/configuracoes", json={"values": {"db_password": "x"}}).status_code == 400


def test_reminder_send_marks_it_sent(client, sender, customer, vehicle):
    reminder = _reminder(client, customer, vehicle)
    r = client.post(f"/api/lembretes/{reminder['id']}/enviar", json={"channel": "WHATSAPP"})
    assert r.status_code == 200, r.text
    assert r.json()["reminder"]["status"] == "SENT"
    assert r.json()["reminder"]["times_sent"] == 1
    assert sender.sent[0]["type"] == "REMINDER"


def test_reminder_stays_pending_when_delivery_fails(client, sender, customer, vehicle):
    sender.fail = True
    reminder = _reminder(client, customer, vehicle)
    r = client.post(f"/api/lembretes/{reminder['id']}/enviar")
    assert r.status_code == 200
    assert r.json()["reminder"]["status"] == "PENDING"
    assert r.json()["notification"]["status"] == "ERROR"


def test_due_reminders_have_urgency(client, customer, vehicle):
    _reminder(client, customer, vehicle, days=-2)
    _reminder(client, customer, vehicle, days=30)
    due = client.get("/api/lembretes/vencidos").json()
    assert [(r["urgency"], r["days_left"]) for r in due] == [("OVERDUE", -2), ("UPCOMING", 30)]


def test_reminder_requires_a_due_date_or_km(client, customer, vehicle):
    r = client.post(
        "/api/lembretes",
        json={"customer_id": customer["id"], "vehicle_id": vehicle["id"], "type": "BRAKES", "description": "Freios"},
    )
    assert r.status_code == 400


def test_simulated_sender_follows_success_rate():
    notification = Notification(channel="SMS", recipient="555-0100", type="CAMPAIGN", message="Oi")
    assert SimulatedSender(success_rate=1.0).send(notification).ok
    result = SimulatedSender(success_rate=0.0).send(notification)
    assert not result.ok
    assert result.error == "Simulated SMS delivery failure"
