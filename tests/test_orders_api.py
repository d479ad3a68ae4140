import pytest
from sqlalchemy.exc import IntegrityError

from conftest import FINALIZE_PATH, walk_to
from tgest.models.models import OrderService, Part, Receivable, Reminder, ServiceOrder, Survey
from tgest.services.time_rules import local_today


def _stock(db, part_id):
    db.expire_all()
    return db.get(Part, part_id).stock


def test_create_order_gets_sequential_number(client, customer, vehicle):
    year = local_today().year
    first = client.post("/api/ordens-servico", json={"customer_id": customer["id"], "vehicle_id": vehicle["id"]})
    second = client.post("/api/ordens-servico", json={"customer_id": customer["id"], "vehicle_id": vehicle["id"]})
    assert first.status_code == 201
    assert first.json()["status"] == "AWAITING_DIAGNOSIS"
    assert first.json()["number"] == f"OS{year}-0001"
    assert second.json()["number"] == f"OS{year}-0002"


def test_missing_customer_is_a_400(client, vehicle):
    r = client.post("/api/ordens-servico", json={"vehicle_id": vehicle["id"]})
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_unknown_vehicle_is_a_404(client, customer):
    r = client.post("/api/ordens-servico", json={"customer_id": customer["id"], "vehicle_id": 999})
    assert r.status_code == 404


def test_full_order_lifecycle(client, db, part, order):
    r = client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 2})
    assert r.status_code == 201, r.text
    assert r.json()["order"]["total"] == 20
    assert _stock(db, part["id"]) == 8

    r = client.post(
        f"/api/ordens-servico/{order['id']}/servicos",
        json={"description": "Troca de óleo", "quantity": 1, "unit_price": 0},
    )
    assert r.status_code == 201, r.text

    body = walk_to(client, order["id"], *FINALIZE_PATH)
    assert body["order"]["status"] == "FINALIZED"
    assert body["order"]["closed_at"] is not None
    assert body["created"]["receivable"]["amount"] == 20
    assert body["created"]["survey"]["token"]
    assert [x["type"] for x in body["created"]["reminders"]] == ["OIL_CHANGE"]

    db.expire_all()
    assert db.query(Survey).filter(Survey.order_id == order["id"]).count() == 1
    receivables = db.query(Receivable).filter(Receivable.order_id == order["id"]).all()
    assert [r.amount for r in receivables] == [20]
    assert db.query(Reminder).filter(Reminder.order_id == order["id"]).count() == 1


def test_finalizing_without_maintenance_services_creates_no_reminder(client, db, part, order):
    client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 1})
    body = walk_to(client, order["id"], *FINALIZE_PATH)
    assert body["created"]["reminders"] == []
    db.expire_all()
    assert db.query(Reminder).count() == 0


def test_total_follows_line_items_and_discount(client, part, order):
    client.put(f"/api/ordens-servico/{order['id']}", json={"discount": 5})
    client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 3})
    r = client.post(
        f"/api/ordens-servico/{order['id']}/servicos",
        json={"description": "Mão de obra", "quantity": 2, "unit_price": 50},
    )
    o = r.json()["order"]
    assert o["parts_total"] == 30
    assert o["services_total"] == 100
    assert o["total"] == 125

    service_id = r.json()["item"]["id"]
    r = client.delete(f"/api/ordens-servico/{order['id']}/servicos/{service_id}")
    assert r.json()["order"]["total"] == 25


def test_discount_larger_than_items_is_not_clamped(client, db, part, order):
    client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 1})
    r = client.put(f"/api/ordens-servico/{order['id']}", json={"discount": 15})
    assert r.status_code == 200, r.text
    o = r.json()
    assert (o["parts_total"], o["services_total"], o["discount"]) == (10, 0, 15)
    assert o["total"] == o["parts_total"] + o["services_total"] - o["discount"] == -5

    body = walk_to(client, order["id"], *FINALIZE_PATH)
    assert "receivable" not in body["created"]
    db.expire_all()
    assert db.query(Receivable).filter(Receivable.order_id == order["id"]).count() == 0


def test_line_total_is_generated_by_the_store(client, db, order):
    r = client.post(
        f"/api/ordens-servico/{order['id']}/servicos",
        json={"description": "Balanceamento", "quantity": 3, "unit_price": 12.5},
    )
    assert r.status_code == 201, r.text
    assert r.json()["item"]["line_total"] == 37.5
    db.expire_all()
    assert db.get(OrderService, r.json()["item"]["id"]).line_total == 37.5


def test_store_rejects_negative_stock_and_unknown_status(db, customer, vehicle):
    db.add(Part(name="Pastilha de freio", code="PF-001", stock=-5))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

    db.add(ServiceOrder(number="OS1999-0001", customer_id=customer["id"], vehicle_id=vehicle["id"], status="LOST"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_insufficient_stock_leaves_stock_untouched(client, db, part, order):
    r = client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 11})
    assert r.status_code == 400
    assert r.json()["code"] == "INSUFFICIENT_STOCK"
    assert _stock(db, part["id"]) == 10
    detail = client.get(f"/api/ordens-servico/{order['id']}").json()
    assert detail["parts"] == []
    assert detail["total"] == 0


def test_removing_a_part_restores_exactly_its_quantity(client, db, part, order):
    r = client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 4})
    item_id = r.json()["item"]["id"]
    assert _stock(db, part["id"]) == 6

    r = client.delete(f"/api/ordens-servico/{order['id']}/pecas/{item_id}")
    assert r.status_code == 200
    assert r.json()["order"]["total"] == 0
    assert _stock(db, part["id"]) == 10

    movements = client.get(f"/api/estoque/movimentacoes/peca/{part['id']}").json()["movements"]
    assert sorted(m["type"] for m in movements) == ["EXIT", "RETURN"]


def test_illegal_transition_is_a_409(client, order):
    r = client.patch(f"/api/ordens-servico/{order['id']}/status", json={"status": "FINALIZED"})
    assert r.status_code == 409
    assert r.json()["code"] == "ILLEGAL_TRANSITION"


def test_invalid_status_is_a_400(client, order):
    r = client.patch(f"/api/ordens-servico/{order['id']}/status", json={"status": "PARKED"})
    assert r.status_code == 400


def test_finalized_order_is_closed_for_line_items(client, part, order):
    walk_to(client, order["id"], *FINALIZE_PATH)
    r = client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 1})
    assert r.status_code == 409
    assert r.json()["code"] == "ORDER_CLOSED"


def test_list_paginates_and_kanban_groups(client, order):
    r = client.get("/api/ordens-servico", params={"page": 1, "limit": 10})
    assert r.status_code == 200
    body = r.json()
    assert body["pagination"]["total"] == 1
    assert body["data"][0]["number"] == order["number"]

    kanban = client.get("/api/ordens-servico/kanban").json()
    assert [o["id"] for o in kanban["AWAITING_DIAGNOSIS"]] == [order["id"]]


def test_checklist_and_photo_upload(client, order, storage):
    r = client.post(f"/api/ordens-servico/{order['id']}/checklist", json={"item": "Pneus", "status": "OK"})
    assert r.status_code == 201, r.text
    item_id = r.json()["id"]

    r = client.post(
        f"/api/ordens-servico/{order['id']}/checklist/{item_id}/foto",
        files={"file": ("pneu.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")},
    )
    assert r.status_code == 200, r.text
    url = r.json()["url"]
    assert url.startswith("/uploads/checklist-")
    assert storage.exists(url[len("/uploads/"):])

    r = client.post(
        f"/api/ordens-servico/{order['id']}/checklist/{item_id}/foto",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert r.status_code == 400


def test_communications_log(client, order):
    r = client.post(f"/api/ordens-servico/{order['id']}/comunicacoes", json={"type": "PHONE", "content": "Called"})
    assert r.status_code == 201
    entries = client.get(f"/api/ordens-servico/{order['id']}/comunicacoes").json()
    assert "Called" in [e["content"] for e in entries]
