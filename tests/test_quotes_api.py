from tgest.models.models import Part, Quote, ServiceOrder
from tgest.pdf.quote_pdf import money


def _quote(client, customer, vehicle, part, quantity=2):
    r = client.post(
        "/api/orcamentos",
        json={
            "customer_id": customer["id"],
            "vehicle_id": vehicle["id"],
            "reported_problem": "Barulho no motor",
            "services": [{"description": "Revisão completa", "unit_price": 150}],
            "parts": [{"part_id": part["id"], "quantity": quantity}],
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_quote_totals_do_not_touch_stock(client, db, customer, vehicle, part):
    quote = _quote(client, customer, vehicle, part)
    assert quote["number"].startswith("ORC")
    assert quote["status"] == "PENDING"
    assert quote["total"] == 170
    assert quote["expired"] is False
    db.expire_all()
    assert db.get(Part, part["id"]).stock == 10


def test_convert_copies_items_and_consumes_stock(client, db, customer, vehicle, part):
    quote = _quote(client, customer, vehicle, part)
    r = client.post(f"/api/orcamentos/{quote['id']}/converter", json={})
    assert r.status_code == 201, r.text
    order = r.json()["order"]
    assert order["number"].startswith("OS")
    assert order["total"] == 170
    assert [s["description"] for s in order["services"]] == ["Revisão completa"]
    assert [p["quantity"] for p in order["parts"]] == [2]

    converted = client.get(f"/api/orcamentos/{quote['id']}").json()
    assert converted["status"] == "CONVERTED"
    assert converted["order_id"] == order["id"]
    db.expire_all()
    assert db.get(Part, part["id"]).stock == 8


def test_second_conversion_is_rejected(client, db, customer, vehicle, part):
    quote = _quote(client, customer, vehicle, part)
    assert client.post(f"/api/orcamentos/{quote['id']}/converter", json={}).status_code == 201
    r = client.post(f"/api/orcamentos/{quote['id']}/converter", json={})
    assert r.status_code == 400
    assert r.json()["code"] == "ALREADY_CONVERTED"
    db.expire_all()
    assert db.query(ServiceOrder).count() == 1


def test_conversion_rechecks_stock_and_rolls_back(client, db, customer, vehicle, part):
    quote = _quote(client, customer, vehicle, part, quantity=5)
    r = client.post("/api/estoque/ajuste", json={"part_id": part["id"], "quantity": -8, "reason": "Perda"})
    assert r.status_code == 200, r.text

    r = client.post(f"/api/orcamentos/{quote['id']}/converter", json={})
    assert r.status_code == 400
    assert r.json()["code"] == "INSUFFICIENT_STOCK"

    db.expire_all()
    assert db.query(ServiceOrder).count() == 0
    assert db.get(Quote, quote["id"]).status == "PENDING"
    assert db.get(Part, part["id"]).stock == 2


def test_status_transitions(client, customer, vehicle, part):
    quote = _quote(client, customer, vehicle, part)
    r = client.patch(f"/api/orcamentos/{quote['id']}/status", json={"status": "APPROVED"})
    assert r.status_code == 200
    r = client.patch(f"/api/orcamentos/{quote['id']}/status", json={"status": "PENDING"})
    assert r.status_code == 409

    stats = client.get("/api/orcamentos/estatisticas").json()
    assert stats["total"] == 1
    assert stats["conversion_rate"] == 100


def test_pdf_export(client, customer, vehicle, part):
    quote = _quote(client, customer, vehicle, part)
    r = client.get(f"/api/orcamentos/{quote['id']}/pdf")
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert f"orcamento-{quote['number']}.pdf" in r.headers["content-disposition"]
    assert r.content.startswith(b"%PDF")


def test_converted_quote_cannot_be_deleted(client, customer, vehicle, part):
    quote = _quote(client, customer, vehicle, part)
    client.post(f"/api/orcamentos/{quote['id']}/converter", json={})
    assert client.delete(f"/api/orcamentos/{quote['id']}").status_code == 400

    other = _quote(client, customer, vehicle, part)
    assert client.delete(f"/api/orcamentos/{other['id']}").status_code == 200
    assert client.get(f"/api/orcamentos/{other['id']}").status_code == 404


def test_money_format():
    assert money(1234.56) == "R$ 1.234,56"
    assert money(None) == "R$ 0,00"
