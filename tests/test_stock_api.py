from tgest.services.time_rules import local_today


def test_positive_and_negative_adjustments(client, part):
    r = client.post(
        "/api/estoque/ajuste",
        json={"part_id": part["id"], "quantity": 5, "reason": "Inventário", "user": "ana"},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert (body["previous_stock"], body["new_stock"], body["adjusted_quantity"]) == (10, 15, 5)

    r = client.post("/api/estoque/ajuste", json={"part_id": part["id"], "quantity": -15, "reason": "Quebra"})
    assert r.json()["new_stock"] == 0

    movements = client.get("/api/estoque/movimentacoes", params={"part_id": part["id"]}).json()
    assert len(movements) == 2
    assert {(m["previous_stock"], m["new_stock"]) for m in movements} == {(10, 15), (15, 0)}


def test_adjustment_cannot_go_negative(client, part):
    r = client.post("/api/estoque/ajuste", json={"part_id": part["id"], "quantity": -11, "reason": "Perda"})
    assert r.status_code == 400
    assert r.json()["code"] == "NEGATIVE_STOCK"
    assert client.get(f"/api/pecas/{part['id']}").json()["stock"] == 10


def test_adjustment_requires_reason(client, part):
    r = client.post("/api/estoque/ajuste", json={"part_id": part["id"], "quantity": 1, "reason": "  "})
    assert r.status_code == 400
    r = client.post("/api/estoque/ajuste", json={"part_id": part["id"], "quantity": 1})
    assert r.status_code == 400


def test_low_stock_alert(client, part):
    client.post("/api/estoque/ajuste", json={"part_id": part["id"], "quantity": -7, "reason": "Venda balcão"})
    alerts = client.get("/api/pecas/alertas/estoque-baixo").json()
    assert [(a["id"], a["missing"]) for a in alerts] == [(part["id"], 2)]


def test_purchase_order_receipt_adds_stock(client, part):
    supplier = client.post("/api/fornecedores", json={"name": "Auto Peças Silva", "tax_id": "12.345.678/0001-90"})
    assert supplier.status_code == 201, supplier.text

    r = client.post(
        "/api/estoque/ordens-compra",
        json={"supplier_id": supplier.json()["id"], "items": [{"part_id": part["id"], "quantity": 20, "unit_cost": 5.5}]},
    )
    assert r.status_code == 201, r.text
    po = r.json()
    assert po["number"].startswith("OC")
    assert po["total"] == 110

    url = f"/api/estoque/ordens-compra/{po['id']}/status"
    assert client.patch(url, json={"status": "RECEIVED"}).status_code == 409
    assert client.patch(url, json={"status": "APPROVED"}).status_code == 200
    r = client.patch(url, json={"status": "RECEIVED"})
    assert r.status_code == 200
    assert r.json()["received_at"] is not None

    updated = client.get(f"/api/pecas/{part['id']}").json()
    assert updated["stock"] == 30
    assert updated["cost_price"] == 5.5


def test_turnover_requires_dates(client, part):
    assert client.get("/api/estoque/giro").status_code == 400
    today = local_today().isoformat()
    r = client.get("/api/estoque/giro", params={"date_from": today, "date_to": today})
    assert r.status_code == 200
    assert r.json()["date_from"] == today
