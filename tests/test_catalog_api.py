def test_customer_requires_name_and_phone(client):
    r = client.post("/api/clientes", json={"name": "Sem telefone"})
    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_duplicate_customer_tax_id_is_a_409(client):
    payload = {"name": "Carlos", "phone": "555-0101", "tax_id": "123.456.789-00"}
    assert client.post("/api/clientes", json=payload).status_code == 201
    r = client.post("/api/clientes", json={**payload, "name": "Outro Carlos"})
    assert r.status_code == 409


def test_customer_soft_delete(client, customer):
    assert client.delete(f"/api/clientes/{customer['id']}").status_code == 200
    assert client.get(f"/api/clientes/{customer['id']}").json()["active"] is False
    active = client.get("/api/clientes", params={"active": True}).json()
    assert customer["id"] not in [c["id"] for c in active]


def test_customer_detail_lists_vehicles(client, customer, vehicle):
    detail = client.get(f"/api/clientes/{customer['id']}").json()
    assert [v["plate"] for v in detail["vehicles"]] == ["ABC1234"]


def test_plate_is_normalized_and_unique(client, customer, vehicle):
    r = client.post(
        "/api/veiculos",
        json={"customer_id": customer["id"], "plate": "abc 1234", "make": "VW", "model": "Gol"},
    )
    assert r.status_code == 409


def test_vehicle_for_unknown_customer_is_a_404(client):
    r = client.post("/api/veiculos", json={"customer_id": 999, "plate": "XYZ9876", "make": "VW", "model": "Gol"})
    assert r.status_code == 404


def test_vehicle_with_orders_cannot_be_deleted(client, vehicle, order):
    r = client.delete(f"/api/veiculos/{vehicle['id']}")
    assert r.status_code == 409
    assert client.get(f"/api/veiculos/{vehicle['id']}").status_code == 200


def test_vehicle_without_orders_is_deleted(client, vehicle):
    assert client.delete(f"/api/veiculos/{vehicle['id']}").status_code == 200
    assert client.get(f"/api/veiculos/{vehicle['id']}").status_code == 404


def test_duplicate_part_code_is_a_409(client, part):
    r = client.post("/api/pecas", json={"name": "Outro filtro", "code": "FO-001"})
    assert r.status_code == 409


def test_part_update_does_not_change_stock(client, part):
    r = client.put(f"/api/pecas/{part['id']}", json={"sale_price": 12, "stock": 999})
    assert r.status_code == 200
    assert r.json()["sale_price"] == 12
    assert r.json()["stock"] == 10


def test_part_search_and_soft_delete(client, part):
    found = client.get("/api/pecas", params={"search": "filtro"}).json()
    assert [p["id"] for p in found] == [part["id"]]
    client.delete(f"/api/pecas/{part['id']}")
    assert client.get(f"/api/pecas/{part['id']}").json()["active"] is False


def test_service_categories_are_seeded(client):
    categories = client.get("/api/servicos/categorias").json()
    assert "Freios" in [c["name"] for c in categories]

    r = client.post(
        "/api/servicos",
        json={"name": "Troca de pastilhas", "category_id": categories[0]["id"], "default_price": 120},
    )
    assert r.status_code == 201, r.text
    assert r.json()["category"]["id"] == categories[0]["id"]


def test_mechanic_and_supplier_uniqueness(client):
    assert client.post("/api/mecanicos", json={"name": "Pedro", "tax_id": "111"}).status_code == 201
    assert client.post("/api/mecanicos", json={"name": "Paulo", "tax_id": "111"}).status_code == 409
    assert client.post("/api/fornecedores", json={"name": "A", "tax_id": "22"}).status_code == 201
    assert client.post("/api/fornecedores", json={"name": "B", "tax_id": "22"}).status_code == 409


def test_mechanic_detail_counts_orders(client, customer, vehicle):
    mechanic = client.post("/api/mecanicos", json={"name": "Pedro"}).json()
    client.post(
        "/api/ordens-servico",
        json={"customer_id": customer["id"], "vehicle_id": vehicle["id"], "mechanic_id": mechanic["id"]},
    )
    detail = client.get(f"/api/mecanicos/{mechanic['id']}").json()
    assert detail["open_orders"] == 1
    assert detail["finalized_orders"] == 0


def test_quick_search(client, customer, vehicle):
    body = client.get("/api/busca-rapida", params={"q": "abc-1234"}).json()
    assert body["vehicle"]["plate"] == "ABC1234"
    assert client.get("/api/busca-rapida", params={"q": "Jan"}).json()["customers"][0]["name"] == "Jane"
    assert client.get("/api/busca-rapida").status_code == 400


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"
