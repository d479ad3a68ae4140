from datetime import timedelta

from conftest import FINALIZE_PATH, walk_to
from tgest.services.time_rules import local_today


def test_chart_of_accounts_is_seeded(client):
    codes = [a["code"] for a in client.get("/api/financeiro/plano-contas").json()]
    assert "1.01" in codes and "2.12" in codes


def test_order_receivable_is_received_into_cash_flow(client, part, order):
    client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 2})
    receivable = walk_to(client, order["id"], *FINALIZE_PATH)["created"]["receivable"]

    listed = client.get("/api/financeiro/contas-receber", params={"status": "OPEN"}).json()
    assert [(r["id"], r["amount"], r["account"]["code"]) for r in listed] == [(receivable["id"], 20, "1.01")]

    r = client.post(f"/api/financeiro/contas-receber/{receivable['id']}/receber", json={"payment_method": "PIX"})
    assert r.status_code == 200, r.text
    assert r.json()["receivable"]["status"] == "RECEIVED"
    assert client.post(f"/api/financeiro/contas-receber/{receivable['id']}/receber").status_code == 400

    flow = client.get("/api/financeiro/fluxo-caixa").json()
    assert flow["total_inflow"] == 20
    assert flow["closing_balance"] == 20


def test_payable_lifecycle(client):
    due = (local_today() + timedelta(days=10)).isoformat()
    r = client.post(
        "/api/financeiro/contas-pagar",
        json={"description": "Aluguel", "amount": 1500, "due_on": due, "account_code": "2.04"},
    )
    assert r.status_code == 201, r.text
    payable = r.json()

    summary = client.get("/api/financeiro/resumo").json()
    assert summary["payables"]["open_amount"] == 1500

    r = client.post(f"/api/financeiro/contas-pagar/{payable['id']}/pagar", json={})
    assert r.json()["payable"]["status"] == "PAID"
    flow = client.get("/api/financeiro/fluxo-caixa").json()
    assert flow["total_outflow"] == 1500
    assert flow["days"][-1]["balance"] == -1500


def test_manual_receivable_validation(client, customer):
    due = local_today().isoformat()
    r = client.post("/api/financeiro/contas-receber", json={"description": "Venda", "amount": 0, "due_on": due})
    assert r.status_code == 400
    r = client.post(
        "/api/financeiro/contas-receber",
        json={"description": "Venda", "amount": 50, "due_on": due, "account_code": "9.99"},
    )
    assert r.status_code == 404

    r = client.post(
        "/api/financeiro/contas-receber",
        json={"description": "Venda", "amount": 50, "due_on": due, "customer_id": customer["id"]},
    )
    receivable_id = r.json()["id"]
    assert client.delete(f"/api/financeiro/contas-receber/{receivable_id}").status_code == 200
    assert client.delete(f"/api/financeiro/contas-receber/{receivable_id}").status_code == 400


def test_cash_flow_rejects_inverted_range(client):
    today = local_today()
    r = client.get(
        "/api/financeiro/fluxo-caixa",
        params={"date_from": today.isoformat(), "date_to": (today - timedelta(days=1)).isoformat()},
    )
    assert r.status_code == 400


def test_reports_after_a_finalized_order(client, part, order):
    client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 2})
    walk_to(client, order["id"], *FINALIZE_PATH)

    profit = client.get("/api/relatorios/lucratividade").json()
    assert profit["summary"]["revenue"] == 20
    assert profit["summary"]["parts_cost"] == 12
    assert profit["summary"]["gross_profit"] == 8

    parts = client.get("/api/relatorios/curva-abc/pecas").json()
    assert [(p["part_id"], p["abc_class"]) for p in parts["items"]] == [(part["id"], "C")]

    customers = client.get("/api/relatorios/curva-abc/clientes").json()
    assert customers["items"][0]["revenue"] == 20

    dashboard = client.get("/api/relatorios/dashboard", params={"days": 7}).json()
    assert dashboard["orders_finalized"] == 1
    assert dashboard["revenue"] == 20


def test_profitability_nets_out_the_order_discount(client, part, order):
    client.post(f"/api/ordens-servico/{order['id']}/pecas", json={"part_id": part["id"], "quantity": 2})
    client.put(f"/api/ordens-servico/{order['id']}", json={"discount": 5})
    walk_to(client, order["id"], *FINALIZE_PATH)

    profit = client.get("/api/relatorios/lucratividade").json()
    row = profit["orders"][0]
    assert (row["gross_revenue"], row["discount"], row["revenue"]) == (20, 5, 15)
    assert row["gross_profit"] == 3
    assert profit["summary"]["discounts"] == 5
    assert profit["summary"]["revenue"] == 15
    assert profit["summary"]["gross_profit"] == 3
