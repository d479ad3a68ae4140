from datetime import datetime, timedelta

import pytest

from conftest import FINALIZE_PATH, walk_to
from tgest.models.models import Survey

ANSWER = {"service_rating": 5, "quality_rating": 4, "timeliness_rating": 5, "price_rating": 4}


@pytest.fixture
def survey(client, order):
    body = walk_to(client, order["id"], *FINALIZE_PATH)
    return body["created"]["survey"]


def test_finalizing_issues_exactly_one_survey(client, order, survey):
    assert survey["link"].endswith(f"/pesquisa/{survey['token']}")
    r = client.post("/api/pesquisas", json={"order_id": order["id"]})
    assert r.status_code == 409
    assert len(client.get("/api/pesquisas").json()) == 1


def test_open_and_answer_by_token(client, survey):
    r = client.get(f"/api/pesquisas/token/{survey['token']}")
    assert r.status_code == 200
    assert r.json()["plate"] == "ABC1234"

    r = client.post(f"/api/pesquisas/responder/{survey['token']}", json={**ANSWER, "recommend": True, "comment": "Ótimo"})
    assert r.status_code == 200, r.text
    assert r.json()["average"] == 4.5

    r = client.post(f"/api/pesquisas/responder/{survey['token']}", json={**ANSWER, "recommend": True})
    assert r.status_code == 400


def test_ratings_must_be_in_range(client, survey):
    r = client.post(f"/api/pesquisas/responder/{survey['token']}", json={**ANSWER, "price_rating": 6})
    assert r.status_code == 400


def test_expired_survey_is_marked(client, db, survey):
    row = db.get(Survey, survey["id"])
    row.created_at = datetime.utcnow() - timedelta(days=31)
    db.commit()

    r = client.get(f"/api/pesquisas/token/{survey['token']}")
    assert r.status_code == 400
    assert r.json()["code"] == "SURVEY_EXPIRED"

    db.expire_all()
    assert db.get(Survey, survey["id"]).status == "EXPIRED"
    r = client.post(f"/api/pesquisas/responder/{survey['token']}", json={**ANSWER, "recommend": True})
    assert r.status_code == 400


def test_send_survey_uses_the_sender(client, sender, survey):
    r = client.post(f"/api/pesquisas/{survey['id']}/enviar", json={"channel": "SMS"})
    assert r.status_code == 200, r.text
    assert r.json()["survey"]["status"] == "SENT"
    assert r.json()["notification"]["status"] == "SENT"
    assert sender.sent[-1]["channel"] == "SMS"
    assert survey["token"] in sender.sent[-1]["message"]


def test_survey_stays_pending_when_delivery_fails(client, sender, survey):
    sender.fail = True
    r = client.post(f"/api/pesquisas/{survey['id']}/enviar", json={"channel": "EMAIL"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["notification"]["status"] == "ERROR"
    assert body["survey"]["status"] == "PENDING"
    assert body["survey"]["sent_at"] is None
    assert body["message"] == "Survey could not be delivered"


def test_nps_and_statistics(client, customer, vehicle):
    answers = [True, True, True, False]
    for recommend in answers:
        order = client.post(
            "/api/ordens-servico", json={"customer_id": customer["id"], "vehicle_id": vehicle["id"]}
        ).json()
        token = walk_to(client, order["id"], *FINALIZE_PATH)["created"]["survey"]["token"]
        client.post(f"/api/pesquisas/responder/{token}", json={**ANSWER, "recommend": recommend})

    nps = client.get("/api/pesquisas/nps").json()
    assert (nps["promoters"], nps["detractors"], nps["total_responses"]) == (3, 1, 4)
    assert nps["nps"] == 50
    assert nps["classification"] == "Very Good"

    stats = client.get("/api/pesquisas/estatisticas").json()
    assert stats["answered"] == 4
    assert stats["response_rate"] == 100
    assert stats["averages"]["service_rating"] == 5


def test_answered_survey_cannot_be_deleted(client, survey):
    client.post(f"/api/pesquisas/responder/{survey['token']}", json=ANSWER)
    assert client.delete(f"/api/pesquisas/{survey['id']}").status_code == 400
