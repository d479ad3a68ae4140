import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["NOTIFICATION_SENDER"] = "fake"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="tgest-uploads-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tgest.db import Base, get_db
from tgest.main import app
from tgest.services.notifications import FakeSender, get_sender
from tgest.services.seed import seed_reference_data
from tgest.storage.local_provider import LocalStorageProvider, get_storage


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    db = factory()
    try:
        seed_reference_data(db)
    finally:
        db.close()
    return factory


@pytest.fixture
def db(session_factory):
    """A session for looking at rows directly; call expire_all() after API writes."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def storage(tmp_path):
    return LocalStorageProvider(base_dir=str(tmp_path / "uploads"), max_bytes=1024)


@pytest.fixture
def client(session_factory, sender, storage):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sender] = lambda: sender
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def customer(client):
    r = client.post("/api/clientes", json={"name": "Jane", "phone": "555-0100", "email": "jane@example.com"})
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def vehicle(client, customer):
    r = client.post(
        "/api/veiculos",
        json={"customer_id": customer["id"], "plate": "ABC1234", "make": "Fiat", "model": "Uno", "year": 2015},
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def part(client):
    r = client.post(
        "/api/pecas",
        json={"name": "Filtro de óleo", "code": "FO-001", "cost_price": 6, "sale_price": 10, "stock": 10},
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture
def order(client, customer, vehicle):
    r = client.post("/api/ordens-servico", json={"customer_id": customer["id"], "vehicle_id": vehicle["id"]})
    assert r.status_code == 201, r.text
    return r.json()


def walk_to(client, order_id, *statuses):
    for status in statuses:
        r = client.patch(f"/api/ordens-servico/{order_id}/status", json={"status": status})
        assert r.status_code == 200, r.text
    return r.json()


FINALIZE_PATH = ("AWAITING_APPROVAL", "IN_REPAIR", "READY_FOR_PICKUP", "FINALIZED")
