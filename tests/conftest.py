import os
import tempfile

# Must be set before bootsee.config is imported.
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="bootsee-uploads-"))
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bootsee.database import get_db, init_db
from bootsee.main import create_app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

# Connaught Place and India Gate, New Delhi
PICKUP = {"lat": 28.6315, "lng": 77.2167}
DROP = {"lat": 28.6129, "lng": 77.2295}


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    app = create_app(use_lifespan=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c


def auth_headers(response):
    assert response.status_code in (200, 201), response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def register_rider(client):
    def _register(email="rider@bootsee.in", name="Asha Rider"):
        res = client.post("/api/auth/register", json={
            "full_name": name, "email": email, "password": "secret123", "phone": "98765 43210",
        })
        return auth_headers(res)
    return _register


@pytest.fixture
def register_captain(client):
    def _register(email="captain@bootsee.in", name="Ravi Captain", online=True, location=PICKUP,
                  vehicle_type="bike"):
        res = client.post(
            "/api/auth/captain/register",
            data={
                "full_name": name, "email": email, "phone": "9123456780",
                "password": "secret123", "confirm_password": "secret123",
                "vehicle_number": "dl01ab1234", "vehicle_model": "Honda Activa",
                "vehicle_type": vehicle_type,
            },
            files={
                "license_doc": ("driving_license.png", PNG_BYTES, "image/png"),
                "aadhar_doc": ("aadhar_card.png", PNG_BYTES, "image/png"),
            },
        )
        headers = auth_headers(res)
        if online:
            assert client.post("/api/captain/status", json={"is_online": True}, headers=headers).status_code == 200
        if location:
            assert client.post("/api/captain/location", json=location, headers=headers).status_code == 200
        return headers
    return _register


@pytest.fixture
def request_ride(client):
    def _request(headers, **overrides):
        body = {
            "pickup": PICKUP, "drop": DROP,
            "pickup_address": "Connaught Place", "drop_address": "India Gate",
            "vehicle_type": "bike", "payment_method": "upi",
        }
        body.update(overrides)
        res = client.post("/api/rides", json=body, headers=headers)
        assert res.status_code == 201, res.text
        return res.json()
    return _request
