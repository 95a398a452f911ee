from bootsee.models import User, Captain
from bootsee.routers import auth as auth_routes

from conftest import PNG_BYTES, auth_headers


def test_register_login_and_me(client):
    res = client.post("/api/auth/register", json={
        "full_name": "Asha Rider", "email": "asha@bootsee.in", "password": "secret123",
    })
    assert res.status_code == 201
    assert res.json()["role"] == "rider"
    assert "access_token" in res.cookies

    login = client.post("/api/auth/login", json={"email": "asha@bootsee.in", "password": "secret123"})
    me = client.get("/api/auth/me", headers=auth_headers(login))
    assert me.status_code == 200
    assert me.json()["email"] == "asha@bootsee.in"
    assert me.json()["role"] == "rider"


def test_duplicate_email_rejected(client, register_rider):
    register_rider(email="dup@bootsee.in")
    res = client.post("/api/auth/register", json={
        "full_name": "Someone", "email": "dup@bootsee.in", "password": "secret123",
    })
    assert res.status_code == 400


def test_wrong_password(client, register_rider):
    register_rider(email="asha@bootsee.in")
    res = client.post("/api/auth/login", json={"email": "asha@bootsee.in", "password": "nope-nope"})
    assert res.status_code == 401


def test_me_requires_token(client):
    client.cookies.clear()
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_captain_register_creates_verified_profile(client, register_captain, db):
    headers = register_captain(online=False, location=None)
    profile = client.get("/api/profile/captain", headers=headers).json()
    assert profile["driving_license_verified"] is True
    assert profile["aadhar_verified"] is True
    assert profile["vehicle_number"] == "DL01AB1234"
    assert profile["rating"] == 0.0
    assert profile["is_online"] is False


def _captain_form(**overrides):
    form = {
        "full_name": "Ravi", "email": "ravi@bootsee.in", "phone": "9123456780",
        "password": "secret123", "confirm_password": "secret123",
        "vehicle_number": "DL01AB1234", "vehicle_model": "Pulsar",
    }
    form.update(overrides)
    return form


def test_captain_register_rejects_invalid_license(client, db):
    res = client.post("/api/auth/captain/register", data=_captain_form(), files={
        "license_doc": ("driving_license_invalid.png", PNG_BYTES, "image/png"),
        "aadhar_doc": ("aadhar.png", PNG_BYTES, "image/png"),
    })
    assert res.status_code == 422
    assert db.query(User).count() == 0
    assert db.query(Captain).count() == 0


def test_captain_register_requires_license_document(client):
    res = client.post("/api/auth/captain/register", data=_captain_form(), files={
        "license_doc": ("pan_card.png", PNG_BYTES, "image/png"),
        "aadhar_doc": ("aadhar.png", PNG_BYTES, "image/png"),
    })
    assert res.status_code == 422
    assert "driving license" in res.json()["detail"]


def test_captain_register_password_mismatch(client):
    res = client.post("/api/auth/captain/register", data=_captain_form(confirm_password="different"), files={
        "license_doc": ("license.png", PNG_BYTES, "image/png"),
        "aadhar_doc": ("aadhar.png", PNG_BYTES, "image/png"),
    })
    assert res.status_code == 400
    assert res.json()["detail"] == "Passwords do not match"


def test_firebase_login_creates_rider(client, monkeypatch):
    monkeypatch.setattr(auth_routes, "verify_firebase_token",
                        lambda token: {"uid": "fb-123", "email": "fb@bootsee.in", "name": "Fire Base"})
    res = client.post("/api/auth/firebase-login", json={"firebase_token": "anything"})
    me = client.get("/api/auth/me", headers=auth_headers(res)).json()
    assert me["full_name"] == "Fire Base"
    assert me["role"] == "rider"


def test_rider_cannot_use_captain_endpoints(client, register_rider):
    headers = register_rider()
    assert client.post("/api/captain/status", json={"is_online": True}, headers=headers).status_code == 403


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["name"] == "BOOTS Ride"


def test_token_endpoints_document_token_schema(client):
    paths = client.get("/openapi.json").json()["paths"]
    for path, code in (("/api/auth/register", "201"), ("/api/auth/captain/register", "201"),
                       ("/api/auth/login", "200"), ("/api/auth/firebase-login", "200")):
        schema = paths[path]["post"]["responses"][code]["content"]["application/json"]["schema"]
        assert schema == {"$ref": "#/components/schemas/TokenResponse"}

    res = client.post("/api/auth/register", json={
        "full_name": "Kiran", "email": "kiran@bootsee.in", "password": "secret123",
    })
    assert set(res.json()) == {"access_token", "token_type", "role"}
