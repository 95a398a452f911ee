from datetime import datetime, timedelta

from bootsee import safety
from bootsee.models import ContactNotification, Ride, SafetyAlert, AlertType

from conftest import PICKUP


def _add_contacts(client, headers, count=2):
    for i in range(count):
        res = client.post("/api/safety/contacts", headers=headers,
                          json={"name": f"Contact {i}", "phone": f"90000000{i:02d}", "relationship_label": "sister"})
        assert res.status_code == 201


def test_trusted_contacts_crud_and_limit(client, register_rider):
    rider = register_rider()
    _add_contacts(client, rider, 5)
    res = client.post("/api/safety/contacts", headers=rider, json={"name": "Sixth", "phone": "9000000099"})
    assert res.status_code == 400

    contacts = client.get("/api/safety/contacts", headers=rider).json()
    assert len(contacts) == 5
    assert client.delete(f"/api/safety/contacts/{contacts[0]['id']}", headers=rider).status_code == 204
    assert len(client.get("/api/safety/contacts", headers=rider).json()) == 4
    assert client.delete(f"/api/safety/contacts/{contacts[0]['id']}", headers=rider).status_code == 404


def test_duplicate_contact_phone(client, register_rider):
    rider = register_rider()
    _add_contacts(client, rider, 1)
    res = client.post("/api/safety/contacts", headers=rider, json={"name": "Again", "phone": "9000000000"})
    assert res.status_code == 400


def test_sos_notifies_contacts_and_resolves(client, register_rider, db):
    rider = register_rider()
    _add_contacts(client, rider, 2)
    alert = client.post("/api/safety/sos", headers=rider, json={"lat": 28.6, "lng": 77.2}).json()
    assert alert["alert_type"] == "sos"
    assert alert["status"] == "active"
    assert alert["details"]["message"] == "SOS button pressed"
    assert db.query(ContactNotification).filter(ContactNotification.alert_id == alert["id"]).count() == 2

    assert client.post("/api/safety/sos/resolve", headers=rider).json() == {"resolved": 1}
    assert client.get("/api/safety/alerts", params={"active": True}, headers=rider).json() == []
    # Two SOS messages plus one "resolved" message per contact.
    assert db.query(ContactNotification).count() == 4


def test_telemetry_speed_and_battery(client, register_rider):
    rider = register_rider()
    res = client.post("/api/safety/telemetry", headers=rider, json={
        "lat": 28.6, "lng": 77.2, "speed": 25.0, "battery_level": 10, "charging": False,
    })
    kinds = sorted(a["alert_type"] for a in res.json())
    assert kinds == ["battery_low", "speed"]

    calm = client.post("/api/safety/telemetry", headers=rider, json={
        "lat": 28.6, "lng": 77.2, "speed": 10.0, "battery_level": 10, "charging": True,
    })
    assert calm.json() == []


def test_route_deviation_only_for_in_progress_rides(client, register_rider, register_captain, request_ride):
    rider = register_rider()
    captain = register_captain()
    ride = request_ride(rider)
    far_away = {"lat": 28.70, "lng": 77.10, "ride_id": ride["id"]}

    assert client.post("/api/safety/telemetry", headers=rider, json=far_away).json() == []

    client.post(f"/api/captain/rides/{ride['id']}/accept", headers=captain)
    client.post(f"/api/captain/rides/{ride['id']}/start", headers=captain)
    alerts = client.post("/api/safety/telemetry", headers=rider, json=far_away).json()
    assert [a["alert_type"] for a in alerts] == ["route_deviation"]
    assert alerts[0]["details"]["distance"] > 500

    on_route = {"lat": PICKUP["lat"], "lng": PICKUP["lng"], "ride_id": ride["id"]}
    assert client.post("/api/safety/telemetry", headers=rider, json=on_route).json() == []


def test_acknowledge_alert(client, register_rider):
    rider = register_rider()
    alert = client.post("/api/safety/sos", headers=rider, json={}).json()
    res = client.post(f"/api/safety/alerts/{alert['id']}/acknowledge", headers=rider)
    assert res.json()["status"] == "acknowledged"
    other = register_rider(email="other@bootsee.in")
    assert client.post(f"/api/safety/alerts/{alert['id']}/acknowledge", headers=other).status_code == 404


def test_ride_share_view_follows_captain(client, register_rider, register_captain, request_ride):
    rider = register_rider()
    captain = register_captain()
    _add_contacts(client, rider, 1)
    ride = request_ride(rider)

    share = client.post("/api/safety/shares", headers=rider, json={"ride_id": ride["id"]}).json()
    assert share["is_active"] is True
    again = client.post("/api/safety/shares", headers=rider, json={"ride_id": ride["id"]}).json()
    assert again["token"] == share["token"]

    client.post(f"/api/captain/rides/{ride['id']}/accept", headers=captain)
    client.post("/api/captain/location", headers=captain, json={"lat": 28.625, "lng": 77.22})

    client.cookies.clear()
    view = client.get(f"/api/share/{share['token']}").json()
    assert view["status"] == "accepted"
    assert (view["lat"], view["lng"]) == (28.625, 77.22)
    assert view["captain_name"] == "Ravi Captain"

    assert client.delete(f"/api/safety/shares/{ride['id']}", headers=rider).json() == {"stopped": 1}
    assert client.get(f"/api/share/{share['token']}").status_code == 404


def test_inactivity_alert(db, client, register_rider, register_captain, request_ride):
    rider = register_rider()
    captain = register_captain()
    ride = request_ride(rider)
    client.post(f"/api/captain/rides/{ride['id']}/accept", headers=captain)
    client.post(f"/api/captain/rides/{ride['id']}/start", headers=captain)

    row = db.get(Ride, ride["id"])
    assert safety.check_inactivity(db, row) is None

    alert = safety.check_inactivity(db, row, now=datetime.utcnow() + timedelta(minutes=10))
    assert alert.alert_type == AlertType.inactivity
    assert alert.user_id == row.rider_id
    assert db.query(SafetyAlert).count() == 1
