import asyncio

import anyio
import pytest
from starlette.websockets import WebSocketDisconnect, WebSocketState

from bootsee.realtime import WebSocketHub


def _token(headers):
    return headers["Authorization"].split()[1]


def test_pending_feed_requires_captain(client, register_rider):
    rider = register_rider()
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/ws/rides/pending?token={_token(rider)}") as ws:
            ws.receive_json()


def test_pending_feed_receives_new_requests(client, register_rider, register_captain, request_ride):
    rider = register_rider()
    captain = register_captain()
    with client.websocket_connect(f"/ws/rides/pending?token={_token(captain)}") as ws:
        ride = request_ride(rider)
        message = ws.receive_json()
        assert message["type"] == "ride_requested"
        assert message["ride_id"] == ride["id"]
        assert message["status"] == "pending"


def test_ride_channel_follows_lifecycle(client, register_rider, register_captain, request_ride):
    rider = register_rider()
    captain = register_captain()
    ride = request_ride(rider)
    with client.websocket_connect(f"/ws/rides/{ride['id']}?token={_token(rider)}") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

        client.post(f"/api/captain/rides/{ride['id']}/accept", headers=captain)
        accepted = ws.receive_json()
        assert accepted["type"] == "ride_accepted"
        assert accepted["status"] == "accepted"

        client.post("/api/captain/location", headers=captain, json={"lat": 28.62, "lng": 77.22})
        moved = ws.receive_json()
        assert moved["type"] == "captain_location"
        assert (moved["lat"], moved["lng"]) == (28.62, 77.22)


def test_ride_channel_rejects_strangers(client, register_rider, request_ride):
    rider = register_rider()
    ride = request_ride(rider)
    stranger = register_rider(email="nosy@bootsee.in")
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/ws/rides/{ride['id']}?token={_token(stranger)}") as ws:
            ws.receive_json()


def test_malformed_frame_is_ignored(client, register_rider, register_captain, request_ride):
    rider = register_rider()
    captain = register_captain()
    with client.websocket_connect(f"/ws/rides/pending?token={_token(captain)}") as ws:
        ws.send_text("hello")
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

        ride = request_ride(rider)
        message = ws.receive_json()
        assert (message["type"], message["ride_id"]) == ("ride_requested", ride["id"])


def test_closed_socket_does_not_break_later_requests(client, register_rider, register_captain, request_ride):
    rider = register_rider()
    captain = register_captain()
    ride = request_ride(rider)
    with client.websocket_connect(f"/ws/rides/{ride['id']}?token={_token(rider)}") as ws:
        ws.send_json({"type": "ping"})
        ws.receive_json()

    res = client.post(f"/api/captain/rides/{ride['id']}/accept", headers=captain)
    assert res.status_code == 200
    assert res.json()["status"] == "accepted"


class _RecordingSocket:
    client_state = WebSocketState.CONNECTED

    def __init__(self):
        self.sent = []

    async def send_json(self, message):
        self.sent.append(message)


class _ClosedSocket:
    client_state = WebSocketState.CONNECTED

    async def send_json(self, message):
        raise anyio.ClosedResourceError


def test_broadcast_drops_sockets_that_fail_to_send():
    hub = WebSocketHub()
    alive, dead = _RecordingSocket(), _ClosedSocket()
    hub.rooms["ride:1"] = [dead, alive]

    asyncio.run(hub.broadcast("ride:1", {"type": "ride_started"}))

    assert alive.sent == [{"type": "ride_started"}]
    assert hub.rooms["ride:1"] == [alive]
