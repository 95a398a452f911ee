import logging
from typing import Dict, List

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

PENDING_ROOM = "pending"


def ride_room(ride_id: int) -> str:
    return f"ride:{ride_id}"


class WebSocketHub:
    """Rooms of connected sockets; replaces client-side snapshot listeners."""

    def __init__(self):
        self.rooms: Dict[str, List[WebSocket]] = {}

    async def connect(self, room: str, ws: WebSocket):
        await ws.accept()
        self.rooms.setdefault(room, []).append(ws)

    def disconnect(self, room: str, ws: WebSocket):
        sockets = self.rooms.get(room)
        if sockets and ws in sockets:
            sockets.remove(ws)
            if not sockets:
                del self.rooms[room]

    async def broadcast(self, room: str, message: dict):
        dead = []
        for ws in list(self.rooms.get(room, [])):
            if ws.client_state != WebSocketState.CONNECTED:
                dead.append(ws)
                continue
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.info("Dropping socket in %s: %s", room, e)
                dead.append(ws)
        for ws in dead:
            self.disconnect(room, ws)


hub = WebSocketHub()


def ride_event(event: str, ride) -> dict:
    return {
        "type": event,
        "ride_id": ride.id,
        "status": ride.status.value,
        "captain_id": ride.captain_id,
        "captain_lat": ride.captain_lat,
        "captain_lng": ride.captain_lng,
        "fare": ride.fare,
    }


async def publish_ride(event: str, ride):
    message = ride_event(event, ride)
    await hub.broadcast(ride_room(ride.id), message)
    await hub.broadcast(PENDING_ROOM, message)
