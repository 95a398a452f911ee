import json
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..errors import NotFound
from ..models import User, UserRole
from ..realtime import hub, ride_room, PENDING_ROOM
from ..rides import get_ride_for_user
from ..security import decode_access_token

logger = logging.getLogger(__name__)

ws_router = APIRouter()


def _user_for_token(db: Session, token: str):
    user_id = decode_access_token(token)
    if user_id is None:
        return None
    return db.query(User).filter(User.id == user_id, User.is_active.is_(True)).first()


async def _serve(room: str, websocket: WebSocket):
    await hub.connect(room, websocket)
    try:
        while True:
            text = await websocket.receive_text()
            try:
                data = json.loads(text)
            except ValueError:
                logger.debug("Ignoring non-JSON frame in %s", room)
                continue
            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({"type": "pong", "t": datetime.utcnow().isoformat()})
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(room, websocket)


@ws_router.websocket("/ws/rides/pending")
async def ws_pending_rides(websocket: WebSocket, token: str = Query(...), db: Session = Depends(get_db)):
    user = _user_for_token(db, token)
    if not user or user.role != UserRole.captain:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await _serve(PENDING_ROOM, websocket)


@ws_router.websocket("/ws/rides/{ride_id}")
async def ws_ride(websocket: WebSocket, ride_id: int, token: str = Query(...), db: Session = Depends(get_db)):
    user = _user_for_token(db, token)
    if not user:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        get_ride_for_user(db, ride_id, user)
    except NotFound:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await _serve(ride_room(ride_id), websocket)
