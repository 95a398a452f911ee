from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from .. import rides, safety
from ..database import get_db
from ..models import User
from ..schemas import (
    TrustedContactCreate, TrustedContactResponse, SosRequest, TelemetryReport, SafetyAlertResponse,
    RideShareCreate, RideShareResponse, SharedRideView
)
from ..security import get_current_active_user, require_rider

safety_router = APIRouter(prefix="/api/safety", tags=["Safety"])
share_router = APIRouter(prefix="/api/share", tags=["Safety"])


@safety_router.get("/contacts", response_model=List[TrustedContactResponse])
def api_list_contacts(user: User = Depends(get_current_active_user), db: Session = Depends(get_db)):
    return safety.list_contacts(db, user)


@safety_router.post("/contacts", response_model=TrustedContactResponse, status_code=201)
def api_add_contact(req: TrustedContactCreate, user: User = Depends(get_current_active_user),
                    db: Session = Depends(get_db)):
    return safety.add_contact(db, user, req.name, req.phone, req.email, req.relationship_label)


@safety_router.delete("/contacts/{contact_id}", status_code=204)
def api_remove_contact(contact_id: int, user: User = Depends(get_current_active_user),
                       db: Session = Depends(get_db)):
    safety.remove_contact(db, user, contact_id)
    return Response(status_code=204)


@safety_router.post("/sos", response_model=SafetyAlertResponse, status_code=201)
def api_trigger_sos(req: SosRequest, user: User = Depends(get_current_active_user), db: Session = Depends(get_db)):
    ride = rides.get_ride_for_user(db, req.ride_id, user) if req.ride_id else None
    return safety.trigger_sos(db, user, req.lat, req.lng, req.message, ride)


@safety_router.post("/sos/resolve")
def api_resolve_sos(user: User = Depends(get_current_active_user), db: Session = Depends(get_db)):
    return {"resolved": safety.resolve_sos(db, user)}


@safety_router.post("/telemetry", response_model=List[SafetyAlertResponse])
def api_telemetry(req: TelemetryReport, user: User = Depends(get_current_active_user),
                  db: Session = Depends(get_db)):
    ride = rides.get_ride_for_user(db, req.ride_id, user) if req.ride_id else None
    return safety.check_telemetry(db, user, req.lat, req.lng, req.speed, req.battery_level, req.charging, ride)


@safety_router.post("/rides/{ride_id}/inactivity", response_model=Optional[SafetyAlertResponse])
def api_inactivity_check(ride_id: int, user: User = Depends(require_rider), db: Session = Depends(get_db)):
    return safety.check_inactivity(db, rides.get_ride_for_user(db, ride_id, user))


@safety_router.get("/alerts", response_model=List[SafetyAlertResponse])
def api_list_alerts(active: bool = False, user: User = Depends(get_current_active_user),
                    db: Session = Depends(get_db)):
    return safety.list_alerts(db, user, active)


@safety_router.post("/alerts/{alert_id}/acknowledge", response_model=SafetyAlertResponse)
def api_acknowledge_alert(alert_id: int, user: User = Depends(get_current_active_user),
                          db: Session = Depends(get_db)):
    return safety.acknowledge_alert(db, user, alert_id)


@safety_router.post("/shares", response_model=RideShareResponse, status_code=201)
def api_share_ride(req: RideShareCreate, user: User = Depends(require_rider), db: Session = Depends(get_db)):
    return safety.share_ride(db, user, rides.get_ride_for_user(db, req.ride_id, user))


@safety_router.delete("/shares/{ride_id}")
def api_stop_sharing(ride_id: int, user: User = Depends(require_rider), db: Session = Depends(get_db)):
    return {"stopped": safety.stop_sharing(db, user, ride_id)}


@share_router.get("/{token}", response_model=SharedRideView)
def api_shared_ride(token: str, db: Session = Depends(get_db)):
    return safety.shared_ride_view(db, token)
