from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import rides, payments, earnings, safety
from ..database import get_db
from ..models import Captain, VehicleType
from ..realtime import hub, ride_room, publish_ride
from ..schemas import (
    StatusUpdate, LocationUpdate, RideResponse, RideCancel, CaptainResponse, UpiIdUpdate,
    UpiQrResponse, EarningsBreakdown, MonthlyEarnings
)
from ..security import require_captain

captain_router = APIRouter(prefix="/api/captain", tags=["Captain"])


@captain_router.post("/status", response_model=CaptainResponse)
def api_set_status(req: StatusUpdate, captain: Captain = Depends(require_captain), db: Session = Depends(get_db)):
    return rides.set_online(db, captain, req.is_online)


@captain_router.post("/location")
async def api_update_location(req: LocationUpdate, captain: Captain = Depends(require_captain),
                              db: Session = Depends(get_db)):
    ride = rides.update_location(db, captain, req.lat, req.lng)
    if ride is None:
        return {"ok": True, "ride_id": None}
    safety.update_shared_location(db, ride, req.lat, req.lng)
    await hub.broadcast(ride_room(ride.id), {
        "type": "captain_location", "ride_id": ride.id, "lat": req.lat, "lng": req.lng,
        "speed": req.speed, "timestamp": datetime.utcnow().isoformat(),
    })
    return {"ok": True, "ride_id": ride.id}


@captain_router.get("/rides/pending", response_model=List[RideResponse])
def api_pending_rides(vehicle_type: Optional[VehicleType] = None, captain: Captain = Depends(require_captain),
                      db: Session = Depends(get_db)):
    return rides.list_pending(db, vehicle_type)


@captain_router.get("/rides/active", response_model=Optional[RideResponse])
def api_active_ride(captain: Captain = Depends(require_captain), db: Session = Depends(get_db)):
    return rides.active_ride_for_captain(db, captain)


@captain_router.get("/rides/history", response_model=List[RideResponse])
def api_ride_history(limit: int = Query(50, ge=1, le=200), captain: Captain = Depends(require_captain),
                     db: Session = Depends(get_db)):
    return rides.captain_history(db, captain, limit)


@captain_router.post("/rides/{ride_id}/accept", response_model=RideResponse)
async def api_accept_ride(ride_id: int, captain: Captain = Depends(require_captain), db: Session = Depends(get_db)):
    ride = rides.accept_ride(db, captain, ride_id)
    await publish_ride("ride_accepted", ride)
    return ride


@captain_router.post("/rides/{ride_id}/start", response_model=RideResponse)
async def api_start_ride(ride_id: int, captain: Captain = Depends(require_captain), db: Session = Depends(get_db)):
    ride = rides.start_ride(db, captain, ride_id)
    await publish_ride("ride_started", ride)
    return ride


@captain_router.post("/rides/{ride_id}/complete", response_model=RideResponse)
async def api_complete_ride(ride_id: int, captain: Captain = Depends(require_captain),
                            db: Session = Depends(get_db)):
    ride = rides.complete_ride(db, captain, ride_id)
    await publish_ride("ride_completed", ride)
    return ride


@captain_router.post("/rides/{ride_id}/cancel", response_model=RideResponse)
async def api_cancel_ride(ride_id: int, req: Optional[RideCancel] = None,
                          captain: Captain = Depends(require_captain), db: Session = Depends(get_db)):
    ride = rides.cancel_ride(db, ride_id, captain.user, req.reason if req else None)
    await publish_ride("ride_cancelled", ride)
    return ride


@captain_router.put("/upi", response_model=CaptainResponse)
def api_set_upi_id(req: UpiIdUpdate, captain: Captain = Depends(require_captain), db: Session = Depends(get_db)):
    return payments.set_upi_id(db, captain, req.upi_id)


@captain_router.get("/rides/{ride_id}/payment", response_model=UpiQrResponse)
def api_payment_request(ride_id: int, captain: Captain = Depends(require_captain), db: Session = Depends(get_db)):
    return payments.payment_request(rides.get_ride(db, ride_id), captain)


@captain_router.post("/rides/{ride_id}/payment/complete", response_model=RideResponse)
def api_mark_paid(ride_id: int, captain: Captain = Depends(require_captain), db: Session = Depends(get_db)):
    return payments.mark_paid(db, captain, rides.get_ride(db, ride_id))


@captain_router.get("/earnings/breakdown", response_model=EarningsBreakdown)
def api_earnings_breakdown(total: float = Query(..., ge=0),
                           commission_percentage: Optional[float] = Query(None, ge=0, le=100),
                           captain: Captain = Depends(require_captain)):
    return earnings.breakdown(total, commission_percentage)


@captain_router.get("/earnings/monthly", response_model=MonthlyEarnings)
def api_monthly_earnings(year: Optional[int] = Query(None, ge=2000, le=2100),
                         month: Optional[int] = Query(None, ge=1, le=12),
                         captain: Captain = Depends(require_captain), db: Session = Depends(get_db)):
    now = datetime.utcnow()
    return earnings.monthly_earnings(db, captain, year or now.year, month or now.month)
