from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import geo, rides
from ..database import get_db
from ..models import User
from ..realtime import publish_ride
from ..schemas import (
    RideRequest, RideResponse, RideCancel, RideRating, FareEstimateRequest, FareEstimateResponse,
    NearbyCaptain
)
from ..security import require_rider, get_current_active_user

rides_router = APIRouter(prefix="/api/rides", tags=["Rides"])


@rides_router.post("/estimate", response_model=FareEstimateResponse)
def api_estimate_fare(req: FareEstimateRequest, user: User = Depends(require_rider)):
    return geo.quote((req.pickup.lat, req.pickup.lng), (req.drop.lat, req.drop.lng), req.vehicle_type)


@rides_router.post("", response_model=RideResponse, status_code=201)
async def api_request_ride(req: RideRequest, user: User = Depends(require_rider), db: Session = Depends(get_db)):
    ride = rides.request_ride(
        db, user,
        (req.pickup.lat, req.pickup.lng), (req.drop.lat, req.drop.lng),
        req.pickup_address, req.drop_address, req.vehicle_type, req.payment_method,
    )
    await publish_ride("ride_requested", ride)
    return ride


@rides_router.get("/nearby-captains", response_model=List[NearbyCaptain])
def api_nearby_captains(lat: float = Query(..., ge=-90, le=90), lng: float = Query(..., ge=-180, le=180),
                        radius_km: Optional[float] = Query(None, gt=0, le=50),
                        user: User = Depends(get_current_active_user), db: Session = Depends(get_db)):
    return geo.nearby_captains(db, lat, lng, radius_km)


@rides_router.get("/active", response_model=Optional[RideResponse])
def api_active_ride(user: User = Depends(require_rider), db: Session = Depends(get_db)):
    return rides.active_ride_for_rider(db, user)


@rides_router.get("/history", response_model=List[RideResponse])
def api_ride_history(limit: int = Query(50, ge=1, le=200), user: User = Depends(require_rider),
                     db: Session = Depends(get_db)):
    return rides.rider_history(db, user, limit)


@rides_router.get("/{ride_id}", response_model=RideResponse)
def api_get_ride(ride_id: int, user: User = Depends(get_current_active_user), db: Session = Depends(get_db)):
    return rides.get_ride_for_user(db, ride_id, user)


@rides_router.post("/{ride_id}/cancel", response_model=RideResponse)
async def api_cancel_ride(ride_id: int, req: Optional[RideCancel] = None, user: User = Depends(require_rider),
                          db: Session = Depends(get_db)):
    ride = rides.cancel_ride(db, ride_id, user, req.reason if req else None)
    await publish_ride("ride_cancelled", ride)
    return ride


@rides_router.post("/{ride_id}/rate", response_model=RideResponse)
def api_rate_captain(ride_id: int, req: RideRating, user: User = Depends(require_rider),
                     db: Session = Depends(get_db)):
    return rides.rate_captain(db, user, ride_id, req.rating, req.feedback)
