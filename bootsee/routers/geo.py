from typing import List

from fastapi import APIRouter, Depends, Query

from .. import geo
from ..models import User
from ..schemas import FareEstimateRequest, FareEstimateResponse, RouteResponse, GeocodeResult, Point
from ..security import get_current_active_user

geo_router = APIRouter(prefix="/api/geo", tags=["Maps"])


@geo_router.get("/search", response_model=List[GeocodeResult])
def api_search(q: str = Query(..., min_length=1), user: User = Depends(get_current_active_user)):
    return geo.geocode(q)


@geo_router.get("/reverse", response_model=GeocodeResult)
def api_reverse(lat: float = Query(..., ge=-90, le=90), lng: float = Query(..., ge=-180, le=180),
                user: User = Depends(get_current_active_user)):
    return geo.reverse_geocode(lat, lng)


@geo_router.post("/route", response_model=RouteResponse)
def api_route(pickup: Point, drop: Point, user: User = Depends(get_current_active_user)):
    return geo.route((pickup.lat, pickup.lng), (drop.lat, drop.lng))


@geo_router.post("/estimate", response_model=FareEstimateResponse)
def api_estimate(req: FareEstimateRequest, user: User = Depends(get_current_active_user)):
    return geo.quote((req.pickup.lat, req.pickup.lng), (req.drop.lat, req.drop.lng), req.vehicle_type)
