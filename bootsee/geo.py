"""Distance, fare and map lookups.

Trip estimates are computed locally from the Haversine distance so that a
fare can always be quoted; OSRM and Nominatim are consulted for road routes
and addresses when they are reachable.
"""
import math
import logging
from typing import List, Optional, Tuple

import httpx
from sqlalchemy.orm import Session

from .config import CONFIG
from .errors import UpstreamError, ValidationFailed
from .models import Captain, VehicleType

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def estimated_minutes(distance_km: float) -> int:
    return int(math.ceil(distance_km * CONFIG["MINUTES_PER_KM"]))


def estimate_trip(pickup: Tuple[float, float], drop: Tuple[float, float]) -> Tuple[float, int]:
    """Road distance (km, 2dp) and travel time (minutes) from straight-line distance."""
    direct = haversine_km(pickup[0], pickup[1], drop[0], drop[1])
    road_km = direct * CONFIG["ROAD_DISTANCE_FACTOR"]
    return round(road_km, 2), estimated_minutes(road_km)


def calculate_fare(distance_km: float, vehicle_type=VehicleType.bike) -> float:
    if distance_km < 0:
        raise ValidationFailed("Distance cannot be negative")
    key = vehicle_type.value if isinstance(vehicle_type, VehicleType) else str(vehicle_type)
    tariff = CONFIG["FARE_TARIFFS"].get(key)
    if tariff is None:
        raise ValidationFailed(f"No tariff for vehicle type '{key}'")
    fare = tariff["base"] + tariff["per_km"] * distance_km
    return round(max(fare, tariff["base"]), 2)


def quote(pickup, drop, vehicle_type=VehicleType.bike) -> dict:
    distance_km, minutes = estimate_trip(pickup, drop)
    return {
        "distance_km": distance_km,
        "estimated_minutes": minutes,
        "fare": calculate_fare(distance_km, vehicle_type),
        "currency": CONFIG["CURRENCY"],
        "vehicle_type": vehicle_type,
    }


def _client(client: Optional[httpx.Client]) -> httpx.Client:
    if client is not None:
        return client
    return httpx.Client(
        timeout=CONFIG["HTTP_TIMEOUT_SECONDS"],
        headers={"User-Agent": CONFIG["HTTP_USER_AGENT"]},
    )


def route(pickup, drop, client: Optional[httpx.Client] = None) -> dict:
    """Driving route from OSRM, falling back to the straight-line estimate."""
    url = (
        CONFIG["OSRM_BASE_URL"].rstrip("/")
        + f"/route/v1/driving/{pickup[1]},{pickup[0]};{drop[1]},{drop[0]}"
    )
    http = _client(client)
    try:
        r = http.get(url, params={"overview": "full", "geometries": "geojson"})
        r.raise_for_status()
        routes = r.json().get("routes") or []
        if routes:
            best = routes[0]
            coords = [[lat, lng] for lng, lat in best.get("geometry", {}).get("coordinates", [])]
            return {
                "distance_km": round(max(0.0, float(best.get("distance") or 0)) / 1000.0, 2),
                "duration_minutes": max(1, int(round(float(best.get("duration") or 0) / 60.0))),
                "coordinates": coords or [list(pickup), list(drop)],
                "source": "osrm",
            }
        logger.warning("OSRM returned no routes for %s -> %s", pickup, drop)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("OSRM lookup failed, using estimate: %s", e)
    finally:
        if client is None:
            http.close()

    distance_km, minutes = estimate_trip(pickup, drop)
    return {
        "distance_km": distance_km,
        "duration_minutes": minutes,
        "coordinates": [list(pickup), list(drop)],
        "source": "estimate",
    }


def _nominatim(path: str, params: dict, client: Optional[httpx.Client]):
    http = _client(client)
    try:
        r = http.get(CONFIG["NOMINATIM_BASE_URL"].rstrip("/") + path, params={"format": "json", **params})
        r.raise_for_status()
        return r.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Nominatim %s failed: %s", path, e)
        raise UpstreamError("Geocoding service unavailable")
    finally:
        if client is None:
            http.close()


def geocode(query: str, client: Optional[httpx.Client] = None) -> List[dict]:
    if not query.strip():
        return []
    data = _nominatim("/search", {"q": query, "limit": 5}, client)
    return [
        {"display_name": item.get("display_name", ""), "lat": float(item["lat"]), "lng": float(item["lon"])}
        for item in data
        if "lat" in item and "lon" in item
    ]


def reverse_geocode(lat: float, lng: float, client: Optional[httpx.Client] = None) -> dict:
    data = _nominatim("/reverse", {"lat": lat, "lon": lng}, client)
    if "error" in data:
        raise UpstreamError(f"Reverse geocoding failed: {data['error']}")
    return {"display_name": data.get("display_name", ""), "lat": float(data.get("lat", lat)),
            "lng": float(data.get("lon", lng))}


def nearby_captains(db: Session, lat: float, lng: float, radius_km: Optional[float] = None) -> List[dict]:
    radius = CONFIG["NEARBY_RADIUS_KM"] if radius_km is None else radius_km
    captains = db.query(Captain).filter(
        Captain.is_online.is_(True),
        Captain.current_lat.isnot(None),
        Captain.current_lng.isnot(None),
    ).all()
    found = []
    for c in captains:
        distance = haversine_km(lat, lng, c.current_lat, c.current_lng)
        if distance <= radius:
            found.append({
                "id": c.id,
                "name": c.user.full_name,
                "vehicle_type": c.vehicle_type,
                "vehicle_model": c.vehicle_model,
                "rating": round(c.rating or 0.0, 1),
                "lat": c.current_lat,
                "lng": c.current_lng,
                "distance_km": round(distance, 2),
            })
    found.sort(key=lambda item: item["distance_km"])
    return found
