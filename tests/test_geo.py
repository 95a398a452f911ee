import math

import httpx
import pytest

from bootsee import geo
from bootsee.errors import UpstreamError, ValidationFailed
from bootsee.models import VehicleType

from conftest import PICKUP, DROP


def test_haversine_one_degree_of_latitude():
    assert geo.haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)
    assert geo.haversine_km(28.6, 77.2, 28.6, 77.2) == 0


def test_estimate_trip_applies_road_factor_and_minutes():
    direct = geo.haversine_km(PICKUP["lat"], PICKUP["lng"], DROP["lat"], DROP["lng"])
    km, minutes = geo.estimate_trip((PICKUP["lat"], PICKUP["lng"]), (DROP["lat"], DROP["lng"]))
    assert km == round(direct * 1.2, 2)
    assert minutes == math.ceil(direct * 1.2 * 3)


@pytest.mark.parametrize("vehicle, expected", [
    (VehicleType.bike, 20.0 + 8.0 * 5),
    (VehicleType.auto, 30.0 + 12.0 * 5),
    (VehicleType.car, 50.0 + 15.0 * 5),
])
def test_calculate_fare_per_vehicle(vehicle, expected):
    assert geo.calculate_fare(5, vehicle) == expected


def test_calculate_fare_zero_distance_is_base_fare():
    assert geo.calculate_fare(0, VehicleType.car) == 50.0


def test_calculate_fare_rejects_negative_distance():
    with pytest.raises(ValidationFailed):
        geo.calculate_fare(-1)


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_route_uses_osrm_response():
    def handler(request):
        assert "/route/v1/driving/77.2167,28.6315;77.2295,28.6129" in str(request.url)
        return httpx.Response(200, json={"routes": [{
            "distance": 3450.0,
            "duration": 540.0,
            "geometry": {"coordinates": [[77.2167, 28.6315], [77.22, 28.62], [77.2295, 28.6129]]},
        }]})

    result = geo.route((28.6315, 77.2167), (28.6129, 77.2295), client=_client(handler))
    assert result["source"] == "osrm"
    assert result["distance_km"] == 3.45
    assert result["duration_minutes"] == 9
    assert result["coordinates"][1] == [28.62, 77.22]


def test_route_falls_back_to_estimate_on_upstream_error():
    result = geo.route((28.6315, 77.2167), (28.6129, 77.2295),
                       client=_client(lambda request: httpx.Response(503)))
    km, minutes = geo.estimate_trip((28.6315, 77.2167), (28.6129, 77.2295))
    assert result == {
        "distance_km": km,
        "duration_minutes": minutes,
        "coordinates": [[28.6315, 77.2167], [28.6129, 77.2295]],
        "source": "estimate",
    }


def test_geocode_parses_nominatim_results():
    def handler(request):
        assert request.url.params["q"] == "India Gate"
        assert request.url.params["limit"] == "5"
        return httpx.Response(200, json=[
            {"display_name": "India Gate, New Delhi", "lat": "28.6129", "lon": "77.2295"},
            {"display_name": "broken"},
        ])

    results = geo.geocode("India Gate", client=_client(handler))
    assert results == [{"display_name": "India Gate, New Delhi", "lat": 28.6129, "lng": 77.2295}]


def test_geocode_failure_is_reported():
    with pytest.raises(UpstreamError):
        geo.geocode("anywhere", client=_client(lambda request: httpx.Response(500)))


def test_reverse_geocode_error_payload():
    client = _client(lambda request: httpx.Response(200, json={"error": "Unable to geocode"}))
    with pytest.raises(UpstreamError):
        geo.reverse_geocode(0.0, 0.0, client=client)


def test_estimate_endpoint(client, register_rider):
    rider = register_rider()
    res = client.post("/api/rides/estimate", json={"pickup": PICKUP, "drop": DROP, "vehicle_type": "auto"},
                      headers=rider)
    body = res.json()
    assert body["currency"] == "INR"
    assert body["fare"] == geo.calculate_fare(body["distance_km"], VehicleType.auto)
