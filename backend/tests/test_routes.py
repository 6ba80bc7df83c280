"""Tests for driving route calculation."""

import json

import httpx
import pytest
from httpx import AsyncClient

from croptrail.clients.routing import FIELD_MASK, format_duration, parse_duration
from croptrail.config import settings

ROUTE_REQUEST = {
    "origin": {"lat": 12.97, "lng": 77.59},
    "destination": {"lat": 13.08, "lng": 80.27},
}


@pytest.mark.unit
class TestDurations:
    @pytest.mark.parametrize(
        "value, expected",
        [("754s", 754), ("12.5s", 12), ("0s", 0), ("", 0), (None, 0)],
    )
    def test_parse_duration(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize(
        "seconds, expected",
        [(0, "0 min"), (59, "0 min"), (754, "12 min"), (3600, "1h 0min"), (7384, "2h 3min")],
    )
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected


@pytest.mark.api
@pytest.mark.asyncio
class TestCalculateRoute:
    async def test_route_in_display_units(self, client: AsyncClient, upstream, transporter, auth_headers):
        response = await client.post(
            "/api/routes/calculate", json=ROUTE_REQUEST, headers=auth_headers(transporter)
        )

        assert response.status_code == 200
        assert response.json() == {
            "distance_meters": 152340,
            "distance_km": 152.34,
            "duration_seconds": 7384,
            "duration_text": "2h 3min",
            "encoded_polyline": "_p~iF~ps|U",
        }

        call = upstream.calls_to("routes.googleapis.com")[0]
        assert call.headers["x-goog-api-key"] == settings.google_api_key
        assert call.headers["x-goog-fieldmask"] == FIELD_MASK
        sent = json.loads(call.content)
        assert sent["travelMode"] == "DRIVE"
        assert sent["origin"]["location"]["latLng"] == {"latitude": 12.97, "longitude": 77.59}

    async def test_same_point_is_zero_route(self, client: AsyncClient, upstream, farmer, auth_headers):
        # Zero-valued fields are omitted upstream.
        upstream.routes = lambda request: httpx.Response(200, json={"routes": [{}]})
        point = {"lat": 0, "lng": 0}

        response = await client.post(
            "/api/routes/calculate",
            json={"origin": point, "destination": point},
            headers=auth_headers(farmer),
        )

        assert response.status_code == 200
        assert response.json() == {
            "distance_meters": 0,
            "distance_km": 0.0,
            "duration_seconds": 0,
            "duration_text": "0 min",
            "encoded_polyline": None,
        }

    async def test_no_route(self, client: AsyncClient, upstream, farmer, auth_headers):
        upstream.routes = lambda request: httpx.Response(200, json={})

        response = await client.post(
            "/api/routes/calculate", json=ROUTE_REQUEST, headers=auth_headers(farmer)
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NO_ROUTE_FOUND"

    async def test_upstream_failure(self, client: AsyncClient, upstream, farmer, auth_headers):
        upstream.routes = lambda request: httpx.Response(403, json={"error": {"status": "PERMISSION_DENIED"}})

        response = await client.post(
            "/api/routes/calculate", json=ROUTE_REQUEST, headers=auth_headers(farmer)
        )

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Failed to calculate route"

    async def test_missing_destination(self, client: AsyncClient, farmer, auth_headers):
        response = await client.post(
            "/api/routes/calculate",
            json={"origin": ROUTE_REQUEST["origin"]},
            headers=auth_headers(farmer),
        )

        assert response.status_code == 400

    async def test_requires_sign_in(self, client: AsyncClient, upstream):
        response = await client.post("/api/routes/calculate", json=ROUTE_REQUEST)

        assert response.status_code == 401
        assert upstream.requests == []
