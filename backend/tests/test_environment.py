"""Tests for the environmental data endpoint and the weather adapters."""

import httpx
import pytest
from httpx import AsyncClient

from croptrail.clients.weather import parse_weather
from croptrail.config import settings
from croptrail.models.batch import BatchStatus

from conftest import WEATHER_PAYLOAD


def fetch_body(batch_id: str, stage: str = "transport_pickup") -> dict:
    return {"batch_id": batch_id, "stage": stage, "latitude": 12.97, "longitude": 77.59}


@pytest.mark.unit
class TestParseWeather:
    def test_maps_current_conditions(self):
        snapshot = parse_weather(WEATHER_PAYLOAD)

        assert snapshot.temperature_celsius == 31.5
        assert snapshot.humidity_percentage == 72
        assert snapshot.weather_condition == "Partly cloudy"
        assert snapshot.uv_index == 7
        assert snapshot.precipitation_mm == 0.4
        assert snapshot.wind_speed_kmh == 14
        assert snapshot.raw == {"weather": WEATHER_PAYLOAD}

    def test_missing_fields_stay_empty(self):
        snapshot = parse_weather({"temperature": {"degrees": 18}})

        assert snapshot.temperature_celsius == 18
        assert snapshot.humidity_percentage is None
        assert snapshot.weather_condition is None
        assert snapshot.precipitation_mm == 0

    def test_condition_type_used_without_description(self):
        snapshot = parse_weather({"temperature": {"degrees": 18}, "weatherCondition": {"type": "RAIN"}})

        assert snapshot.weather_condition == "RAIN"


@pytest.mark.api
@pytest.mark.asyncio
class TestRecordEnvironmentalData:
    async def test_stores_weather_and_air_quality(
        self, client: AsyncClient, upstream, make_batch, farmer, transporter, auth_headers
    ):
        batch = await make_batch(farmer, BatchStatus.PICKED_UP, transporter=transporter)

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id), headers=auth_headers(transporter)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["fallback"] is False
        row = data["data"]
        assert row["stage"] == "transport_pickup"
        assert row["temperature_celsius"] == 31.5
        assert row["air_quality_index"] == 64
        assert row["uv_index"] == 7
        assert set(row["raw_api_response"]) == {"weather", "air_quality"}

        air_call = upstream.calls_to("airquality.googleapis.com")[0]
        assert air_call.method == "POST"
        assert air_call.url.params["key"] == settings.weather_api_key

    async def test_weather_outage_stores_fallback_values(
        self, client: AsyncClient, upstream, make_batch, farmer, auth_headers
    ):
        upstream.weather = lambda request: httpx.Response(500, text="internal")
        batch = await make_batch(farmer)

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id, "harvest"), headers=auth_headers(farmer)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["fallback"] is True
        row = data["data"]
        assert row["temperature_celsius"] == 25
        assert row["humidity_percentage"] == 60
        assert row["weather_condition"] == "Unknown"
        assert row["air_quality_index"] == 50
        assert row["uv_index"] == 5
        assert row["precipitation_mm"] == 0
        assert row["wind_speed_kmh"] == 10
        assert row["gps_lat"] == 12.97
        assert row["raw_api_response"] == {"source": "fallback", "reason": "Weather lookup failed"}
        assert upstream.calls_to("airquality.googleapis.com") == []

    async def test_network_error_falls_back(self, client: AsyncClient, upstream, make_batch, farmer, auth_headers):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        upstream.weather = unreachable
        batch = await make_batch(farmer)

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id, "harvest"), headers=auth_headers(farmer)
        )

        assert response.status_code == 201
        assert response.json()["fallback"] is True

    async def test_payload_without_temperature_falls_back(
        self, client: AsyncClient, upstream, make_batch, farmer, auth_headers
    ):
        upstream.weather = lambda request: httpx.Response(200, json={"relativeHumidity": 40})
        batch = await make_batch(farmer)

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id, "harvest"), headers=auth_headers(farmer)
        )

        assert response.json()["fallback"] is True
        assert response.json()["data"]["raw_api_response"]["reason"] == (
            "Weather lookup returned no current conditions"
        )

    async def test_unreadable_conditions_fall_back(
        self, client: AsyncClient, upstream, make_batch, farmer, auth_headers
    ):
        upstream.weather = lambda request: httpx.Response(200, json={"temperature": {"degrees": "n/a"}})
        batch = await make_batch(farmer)

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id, "harvest"), headers=auth_headers(farmer)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["fallback"] is True
        assert data["data"]["temperature_celsius"] == 25
        assert data["data"]["raw_api_response"] == {
            "source": "fallback",
            "reason": "Weather lookup returned an unreadable body",
        }

    @pytest.mark.parametrize("body", [[], {"indexes": [{"aqi": "n/a"}]}, {"indexes": [None]}])
    async def test_malformed_air_quality_is_dropped(
        self, client: AsyncClient, upstream, make_batch, farmer, auth_headers, body
    ):
        upstream.air_quality = lambda request: httpx.Response(200, json=body)
        batch = await make_batch(farmer)

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id, "harvest"), headers=auth_headers(farmer)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["fallback"] is False
        assert data["data"]["temperature_celsius"] == 31.5
        assert data["data"]["air_quality_index"] is None
        assert set(data["data"]["raw_api_response"]) == {"weather"}

    async def test_missing_api_key_falls_back(
        self, client: AsyncClient, upstream, monkeypatch, make_batch, farmer, auth_headers
    ):
        monkeypatch.setattr(settings, "weather_api_key", "")
        batch = await make_batch(farmer)

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id, "harvest"), headers=auth_headers(farmer)
        )

        assert response.json()["fallback"] is True
        assert upstream.requests == []

    async def test_stage_recorded_once(self, client: AsyncClient, make_batch, farmer, auth_headers):
        batch = await make_batch(farmer)
        first = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id, "harvest"), headers=auth_headers(farmer)
        )
        assert first.status_code == 201

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id, "harvest"), headers=auth_headers(farmer)
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "STAGE_ALREADY_RECORDED"

    async def test_invisible_batch_is_404(self, client: AsyncClient, make_batch, farmer, vendor, auth_headers):
        batch = await make_batch(farmer)

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id), headers=auth_headers(vendor)
        )

        assert response.status_code == 404

    async def test_visible_non_participant_is_403(
        self, client: AsyncClient, make_batch, farmer, other_transporter, auth_headers
    ):
        # Unclaimed batches are visible to every transporter.
        batch = await make_batch(farmer)

        response = await client.post(
            "/api/environmental-data", json=fetch_body(batch.id), headers=auth_headers(other_transporter)
        )

        assert response.status_code == 403

    @pytest.mark.parametrize(
        "override",
        [{"stage": "storage"}, {"latitude": -91}, {"longitude": 181}, {"batch_id": ""}],
    )
    async def test_invalid_payload(self, client: AsyncClient, make_batch, farmer, auth_headers, override):
        batch = await make_batch(farmer)

        response = await client.post(
            "/api/environmental-data",
            json={**fetch_body(batch.id), **override},
            headers=auth_headers(farmer),
        )

        assert response.status_code == 400
