"""Async Python client for the CropTrail API.

Holds the caller's session token and the last fetched list of batch views.
Every mutating call re-fetches the whole list afterwards so ``batches``
always reflects the server.

    async with CropTrailClient("http://localhost:8000") as api:
        await api.sign_in("farmer@example.com", "secret-password")
        await api.create_batch(crop_type="Tomato", harvest_time="2026-10-01T06:00:00Z",
                               expected_quality="Grade A", quantity_kg=500)
        print(api.batches)
"""

from typing import Any

import httpx

from croptrail.auth.jwt import SESSION_EXPIRED_MESSAGE


class SessionExpiredError(Exception):
    """The session token is missing or was rejected; sign in again."""

    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE):
        self.message = message
        super().__init__(message)


class CropTrailAPIError(Exception):
    """Any non-401 error response from the API."""

    def __init__(self, status_code: int, code: str, message: str):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{status_code} {code}: {message}")


class CropTrailClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 15.0,
    ):
        self.token = token
        self.batches: list[dict] = []
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "CropTrailClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Transport ────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        json: dict | None = None,
        params: dict | None = None,
        authenticated: bool = True,
    ) -> Any:
        headers = {}
        if authenticated:
            if not self.token:
                raise SessionExpiredError()
            headers["Authorization"] = f"Bearer {self.token}"

        response = await self._http.request(method, path, json=json, params=params, headers=headers)

        if response.status_code == 401 and authenticated:
            self.token = None
            self.batches = []
            raise SessionExpiredError()
        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = body.get("error") if isinstance(body, dict) else None
            if not isinstance(error, dict):
                error = {}
            raise CropTrailAPIError(
                response.status_code,
                error.get("code", f"HTTP_{response.status_code}"),
                error.get("message", response.text[:200]),
            )
        if response.status_code == 204:
            return None
        return response.json()

    async def _mutate(self, method: str, path: str, json: dict | None = None) -> Any:
        result = await self._request(method, path, json=json)
        await self.fetch_batches()
        return result

    # ── Session ──────────────────────────────────────────────

    async def register(
        self, email: str, password: str, role: str = "farmer", full_name: str | None = None
    ) -> dict:
        data = await self._request(
            "POST", "/api/auth/register",
            json={"email": email, "password": password, "role": role, "full_name": full_name},
            authenticated=False,
        )
        self.token = data["access_token"]
        return data["user"]

    async def sign_in(self, email: str, password: str) -> dict:
        data = await self._request(
            "POST", "/api/auth/login",
            json={"email": email, "password": password},
            authenticated=False,
        )
        self.token = data["access_token"]
        return data["user"]

    async def sign_out(self) -> None:
        if self.token:
            await self._request("POST", "/api/auth/logout")
        self.token = None
        self.batches = []

    # ── Batches ──────────────────────────────────────────────

    async def fetch_batches(self, status: str | None = None) -> list[dict]:
        params = {"status": status} if status else None
        self.batches = await self._request("GET", "/api/batches", params=params)
        return self.batches

    async def create_batch(self, **fields: Any) -> dict:
        return await self._mutate("POST", "/api/batches", json=fields)

    async def update_batch(self, batch_id: str, **updates: Any) -> dict:
        return await self._mutate("PATCH", f"/api/batches/{batch_id}", json=updates)

    async def accept_batch_as_transporter(self, batch_id: str) -> dict:
        return await self._mutate("POST", f"/api/batches/{batch_id}/transport/accept")

    async def record_pickup(self, batch_id: str, **fields: Any) -> dict:
        return await self._mutate("POST", f"/api/batches/{batch_id}/transport/pickup", json=fields)

    async def mark_in_transit(self, batch_id: str) -> dict:
        return await self._mutate("POST", f"/api/batches/{batch_id}/transport/in-transit")

    async def record_delivery(self, batch_id: str, **fields: Any) -> dict:
        return await self._mutate("POST", f"/api/batches/{batch_id}/transport/deliver", json=fields)

    async def accept_batch_as_vendor(self, batch_id: str) -> dict:
        return await self._mutate("POST", f"/api/batches/{batch_id}/receipt/accept")

    async def confirm_receipt(self, batch_id: str, **fields: Any) -> dict:
        return await self._mutate("POST", f"/api/batches/{batch_id}/receipt/confirm", json=fields)

    # ── Handlers ─────────────────────────────────────────────

    async def fetch_environmental_data(
        self, batch_id: str, stage: str, latitude: float, longitude: float
    ) -> dict:
        return await self._mutate("POST", "/api/environmental-data", json={
            "batch_id": batch_id,
            "stage": stage,
            "latitude": latitude,
            "longitude": longitude,
        })

    async def run_analysis(self, batch_id: str) -> dict:
        return await self._mutate("POST", "/api/analysis", json={"batch_id": batch_id})

    async def calculate_route(
        self, origin: tuple[float, float], destination: tuple[float, float]
    ) -> dict:
        """Route between (lat, lng) pairs.  Read-only, so no re-fetch."""
        return await self._request("POST", "/api/routes/calculate", json={
            "origin": {"lat": origin[0], "lng": origin[1]},
            "destination": {"lat": destination[0], "lng": destination[1]},
        })
