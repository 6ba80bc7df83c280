"""Google Routes API adapter.

Computes one driving route between two coordinates and converts it to
display units.  Google omits zero-valued fields, so a degenerate route
(origin == destination) arrives without `distanceMeters` / `duration`
and is reported as zero distance and zero time.
"""

import logging

import httpx
from fastapi import status

from croptrail.clients.http import body_excerpt
from croptrail.config import settings
from croptrail.middleware.exceptions import CropTrailException, UpstreamServiceError
from croptrail.schemas.route import Coordinates, RouteResponse

logger = logging.getLogger(__name__)

FIELD_MASK = "routes.duration,routes.distanceMeters,routes.polyline.encodedPolyline"


class NoRouteFoundError(CropTrailException):
    def __init__(self):
        super().__init__(
            message="No route found between the specified locations",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NO_ROUTE_FOUND",
        )


def parse_duration(value: str | None) -> int:
    """Convert a protobuf duration string ("754s", "12.5s") to whole seconds."""
    if not value:
        return 0
    return int(float(value.rstrip("s") or 0))


def format_duration(seconds: int) -> str:
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}min"
    return f"{minutes} min"


def _lat_lng(point: Coordinates) -> dict:
    return {"location": {"latLng": {"latitude": point.lat, "longitude": point.lng}}}


async def compute_route(
    client: httpx.AsyncClient,
    origin: Coordinates,
    destination: Coordinates,
) -> RouteResponse:
    if not settings.google_api_key:
        raise UpstreamServiceError("Routing API key not configured")

    request_body = {
        "origin": _lat_lng(origin),
        "destination": _lat_lng(destination),
        "travelMode": "DRIVE",
        "routingPreference": "TRAFFIC_AWARE",
        "computeAlternativeRoutes": False,
        "languageCode": "en-US",
        "units": "METRIC",
    }

    try:
        response = await client.post(
            settings.routes_api_url,
            json=request_body,
            headers={
                "X-Goog-Api-Key": settings.google_api_key,
                "X-Goog-FieldMask": FIELD_MASK,
            },
        )
    except httpx.HTTPError as exc:
        logger.error(f"Routes API request failed: {exc}")
        raise UpstreamServiceError("Failed to calculate route")

    if response.status_code != 200:
        logger.error(
            f"Routes API error {response.status_code}: {body_excerpt(response)}"
        )
        raise UpstreamServiceError("Failed to calculate route")

    try:
        data = response.json()
    except ValueError:
        logger.error(f"Routes API returned non-JSON body: {body_excerpt(response)}")
        raise UpstreamServiceError("Failed to calculate route")

    routes = data.get("routes") or []
    if not routes:
        raise NoRouteFoundError()

    route = routes[0]
    distance_meters = int(route.get("distanceMeters") or 0)
    duration_seconds = parse_duration(route.get("duration"))

    return RouteResponse(
        distance_meters=distance_meters,
        distance_km=round(distance_meters / 1000, 2),
        duration_seconds=duration_seconds,
        duration_text=format_duration(duration_seconds),
        encoded_polyline=(route.get("polyline") or {}).get("encodedPolyline"),
    )
