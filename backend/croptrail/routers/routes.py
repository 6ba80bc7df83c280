import logging

import httpx
from fastapi import APIRouter, Depends

from croptrail.auth.deps import get_actor
from croptrail.auth.policies import Actor
from croptrail.clients.http import get_http_client
from croptrail.clients.routing import compute_route
from croptrail.schemas.route import RouteRequest, RouteResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/calculate", response_model=RouteResponse)
async def calculate_route(
    body: RouteRequest,
    client: httpx.AsyncClient = Depends(get_http_client),
    actor: Actor = Depends(get_actor),
):
    """Driving distance and time between two points.  Nothing is stored."""
    route = await compute_route(client, body.origin, body.destination)
    logger.info(
        f"Route for {actor.user_id}: {route.distance_km} km, {route.duration_text}"
    )
    return route
