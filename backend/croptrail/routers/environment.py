import httpx
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.deps import get_actor
from croptrail.auth.policies import Actor
from croptrail.clients.http import get_http_client
from croptrail.database import get_db
from croptrail.schemas.environment import (
    EnvironmentalDataOut,
    EnvironmentalFetchRequest,
    EnvironmentalFetchResponse,
)
from croptrail.services.environment import record_environmental_data

router = APIRouter()


@router.post(
    "",
    response_model=EnvironmentalFetchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def fetch_environmental_data(
    body: EnvironmentalFetchRequest,
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
    actor: Actor = Depends(get_actor),
):
    """Look up and store the conditions for one stage of a batch.

    If the weather API is unreachable, placeholder values are stored and
    the response carries ``fallback: true``.
    """
    row, fallback = await record_environmental_data(db, client, actor, body)
    return EnvironmentalFetchResponse(
        fallback=fallback,
        data=EnvironmentalDataOut.model_validate(row),
    )
