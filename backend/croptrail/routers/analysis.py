import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.deps import get_actor
from croptrail.auth.policies import Actor
from croptrail.clients.http import get_http_client
from croptrail.database import get_db
from croptrail.models.batch import BatchStatus
from croptrail.schemas.analysis import AIAnalysisOut, AnalysisRequest, AnalysisResponse
from croptrail.services.analysis import run_analysis

router = APIRouter()


@router.post("", response_model=AnalysisResponse)
async def analyze_batch(
    body: AnalysisRequest,
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
    actor: Actor = Depends(get_actor),
):
    """Run (or re-run) the quality analysis of a received batch.

    Gateway 429 / 402 responses are returned with the same status code.
    """
    row, structured = await run_analysis(db, client, actor, body.batch_id)
    return AnalysisResponse(
        status=BatchStatus.ANALYZED,
        structured=structured,
        analysis=AIAnalysisOut.model_validate(row),
    )
