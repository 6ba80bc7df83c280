"""LLM quality-degradation analysis of a received batch.

Flow:
  1. Load the batch (participants only) and check it is received/analyzed.
  2. Render the journey as a plain-text prompt: batch, transport, receipt,
     then environmental conditions per stage in recorded order.
  3. Ask the gateway for an ``analyze_crop_quality`` tool call.
  4. Parse: tool-call arguments → message content as JSON → placeholders.
  5. Upsert the single ai_analysis row and move the batch to ``analyzed``.

Nothing is written before the gateway answers, so an upstream failure
leaves the batch untouched.
"""

import json
import logging
from typing import Any, Sequence

import httpx
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.policies import Actor, Operation, Table, enforce
from croptrail.clients.llm import create_chat_completion, function_tool
from croptrail.lifecycle import apply_transition, check_transition
from croptrail.models.ai_analysis import AIAnalysis
from croptrail.models.batch import Batch
from croptrail.models.environmental_data import EnvironmentalData
from croptrail.models.transport_log import TransportLog
from croptrail.models.vendor_receipt import VendorReceipt
from croptrail.schemas.analysis import AnalysisResult
from croptrail.services.access import load_batch_context
from croptrail.utils.clock import utcnow

logger = logging.getLogger(__name__)

ANALYSIS_FAILED_MESSAGE = "AI analysis failed"

SYSTEM_PROMPT = (
    "You are an agricultural expert specializing in post-harvest crop quality. "
    "You analyze a crop batch's journey from farm to vendor, identify where "
    "quality most likely degraded, assess how environmental conditions "
    "contributed, and give practical, specific suggestions separately for the "
    "farmer, the transporter and the vendor. Use simple, farmer-friendly "
    "language. State your confidence as High, Medium or Low with a short reason."
)

ANALYSIS_TOOL = function_tool(
    "analyze_crop_quality",
    "Analyze crop quality and provide recommendations",
    {field: "string" for field in AnalysisResult.model_fields},
)

_MISSING_DATA_TIP = "Please ensure all data is submitted for accurate analysis."


def fallback_analysis(content: str | None) -> AnalysisResult:
    """Placeholder result stored when the model answer has no usable structure."""
    return AnalysisResult(
        degradation_point="Unable to determine",
        environmental_impact="Analysis incomplete",
        confidence_level="Low",
        farmer_suggestions=_MISSING_DATA_TIP,
        transporter_suggestions=_MISSING_DATA_TIP,
        vendor_suggestions=_MISSING_DATA_TIP,
        summary=content or "Analysis could not be completed.",
    )


def _line(label: str, value: Any, suffix: str = "") -> str:
    return f"- {label}: {value}{suffix}\n"


def build_analysis_prompt(
    batch: Batch,
    transport_log: TransportLog | None,
    vendor_receipt: VendorReceipt | None,
    environmental_data: Sequence[EnvironmentalData],
) -> str:
    prompt = "Analyze this crop batch journey and identify quality issues:\n\n"

    prompt += "## BATCH INFORMATION\n"
    prompt += _line("Crop Type", batch.crop_type)
    prompt += _line("Harvest Time", batch.harvest_time.isoformat())
    prompt += _line("Expected Quality", batch.expected_quality)
    prompt += _line("Quantity", batch.quantity_kg, " kg")
    if batch.farm_gps_lat is not None:
        prompt += _line("Farm Location", f"{batch.farm_gps_lat}, {batch.farm_gps_lng}")
    if batch.notes:
        prompt += _line("Farmer Notes", batch.notes)

    if transport_log is not None:
        prompt += "\n## TRANSPORT INFORMATION\n"
        if transport_log.pickup_time:
            prompt += _line("Pickup Time", transport_log.pickup_time.isoformat())
        if transport_log.drop_time:
            prompt += _line("Drop Time", transport_log.drop_time.isoformat())
        if transport_log.transport_type:
            prompt += _line("Transport Type", transport_log.transport_type)
        if transport_log.temperature_maintained:
            prompt += _line("Temperature Control", transport_log.temperature_maintained)
        if transport_log.delay_reason:
            prompt += _line("Delay Reason", transport_log.delay_reason)

    if vendor_receipt is not None:
        prompt += "\n## RECEIPT INFORMATION\n"
        if vendor_receipt.received_at:
            prompt += _line("Received At", vendor_receipt.received_at.isoformat())
        if vendor_receipt.quality_grade:
            prompt += _line("Quality Grade", vendor_receipt.quality_grade)
        if vendor_receipt.spoilage_percentage is not None:
            prompt += _line("Spoilage", vendor_receipt.spoilage_percentage, "%")
        if vendor_receipt.weight_loss_percentage is not None:
            prompt += _line("Weight Loss", vendor_receipt.weight_loss_percentage, "%")
        if vendor_receipt.received_quantity_kg is not None:
            prompt += _line("Received Quantity", vendor_receipt.received_quantity_kg, " kg")

    if environmental_data:
        prompt += "\n## ENVIRONMENTAL CONDITIONS\n"
        for env in environmental_data:
            prompt += f"\n### {env.stage.upper()} Stage ({env.recorded_at.isoformat()})\n"
            if env.temperature_celsius is not None:
                prompt += _line("Temperature", env.temperature_celsius, "°C")
            if env.humidity_percentage is not None:
                prompt += _line("Humidity", env.humidity_percentage, "%")
            if env.weather_condition:
                prompt += _line("Weather", env.weather_condition)
            if env.air_quality_index is not None:
                prompt += _line("Air Quality Index", env.air_quality_index)
            if env.uv_index is not None:
                prompt += _line("UV Index", env.uv_index)
            if env.precipitation_mm is not None:
                prompt += _line("Precipitation", env.precipitation_mm, "mm")
            if env.wind_speed_kmh is not None:
                prompt += _line("Wind Speed", env.wind_speed_kmh, " km/h")

    prompt += "\nBased on this data, provide a comprehensive analysis of the crop quality journey."
    return prompt


def _nested_value(data: Any, key: str) -> Any:
    return data.get(key) if isinstance(data, dict) else None


def _structured(raw: Any) -> AnalysisResult | None:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, dict):
        return None
    try:
        return AnalysisResult.model_validate(raw)
    except ValidationError:
        return None


def parse_analysis(completion: Any) -> tuple[AnalysisResult, bool]:
    """Extract the result from a chat completion.

    Returns (result, structured).  ``structured`` is False when the
    placeholder result had to be used.
    """
    choices = _nested_value(completion, "choices")
    first = choices[0] if isinstance(choices, list) and choices else None
    message = _nested_value(first, "message")
    if not isinstance(message, dict):
        message = {}

    tool_calls = message.get("tool_calls")
    for call in tool_calls if isinstance(tool_calls, list) else []:
        result = _structured(_nested_value(_nested_value(call, "function"), "arguments"))
        if result is not None:
            return result, True

    content = message.get("content")
    result = _structured(content)
    if result is not None:
        return result, True

    logger.warning("LLM answer had no structured analysis, storing placeholders")
    return fallback_analysis(content if isinstance(content, str) else None), False


async def run_analysis(
    db: AsyncSession,
    client: httpx.AsyncClient,
    actor: Actor,
    batch_id: str,
) -> tuple[AIAnalysis, bool]:
    """Analyze a batch and upsert its ai_analysis row.

    Returns (row, structured).

    Raises:
        ResourceNotFoundError: batch unknown or not visible
        PermissionDeniedError: caller is not a participant
        InvalidTransitionError: batch is not received or analyzed
        UpstreamQuotaError / UpstreamServiceError: gateway failures
    """
    ctx = await load_batch_context(db, actor, batch_id)
    enforce(
        Table.AI_ANALYSIS, Operation.INSERT, actor, {"batch_id": batch_id},
        ctx.participants,
        message="Only participants of a batch can analyze it",
    )
    check_transition(ctx.batch.status, "complete_analysis")

    env_rows = (
        await db.execute(
            select(EnvironmentalData)
            .where(EnvironmentalData.batch_id == batch_id)
            .order_by(EnvironmentalData.recorded_at.asc())
        )
    ).scalars().all()

    prompt = build_analysis_prompt(ctx.batch, ctx.transport_log, ctx.vendor_receipt, env_rows)
    completion = await create_chat_completion(
        client,
        [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        tool=ANALYSIS_TOOL,
        failure_message=ANALYSIS_FAILED_MESSAGE,
    )
    result, structured = parse_analysis(completion)

    row = (
        await db.execute(select(AIAnalysis).where(AIAnalysis.batch_id == batch_id))
    ).scalar_one_or_none()
    if row is None:
        row = AIAnalysis(batch_id=batch_id)
        db.add(row)
    else:
        enforce(Table.AI_ANALYSIS, Operation.UPDATE, actor, row, ctx.participants)

    row.analyzed_at = utcnow()
    row.degradation_point = result.degradation_point
    row.environmental_impact = result.environmental_impact
    row.confidence_level = result.confidence_level
    row.farmer_suggestions = result.farmer_suggestions
    row.transporter_suggestions = result.transporter_suggestions
    row.vendor_suggestions = result.vendor_suggestions
    row.full_analysis = result.model_dump()

    apply_transition(ctx.batch, "complete_analysis")
    await db.flush()

    logger.info(
        f"Batch {batch_id} analyzed by {actor.user_id} "
        f"(confidence: {result.confidence_level}, structured: {structured})"
    )
    return row, structured
