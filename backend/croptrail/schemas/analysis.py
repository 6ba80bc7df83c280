"""Pydantic schemas for LLM batch analysis."""

from datetime import datetime

from pydantic import BaseModel, Field

from croptrail.models.batch import BatchStatus


class AnalysisRequest(BaseModel):
    batch_id: str = Field(..., min_length=1)


class AnalysisResult(BaseModel):
    """The structured answer requested from the model."""
    degradation_point: str
    environmental_impact: str
    confidence_level: str
    farmer_suggestions: str
    transporter_suggestions: str
    vendor_suggestions: str
    summary: str


class AIAnalysisOut(BaseModel):
    id: str
    batch_id: str
    analyzed_at: datetime
    degradation_point: str | None
    environmental_impact: str | None
    confidence_level: str | None
    farmer_suggestions: str | None
    transporter_suggestions: str | None
    vendor_suggestions: str | None
    full_analysis: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AnalysisResponse(BaseModel):
    success: bool = True
    status: BatchStatus
    # False when the model answer could not be parsed and placeholders were stored
    structured: bool
    analysis: AIAnalysisOut
