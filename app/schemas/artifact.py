"""
Artifact store schemas.

POST /artifacts                → ArtifactCreate → ArtifactResponse
GET  /artifacts                → ArtifactListResponse
POST /artifacts/{id}/apply     → ApplyRequest → ApplyResponse
POST /artifacts/{id}/feedback  → FeedbackRequest → ArtifactResponse
POST /artifacts/{id}/outcome   → OutcomeRequest → ArtifactResponse
GET  /artifacts/stats/overview → ArtifactStatsResponse
/actions/*                     → ActionRecordResponse, ActionOutcomeRequest, ActionFeedbackRequest
"""
from datetime import datetime
from typing import Any, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


ArtifactKindLiteral = Literal["insight", "prediction", "suggestion"]
PriorityLiteral = Literal["low", "medium", "high", "critical"]


class ArtifactCreate(BaseModel):
    kind: ArtifactKindLiteral
    detector: str = Field(min_length=1, max_length=64)
    signal: str = Field(min_length=1, max_length=32)
    title: str = Field(min_length=1, max_length=256)
    description: str = Field(min_length=1)
    priority: PriorityLiteral
    category: str = Field(min_length=1, max_length=64)
    confidence: float = Field(default=0.0, ge=0, le=100)
    actions: list[str] = Field(min_length=1)
    data: list[dict[str, Any]] = Field(default_factory=list)
    generated_at: Optional[datetime] = None
    data_snapshot: Optional[dict[str, Any]] = None
    related_entities: list[str] = Field(default_factory=list)
    risk_level: Optional[str] = None
    timeframe: Optional[str] = None
    predicted_behavior: Optional[str] = None
    analysis_version: Optional[str] = None


class ArtifactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    detector: str
    signal: str
    title: str
    description: str
    priority: str
    category: str
    confidence: float
    actions: list[str]
    data: list[dict[str, Any]]
    data_snapshot: Optional[dict[str, Any]] = None
    related_entities: list[str]
    risk_level: Optional[str] = None
    timeframe: Optional[str] = None
    analysis_version: Optional[str] = None
    generated_at: str
    expires_at: Optional[str] = None
    is_active: bool
    is_applied: bool
    applied_at: Optional[str] = None
    applied_action: Optional[str] = None
    feedback_rating: Optional[int] = None
    feedback_comment: Optional[str] = None
    predicted_behavior: Optional[str] = None
    prediction_accuracy: Optional[str] = None
    outcome_occurred: Optional[bool] = None
    outcome_actual_behavior: Optional[str] = None


class ArtifactListResponse(BaseModel):
    total: int
    items: list[ArtifactResponse]


class FeedbackIn(BaseModel):
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = None


class ApplyRequest(BaseModel):
    chosen_action: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=512,
        description="Action to apply. Defaults to the artifact's top action.",
    )
    feedback: Optional[FeedbackIn] = None


class FeedbackRequest(FeedbackIn):
    rating: int = Field(ge=1, le=5)


class OutcomeRequest(BaseModel):
    occurred: bool
    actual_behavior: Optional[str] = None
    severity: Optional[str] = None
    notes: Optional[str] = None


class ActionRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    artifact_id: int
    action_type: str
    title: str
    chosen_action: str
    description: Optional[str] = None
    status: str
    priority: str
    urgency: str
    outcome_success: Optional[bool] = None
    outcome_impact: Optional[str] = None
    outcome_notes: Optional[str] = None
    feedback_effectiveness: Optional[int] = None
    feedback_comments: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: str


class ActionRecordListResponse(BaseModel):
    total: int
    items: list[ActionRecordResponse]


class ApplyResponse(BaseModel):
    message: str
    created: bool = Field(description="False when this action was already recorded.")
    artifact: ArtifactResponse
    action_record: ActionRecordResponse


class ActionOutcomeRequest(BaseModel):
    success: Optional[bool] = None
    impact: Optional[Literal["positive", "negative", "neutral", "unknown"]] = None
    notes: Optional[str] = None
    status: Optional[Literal["planned", "in_progress", "completed", "cancelled", "failed"]] = None


class ActionFeedbackRequest(BaseModel):
    effectiveness: int = Field(ge=1, le=5)
    comments: Optional[str] = None


class BreakdownItem(BaseModel):
    key: str
    count: int
    applied: int


class ArtifactStatsResponse(BaseModel):
    total: int
    applied: int
    high_priority: int = Field(description="Artifacts with priority high or critical.")
    average_confidence: float
    by_kind: list[BreakdownItem]
    by_signal: list[BreakdownItem]
    by_priority: list[BreakdownItem]
