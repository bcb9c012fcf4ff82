"""
Analysis schemas.

POST /analysis/run          → AnalysisRequest   → AnalysisResponse
POST /analysis/suggestions  → SuggestionRequest → SuggestionResponse
GET  /analysis/risk         → RiskResponse
"""
from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field


class BehaviorEventIn(BaseModel):
    id: Optional[str] = None
    behavior_type: Optional[str] = Field(default=None, examples=["disrupting_class"])
    student_id: Optional[str] = None
    subject: Optional[str] = None
    time_of_day: Optional[str] = Field(default=None, examples=["Morning"])
    severity: Optional[str] = Field(default=None, examples=["high"])
    date: Optional[datetime] = Field(default=None, description="When the behavior occurred.")
    created_at: Optional[datetime] = Field(
        default=None, description="Fallback timestamp when `date` is missing."
    )


class StudentIn(BaseModel):
    id: str
    name: str


class AnalysisRequest(BaseModel):
    events: list[BehaviorEventIn] = Field(default_factory=list)
    students: list[StudentIn] = Field(default_factory=list)
    now: Optional[datetime] = Field(
        default=None, description="Reference instant for the windows. Defaults to now (UTC)."
    )


class SuggestionRequest(AnalysisRequest):
    event: BehaviorEventIn
    persist: bool = Field(default=False, description="Also send suggestions to the store.")


class ArtifactOut(BaseModel):
    id: str
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
    data_snapshot: dict[str, Any]
    related_entities: list[str]
    risk_level: Optional[str] = None
    timeframe: Optional[str] = None
    generated_at: str
    is_persisted: bool
    is_local: bool
    is_applied: bool


class RiskResponse(BaseModel):
    overall: str = Field(description='"low" | "medium" | "high"')
    percentage: float
    total_incidents: int
    high_severity_count: int
    generation: int = Field(description="Run that produced this value; 0 before the first run.")


class EntityRiskOut(BaseModel):
    entity_id: str
    name: str
    score: int
    negative_count: int
    total_events: int
    days_since_last_event: Optional[int] = None


class PersistenceOut(BaseModel):
    status: str = Field(description='"persisted" | "partial" | "skipped" | "session_invalid"')
    session_invalid: bool
    attempted: int
    persisted: int
    local: int


class AnalysisResponse(BaseModel):
    generation: int
    stale: bool = Field(
        description="True when a newer run was already published, so this run is not the current risk."
    )
    total_events: int
    recent_events: int
    previous_events: int
    risk: Optional[RiskResponse] = None
    entity_risks: list[EntityRiskOut] = Field(default_factory=list)
    insights: list[ArtifactOut] = Field(default_factory=list)
    predictions: list[ArtifactOut] = Field(default_factory=list)
    persistence: Optional[PersistenceOut] = None


class SuggestionResponse(BaseModel):
    suggestions: list[ArtifactOut]
    persistence: Optional[PersistenceOut] = None
