"""
Artifact store router. Every route requires the store bearer token.

POST   /artifacts                   - store a generated artifact
GET    /artifacts                   - list active artifacts (paginated, newest first)
GET    /artifacts/stats/overview    - totals and breakdowns
GET    /artifacts/entity/{id}       - artifacts related to one student
GET    /artifacts/{id}              - single artifact
POST   /artifacts/{id}/apply        - record that a teacher applied an action (idempotent)
POST   /artifacts/{id}/feedback     - teacher rating + comment
POST   /artifacts/{id}/outcome      - prediction outcome and accuracy
DELETE /artifacts/{id}              - soft retire (is_active = false)
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.security import require_store_token
from app.db.base import get_db
from app.models.action_record import ActionRecord
from app.models.artifact import Artifact
from app.schemas.common import NOT_FOUND, UNAUTHORIZED
from app.schemas.artifact import (
    ActionRecordResponse,
    ApplyRequest,
    ApplyResponse,
    ArtifactCreate,
    ArtifactListResponse,
    ArtifactResponse,
    ArtifactStatsResponse,
    BreakdownItem,
    FeedbackRequest,
    OutcomeRequest,
)
from app.services import artifact_store
from app.services.artifact_store import loads

router = APIRouter(
    prefix="/artifacts",
    tags=["artifacts"],
    dependencies=[Depends(require_store_token)],
    responses=UNAUTHORIZED,
)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _ev(v) -> Optional[str]:
    """Extract bare string value from a str-enum or plain str."""
    if v is None:
        return None
    return v.value if hasattr(v, "value") else str(v)


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def artifact_to_response(a: Artifact) -> ArtifactResponse:
    return ArtifactResponse(
        id=a.id,
        kind=a.kind,
        detector=a.detector,
        signal=a.signal,
        title=a.title,
        description=a.description,
        priority=a.priority,
        category=a.category,
        confidence=a.confidence,
        actions=loads(a.actions, []),
        data=loads(a.data, []),
        data_snapshot=loads(a.data_snapshot),
        related_entities=loads(a.related_entities, []),
        risk_level=a.risk_level,
        timeframe=a.timeframe,
        analysis_version=a.analysis_version,
        generated_at=_iso(a.generated_at) or "",
        expires_at=_iso(a.expires_at),
        is_active=a.is_active,
        is_applied=a.is_applied,
        applied_at=_iso(a.applied_at),
        applied_action=a.applied_action,
        feedback_rating=a.feedback_rating,
        feedback_comment=a.feedback_comment,
        predicted_behavior=a.predicted_behavior,
        prediction_accuracy=a.prediction_accuracy,
        outcome_occurred=a.outcome_occurred,
        outcome_actual_behavior=a.outcome_actual_behavior,
    )


def action_to_response(r: ActionRecord) -> ActionRecordResponse:
    return ActionRecordResponse(
        id=r.id,
        artifact_id=r.artifact_id,
        action_type=r.action_type,
        title=r.title,
        chosen_action=r.chosen_action,
        description=r.description,
        status=_ev(r.status),
        priority=r.priority,
        urgency=r.urgency,
        outcome_success=r.outcome_success,
        outcome_impact=_ev(r.outcome_impact),
        outcome_notes=r.outcome_notes,
        feedback_effectiveness=r.feedback_effectiveness,
        feedback_comments=r.feedback_comments,
        completed_at=_iso(r.completed_at),
        created_at=_iso(r.created_at) or "",
    )


def _breakdown(items: dict[str, tuple[int, int]]) -> list[BreakdownItem]:
    return [
        BreakdownItem(key=key, count=count, applied=applied)
        for key, (count, applied) in sorted(items.items())
    ]


# ---------------------------------------------------------------------------
# Create / list
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=ArtifactResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Store a generated artifact",
)
def create_artifact(body: ArtifactCreate, db: Session = Depends(get_db)):
    """
    Persist an insight, prediction or suggestion and echo it back with its
    durable `id`. `expires_at` is set to `generated_at` + ARTIFACT_TTL_DAYS.
    """
    return artifact_to_response(artifact_store.create_artifact(db, body))


@router.get(
    "",
    response_model=ArtifactListResponse,
    summary="List active artifacts (newest first)",
)
def list_artifacts(
    kind: Optional[str] = Query(default=None, description='"insight" | "prediction" | "suggestion"'),
    signal: Optional[str] = Query(default=None, examples=["warning"]),
    priority: Optional[str] = Query(default=None, examples=["high"]),
    is_applied: Optional[bool] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    db: Session = Depends(get_db),
):
    total, items = artifact_store.list_artifacts(
        db,
        kind=kind,
        signal=signal,
        priority=priority,
        is_applied=is_applied,
        limit=limit,
        offset=offset,
    )
    return ArtifactListResponse(
        total=total,
        items=[artifact_to_response(a) for a in items],
    )


@router.get(
    "/stats/overview",
    response_model=ArtifactStatsResponse,
    summary="Artifact statistics",
)
def stats_overview(db: Session = Depends(get_db)):
    stats = artifact_store.artifact_stats(db)
    return ArtifactStatsResponse(
        total=stats.total,
        applied=stats.applied,
        high_priority=stats.high_priority,
        average_confidence=stats.average_confidence,
        by_kind=_breakdown(stats.by_kind),
        by_signal=_breakdown(stats.by_signal),
        by_priority=_breakdown(stats.by_priority),
    )


@router.get(
    "/entity/{entity_id}",
    response_model=list[ArtifactResponse],
    summary="Artifacts related to one student",
)
def artifacts_for_entity(entity_id: str, db: Session = Depends(get_db)):
    return [artifact_to_response(a) for a in artifact_store.list_for_entity(db, entity_id)]


# ---------------------------------------------------------------------------
# Single artifact
# ---------------------------------------------------------------------------

@router.get(
    "/{artifact_id}",
    response_model=ArtifactResponse,
    summary="Get one artifact",
    responses=NOT_FOUND,
)
def get_artifact(artifact_id: int, db: Session = Depends(get_db)):
    return artifact_to_response(artifact_store.get_artifact(db, artifact_id))


@router.post(
    "/{artifact_id}/apply",
    response_model=ApplyResponse,
    summary="Apply an artifact's action",
    responses=NOT_FOUND,
)
def apply_artifact(
    artifact_id: int,
    body: Optional[ApplyRequest] = None,
    db: Session = Depends(get_db),
):
    """
    Mark the artifact applied and create an ActionRecord for the chosen
    action (default: the top action).

    Idempotent per (artifact, chosen_action): repeating the call returns the
    existing record with `created: false`.
    """
    body = body or ApplyRequest()
    feedback = body.feedback
    result = artifact_store.apply_artifact(
        db,
        artifact_id,
        chosen_action=body.chosen_action,
        rating=feedback.rating if feedback else None,
        comment=feedback.comment if feedback else None,
    )
    return ApplyResponse(
        message=(
            "Artifact applied successfully" if result.created
            else "Action already recorded for this artifact"
        ),
        created=result.created,
        artifact=artifact_to_response(result.artifact),
        action_record=action_to_response(result.record),
    )


@router.post(
    "/{artifact_id}/feedback",
    response_model=ArtifactResponse,
    summary="Rate an artifact",
)
def artifact_feedback(artifact_id: int, body: FeedbackRequest, db: Session = Depends(get_db)):
    artifact = artifact_store.record_feedback(db, artifact_id, body.rating, body.comment)
    return artifact_to_response(artifact)


@router.post(
    "/{artifact_id}/outcome",
    response_model=ArtifactResponse,
    summary="Record whether a predicted behavior occurred",
)
def artifact_outcome(artifact_id: int, body: OutcomeRequest, db: Session = Depends(get_db)):
    """
    ### Accuracy
    | occurred | actual == predicted | prediction_accuracy |
    |---|---|---|
    | false | – | `incorrect` |
    | true  | yes | `correct` |
    | true  | no  | `partially_correct` |
    """
    artifact = artifact_store.record_outcome(
        db,
        artifact_id,
        occurred=body.occurred,
        actual_behavior=body.actual_behavior,
        severity=body.severity,
        notes=body.notes,
    )
    return artifact_to_response(artifact)


@router.delete(
    "/{artifact_id}",
    summary="Retire an artifact (soft delete)",
)
def deactivate_artifact(artifact_id: int, db: Session = Depends(get_db)):
    artifact_store.deactivate_artifact(db, artifact_id)
    return {"message": "Artifact deactivated successfully", "id": artifact_id}
