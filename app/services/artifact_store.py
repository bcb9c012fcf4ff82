"""
Artifact store service - database side of the /artifacts and /actions routes.

Public API
----------
create_artifact(db, data)                          -> Artifact
list_artifacts(db, kind, signal, priority, ...)    -> (total, page)
get_artifact(db, artifact_id)                      -> Artifact
list_for_entity(db, entity_id)                     -> list[Artifact]
apply_artifact(db, artifact_id, action, feedback)  -> ApplyResult   (idempotent)
record_feedback(db, artifact_id, rating, comment)  -> Artifact
record_outcome(db, artifact_id, ...)               -> Artifact
deactivate_artifact(db, artifact_id)               -> Artifact
artifact_stats(db)                                 -> ArtifactStats
list_actions / get_action / update_action_outcome / record_action_feedback

Idempotency
-----------
apply_artifact checks for an existing ActionRecord with the same
(artifact_id, chosen_action) before creating one. The unique constraint on
action_records is the final guard: a concurrent duplicate insert is rolled
back and the existing row returned.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    ActionRecordNotFoundError,
    ArtifactHasNoActionsError,
    ArtifactNotFoundError,
)
from app.models.action_record import ActionImpact, ActionRecord, ActionStatus
from app.models.artifact import Artifact, PredictionAccuracy
from app.schemas.artifact import ArtifactCreate


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class ApplyResult:
    artifact: Artifact
    record: ActionRecord
    created: bool


@dataclass
class ArtifactStats:
    total: int
    applied: int
    high_priority: int
    average_confidence: float
    # key → (count, applied)
    by_kind: dict[str, tuple[int, int]] = field(default_factory=dict)
    by_signal: dict[str, tuple[int, int]] = field(default_factory=dict)
    by_priority: dict[str, tuple[int, int]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _dumps(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


def loads(raw: Optional[str], default: Any = None) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (ValueError, TypeError):
        return default


def _active(db: Session):
    return db.query(Artifact).filter(Artifact.is_active.is_(True))


def _action_type(kind: str) -> str:
    return "implement_prevention" if kind == "prediction" else "apply_recommendation"


def _urgency(priority: str) -> str:
    return "high" if priority in ("high", "critical") else "medium"


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------

def create_artifact(db: Session, data: ArtifactCreate) -> Artifact:
    generated_at = data.generated_at or _now()
    if generated_at.tzinfo is None:
        generated_at = generated_at.replace(tzinfo=timezone.utc)

    predicted = data.predicted_behavior
    if predicted is None and data.kind == "prediction":
        predicted = data.title

    artifact = Artifact(
        kind=data.kind,
        detector=data.detector,
        signal=data.signal,
        title=data.title,
        description=data.description,
        priority=data.priority,
        category=data.category,
        confidence=data.confidence,
        actions=_dumps(data.actions),
        data=_dumps(data.data),
        data_snapshot=_dumps(data.data_snapshot),
        related_entities=_dumps(data.related_entities),
        risk_level=data.risk_level,
        timeframe=data.timeframe,
        analysis_version=data.analysis_version or settings.ANALYSIS_VERSION,
        predicted_behavior=predicted,
        generated_at=generated_at,
        expires_at=generated_at + timedelta(days=settings.ARTIFACT_TTL_DAYS),
        is_active=True,
        is_applied=False,
    )
    db.add(artifact)
    db.commit()
    db.refresh(artifact)
    return artifact


def get_artifact(db: Session, artifact_id: int) -> Artifact:
    artifact = _active(db).filter(Artifact.id == artifact_id).first()
    if artifact is None:
        raise ArtifactNotFoundError(artifact_id)
    return artifact


def list_artifacts(
    db: Session,
    kind: Optional[str] = None,
    signal: Optional[str] = None,
    priority: Optional[str] = None,
    is_applied: Optional[bool] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, list[Artifact]]:
    """Return (total, page) of active artifacts, newest first."""
    q = _active(db)
    if kind:
        q = q.filter(Artifact.kind == kind)
    if signal:
        q = q.filter(Artifact.signal == signal)
    if priority:
        q = q.filter(Artifact.priority == priority)
    if is_applied is not None:
        q = q.filter(Artifact.is_applied.is_(is_applied))
    total = q.count()
    items = (
        q.order_by(Artifact.generated_at.desc(), Artifact.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


def list_for_entity(db: Session, entity_id: str) -> list[Artifact]:
    # related_entities is JSON text; narrow with LIKE, then confirm in Python
    candidates = (
        _active(db)
        .filter(Artifact.related_entities.like(f'%"{entity_id}"%'))
        .order_by(Artifact.generated_at.desc(), Artifact.id.desc())
        .all()
    )
    return [a for a in candidates if entity_id in loads(a.related_entities, [])]


def _find_record(db: Session, artifact_id: int, action: str) -> Optional[ActionRecord]:
    return (
        db.query(ActionRecord)
        .filter(
            ActionRecord.artifact_id == artifact_id,
            ActionRecord.chosen_action == action,
        )
        .first()
    )


def apply_artifact(
    db: Session,
    artifact_id: int,
    chosen_action: Optional[str] = None,
    rating: Optional[int] = None,
    comment: Optional[str] = None,
) -> ApplyResult:
    artifact = get_artifact(db, artifact_id)
    actions = loads(artifact.actions, [])
    action = chosen_action or (actions[0] if actions else None)
    if action is None:
        raise ArtifactHasNoActionsError(artifact.id)

    existing = _find_record(db, artifact.id, action)
    if existing is not None:
        return ApplyResult(artifact=artifact, record=existing, created=False)

    now = _now()
    artifact.is_applied = True
    artifact.applied_at = now
    artifact.applied_action = action
    if rating is not None or comment is not None:
        artifact.feedback_rating = rating
        artifact.feedback_comment = comment
        artifact.feedback_at = now

    record = ActionRecord(
        artifact_id=artifact.id,
        action_type=_action_type(artifact.kind),
        title=f"Applied: {artifact.title}"[:300],
        chosen_action=action,
        description=f"Applied {artifact.kind}: {action}",
        status=ActionStatus.completed,
        priority=artifact.priority,
        urgency=_urgency(artifact.priority),
        outcome_success=True,
        outcome_impact=ActionImpact.positive,
        outcome_notes=f"Applied recommendation: {action}",
        completed_at=now,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        # Race condition: another request recorded the same action first
        db.rollback()
        existing = _find_record(db, artifact_id, action)
        if existing is None:
            raise
        return ApplyResult(artifact=get_artifact(db, artifact_id), record=existing, created=False)

    db.refresh(artifact)
    db.refresh(record)
    return ApplyResult(artifact=artifact, record=record, created=True)


def record_feedback(
    db: Session,
    artifact_id: int,
    rating: int,
    comment: Optional[str] = None,
) -> Artifact:
    artifact = get_artifact(db, artifact_id)
    artifact.feedback_rating = rating
    artifact.feedback_comment = comment
    artifact.feedback_at = _now()
    db.commit()
    db.refresh(artifact)
    return artifact


def prediction_accuracy(
    occurred: bool,
    predicted: Optional[str],
    actual: Optional[str],
) -> PredictionAccuracy:
    if not occurred:
        return PredictionAccuracy.incorrect
    if predicted is not None and predicted == actual:
        return PredictionAccuracy.correct
    return PredictionAccuracy.partially_correct


def record_outcome(
    db: Session,
    artifact_id: int,
    occurred: bool,
    actual_behavior: Optional[str] = None,
    severity: Optional[str] = None,
    notes: Optional[str] = None,
) -> Artifact:
    artifact = get_artifact(db, artifact_id)
    artifact.outcome_occurred = occurred
    artifact.outcome_at = _now() if occurred else None
    artifact.outcome_actual_behavior = actual_behavior
    artifact.outcome_severity = severity
    artifact.outcome_notes = notes
    artifact.prediction_accuracy = prediction_accuracy(
        occurred, artifact.predicted_behavior, actual_behavior
    ).value
    db.commit()
    db.refresh(artifact)
    return artifact


def deactivate_artifact(db: Session, artifact_id: int) -> Artifact:
    artifact = get_artifact(db, artifact_id)
    artifact.is_active = False
    db.commit()
    db.refresh(artifact)
    return artifact


def _breakdown(db: Session, column) -> dict[str, tuple[int, int]]:
    rows = (
        db.query(
            column,
            func.count(Artifact.id),
            func.sum(case((Artifact.is_applied.is_(True), 1), else_=0)),
        )
        .filter(Artifact.is_active.is_(True))
        .group_by(column)
        .all()
    )
    return {key: (count, int(applied or 0)) for key, count, applied in rows}


def artifact_stats(db: Session) -> ArtifactStats:
    q = _active(db)
    total = q.count()
    applied = q.filter(Artifact.is_applied.is_(True)).count()
    high = _active(db).filter(Artifact.priority.in_(("high", "critical"))).count()
    avg = (
        db.query(func.avg(Artifact.confidence))
        .filter(Artifact.is_active.is_(True))
        .scalar()
    )
    return ArtifactStats(
        total=total,
        applied=applied,
        high_priority=high,
        average_confidence=round(float(avg or 0.0), 1),
        by_kind=_breakdown(db, Artifact.kind),
        by_signal=_breakdown(db, Artifact.signal),
        by_priority=_breakdown(db, Artifact.priority),
    )


# ---------------------------------------------------------------------------
# Action records
# ---------------------------------------------------------------------------

def list_actions(
    db: Session,
    artifact_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[ActionRecord]]:
    q = db.query(ActionRecord)
    if artifact_id is not None:
        q = q.filter(ActionRecord.artifact_id == artifact_id)
    if status:
        q = q.filter(ActionRecord.status == ActionStatus(status))
    total = q.count()
    items = (
        q.order_by(ActionRecord.created_at.desc(), ActionRecord.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items


def get_action(db: Session, record_id: int) -> ActionRecord:
    record = db.get(ActionRecord, record_id)
    if record is None:
        raise ActionRecordNotFoundError(record_id)
    return record


def update_action_outcome(
    db: Session,
    record_id: int,
    success: Optional[bool] = None,
    impact: Optional[str] = None,
    notes: Optional[str] = None,
    status: Optional[str] = None,
) -> ActionRecord:
    record = get_action(db, record_id)
    if success is not None:
        record.outcome_success = success
    if impact is not None:
        record.outcome_impact = ActionImpact(impact)
    if notes is not None:
        record.outcome_notes = notes
    if status is not None:
        record.status = ActionStatus(status)
        if record.status == ActionStatus.completed and record.completed_at is None:
            record.completed_at = _now()
    db.commit()
    db.refresh(record)
    return record


def record_action_feedback(
    db: Session,
    record_id: int,
    effectiveness: int,
    comments: Optional[str] = None,
) -> ActionRecord:
    record = get_action(db, record_id)
    record.feedback_effectiveness = effectiveness
    record.feedback_comments = comments
    record.feedback_at = _now()
    db.commit()
    db.refresh(record)
    return record
