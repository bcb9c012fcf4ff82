"""
Action record router. Requires the store bearer token.

GET   /actions                  - list action records (filter by artifact / status)
GET   /actions/{id}             - single record
PATCH /actions/{id}/outcome     - update outcome fields
POST  /actions/{id}/feedback    - effectiveness rating + comments

Records are otherwise immutable.
"""
from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.security import require_store_token
from app.db.base import get_db
from app.routers.artifacts import action_to_response
from app.schemas.common import NOT_FOUND, UNAUTHORIZED
from app.schemas.artifact import (
    ActionFeedbackRequest,
    ActionOutcomeRequest,
    ActionRecordListResponse,
    ActionRecordResponse,
)
from app.services import artifact_store

router = APIRouter(
    prefix="/actions",
    tags=["actions"],
    dependencies=[Depends(require_store_token)],
    responses=UNAUTHORIZED,
)


@router.get("", response_model=ActionRecordListResponse, summary="List action records")
def list_actions(
    artifact_id: Optional[int] = Query(default=None),
    status: Optional[Literal["planned", "in_progress", "completed", "cancelled", "failed"]] = Query(
        default=None
    ),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    total, items = artifact_store.list_actions(
        db, artifact_id=artifact_id, status=status, limit=limit, offset=offset
    )
    return ActionRecordListResponse(
        total=total,
        items=[action_to_response(r) for r in items],
    )


@router.get(
    "/{record_id}",
    response_model=ActionRecordResponse,
    summary="Get one action record",
    responses=NOT_FOUND,
)
def get_action(record_id: int, db: Session = Depends(get_db)):
    return action_to_response(artifact_store.get_action(db, record_id))


@router.patch(
    "/{record_id}/outcome",
    response_model=ActionRecordResponse,
    summary="Update an action's outcome",
)
def update_outcome(record_id: int, body: ActionOutcomeRequest, db: Session = Depends(get_db)):
    record = artifact_store.update_action_outcome(
        db,
        record_id,
        success=body.success,
        impact=body.impact,
        notes=body.notes,
        status=body.status,
    )
    return action_to_response(record)


@router.post(
    "/{record_id}/feedback",
    response_model=ActionRecordResponse,
    summary="Rate an action's effectiveness",
)
def action_feedback(record_id: int, body: ActionFeedbackRequest, db: Session = Depends(get_db)):
    record = artifact_store.record_action_feedback(db, record_id, body.effectiveness, body.comments)
    return action_to_response(record)
