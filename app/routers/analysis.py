"""
Analysis router - runs the detector pipeline over a batch of events.

POST /analysis/run          - insights + predictions for a batch, persisted via the store
POST /analysis/suggestions  - contextual suggestions for one in-flight event
GET  /analysis/risk         - current risk value (from the latest published run)

The optional `Authorization: Bearer` header is the store credential. It is
passed explicitly to the persistence gateway; without it nothing is sent to
the store and artifacts come back in-memory.
"""
from __future__ import annotations

from typing import Iterator, Optional

from fastapi import APIRouter, Depends

from app.core.security import bearer_token
from app.schemas.analysis import (
    AnalysisRequest,
    AnalysisResponse,
    ArtifactOut,
    BehaviorEventIn,
    EntityRiskOut,
    PersistenceOut,
    RiskResponse,
    StudentIn,
    SuggestionRequest,
    SuggestionResponse,
)
from app.services.aggregator import BehaviorEvent, Student
from app.services.analysis import coordinator, suggest_for_event
from app.services.assembler import Artifact
from app.services.persistence import BatchOutcome, PersistenceGateway
from app.services.risk import EntityRisk, RiskSummary
from app.services.store_client import ArtifactStore, HttpArtifactStore

router = APIRouter(prefix="/analysis", tags=["analysis"])


def get_artifact_store() -> Iterator[ArtifactStore]:
    store = HttpArtifactStore()
    try:
        yield store
    finally:
        store.close()


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def _to_event(e: BehaviorEventIn) -> BehaviorEvent:
    return BehaviorEvent(
        category=e.behavior_type,
        entity_id=e.student_id,
        subject=e.subject,
        time_of_day=e.time_of_day,
        severity=e.severity,
        occurred_at=e.date,
        created_at=e.created_at,
        id=e.id,
    )


def _to_students(students: list[StudentIn]) -> list[Student]:
    return [Student(id=s.id, name=s.name) for s in students]


def _artifact_out(a: Artifact) -> ArtifactOut:
    return ArtifactOut(
        id=a.id,
        kind=a.kind,
        detector=a.detector,
        signal=a.signal,
        title=a.title,
        description=a.description,
        priority=a.priority,
        category=a.category,
        confidence=a.confidence,
        actions=list(a.actions),
        data=list(a.data),
        data_snapshot=a.data_snapshot,
        related_entities=list(a.related_entities),
        risk_level=a.risk_level,
        timeframe=a.timeframe,
        generated_at=a.generated_at.isoformat(),
        is_persisted=a.is_persisted,
        is_local=a.is_local,
        is_applied=a.is_applied,
    )


def _risk_out(risk: Optional[RiskSummary], generation: int) -> RiskResponse:
    if risk is None:
        return RiskResponse(
            overall="low", percentage=0.0, total_incidents=0,
            high_severity_count=0, generation=0,
        )
    return RiskResponse(
        overall=risk.overall.value,
        percentage=risk.percentage,
        total_incidents=risk.total_incidents,
        high_severity_count=risk.high_severity_count,
        generation=generation,
    )


def _entity_risk_out(r: EntityRisk) -> EntityRiskOut:
    return EntityRiskOut(
        entity_id=r.entity_id,
        name=r.name,
        score=r.score,
        negative_count=r.negative_count,
        total_events=r.total_events,
        days_since_last_event=r.days_since_last_event,
    )


def _persistence_out(outcome: BatchOutcome) -> PersistenceOut:
    return PersistenceOut(
        status=outcome.status.value,
        session_invalid=outcome.session_invalid,
        attempted=outcome.attempted,
        persisted=outcome.persisted_count,
        local=outcome.local_count,
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.post("/run", response_model=AnalysisResponse, summary="Run the analysis pipeline")
def run_analysis(
    body: AnalysisRequest,
    token: Optional[str] = Depends(bearer_token),
    store: ArtifactStore = Depends(get_artifact_store),
):
    """
    Aggregate the events, score risk, run every insight and prediction
    detector and persist the results.

    A rejected credential does not fail the request: the response is a 200
    with `persistence.session_invalid: true` and every generated artifact
    in the body. Every request gets the artifacts generated from its own
    events; `stale: true` means a newer run had already been published, so
    this one did not become the current risk value.
    """
    result = coordinator.run(
        [_to_event(e) for e in body.events],
        _to_students(body.students),
        PersistenceGateway(store),
        token,
        now=body.now,
    )
    aggregation = result.generated.aggregation
    return AnalysisResponse(
        generation=result.generation,
        stale=not result.published,
        total_events=aggregation.snapshot.total_events,
        recent_events=len(aggregation.recent),
        previous_events=len(aggregation.previous),
        risk=_risk_out(result.generated.risk, result.generation),
        entity_risks=[_entity_risk_out(r) for r in result.generated.entity_risks],
        insights=[_artifact_out(a) for a in result.insights],
        predictions=[_artifact_out(a) for a in result.predictions],
        persistence=_persistence_out(result.persistence),
    )


@router.post(
    "/suggestions",
    response_model=SuggestionResponse,
    summary="Suggestions for one behavior event",
)
def suggestions(
    body: SuggestionRequest,
    token: Optional[str] = Depends(bearer_token),
    store: ArtifactStore = Depends(get_artifact_store),
):
    generated = suggest_for_event(
        _to_event(body.event),
        [_to_event(e) for e in body.events],
        _to_students(body.students),
        now=body.now,
    )
    if not body.persist:
        return SuggestionResponse(suggestions=[_artifact_out(a) for a in generated])

    outcome = PersistenceGateway(store).save_batch(generated, token)
    return SuggestionResponse(
        suggestions=[_artifact_out(a) for a in outcome],
        persistence=_persistence_out(outcome),
    )


@router.get("/risk", response_model=RiskResponse, summary="Current risk value")
def current_risk():
    latest = coordinator.latest
    return _risk_out(coordinator.current_risk, latest.generation if latest else 0)
