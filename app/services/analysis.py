"""
Analysis runs - wire the pure core together and guard overlapping runs.

Public API
----------
generate_artifacts(events, students, now)          -> GeneratedArtifacts (pure)
suggest_for_event(event, events, students, now)    -> list[Artifact]     (pure)
AnalysisCoordinator.run(events, students, gateway, token, now) -> AnalysisResult

Generation handling
-------------------
Every trigger takes the next generation number. Runs pass through a gate
one at a time. Each request carries its own events, so every run is
generated, persisted and returned to its caller; only publishing as the
current risk is guarded: a result whose generation is older than the last
published one is not published. The detector functions know nothing
about this.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence

from app.services.aggregator import Aggregation, BehaviorEvent, Student, aggregate, normalize
from app.services.assembler import Artifact, assemble
from app.services.detectors import (
    INSIGHT_DETECTORS,
    PREDICTION_DETECTORS,
    SUGGESTION_DETECTORS,
    DetectorContext,
    run_detectors,
)
from app.services.persistence import BatchOutcome, PersistenceGateway
from app.services.risk import EntityRisk, RiskSummary, score_entities, summarize_risk

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class GeneratedArtifacts:
    aggregation: Aggregation
    risk: RiskSummary
    entity_risks: list[EntityRisk]
    insights: list[Artifact]
    predictions: list[Artifact]

    @property
    def artifacts(self) -> list[Artifact]:
        return self.insights + self.predictions


@dataclass
class AnalysisResult:
    generation: int
    generated: GeneratedArtifacts
    persistence: BatchOutcome
    published: bool = True

    @property
    def artifacts(self) -> list[Artifact]:
        return self.persistence.artifacts

    @property
    def insights(self) -> list[Artifact]:
        return [a for a in self.artifacts if a.kind == "insight"]

    @property
    def predictions(self) -> list[Artifact]:
        return [a for a in self.artifacts if a.kind == "prediction"]


# ---------------------------------------------------------------------------
# Pure pipeline
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _context(
    aggregation: Aggregation,
    students: Sequence[Student],
    entity_risks: Sequence[EntityRisk],
    events: Sequence[BehaviorEvent],
) -> DetectorContext:
    return DetectorContext(
        snapshot=aggregation.snapshot,
        recent=tuple(aggregation.recent),
        previous=tuple(aggregation.previous),
        students=tuple(students),
        now=aggregation.now,
        entity_risks=tuple(entity_risks),
        events=tuple(events),
    )


def generate_artifacts(
    events: Sequence[BehaviorEvent],
    students: Sequence[Student],
    now: Optional[datetime] = None,
) -> GeneratedArtifacts:
    """Aggregator → risk scorer → detectors → assembler. No I/O."""
    aggregation = aggregate(events, now or _utcnow())
    entity_risks = score_entities(aggregation.recent, students, aggregation.now)
    risk = summarize_risk(aggregation.recent)

    ctx = _context(aggregation, students, entity_risks, [normalize(e) for e in events])
    insights = assemble(run_detectors(INSIGHT_DETECTORS, ctx), aggregation, len(students))
    predictions = assemble(run_detectors(PREDICTION_DETECTORS, ctx), aggregation, len(students))
    return GeneratedArtifacts(
        aggregation=aggregation,
        risk=risk,
        entity_risks=entity_risks,
        insights=insights,
        predictions=predictions,
    )


def suggest_for_event(
    event: BehaviorEvent,
    events: Sequence[BehaviorEvent],
    students: Sequence[Student],
    now: Optional[datetime] = None,
) -> list[Artifact]:
    """Contextual suggestions for one in-flight event."""
    aggregation = aggregate(events, now or _utcnow())
    ctx = _context(aggregation, students, (), [normalize(e) for e in events])
    candidates = run_detectors(SUGGESTION_DETECTORS, ctx, normalize(event))
    return assemble(candidates, aggregation, len(students))


# ---------------------------------------------------------------------------
# Coordinator (caller layer)
# ---------------------------------------------------------------------------

class AnalysisCoordinator:
    """Owns the generation counter, the run gate and the current risk value."""

    def __init__(self):
        self._gate = threading.Lock()
        self._counter_lock = threading.Lock()
        self._generation = 0
        self._published = 0
        self._latest: Optional[AnalysisResult] = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def latest(self) -> Optional[AnalysisResult]:
        return self._latest

    @property
    def current_risk(self) -> Optional[RiskSummary]:
        return self._latest.generated.risk if self._latest else None

    def begin(self) -> int:
        with self._counter_lock:
            self._generation += 1
            return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def publish(self, result: AnalysisResult) -> bool:
        """Keep `result` unless a newer generation has already been published."""
        with self._counter_lock:
            if result.generation < self._published:
                logger.info(
                    "Not publishing analysis generation %d (latest %d)",
                    result.generation, self._published,
                )
                return False
            self._published = result.generation
            self._latest = result
            return True

    def run(
        self,
        events: Sequence[BehaviorEvent],
        students: Sequence[Student],
        gateway: PersistenceGateway,
        token: Optional[str],
        now: Optional[datetime] = None,
        generation: Optional[int] = None,
    ) -> AnalysisResult:
        """
        Generate, persist and offer one run for publishing. The caller always
        gets its own artifacts back; `published` is False when a newer
        generation had already been published by the time this one finished.
        """
        generation = generation if generation is not None else self.begin()
        with self._gate:
            if not self.is_current(generation):
                logger.info("Analysis generation %d superseded while waiting", generation)
            generated = generate_artifacts(events, students, now)
            outcome = gateway.save_batch(generated.artifacts, token)
            result = AnalysisResult(generation=generation, generated=generated, persistence=outcome)
            result.published = self.publish(result)
            return result


coordinator = AnalysisCoordinator()
