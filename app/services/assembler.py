"""
Artifact Assembler - detector candidates → canonical Artifacts.

Stamps `generated_at`, clamps confidence to [0, 100], caps the action list,
attaches a `data_snapshot` describing the input the detectors saw, and
assigns a client-local candidate id (`cand_<hex>`) that the persistence
gateway later swaps for the store's id or a local surrogate id.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional

from app.services.aggregator import Aggregation
from app.services.detectors import Candidate


MAX_ACTIONS = 5
CANDIDATE_PREFIX = "cand_"
LOCAL_PREFIX = "local_"


@dataclass
class ActionRecord:
    """Durable record that a user acted on an artifact."""
    id: str
    artifact_id: str
    chosen_action: str
    action_type: str
    status: str
    outcome_success: Optional[bool] = None
    outcome_impact: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None


@dataclass
class Artifact:
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
    data: list[dict]
    generated_at: datetime
    data_snapshot: dict[str, Any]
    related_entities: list[str] = field(default_factory=list)
    risk_level: Optional[str] = None
    timeframe: Optional[str] = None
    is_persisted: bool = False
    is_local: bool = False
    is_applied: bool = False
    applied_action: Optional[str] = None
    action_record: Optional[ActionRecord] = None

    @property
    def top_action(self) -> Optional[str]:
        return self.actions[0] if self.actions else None

    def fingerprint(self) -> dict[str, Any]:
        """Content fields only: excludes ids, timestamps and persistence state."""
        return {
            "kind": self.kind,
            "detector": self.detector,
            "signal": self.signal,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "confidence": self.confidence,
            "actions": list(self.actions),
            "data": list(self.data),
            "related_entities": list(self.related_entities),
            "risk_level": self.risk_level,
            "timeframe": self.timeframe,
        }


def new_candidate_id() -> str:
    return f"{CANDIDATE_PREFIX}{uuid.uuid4().hex}"


def new_local_id() -> str:
    return f"{LOCAL_PREFIX}{uuid.uuid4().hex}"


def clamp_confidence(value: float) -> float:
    return round(max(0.0, min(100.0, float(value))), 1)


def build_data_snapshot(aggregation: Aggregation, total_entities: int) -> dict[str, Any]:
    start = aggregation.earliest or aggregation.now
    return {
        "total_events": aggregation.snapshot.total_events,
        "total_entities": total_entities,
        "recent_events": len(aggregation.recent),
        "previous_events": len(aggregation.previous),
        "time_range": {
            "start": start.isoformat(),
            "end": aggregation.now.isoformat(),
        },
    }


def assemble(
    candidates: Iterable[Candidate],
    aggregation: Aggregation,
    total_entities: int,
) -> list[Artifact]:
    """Wrap each candidate; candidates without support or actions are dropped."""
    snapshot = build_data_snapshot(aggregation, total_entities)
    artifacts: list[Artifact] = []
    for c in candidates:
        if c.support <= 0 or not c.actions:
            continue
        artifacts.append(Artifact(
            id=new_candidate_id(),
            kind=c.kind.value,
            detector=c.detector,
            signal=c.signal.value,
            title=c.title,
            description=c.description,
            priority=c.priority.value,
            category=c.category,
            confidence=clamp_confidence(c.confidence),
            actions=list(c.actions[:MAX_ACTIONS]),
            data=[dict(point) for point in c.data],
            generated_at=aggregation.now,
            data_snapshot=dict(snapshot),
            related_entities=list(c.related_entities),
            risk_level=c.risk_level,
            timeframe=c.timeframe,
        ))
    return artifacts


def to_store_payload(artifact: Artifact) -> dict[str, Any]:
    """Body for `POST /artifacts`."""
    return {
        "kind": artifact.kind,
        "detector": artifact.detector,
        "signal": artifact.signal,
        "title": artifact.title,
        "description": artifact.description,
        "priority": artifact.priority,
        "category": artifact.category,
        "confidence": artifact.confidence,
        "actions": list(artifact.actions),
        "data": list(artifact.data),
        "generated_at": artifact.generated_at.isoformat(),
        "data_snapshot": artifact.data_snapshot,
        "related_entities": list(artifact.related_entities),
        "risk_level": artifact.risk_level,
        "timeframe": artifact.timeframe,
    }


def action_record_from_store(body: dict[str, Any]) -> ActionRecord:
    return ActionRecord(
        id=str(body["id"]),
        artifact_id=str(body["artifact_id"]),
        chosen_action=body["chosen_action"],
        action_type=body.get("action_type", "apply_recommendation"),
        status=body.get("status", "completed"),
        outcome_success=body.get("outcome_success"),
        outcome_impact=body.get("outcome_impact"),
        created_at=body.get("created_at"),
        completed_at=body.get("completed_at"),
    )
