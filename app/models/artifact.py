"""
Artifact - a stored insight, prediction or suggestion.

Rows are never hard-deleted: DELETE /artifacts/{id} flips `is_active`.
The only other mutations are the applied/feedback fields and, for
predictions, the outcome/accuracy fields.

actions, data, data_snapshot, related_entities: JSON-encoded, stored as Text.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, Float, Boolean, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from app.db.base import Base


class PredictionAccuracy(str, enum.Enum):
    correct = "correct"
    partially_correct = "partially_correct"
    incorrect = "incorrect"


class Artifact(Base):
    __tablename__ = "artifacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    detector: Mapped[str] = mapped_column(String(64), nullable=False)
    signal: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    actions: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_snapshot: Mapped[str | None] = mapped_column(Text, nullable=True)
    related_entities: Mapped[str | None] = mapped_column(Text, nullable=True)
    risk_level: Mapped[str | None] = mapped_column(String(16), nullable=True)
    timeframe: Mapped[str | None] = mapped_column(String(32), nullable=True)
    analysis_version: Mapped[str | None] = mapped_column(String(16), nullable=True)

    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Implementation tracking
    is_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    applied_action: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Teacher feedback
    feedback_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    feedback_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Prediction outcome
    predicted_behavior: Mapped[str | None] = mapped_column(String(256), nullable=True)
    outcome_occurred: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    outcome_actual_behavior: Mapped[str | None] = mapped_column(String(256), nullable=True)
    outcome_severity: Mapped[str | None] = mapped_column(String(16), nullable=True)
    outcome_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    outcome_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    prediction_accuracy: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
