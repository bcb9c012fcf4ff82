"""
ActionRecord - durable record that a teacher acted on an artifact.

One row per (artifact_id, chosen_action): the unique constraint is the
final idempotency guard for POST /artifacts/{id}/apply. After creation only
the outcome_* and feedback_* columns change.
"""
from datetime import datetime
from sqlalchemy import (
    Integer, String, Text, Boolean, DateTime, Enum, ForeignKey, func, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
import enum

from app.db.base import Base


class ActionStatus(str, enum.Enum):
    planned = "planned"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"
    failed = "failed"


class ActionImpact(str, enum.Enum):
    positive = "positive"
    negative = "negative"
    neutral = "neutral"
    unknown = "unknown"


class ActionRecord(Base):
    __tablename__ = "action_records"
    __table_args__ = (
        UniqueConstraint("artifact_id", "chosen_action", name="uq_action_record_artifact_action"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    artifact_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("artifacts.id"), nullable=False, index=True
    )
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    chosen_action: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(ActionStatus, name="action_status_enum"),
        nullable=False,
        default=ActionStatus.completed,
    )
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    urgency: Mapped[str] = mapped_column(String(16), nullable=False)

    outcome_success: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    outcome_impact: Mapped[str | None] = mapped_column(
        Enum(ActionImpact, name="action_impact_enum"), nullable=True
    )
    outcome_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    feedback_effectiveness: Mapped[int | None] = mapped_column(Integer, nullable=True)
    feedback_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    feedback_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
