"""initial schema: artifacts and action_records

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    action_status_enum = sa.Enum(
        "planned", "in_progress", "completed", "cancelled", "failed",
        name="action_status_enum",
    )
    action_status_enum.create(op.get_bind(), checkfirst=True)

    action_impact_enum = sa.Enum(
        "positive", "negative", "neutral", "unknown", name="action_impact_enum"
    )
    action_impact_enum.create(op.get_bind(), checkfirst=True)

    # --- artifacts ---
    op.create_table(
        "artifacts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("detector", sa.String(64), nullable=False),
        sa.Column("signal", sa.String(32), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(16), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column("actions", sa.Text(), nullable=False),
        sa.Column("data", sa.Text(), nullable=True),
        sa.Column("data_snapshot", sa.Text(), nullable=True),
        sa.Column("related_entities", sa.Text(), nullable=True),
        sa.Column("risk_level", sa.String(16), nullable=True),
        sa.Column("timeframe", sa.String(32), nullable=True),
        sa.Column("analysis_version", sa.String(16), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_applied", sa.Boolean(), nullable=False),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("applied_action", sa.Text(), nullable=True),
        sa.Column("feedback_rating", sa.Integer(), nullable=True),
        sa.Column("feedback_comment", sa.Text(), nullable=True),
        sa.Column("feedback_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("predicted_behavior", sa.String(256), nullable=True),
        sa.Column("outcome_occurred", sa.Boolean(), nullable=True),
        sa.Column("outcome_actual_behavior", sa.String(256), nullable=True),
        sa.Column("outcome_severity", sa.String(16), nullable=True),
        sa.Column("outcome_notes", sa.Text(), nullable=True),
        sa.Column("outcome_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("prediction_accuracy", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_artifacts_id", "artifacts", ["id"])
    op.create_index("ix_artifacts_kind", "artifacts", ["kind"])
    op.create_index("ix_artifacts_signal", "artifacts", ["signal"])
    op.create_index("ix_artifacts_priority", "artifacts", ["priority"])
    op.create_index("ix_artifacts_is_active", "artifacts", ["is_active"])

    # --- action_records ---
    op.create_table(
        "action_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("artifact_id", sa.Integer(), nullable=False),
        sa.Column("action_type", sa.String(64), nullable=False),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("chosen_action", sa.String(512), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Enum(
            "planned", "in_progress", "completed", "cancelled", "failed",
            name="action_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("priority", sa.String(16), nullable=False),
        sa.Column("urgency", sa.String(16), nullable=False),
        sa.Column("outcome_success", sa.Boolean(), nullable=True),
        sa.Column("outcome_impact", sa.Enum(
            "positive", "negative", "neutral", "unknown",
            name="action_impact_enum", create_type=False,
        ), nullable=True),
        sa.Column("outcome_notes", sa.Text(), nullable=True),
        sa.Column("feedback_effectiveness", sa.Integer(), nullable=True),
        sa.Column("feedback_comments", sa.Text(), nullable=True),
        sa.Column("feedback_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["artifact_id"], ["artifacts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("artifact_id", "chosen_action", name="uq_action_record_artifact_action"),
    )
    op.create_index("ix_action_records_id", "action_records", ["id"])
    op.create_index("ix_action_records_artifact_id", "action_records", ["artifact_id"])


def downgrade() -> None:
    op.drop_table("action_records")
    op.drop_table("artifacts")
    op.execute("DROP TYPE IF EXISTS action_impact_enum")
    op.execute("DROP TYPE IF EXISTS action_status_enum")
