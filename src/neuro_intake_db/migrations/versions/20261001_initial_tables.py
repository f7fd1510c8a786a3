"""Create triage_sessions and patient_profiles.

Revision ID: 20261001_initial
Revises:
Create Date: 2026-10-01
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "triage_sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("session_id", sa.Text(), nullable=False),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("disease", sa.String(20), nullable=True),
        sa.Column("pathway_hint", sa.String(20), nullable=True),
        sa.Column("step", sa.SmallInteger(), nullable=False),
        sa.Column("total_steps", sa.SmallInteger(), nullable=False),
        sa.Column("step_index", sa.SmallInteger(), nullable=False),
        sa.Column("risk_score", sa.SmallInteger(), nullable=False),
        sa.Column("selections", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("free_text", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("critical_steps", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("history", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("last_input", sa.Text(), nullable=True),
        sa.Column("last_result", JSONB(), nullable=True),
        sa.Column("result", JSONB(), nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "session_id", name="uq_user_session"),
        sa.CheckConstraint(
            "state IN ('init', 'routing', 'collecting', 'offer_assessment', 'terminal')",
            name="ck_state_valid",
        ),
        sa.CheckConstraint("step BETWEEN 0 AND total_steps", name="ck_step_range"),
        sa.CheckConstraint("risk_score >= 0", name="ck_risk_non_negative"),
        sa.CheckConstraint(
            "state != 'terminal' OR result IS NOT NULL",
            name="ck_terminal_has_result",
        ),
    )
    op.create_index("ix_triage_sessions_user_id", "triage_sessions", ["user_id"])
    op.create_index("ix_triage_sessions_state", "triage_sessions", ["state"])
    op.create_index(
        "ix_disease",
        "triage_sessions",
        ["disease"],
        postgresql_where=sa.text("disease IS NOT NULL"),
    )
    op.create_index(
        "ix_result_gin",
        "triage_sessions",
        ["result"],
        postgresql_using="gin",
        postgresql_where=sa.text("result IS NOT NULL"),
    )

    op.create_table(
        "patient_profiles",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("disease", sa.String(20), nullable=False),
        sa.Column("profile", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("source_session_id", sa.Text(), nullable=True),
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "disease", name="uq_user_disease_profile"),
    )
    op.create_index("ix_patient_profiles_user_id", "patient_profiles", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_patient_profiles_user_id", table_name="patient_profiles")
    op.drop_table("patient_profiles")

    op.drop_index("ix_result_gin", table_name="triage_sessions")
    op.drop_index("ix_disease", table_name="triage_sessions")
    op.drop_index("ix_triage_sessions_state", table_name="triage_sessions")
    op.drop_index("ix_triage_sessions_user_id", table_name="triage_sessions")
    op.drop_table("triage_sessions")
