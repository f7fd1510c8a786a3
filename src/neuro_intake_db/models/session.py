"""TriageSession ORM model: single row per triage dialogue.

The dialogue state is stored column-per-field for the scalar parts (state,
disease, step counter, score) and as JSONB for the rest, so the
orchestrator can rebuild a ``DialogueSession`` from one row without JOINs.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Index,
    SmallInteger,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from neuro_intake_db.models.base import Base, Timestamped
from neuro_intake_db.models.enums import DialogueState


class TriageSession(Timestamped, Base):
    """One row per triage session.

    A user may have many sessions over time; each is uniquely identified
    by the (user_id, session_id) pair.
    """

    __tablename__ = "triage_sessions"

    # --- Primary key ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    # External user ID (e.g. app account id, HN)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    # Caller-supplied session identifier, unique within a user
    session_id: Mapped[str] = mapped_column(Text, nullable=False)

    # --- Dialogue state ---
    state: Mapped[str] = mapped_column(
        # Store as the lowercase string value, not the Python name
        String(20),
        nullable=False,
        default=DialogueState.INIT,
        index=True,
    )
    # Disease fixed at routing time; NULL before routing
    disease: Mapped[str | None] = mapped_column(String(20), nullable=True)
    pathway_hint: Mapped[str | None] = mapped_column(String(20), nullable=True)
    step: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    total_steps: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    # Index of the pathway question awaiting an answer (-1 before routing)
    step_index: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=-1)
    risk_score: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)

    # --- Answers ---
    # {step_id: option_value}
    selections: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb"), default=dict,
    )
    # {step_id: raw text} for answers that matched no option
    free_text: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb"), default=dict,
    )
    # [step_id, ...] in selection order
    critical_steps: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb"), default=list,
    )

    # --- Transcript ---
    # [{"role", "text", "timestamp", "options"}, ...], capped by the engine
    history: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb"), default=list,
    )
    # Last user input and the TurnResult it produced, for replay
    last_input: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_result: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # --- Final result ---
    # Written once when the analysis is consumed: the serialised TriageSummary
    result: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # --- Timestamps (created_at / updated_at come from Timestamped) ---
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    # --- Table-level constraints ---
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="uq_user_session"),
        CheckConstraint(
            "state IN ('init', 'routing', 'collecting', 'offer_assessment', 'terminal')",
            name="ck_state_valid",
        ),
        CheckConstraint("step BETWEEN 0 AND total_steps", name="ck_step_range"),
        CheckConstraint("risk_score >= 0", name="ck_risk_non_negative"),
        # Terminal sessions must have a result payload
        CheckConstraint(
            "state != 'terminal' OR result IS NOT NULL",
            name="ck_terminal_has_result",
        ),
        # --- Indexes ---
        Index(
            "ix_disease",
            "disease",
            postgresql_where=text("disease IS NOT NULL"),
        ),
        Index(
            "ix_result_gin",
            "result",
            postgresql_using="gin",
            postgresql_where=text("result IS NOT NULL"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TriageSession(id={self.id!s}, user={self.user_id!r}, "
            f"session={self.session_id!r}, state={self.state!r}, "
            f"step={self.step}/{self.total_steps})>"
        )
