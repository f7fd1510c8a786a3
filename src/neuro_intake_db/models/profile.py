"""PatientProfile ORM model: merged structured profile per user and disease.

Each completed triage merges its extracted profile into the row for its
(user_id, disease) pair, so the row accumulates what every pathway run has
learned about the patient.
"""

import uuid

from sqlalchemy import String, Text, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from neuro_intake_db.models.base import Base, Timestamped


class PatientProfile(Timestamped, Base):
    """One row per (user, disease)."""

    __tablename__ = "patient_profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    disease: Mapped[str] = mapped_column(String(20), nullable=False)
    # Flat key/value record, e.g. {"frequency": "chronic", "analgesic_use": "overuse"}
    profile: Mapped[dict] = mapped_column(
        JSONB, nullable=False, server_default=text("'{}'::jsonb"), default=dict,
    )
    # Session that last merged into this profile
    source_session_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "disease", name="uq_user_disease_profile"),
    )

    def __repr__(self) -> str:
        return (
            f"<PatientProfile(user={self.user_id!r}, disease={self.disease!r}, "
            f"keys={len(self.profile or {})})>"
        )
