"""ORM models for neuro_intake_db."""

from neuro_intake_db.models.base import Base
from neuro_intake_db.models.enums import DialogueState
from neuro_intake_db.models.profile import PatientProfile
from neuro_intake_db.models.session import TriageSession

__all__ = ["Base", "DialogueState", "PatientProfile", "TriageSession"]
