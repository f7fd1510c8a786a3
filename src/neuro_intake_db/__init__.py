"""neuro_intake_db: PostgreSQL persistence layer for triage sessions.

This package provides the ORM models, async engine factory, and repository
for creating, updating, and querying triage sessions and the per-user
patient profiles they feed.  It is consumed by the orchestrator in
``neuro_intake`` and by the FastAPI server.
"""

from neuro_intake_db.models.enums import DialogueState
from neuro_intake_db.models.profile import PatientProfile
from neuro_intake_db.models.session import TriageSession
from neuro_intake_db.engine import get_engine, get_session_factory
from neuro_intake_db.repository import SessionRepository

__all__ = [
    "DialogueState",
    "PatientProfile",
    "TriageSession",
    "get_engine",
    "get_session_factory",
    "SessionRepository",
]
