"""Async CRUD repository for TriageSession and PatientProfile.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries; methods ``flush()`` and never ``commit()``.

The repository deliberately avoids business-logic validation; that belongs
in the orchestrator.  It *does* enforce structural invariants (e.g. a
terminal session must have a result) via DB constraints.
"""

from datetime import timedelta
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from neuro_intake_db.models.base import utcnow
from neuro_intake_db.models.enums import DialogueState
from neuro_intake_db.models.profile import PatientProfile
from neuro_intake_db.models.session import TriageSession


def _apply_dialogue(session: TriageSession, state: dict[str, Any]) -> None:
    """Copy serialised DialogueSession fields onto the row's columns."""
    session.state = state["state"]
    session.disease = state.get("disease")
    session.step = state["step"]
    session.total_steps = state["total_steps"]
    session.step_index = state["step_index"]
    session.risk_score = state["risk_score"]
    session.selections = dict(state.get("selections") or {})
    session.free_text = dict(state.get("free_text") or {})
    session.critical_steps = list(state.get("critical_steps") or [])
    session.history = list(state.get("history") or [])
    session.last_input = state.get("last_input")
    session.last_result = state.get("last_result")


class SessionRepository:
    """Async read/write operations on ``triage_sessions`` and ``patient_profiles``."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_session(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        session_id: str,
        pathway_hint: str | None = None,
        total_steps: int = 0,
    ) -> TriageSession:
        """Insert a new session row in state ``init`` and return it.

        The caller must ``await db.commit()`` to persist.
        """
        session = TriageSession(
            user_id=user_id,
            session_id=session_id,
            state=DialogueState.INIT.value,
            pathway_hint=pathway_hint,
            step=0,
            total_steps=total_steps,
            step_index=-1,
            risk_score=0,
            selections={},
            free_text={},
            critical_steps=[],
            history=[],
        )
        db.add(session)
        await db.flush()  # Populate server-side defaults (id, timestamps)
        return session

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_user_and_session(
        self, db: AsyncSession, user_id: str, session_id: str
    ) -> TriageSession | None:
        """Fetch a session by the unique (user_id, session_id) pair."""
        stmt = select(TriageSession).where(
            TriageSession.user_id == user_id,
            TriageSession.session_id == session_id,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        db: AsyncSession,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[TriageSession]:
        """List sessions for a user, most recent first."""
        stmt = (
            select(TriageSession)
            .where(TriageSession.user_id == user_id)
            .order_by(TriageSession.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Update: dialogue state
    # ------------------------------------------------------------------

    async def save_dialogue(
        self,
        db: AsyncSession,
        session: TriageSession,
        state: dict[str, Any],
    ) -> TriageSession:
        """Overwrite the dialogue columns from a serialised DialogueSession.

        ``state`` carries JSON-ready values (``model_dump(mode="json")``).
        JSONB values are replaced wholesale so SQLAlchemy detects the change.
        """
        _apply_dialogue(session, state)
        session.updated_at = utcnow()
        await db.flush()
        return session

    async def complete_session(
        self,
        db: AsyncSession,
        session: TriageSession,
        result: dict[str, Any],
        *,
        dialogue: dict[str, Any] | None = None,
    ) -> TriageSession:
        """Store the analysis result, mark the session terminal and drop its transcript.

        ``dialogue`` is the finished DialogueSession, serialised as for
        :meth:`save_dialogue`; its columns are written in the same flush as
        ``result`` because ``ck_terminal_has_result`` rejects a terminal row
        without one.
        """
        if dialogue is not None:
            _apply_dialogue(session, dialogue)
        now = utcnow()
        session.state = DialogueState.TERMINAL.value
        session.result = result
        session.history = []
        session.last_input = None
        session.last_result = None
        session.completed_at = now
        session.updated_at = now
        await db.flush()
        return session

    # ------------------------------------------------------------------
    # Patient profiles
    # ------------------------------------------------------------------

    async def get_profile(
        self, db: AsyncSession, user_id: str, disease: str
    ) -> PatientProfile | None:
        stmt = select(PatientProfile).where(
            PatientProfile.user_id == user_id,
            PatientProfile.disease == disease,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def save_profile(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        disease: str,
        profile: dict[str, Any],
        source_session_id: str | None = None,
    ) -> PatientProfile:
        """Upsert the (user, disease) profile with an already-merged record."""
        row = await self.get_profile(db, user_id, disease)
        if row is None:
            row = PatientProfile(user_id=user_id, disease=disease, profile={})
            db.add(row)
        # New dict so SQLAlchemy detects the JSONB change
        row.profile = dict(profile)
        row.source_session_id = source_session_id
        row.updated_at = utcnow()
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # Delete: maintenance
    # ------------------------------------------------------------------

    async def purge_old_sessions(
        self,
        db: AsyncSession,
        *,
        older_than_days: int = 0,
        states: list[str] | None = None,
    ) -> int:
        """Permanently delete sessions, returning the number of rows removed.

        Args:
            older_than_days: only rows last updated before now minus this
                many days; 0 means no age filter.
            states: only rows in these dialogue states (default: terminal).
        """
        if states is None:
            states = [DialogueState.TERMINAL.value]
        stmt = delete(TriageSession).where(TriageSession.state.in_(states))
        if older_than_days > 0:
            cutoff = utcnow() - timedelta(days=older_than_days)
            stmt = stmt.where(TriageSession.updated_at < cutoff)
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount or 0
