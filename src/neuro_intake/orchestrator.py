"""TriageOrchestrator: persistence, analysis and profile merging around the dialogue.

The :class:`~neuro_intake.dialogue.DialogueEngine` is pure; this class owns
everything with side effects.  Each call loads the session row, rebuilds a
``DialogueSession`` from it, lets the engine mutate that, and writes the
result back through :class:`SessionRepository`.

Flow::

    info = await orch.create_session(db, user_id="u1", session_id="s1")
    turn = await orch.advance(db, user_id="u1", session_id="s1", text="")
    turn = await orch.advance(db, user_id="u1", session_id="s1", text="头痛")
    ...                                   # until turn.terminal_action is set
    summary = await orch.analyze(db, user_id="u1", session_id="s1")

A failed or timed-out analysis raises :class:`AnalysisFailure` and leaves
the row untouched, so the caller can retry the analysis.  Only a successful
analysis finishes the dialogue, merges the patient profile and clears the
transcript.

All methods take an ``AsyncSession``; the caller commits.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from neuro_intake_db.models.enums import DialogueState
from neuro_intake_db.models.session import TriageSession
from neuro_intake_db.repository import SessionRepository

from neuro_intake.constants import ANALYSIS_TIMEOUT_SECONDS
from neuro_intake.dialogue import DialogueEngine, pathway_for
from neuro_intake.errors import AnalysisFailure, SessionStateError
from neuro_intake.interfaces import TriageAnalyzer
from neuro_intake.models.session import (
    DialogueSession,
    SessionInfo,
    Turn,
    TurnHistory,
    TurnResult,
)
from neuro_intake.models.summary import TriageSummary
from neuro_intake.models.triage import DiseaseType
from neuro_intake.profile import extract_profile, merge_profile
from neuro_intake.risk import build_referral, classify_risk
from neuro_intake.ruleset import RulesetStore

logger = logging.getLogger(__name__)


class TriageOrchestrator:
    """Runs persisted triage dialogues and their final analysis.

    Args:
        engine: the dialogue state machine
        store: the loaded :class:`RulesetStore` (facility, disease context,
            pathways for profile extraction)
        analyzer: backend producing the :class:`TriageSummary`
        timeout: seconds before an analysis call counts as failed
    """

    def __init__(
        self,
        engine: DialogueEngine,
        store: RulesetStore,
        analyzer: TriageAnalyzer,
        *,
        timeout: float = ANALYSIS_TIMEOUT_SECONDS,
    ) -> None:
        self._engine = engine
        self._store = store
        self._analyzer = analyzer
        self._timeout = timeout
        self._repo = SessionRepository()
        # (user_id, session_id) pairs with a turn or analysis in progress
        self._inflight: set[tuple[str, str]] = set()

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    async def create_session(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        session_id: str,
        pathway_hint: DiseaseType | None = None,
    ) -> SessionInfo:
        """Create a session in INIT.

        Raises:
            ValueError: a session with this (user_id, session_id) exists
        """
        existing = await self._repo.get_by_user_and_session(db, user_id, session_id)
        if existing is not None:
            raise ValueError(
                f"Session already exists: user_id={user_id}, session_id={session_id}"
            )

        dialogue = self._engine.create_session(pathway_hint, session_id=session_id)
        row = await self._repo.create_session(
            db,
            user_id=user_id,
            session_id=session_id,
            pathway_hint=pathway_hint.value if pathway_hint is not None else None,
            total_steps=dialogue.total_steps,
        )
        logger.info("Created session %s for user %s", session_id, user_id)
        return self._to_session_info(row)

    async def get_session(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> SessionInfo | None:
        """Fetch session info by (user_id, session_id).  Returns None if not found."""
        row = await self._repo.get_by_user_and_session(db, user_id, session_id)
        if row is None:
            return None
        return self._to_session_info(row)

    async def list_sessions(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SessionInfo]:
        """List sessions for a user, most recent first."""
        rows = await self._repo.list_by_user(db, user_id, limit=limit, offset=offset)
        return [self._to_session_info(r) for r in rows]

    async def get_transcript(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> list[Turn]:
        """The persisted transcript (empty once the session is terminal)."""
        row = await self._load_session(db, user_id, session_id)
        return list(self._to_dialogue(row).history.turns)

    # ==================================================================
    # Dialogue
    # ==================================================================

    async def advance(
        self, db: AsyncSession, *, user_id: str, session_id: str, text: str,
    ) -> TurnResult:
        """Feed one user turn to the dialogue and persist the new state.

        Raises:
            ValueError: session not found
            SessionStateError: the session is terminal, or another turn or
                analysis for it is still in progress
        """
        key = self._acquire(user_id, session_id)
        try:
            row = await self._load_session(db, user_id, session_id)
            dialogue = self._to_dialogue(row)
            result = self._engine.advance(dialogue, text)
            await self._repo.save_dialogue(db, row, self._dump_dialogue(dialogue))
            return result
        finally:
            self._inflight.discard(key)

    # ==================================================================
    # Analysis
    # ==================================================================

    async def analyze(
        self, db: AsyncSession, *, user_id: str, session_id: str,
    ) -> TriageSummary:
        """Run the analysis for a session that has offered the assessment.

        On success the summary gains its risk level, critical flag and (at
        or above the referral threshold) a referral payload; the profile is
        merged into the user's stored profile; the dialogue becomes TERMINAL
        with its transcript cleared and the summary stored as the result.

        Raises:
            ValueError: session not found
            SessionStateError: the dialogue has not reached the assessment
                offer, or a turn or analysis is already in progress
            AnalysisFailure: the analyzer failed, timed out or returned an
                invalid summary; nothing was written
        """
        key = self._acquire(user_id, session_id)
        try:
            row = await self._load_session(db, user_id, session_id)
            dialogue = self._to_dialogue(row)
            if dialogue.state != DialogueState.OFFER_ASSESSMENT:
                raise SessionStateError(
                    f"Session {session_id} has no pending assessment; "
                    f"analysis not accepted in state {dialogue.state.value}"
                )

            disease = dialogue.disease or DiseaseType.UNKNOWN
            summary = await self._run_analyzer(dialogue, disease)

            profile_update = merge_profile(
                extract_profile(pathway_for(self._store, dialogue), dialogue.selections),
                summary.extracted_profile,
            )
            summary = summary.model_copy(update={
                "disease": disease,
                "risk_level": classify_risk(summary.risk_score),
                "critical": dialogue.critical,
                "referral": build_referral(
                    summary.risk_score,
                    disease,
                    facility=self._store.facility,
                    context=self._store.get_context(disease),
                ),
                "extracted_profile": profile_update or None,
            })

            if profile_update:
                stored = await self._repo.get_profile(db, user_id, disease.value)
                await self._repo.save_profile(
                    db,
                    user_id=user_id,
                    disease=disease.value,
                    profile=merge_profile(stored.profile if stored else None, profile_update),
                    source_session_id=session_id,
                )

            # Final dialogue columns and result go out in one flush
            self._engine.finish(dialogue)
            await self._repo.complete_session(
                db, row, summary.model_dump(mode="json"),
                dialogue=self._dump_dialogue(dialogue),
            )
            logger.info(
                "Session %s analysed: %s risk %d (%s)%s",
                session_id, disease.value, summary.risk_score, summary.risk_level.value,
                ", referral issued" if summary.referral else "",
            )
            return summary
        finally:
            self._inflight.discard(key)

    async def _run_analyzer(
        self, dialogue: DialogueSession, disease: DiseaseType,
    ) -> TriageSummary:
        """Call the analyzer under the timeout, mapping every failure to AnalysisFailure."""
        session_id = dialogue.session_id or ""
        try:
            return await asyncio.wait_for(
                self._analyzer.analyze(list(dialogue.history.turns), disease),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Analysis for session %s timed out after %.1fs", session_id, self._timeout,
            )
            raise AnalysisFailure(
                session_id, dialogue.step, f"timed out after {self._timeout:g}s",
            ) from None
        except Exception as exc:
            logger.warning("Analysis for session %s failed: %s", session_id, exc)
            raise AnalysisFailure(
                session_id, dialogue.step, str(exc) or type(exc).__name__,
            ) from exc

    # ==================================================================
    # Profiles
    # ==================================================================

    async def get_profile(
        self, db: AsyncSession, *, user_id: str, disease: DiseaseType,
    ) -> dict[str, Any]:
        """The merged profile for (user, disease); empty when none is stored."""
        row = await self._repo.get_profile(db, user_id, disease.value)
        return dict(row.profile) if row is not None else {}

    # ==================================================================
    # Internal helpers
    # ==================================================================

    def _acquire(self, user_id: str, session_id: str) -> tuple[str, str]:
        key = (user_id, session_id)
        if key in self._inflight:
            raise SessionStateError(
                f"Session {session_id} has a turn outstanding; wait for it to finish"
            )
        self._inflight.add(key)
        return key

    async def _load_session(
        self, db: AsyncSession, user_id: str, session_id: str
    ) -> TriageSession:
        """Load a session row or raise ValueError if not found."""
        row = await self._repo.get_by_user_and_session(db, user_id, session_id)
        if row is None:
            raise ValueError(f"Session not found: user_id={user_id}, session_id={session_id}")
        return row

    @staticmethod
    def _to_dialogue(row: TriageSession) -> DialogueSession:
        """Rebuild the engine's view of a session from its row."""
        return DialogueSession(
            session_id=row.session_id,
            state=DialogueState(row.state),
            step=row.step,
            total_steps=row.total_steps,
            disease=DiseaseType(row.disease) if row.disease else None,
            pathway_hint=DiseaseType(row.pathway_hint) if row.pathway_hint else None,
            step_index=row.step_index,
            selections=dict(row.selections or {}),
            free_text=dict(row.free_text or {}),
            critical_steps=list(row.critical_steps or []),
            risk_score=row.risk_score,
            history=TurnHistory(turns=[Turn(**t) for t in row.history or []]),
            last_input=row.last_input,
            last_result=TurnResult(**row.last_result) if row.last_result else None,
        )

    @staticmethod
    def _dump_dialogue(dialogue: DialogueSession) -> dict[str, Any]:
        data = dialogue.model_dump(mode="json")
        # The row stores the bare turn list; the window size is configuration
        data["history"] = data["history"]["turns"]
        return data

    @staticmethod
    def _to_session_info(row: TriageSession) -> SessionInfo:
        return SessionInfo(
            user_id=row.user_id,
            session_id=row.session_id,
            state=row.state,
            disease=row.disease,
            pathway_hint=row.pathway_hint,
            step=row.step,
            total_steps=row.total_steps,
            risk_score=row.risk_score,
            created_at=row.created_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
            result=row.result,
        )
