"""Session endpoints: create, get, list, transcript.

All endpoints require the ``X-User-ID`` header.  A session is identified by
the (user_id, session_id) pair, unique in the database.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from neuro_intake.models.session import SessionInfo, Turn
from neuro_intake.models.triage import DiseaseType
from neuro_intake.orchestrator import TriageOrchestrator

from neuro_intake_server.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from neuro_intake_server.dependencies import get_db, get_orchestrator, get_user_id

router = APIRouter(tags=["sessions"])


class CreateSessionRequest(BaseModel):
    """Body for POST /sessions.

    ``pathway_hint`` is used when the chief complaint matches no routing rule.
    """
    session_id: str
    pathway_hint: DiseaseType | None = None


@router.post("/sessions", status_code=201)
async def create_session(
    body: CreateSessionRequest,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> SessionInfo:
    """Create a session in ``init``.  409 if the session id is already taken."""
    return await orchestrator.create_session(
        db, user_id=user_id, session_id=body.session_id, pathway_hint=body.pathway_hint,
    )


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> SessionInfo:
    info = await orchestrator.get_session(db, user_id=user_id, session_id=session_id)
    if info is None:
        raise ValueError(f"Session not found: user_id={user_id}, session_id={session_id}")
    return info


@router.get("/sessions")
async def list_sessions(
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> list[SessionInfo]:
    """List the caller's sessions, most recent first."""
    return await orchestrator.list_sessions(db, user_id=user_id, limit=limit, offset=offset)


@router.get("/sessions/{session_id}/transcript")
async def get_transcript(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> list[Turn]:
    """The dialogue so far; empty once the analysis has been consumed."""
    return await orchestrator.get_transcript(db, user_id=user_id, session_id=session_id)
