"""Dialogue endpoint: one user turn in, one engine response out.

An empty ``text`` on a fresh session returns the opening question; during
routing or the pathway questions it repeats the pending question.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from neuro_intake.models.session import TurnResult
from neuro_intake.orchestrator import TriageOrchestrator

from neuro_intake_server.dependencies import get_db, get_orchestrator, get_user_id

router = APIRouter(tags=["dialogue"])


class TurnRequest(BaseModel):
    """Body for POST /sessions/{session_id}/turns."""
    text: str = ""


@router.post("/sessions/{session_id}/turns")
async def submit_turn(
    session_id: str,
    body: TurnRequest,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> TurnResult:
    """Advance the dialogue.

    409 when the session is terminal or another turn is still running.
    When ``terminal_action`` is ``OFFER_ASSESSMENT`` the client should call
    the analysis endpoint next.
    """
    return await orchestrator.advance(
        db, user_id=user_id, session_id=session_id, text=body.text,
    )
