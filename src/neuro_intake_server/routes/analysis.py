"""Analysis endpoint: turns a finished dialogue into a TriageSummary.

Failures of the analysis backend return 503 with ``retryable: true`` and
leave the session as it was, so the same request can simply be repeated.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from neuro_intake.models.summary import TriageSummary
from neuro_intake.orchestrator import TriageOrchestrator

from neuro_intake_server.dependencies import get_db, get_orchestrator, get_user_id

router = APIRouter(tags=["analysis"])


@router.post("/sessions/{session_id}/analysis")
async def analyze_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> TriageSummary:
    """Run the analysis.  409 unless the dialogue is offering the assessment."""
    return await orchestrator.analyze(db, user_id=user_id, session_id=session_id)
