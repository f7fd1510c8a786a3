"""Patient profile endpoint: the merged record built by completed triages."""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from neuro_intake.models.triage import DiseaseType
from neuro_intake.orchestrator import TriageOrchestrator

from neuro_intake_server.dependencies import get_db, get_orchestrator, get_user_id

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/{disease}")
async def get_profile(
    disease: DiseaseType,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    orchestrator: TriageOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """The caller's profile for ``disease`` (an empty object when none exists)."""
    return await orchestrator.get_profile(db, user_id=user_id, disease=disease)
