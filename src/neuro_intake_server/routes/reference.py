"""Reference data endpoints: disease context and triage pathways.

Read-only views of the YAML under ``v1/``; no authentication required.
"""

from fastapi import APIRouter, Depends

from neuro_intake.models.triage import DiseaseType
from neuro_intake.ruleset import RulesetStore

from neuro_intake_server.dependencies import get_store

router = APIRouter(prefix="/reference", tags=["reference"])


@router.get("/diseases")
def list_diseases(store: RulesetStore = Depends(get_store)) -> list[dict]:
    """Every configured disease with its assessment scale and follow-up tools."""
    return [
        {
            "disease": ctx.disease.value,
            "display_name": ctx.display_name,
            "assessment_scale_id": ctx.assessment_scale_id,
            "emergency_threshold": ctx.emergency_threshold,
            "recommended_tools": [t.model_dump() for t in ctx.recommended_tools],
            "has_pathway": ctx.disease in store.pathways,
        }
        for ctx in store.contexts.values()
    ]


@router.get("/pathways/{disease}")
def get_pathway(disease: DiseaseType, store: RulesetStore = Depends(get_store)) -> dict:
    """The ordered questions of a pathway, with option weights and critical flags."""
    pathway = store.get_pathway(disease)
    return {
        "disease": pathway.disease.value,
        "total_steps": pathway.total_steps,
        "steps": [step.model_dump() for step in pathway.steps],
    }
