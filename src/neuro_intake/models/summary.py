"""Analysis output models.

``TriageSummary`` is what an analyzer returns and what the orchestrator
hands back to the UI once it has added the risk level, the referral payload
and the merged profile.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from neuro_intake.models.triage import DiseaseType, RiskLevel


class Referral(BaseModel):
    """Referral payload, produced only when the score reaches the referral threshold."""

    hospital_name: str
    distance: str
    address: str
    recommends: list[str]
    # Short opaque code rendered as a QR code by the UI
    reference_code: str


class TriageSummary(BaseModel):
    """Structured triage result."""

    risk_score: int = Field(ge=0, le=100)
    disease: DiseaseType
    summary: str
    extracted_profile: Optional[dict[str, Any]] = None
    # Filled in by the orchestrator
    risk_level: Optional[RiskLevel] = None
    referral: Optional[Referral] = None
    critical: bool = False
