"""Triage ruleset models: diseases, pathways, weighted options and routing.

A *pathway* is the fixed, disease-specific sequence of ``TriageStep``
objects asked after the patient's chief complaint has been routed.  Each
``TriageOption`` carries a ``risk_weight`` (added to the session score when
selected) and an optional ``is_critical`` flag (surfaced to callers, never
added to the score).
"""

from __future__ import annotations

import enum
import re
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from neuro_intake.constants import PRE_PATHWAY_STEPS


class DiseaseType(str, enum.Enum):
    """Disease pathways known to the triage dialogue."""

    MIGRAINE = "MIGRAINE"
    EPILEPSY = "EPILEPSY"
    COGNITIVE = "COGNITIVE"
    UNKNOWN = "UNKNOWN"


class RiskLevel(str, enum.Enum):
    """Risk levels derived from a final score (see ``risk.classify_risk``)."""

    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


# --- Pathways ---

class TriageOption(BaseModel):
    """A selectable answer to a triage step."""

    label: str
    value: str
    risk_weight: int = 0
    is_critical: bool = False


class TriageStep(BaseModel):
    """One pathway question with its weighted options."""

    id: str
    question: str
    options: List[TriageOption]
    # Key under which the selected option value lands in the extracted profile
    profile_key: Optional[str] = None

    def get_option(self, value: str) -> TriageOption | None:
        for opt in self.options:
            if opt.value == value:
                return opt
        return None


class Pathway(BaseModel):
    """The ordered triage steps for one disease."""

    disease: DiseaseType
    steps: List[TriageStep]

    @property
    def total_steps(self) -> int:
        """Opening + routing turns plus one step per pathway question."""
        return len(self.steps) + PRE_PATHWAY_STEPS


# --- Disease context / reference data ---

class Tool(BaseModel):
    """A follow-up tool offered once the triage dialogue completes."""

    id: str
    label: str


class DiseaseContext(BaseModel):
    """Per-disease presentation and routing configuration."""

    disease: DiseaseType
    display_name: str
    assessment_scale_id: str
    # Informational threshold used by the UI for its red banner
    emergency_threshold: int
    recommended_tools: List[Tool] = Field(default_factory=list)
    # Studies listed in the referral payload
    recommends: List[str] = Field(default_factory=list)
    role_prompt: str = ""


class Facility(BaseModel):
    """The referral destination printed on the referral payload."""

    hospital_name: str
    distance: str
    address: str
    code_prefix: str = "HX"


# --- Routing ---

class RoutingRule(BaseModel):
    """A (pattern, disease) pair; rules are evaluated first-match-wins."""

    pattern: str
    disease: DiseaseType

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as exc:
            raise ValueError(f"invalid routing pattern {v!r}: {exc}") from exc
        return v


class RoutingTable(BaseModel):
    """Opening question, its quick replies, and the ordered routing rules."""

    opening_text: str
    opening_options: List[str]
    rules: List[RoutingRule]
    default: DiseaseType = DiseaseType.MIGRAINE


# --- Offline keyword analysis ---

class AnalysisMarker(BaseModel):
    """A transcript marker: any of ``any`` found in the patient's turns is a hit."""

    id: str
    any: List[str]
    note: str = ""


class AnalysisRule(BaseModel):
    """Keyword analysis rule for one disease.

    ``summary`` may contain ``{notes}``, replaced by the concatenated notes
    of the markers that hit.
    """

    base_risk: int = Field(ge=0, le=100)
    elevated_risk: int = Field(ge=0, le=100)
    summary: str
    markers: List[AnalysisMarker] = Field(default_factory=list)
