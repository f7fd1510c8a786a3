"""Risk classification and referral synthesis.

The thresholds are fixed system constants (see ``constants``) and must be
applied through :func:`classify_risk` wherever a score is rendered into a
risk level, so that the dialogue, the analysis result and any assessment
scale agree.
"""

from __future__ import annotations

import time
from typing import Iterable

from neuro_intake.constants import (
    REFERRAL_THRESHOLD,
    RISK_HIGH_THRESHOLD,
    RISK_MODERATE_THRESHOLD,
)
from neuro_intake.models.summary import Referral
from neuro_intake.models.triage import DiseaseContext, DiseaseType, Facility, RiskLevel, TriageStep


def classify_risk(score: float) -> RiskLevel:
    """Map a final score onto LOW (< 30), MODERATE (30-59) or HIGH (>= 60)."""
    if score >= RISK_HIGH_THRESHOLD:
        return RiskLevel.HIGH
    if score >= RISK_MODERATE_THRESHOLD:
        return RiskLevel.MODERATE
    return RiskLevel.LOW


def selected_weight(steps: Iterable[TriageStep], selections: dict[str, str]) -> int:
    """Sum the ``risk_weight`` of exactly the options recorded in ``selections``.

    ``selections`` maps step id -> chosen option value.  Steps without a
    selection, and values that no longer exist in the step, contribute 0.
    """
    total = 0
    for step in steps:
        value = selections.get(step.id)
        if value is None:
            continue
        opt = step.get_option(value)
        if opt is not None:
            total += opt.risk_weight
    return total


def reference_code(
    disease: DiseaseType, *, prefix: str = "HX", now_ms: int | None = None,
) -> str:
    """Short opaque referral code: ``<prefix>-<first 3 letters of disease>-<last 6 ms digits>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{prefix}-{disease.value[:3]}-{str(now_ms)[-6:]}"


def build_referral(
    score: int,
    disease: DiseaseType,
    *,
    facility: Facility,
    context: DiseaseContext | None,
    now_ms: int | None = None,
) -> Referral | None:
    """Return a referral payload when ``score`` reaches the threshold, else None."""
    if score < REFERRAL_THRESHOLD:
        return None
    return Referral(
        hospital_name=facility.hospital_name,
        distance=facility.distance,
        address=facility.address,
        recommends=list(context.recommends) if context is not None else [],
        reference_code=reference_code(disease, prefix=facility.code_prefix, now_ms=now_ms),
    )
