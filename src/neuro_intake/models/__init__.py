"""Public model re-exports for neuro_intake.

Consumers should import from ``neuro_intake.models`` rather than reaching
into sub-modules directly.
"""

# --- Forms ---
from neuro_intake.models.form import (
    FormDefinition,
    FormEvaluation,
    FormField,
    FormOption,
    FormSection,
    Interpretation,
    InterpretationRule,
    Predicate,
    ScoreCondition,
    ValidationFailure,
    ValidationRule,
)

# --- Triage rulesets ---
from neuro_intake.models.triage import (
    AnalysisMarker,
    AnalysisRule,
    DiseaseContext,
    DiseaseType,
    Facility,
    Pathway,
    RiskLevel,
    RoutingRule,
    RoutingTable,
    Tool,
    TriageOption,
    TriageStep,
)

# --- Session / turn ---
from neuro_intake.models.session import (
    DialogueSession,
    ParsedResponse,
    SessionInfo,
    Turn,
    TurnHistory,
    TurnResult,
)

# --- Analysis output ---
from neuro_intake.models.summary import Referral, TriageSummary

__all__ = [
    # Forms
    "FormDefinition",
    "FormEvaluation",
    "FormField",
    "FormOption",
    "FormSection",
    "Interpretation",
    "InterpretationRule",
    "Predicate",
    "ScoreCondition",
    "ValidationFailure",
    "ValidationRule",
    # Triage
    "AnalysisMarker",
    "AnalysisRule",
    "DiseaseContext",
    "DiseaseType",
    "Facility",
    "Pathway",
    "RiskLevel",
    "RoutingRule",
    "RoutingTable",
    "Tool",
    "TriageOption",
    "TriageStep",
    # Session
    "DialogueSession",
    "ParsedResponse",
    "SessionInfo",
    "Turn",
    "TurnHistory",
    "TurnResult",
    # Analysis
    "Referral",
    "TriageSummary",
]
