"""neuro_intake: neurology intake and triage SDK.

Public API:
    DialogueEngine        option-driven triage state machine (pure, synchronous)
    TriageOrchestrator    persistence, analysis and profile merging around it
    RulesetStore          loads the YAML rulesets under ``v1/``
    FormEngine            visibility, validation and scoring of assessment forms
    PromptManager         renders the analysis prompt for model-backed analyzers

Analysis:
    TriageAnalyzer        ABC for the analysis stage
    KeywordTriageAnalyzer offline marker rules
    HttpTriageAnalyzer    model endpoint over HTTP
    classify_risk         score -> LOW / MODERATE / HIGH
    build_referral        referral payload at or above the threshold

Errors:
    DefinitionError, VersionMismatchError, SessionStateError, AnalysisFailure
"""

from neuro_intake.analyzer import HttpTriageAnalyzer, KeywordTriageAnalyzer
from neuro_intake.dialogue import DialogueEngine, parse_response
from neuro_intake.errors import (
    AnalysisFailure,
    DefinitionError,
    SessionStateError,
    VersionMismatchError,
)
from neuro_intake.form_engine import FormEngine
from neuro_intake.interfaces import TriageAnalyzer
from neuro_intake.models.session import DialogueSession, SessionInfo, Turn, TurnResult
from neuro_intake.models.summary import Referral, TriageSummary
from neuro_intake.models.triage import DiseaseType, RiskLevel
from neuro_intake.orchestrator import TriageOrchestrator
from neuro_intake.prompt import PromptManager
from neuro_intake.risk import build_referral, classify_risk
from neuro_intake.ruleset import RulesetStore

__all__ = [
    # Engine & store
    "DialogueEngine",
    "TriageOrchestrator",
    "RulesetStore",
    "FormEngine",
    "PromptManager",
    "parse_response",
    # Analysis
    "TriageAnalyzer",
    "KeywordTriageAnalyzer",
    "HttpTriageAnalyzer",
    "classify_risk",
    "build_referral",
    # Models
    "DialogueSession",
    "DiseaseType",
    "Referral",
    "RiskLevel",
    "SessionInfo",
    "TriageSummary",
    "Turn",
    "TurnResult",
    # Errors
    "AnalysisFailure",
    "DefinitionError",
    "SessionStateError",
    "VersionMismatchError",
]
