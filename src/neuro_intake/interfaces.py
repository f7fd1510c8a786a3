"""Abstract interface for the analysis stage.

The dialogue engine only scores what the patient selected; turning the
finished transcript into a clinical summary is delegated to a
:class:`TriageAnalyzer`.  The SDK ships two implementations:

    KeywordTriageAnalyzer   offline marker rules from ``v1/analysis.yaml``
    HttpTriageAnalyzer      posts a rendered prompt to a model endpoint

Typical integration flow::

    engine = DialogueEngine(store)
    # ... advance the session until terminal_action == "OFFER_ASSESSMENT" ...

    analyzer: TriageAnalyzer = KeywordTriageAnalyzer(store)
    summary = await analyzer.analyze(session.history.turns, session.disease)
    # summary.risk_score, summary.summary, summary.extracted_profile
"""

from abc import ABC, abstractmethod

from neuro_intake.models.session import Turn
from neuro_intake.models.summary import TriageSummary
from neuro_intake.models.triage import DiseaseType


class TriageAnalyzer(ABC):
    """Interface for the analysis call made once the dialogue has finished.

    Implementations may suspend (network I/O) and may fail; the
    orchestrator wraps every call in a timeout and converts failures into
    a retryable :class:`~neuro_intake.errors.AnalysisFailure`.
    """

    @abstractmethod
    async def analyze(self, history: list[Turn], disease: DiseaseType) -> TriageSummary:
        """Analyse a finished triage transcript.

        Parameters
        ----------
        history:
            Ordered transcript turns (user and model) of the session, as
            kept by the bounded history window.
        disease:
            The classification fixed at routing time.

        Returns
        -------
        TriageSummary
            Risk score (0-100), disease, free-text summary and an optional
            disease-specific extracted profile.  Risk level and referral
            are added by the orchestrator, not by the analyzer.
        """
        ...
