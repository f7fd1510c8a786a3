"""Concrete :class:`TriageAnalyzer` implementations.

KeywordTriageAnalyzer
    Offline rules from ``v1/analysis.yaml``: a disease's risk is its
    ``elevated_risk`` when any marker phrase occurs in the patient's turns,
    else its ``base_risk``.  Deterministic and dependency-free, used in
    tests and as the default backend.

HttpTriageAnalyzer
    Renders the analysis prompt with :class:`PromptManager` and posts it to
    a model endpoint with httpx.  The reply must be (or embed) a JSON
    object ``{"risk", "disease", "summary", "profile"?}``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

import httpx

from neuro_intake.interfaces import TriageAnalyzer
from neuro_intake.models.session import Turn
from neuro_intake.models.summary import TriageSummary
from neuro_intake.models.triage import DiseaseType
from neuro_intake.prompt import PromptManager
from neuro_intake.ruleset import RulesetStore

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class KeywordTriageAnalyzer(TriageAnalyzer):
    """Marker-phrase analysis over the patient's side of the transcript."""

    def __init__(self, store: RulesetStore) -> None:
        self._store = store

    async def analyze(self, history: list[Turn], disease: DiseaseType) -> TriageSummary:
        rule = self._store.get_analysis_rule(disease)
        if rule is None:
            raise ValueError(f"No analysis rule configured for {disease.value}")

        patient_text = "\n".join(t.text for t in history if t.role == "user")
        hits = [m for m in rule.markers if any(p in patient_text for p in m.any)]

        notes = "".join(m.note for m in hits)
        return TriageSummary(
            risk_score=rule.elevated_risk if hits else rule.base_risk,
            disease=disease,
            summary=rule.summary.replace("{notes}", notes),
            extracted_profile={m.id: True for m in hits} or None,
        )


class HttpTriageAnalyzer(TriageAnalyzer):
    """Posts the rendered analysis prompt to ``url`` and validates the reply.

    Args:
        url: endpoint accepting ``{"prompt": str, "disease": str}``
        store: loaded ruleset store (for the disease role prompt)
        prompts: optional PromptManager override
        timeout: per-request timeout in seconds
        client: optional shared ``httpx.AsyncClient``; when omitted a
            client is opened per call
    """

    def __init__(
        self,
        url: str,
        *,
        store: RulesetStore,
        prompts: PromptManager | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._store = store
        self._prompts = prompts or PromptManager()
        self._timeout = timeout
        self._client = client

    async def analyze(self, history: list[Turn], disease: DiseaseType) -> TriageSummary:
        prompt = self._prompts.render_analysis(self._store.get_context(disease), history)
        payload = {"prompt": prompt, "disease": disease.value}

        if self._client is not None:
            resp = await self._client.post(self._url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=payload)
        resp.raise_for_status()
        return self.parse_reply(resp.json(), disease)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    @staticmethod
    def parse_reply(body: Any, disease: DiseaseType) -> TriageSummary:
        """Validate an endpoint reply into a TriageSummary.

        Accepts the JSON object itself, or ``{"text": "..."}`` whose text
        embeds the object (model output wrapped in prose or code fences).
        The disease is always the one fixed at routing; a different value in
        the reply is logged and ignored.

        Raises:
            ValueError: the reply is not a usable analysis object
        """
        if isinstance(body, dict) and isinstance(body.get("text"), str):
            match = _JSON_OBJECT.search(body["text"])
            if match is None:
                raise ValueError("Analysis reply text contains no JSON object")
            body = json.loads(match.group(0))

        if not isinstance(body, dict):
            raise ValueError(f"Analysis reply must be an object, got {type(body).__name__}")
        if "risk" not in body or "summary" not in body:
            raise ValueError("Analysis reply is missing 'risk' or 'summary'")

        risk = body["risk"]
        if isinstance(risk, bool) or not isinstance(risk, (int, float)):
            raise ValueError(f"Analysis risk must be a number, got {risk!r}")

        reported = body.get("disease")
        if reported and reported != disease.value:
            logger.warning(
                "Analyzer reported disease %s for a %s session; keeping %s",
                reported, disease.value, disease.value,
            )

        profile = body.get("profile")
        return TriageSummary(
            risk_score=int(round(risk)),
            disease=disease,
            summary=str(body["summary"]),
            extracted_profile=profile if isinstance(profile, dict) and profile else None,
        )
