"""OptionMatcher: maps a patient's answer onto one of a step's options.

Patients may tap a quick reply or type colloquially.  Matching tries, in
order:

  1. the option *value* itself (API clients send values)
  2. the option label, as a substring of the answer or vice versa
  3. the synonym table keyed by option value (``v1/const/synonyms.yaml``)
  4. a negation fallback: an answer containing a negation marker selects
     the step's ``none`` / ``negative`` / ``normal`` option

Returns ``None`` when nothing matches; the dialogue then advances without
adding any weight.
"""

from __future__ import annotations

from neuro_intake.constants import NEGATION_MARKERS, NEGATIVE_OPTION_VALUES
from neuro_intake.models.triage import TriageOption


class OptionMatcher:
    """Resolves free text against a list of triage options."""

    def __init__(self, synonyms: dict[str, list[str]] | None = None) -> None:
        self._synonyms = synonyms or {}

    def match(self, text: str, options: list[TriageOption]) -> TriageOption | None:
        answer = text.strip().lower()
        if not answer:
            return None

        for opt in options:
            if answer == opt.value.lower():
                return opt

        for opt in options:
            label = opt.label.lower()
            if label in answer or answer in label:
                return opt

        for opt in options:
            if any(kw in answer for kw in self._synonyms.get(opt.value, [])):
                return opt

        if any(marker in answer for marker in NEGATION_MARKERS):
            for opt in options:
                if opt.value in NEGATIVE_OPTION_VALUES:
                    return opt
        return None
