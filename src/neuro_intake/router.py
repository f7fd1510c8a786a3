"""DiseaseRouter: keyword routing of the chief complaint to a pathway.

A plain lookup table of ``(compiled pattern, disease)`` pairs evaluated in
order; the first pattern found anywhere in the text wins.  No match falls
back to the caller-supplied default.
"""

from __future__ import annotations

import logging
import re

from neuro_intake.models.triage import DiseaseType, RoutingRule

logger = logging.getLogger(__name__)


class DiseaseRouter:
    """First-match-wins keyword router."""

    def __init__(self, rules: list[RoutingRule], default: DiseaseType) -> None:
        self._table: list[tuple[re.Pattern[str], DiseaseType]] = [
            (re.compile(rule.pattern), rule.disease) for rule in rules
        ]
        self._default = default

    def route(self, text: str, *, fallback: DiseaseType | None = None) -> DiseaseType:
        """Return the disease for ``text``.

        Args:
            text: the patient's free-text or quick-reply complaint
            fallback: overrides the table default when nothing matches
                (used for sessions created with a pathway hint)
        """
        for pattern, disease in self._table:
            if pattern.search(text):
                return disease
        chosen = fallback or self._default
        logger.info("No routing keyword matched, falling back to %s", chosen.value)
        return chosen
