"""PredicateEvaluator: resolves ``visible_if`` predicates and score interpretations.

Two callers share the same operator table:

  - **visibility**: the form engine asks whether every predicate of a
    field's ``visible_if`` holds against the current answers
  - **interpretation**: a form's named rule lists are evaluated
    first-match-wins over ``{section_id: score, "total": total}``

An unanswered referenced field makes its predicate false, so a field that
depends on an unanswered question stays hidden.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping

from neuro_intake.models.form import Interpretation, Predicate, ScoreCondition

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class PredicateEvaluator:
    """Evaluates predicates against an answer mapping."""

    def matches_all(
        self, predicates: Iterable[Predicate], answers: Mapping[str, Any],
    ) -> bool:
        """True when every predicate holds (an empty list always holds)."""
        return all(self.eval_predicate(p, answers) for p in predicates)

    def eval_predicate(self, pred: Predicate, answers: Mapping[str, Any]) -> bool:
        """Evaluate a single predicate.

        A missing or empty answer for the referenced field evaluates to
        False for every operator, including ``ne`` and ``not_contains``.
        """
        answer = answers.get(pred.field)
        if answer is None or answer == "" or answer == []:
            return False
        return self._compare(pred.op, answer, pred.value)

    def interpret(
        self, interpretation: Interpretation, scores: Mapping[str, float],
    ) -> str | None:
        """Run an interpretation's rules in order; first match wins.

        Falls back to ``interpretation.default`` when no rule matches.
        """
        for rule in interpretation.rules:
            if all(self._eval_condition(c, scores) for c in rule.when):
                return rule.then
        return interpretation.default

    def _eval_condition(self, cond: ScoreCondition, scores: Mapping[str, float]) -> bool:
        score = scores.get(cond.score)
        if score is None:
            logger.warning("Interpretation references unknown score '%s'", cond.score)
            return False
        return self._compare(cond.op, score, cond.value)

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    @staticmethod
    def _compare(op: str, answer: Any, value: Any) -> bool:
        """Apply an operator to an answer and an expected value.

        Numeric comparisons coerce numeric strings (form inputs often
        arrive as text); booleans are never treated as numbers.
        """
        if op in ("eq", "ne"):
            if _is_number(answer) and _is_number(value):
                equal = float(answer) == float(value)
            else:
                equal = answer == value and isinstance(answer, bool) == isinstance(value, bool)
            return equal if op == "eq" else not equal

        # --- Numeric comparisons ---
        if op in ("lt", "le", "gt", "ge", "between"):
            if isinstance(answer, bool):
                return False
            try:
                ans_num = float(answer)
            except (TypeError, ValueError):
                return False

            if op == "lt":
                return ans_num < float(value)
            if op == "le":
                return ans_num <= float(value)
            if op == "gt":
                return ans_num > float(value)
            if op == "ge":
                return ans_num >= float(value)
            lo, hi = float(value[0]), float(value[1])
            return lo <= ans_num <= hi

        # --- Collection / string membership ---
        if op == "contains":
            if isinstance(answer, list):
                return value in answer
            return str(value) in str(answer)

        if op == "not_contains":
            if isinstance(answer, list):
                return value not in answer
            return str(value) not in str(answer)

        if op == "contains_any":
            if isinstance(answer, list):
                return any(v in answer for v in value)
            return any(str(v) in str(answer) for v in value)

        if op == "contains_all":
            if isinstance(answer, list):
                return all(v in answer for v in value)
            return all(str(v) in str(answer) for v in value)

        if op == "matches":
            return bool(re.search(str(value), str(answer)))

        logger.warning("Unknown predicate operator: %s", op)
        return False
