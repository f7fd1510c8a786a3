"""FormEngine: visibility, validation and scoring for assessment scales.

Stateless: every call takes a :class:`FormDefinition` plus an answer
mapping (field id -> value) and derives everything from scratch, so
visibility is never memoised across answer changes.

Visibility
    A field is visible when its parent group (if any) is visible and every
    ``visible_if`` predicate holds.  Predicates only see answers of fields
    that are themselves visible, so a stale answer left on a hidden field
    cannot reveal its dependents.

Validation
    Hidden fields are exempt.  Visible fields yield at most one
    :class:`ValidationFailure` each, with a stable ``reason`` string:
    ``required``, ``not_a_number``, ``below_min``, ``above_max``,
    ``invalid_option``, ``exclusive_conflict``, ``pattern_mismatch``,
    ``invalid_date``.  Answers for ids the definition does not know are
    reported as ``unknown_field``.

Scoring
    A section's score is the sum of the numeric option values selected in
    its visible choice/multiselect fields (group children included, groups
    themselves contribute nothing).  Number fields count only when they opt
    in: ``scored`` adds the answer itself, ``expected`` adds one point for
    the keyed answer.  Hidden sections score 0.  The total is the sum of
    sections with ``scored: true``.

Exclusive options
    Enforced when answers are written (:meth:`FormEngine.write_answer`),
    not when they are read.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Mapping

from neuro_intake.errors import VersionMismatchError
from neuro_intake.evaluator import PredicateEvaluator
from neuro_intake.models.form import (
    DISPLAY_TYPES,
    FormDefinition,
    FormEvaluation,
    FormField,
    ValidationFailure,
)

logger = logging.getLogger(__name__)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: Any) -> float | None:
    """Numeric reading of a number-field answer (inputs often arrive as text)."""
    if isinstance(value, bool):
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return None if num != num else num


def _same(a: Any, b: Any) -> bool:
    """Equality that keeps ``True`` and ``1`` apart."""
    return a == b and isinstance(a, bool) == isinstance(b, bool)


class FormEngine:
    """Evaluates form definitions against answer stores."""

    def __init__(self) -> None:
        self._evaluator = PredicateEvaluator()

    # ==================================================================
    # Public API
    # ==================================================================

    def evaluate(
        self,
        definition: FormDefinition,
        answers: Mapping[str, Any],
        *,
        version: str | None = None,
    ) -> FormEvaluation:
        """Compute visible ids, validation failures, section scores and interpretations.

        Args:
            definition: the loaded form
            answers: field id -> answered value
            version: the definition version the answers were captured
                against; a mismatch raises :class:`VersionMismatchError`
        """
        if version is not None and version != definition.version:
            raise VersionMismatchError(definition.id, definition.version, version)

        visibility = self._resolve_visibility(definition, answers)
        scores = self._section_scores(definition, answers, visibility)
        total = sum(
            scores[s.id] for s in definition.sections if s.scored
        )

        score_table = {**scores, "total": total}
        interpretations = {
            interp.id: self._evaluator.interpret(interp, score_table)
            for interp in definition.interpretations
        }

        return FormEvaluation(
            form_id=definition.id,
            version=definition.version,
            visible_field_ids=[fid for fid, shown in visibility.items() if shown],
            validation_failures=self._validate(definition, answers, visibility),
            section_scores=scores,
            total_score=total,
            interpretations=interpretations,
        )

    def visible_field_ids(
        self, definition: FormDefinition, answers: Mapping[str, Any],
    ) -> list[str]:
        """Ids of the currently visible fields, in evaluation order."""
        visibility = self._resolve_visibility(definition, answers)
        return [fid for fid, shown in visibility.items() if shown]

    def section_scores(
        self, definition: FormDefinition, answers: Mapping[str, Any],
    ) -> dict[str, float]:
        """Score of every section keyed by section id."""
        visibility = self._resolve_visibility(definition, answers)
        return self._section_scores(definition, answers, visibility)

    def write_answer(
        self,
        definition: FormDefinition,
        answers: Mapping[str, Any],
        field_id: str,
        value: Any,
    ) -> dict[str, Any]:
        """Return a copy of ``answers`` with ``field_id`` set to ``value``.

        For a multiselect field a scalar ``value`` toggles that option, and
        a list is applied option by option in order.  Selecting the
        exclusive option clears every other selection; selecting any other
        option clears the exclusive one.  ``None`` clears the answer.

        Raises:
            KeyError: the field id is not part of the definition
            ValueError: the field is display-only (info/group)
        """
        field = definition.get_field(field_id)
        if field.type in DISPLAY_TYPES:
            raise ValueError(f"Field '{field_id}' of type {field.type} does not accept answers")

        updated = dict(answers)
        if value is None:
            updated.pop(field_id, None)
            return updated

        if field.type == "multiselect":
            current = updated.get(field_id)
            current = list(current) if isinstance(current, list) else []
            if isinstance(value, list):
                selection: list[Any] = []
                for v in value:
                    selection = self._select(field, selection, v)
            else:
                selection = self._toggle(field, current, value)
            updated[field_id] = selection
        else:
            updated[field_id] = value
        return updated

    # ==================================================================
    # Internal: visibility
    # ==================================================================

    def _resolve_visibility(
        self, definition: FormDefinition, answers: Mapping[str, Any],
    ) -> dict[str, bool]:
        """Map every field id to its visibility, preserving evaluation order."""
        visible: dict[str, bool] = {}
        for section in definition.sections:
            # Only answers of visible fields can drive later predicates
            effective: dict[str, Any] = {}
            for field, parent in section.iter_fields():
                shown = (parent is None or visible[parent.id]) and self._evaluator.matches_all(
                    field.visible_if, effective,
                )
                visible[field.id] = shown
                if shown and field.id in answers:
                    effective[field.id] = answers[field.id]
        return visible

    # ==================================================================
    # Internal: validation
    # ==================================================================

    def _validate(
        self,
        definition: FormDefinition,
        answers: Mapping[str, Any],
        visibility: Mapping[str, bool],
    ) -> list[ValidationFailure]:
        failures: list[ValidationFailure] = []
        for _, field, _ in definition.iter_fields():
            if not visibility[field.id] or field.type in DISPLAY_TYPES:
                continue
            failure = self._validate_field(field, answers.get(field.id))
            if failure is not None:
                failures.append(failure)

        for field_id in answers:
            if field_id not in visibility:
                failures.append(ValidationFailure(
                    field_id=field_id, reason="unknown_field",
                    detail=f"'{field_id}' is not part of form '{definition.id}'",
                ))
        return failures

    def _validate_field(self, field: FormField, value: Any) -> ValidationFailure | None:
        rule = field.validation
        if _is_empty(value):
            if rule is not None and rule.required:
                return ValidationFailure(field_id=field.id, reason="required")
            return None

        if field.type == "number":
            return self._validate_number(field, value)

        if field.type == "choice":
            if field.option_for(value) is None:
                return ValidationFailure(
                    field_id=field.id, reason="invalid_option", detail=f"{value!r}",
                )
            return None

        if field.type == "multiselect":
            if not isinstance(value, list):
                return ValidationFailure(
                    field_id=field.id, reason="invalid_option", detail="expected a list",
                )
            for v in value:
                if field.option_for(v) is None:
                    return ValidationFailure(
                        field_id=field.id, reason="invalid_option", detail=f"{v!r}",
                    )
            exclusive = field.exclusive_values
            if len(value) > 1 and any(_same(v, e) for v in value for e in exclusive):
                return ValidationFailure(field_id=field.id, reason="exclusive_conflict")
            return None

        if field.type == "date":
            try:
                date.fromisoformat(str(value))
            except ValueError:
                return ValidationFailure(
                    field_id=field.id, reason="invalid_date", detail=f"{value!r}",
                )
            return None

        if field.type == "text" and rule is not None and rule.regex:
            if not re.search(rule.regex, str(value)):
                return ValidationFailure(field_id=field.id, reason="pattern_mismatch")
        return None

    @staticmethod
    def _validate_number(field: FormField, value: Any) -> ValidationFailure | None:
        if isinstance(value, bool):
            return ValidationFailure(field_id=field.id, reason="not_a_number")
        try:
            num = float(value)
        except (TypeError, ValueError):
            return ValidationFailure(
                field_id=field.id, reason="not_a_number", detail=f"{value!r}",
            )
        if num != num:  # NaN
            return ValidationFailure(field_id=field.id, reason="not_a_number")

        rule = field.validation
        if rule is None:
            return None
        if rule.min is not None and num < rule.min:
            return ValidationFailure(
                field_id=field.id, reason="below_min", detail=f"{num:g} < {rule.min:g}",
            )
        if rule.max is not None and num > rule.max:
            return ValidationFailure(
                field_id=field.id, reason="above_max", detail=f"{num:g} > {rule.max:g}",
            )
        return None

    # ==================================================================
    # Internal: scoring
    # ==================================================================

    def _section_scores(
        self,
        definition: FormDefinition,
        answers: Mapping[str, Any],
        visibility: Mapping[str, bool],
    ) -> dict[str, float]:
        scores: dict[str, float] = {}
        for section in definition.sections:
            total = 0.0
            for field, _ in section.iter_fields():
                if visibility[field.id] and field.id in answers:
                    total += self._field_points(field, answers[field.id])
            scores[section.id] = total
        return scores

    @staticmethod
    def _field_points(field: FormField, value: Any) -> float:
        """Numeric value contributed by an answer; non-numeric options count 0."""
        if field.type == "choice":
            opt = field.option_for(value)
            return float(opt.value) if opt is not None and _is_number(opt.value) else 0.0
        if field.type == "multiselect" and isinstance(value, list):
            points = 0.0
            for v in value:
                opt = field.option_for(v)
                if opt is not None and _is_number(opt.value):
                    points += float(opt.value)
            return points
        if field.type == "number" and (field.scored or field.expected is not None):
            num = _as_number(value)
            if num is None:
                return 0.0
            if field.expected is not None:
                return 1.0 if num == field.expected else 0.0
            return num
        return 0.0

    # ==================================================================
    # Internal: exclusive multiselect writes
    # ==================================================================

    def _toggle(self, field: FormField, current: list[Any], value: Any) -> list[Any]:
        if any(_same(v, value) for v in current):
            return [v for v in current if not _same(v, value)]
        return self._select(field, current, value)

    @staticmethod
    def _select(field: FormField, current: list[Any], value: Any) -> list[Any]:
        exclusive = field.exclusive_values
        if any(_same(value, e) for e in exclusive):
            return [value]
        kept = [
            v for v in current
            if not _same(v, value) and not any(_same(v, e) for e in exclusive)
        ]
        return kept + [value]
