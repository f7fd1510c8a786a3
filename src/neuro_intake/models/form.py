"""Form definition models for dynamic assessment scales.

A ``FormDefinition`` is an ordered list of ``FormSection`` objects, each an
ordered list of ``FormField`` objects.  Field types map to UI components:

    info        - static text, never answered or validated
    choice      - pick one option; numeric option values are scored
    multiselect - pick any number of options; one option may be exclusive
    number      - numeric input with optional inclusive min/max
    text        - free text with optional regex
    date        - ISO calendar date (YYYY-MM-DD)
    group       - container for ``children``; contributes no value itself

Conditional visibility is declared by ``visible_if``: a conjunction of
predicates over *earlier* fields in the same section.  Each predicate names
its comparison operator explicitly; the mapping shorthand
``{field_id: expected}`` is accepted and means equality.

Definitions are immutable once loaded (``frozen=True``); structural checks
that need the whole definition live in :mod:`neuro_intake.forms`.
"""

from __future__ import annotations

import re
from typing import Any, Iterator, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

FieldType = Literal["info", "choice", "multiselect", "number", "text", "date", "group"]

ComparisonOp = Literal[
    "eq", "ne",
    "lt", "le", "gt", "ge", "between",
    "contains", "not_contains", "contains_any", "contains_all",
    "matches",
]

# "<2500", ">= 5" and friends -- a comparison smuggled into an equality value
_BARE_COMPARISON = re.compile(r"^\s*(<=|>=|<|>|=)\s*-?\d+(\.\d+)?\s*$")

# Field types whose answers are option values
OPTION_TYPES: frozenset[str] = frozenset({"choice", "multiselect"})

# Field types that never hold an answer
DISPLAY_TYPES: frozenset[str] = frozenset({"info", "group"})


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_operand(op: str, value: Any, where: str) -> None:
    """Reject an operand the operator cannot be evaluated with.

    Raises ValueError so pydantic reports it as a validation error and the
    loader turns it into a DefinitionError for the one form.
    """
    if op in ("lt", "le", "gt", "ge") and not _is_number(value):
        raise ValueError(f"'{op}' on '{where}' needs a numeric value, got {value!r}")
    if op == "between":
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise ValueError(f"'between' on '{where}' needs a [min, max] pair")
        if not all(_is_number(v) for v in value):
            raise ValueError(f"'between' on '{where}' needs numeric bounds, got {value!r}")
        if value[0] > value[1]:
            raise ValueError(f"'between' on '{where}' has min > max: {value!r}")
    if op in ("contains_any", "contains_all") and not isinstance(value, (list, tuple)):
        raise ValueError(f"'{op}' on '{where}' needs a list of values, got {value!r}")
    if op == "matches":
        if not isinstance(value, str):
            raise ValueError(f"'matches' on '{where}' needs a pattern string, got {value!r}")
        _compile(value, where)


def _compile(pattern: str, where: str) -> None:
    try:
        re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"invalid pattern {pattern!r} on '{where}': {exc}") from exc


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# --- Visibility predicates ---

class Predicate(_Frozen):
    """A single visibility condition: ``answers[field] <op> value``."""

    field: str
    op: ComparisonOp = "eq"
    value: Any = None

    @model_validator(mode="after")
    def _chk(self):
        if self.op == "eq" and isinstance(self.value, str) and _BARE_COMPARISON.match(self.value):
            raise ValueError(
                f"visible_if on '{self.field}' uses the bare comparison {self.value!r}; "
                "declare the operator explicitly (e.g. op: lt, value: 2500)"
            )
        _check_operand(self.op, self.value, self.field)
        return self


def _normalise_predicates(raw: Any) -> Any:
    """Turn the ``{field_id: expected}`` shorthand into a predicate list."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [{"field": k, "op": "eq", "value": v} for k, v in raw.items()]
    return raw


# --- Fields ---

class FormOption(_Frozen):
    """A selectable option.  ``exclusion`` marks a mutually exclusive option (e.g. "none")."""

    label: str
    value: Any
    exclusion: bool = False


class ValidationRule(_Frozen):
    """Per-field validation rules.  ``min``/``max`` are inclusive."""

    required: bool = False
    min: Optional[float] = None
    max: Optional[float] = None
    regex: Optional[str] = None

    @model_validator(mode="after")
    def _chk(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError("validation min must be <= max")
        if self.regex is not None:
            _compile(self.regex, "validation.regex")
        return self


class FormField(_Frozen):
    """One node of a form.  ``children`` is only meaningful for ``group``."""

    id: str
    type: FieldType
    label: str
    hint: Optional[str] = None
    suffix: Optional[str] = None
    options: Optional[List[FormOption]] = None
    validation: Optional[ValidationRule] = None
    visible_if: List[Predicate] = Field(default_factory=list)
    children: Optional[List["FormField"]] = None
    # Number fields only: add the answer itself to the section score (e.g. MIDAS days)
    scored: bool = False
    # Number fields only: one point when the answer equals this (e.g. MMSE serial sevens)
    expected: Optional[float] = None

    @field_validator("visible_if", mode="before")
    @classmethod
    def _shorthand(cls, v: Any) -> Any:
        return _normalise_predicates(v)

    @property
    def exclusive_values(self) -> list[Any]:
        """Option values flagged ``exclusion`` (at most one after load checks)."""
        return [o.value for o in (self.options or []) if o.exclusion]

    def option_for(self, value: Any) -> FormOption | None:
        """Return the option whose value equals ``value``.

        ``True == 1`` in Python, so bools and numbers are matched by type too.
        """
        for opt in self.options or []:
            if opt.value == value and isinstance(opt.value, bool) == isinstance(value, bool):
                return opt
        return None


class FormSection(_Frozen):
    """Ordered list of fields.  Sections are evaluated independently."""

    id: str
    title: str
    description: Optional[str] = None
    # Excluded from the form total when false (e.g. purely administrative sections)
    scored: bool = True
    fields: List[FormField]

    def iter_fields(self) -> Iterator[tuple[FormField, Optional[FormField]]]:
        """Yield ``(field, parent_group)`` pairs in evaluation (pre-)order."""
        def walk(fields: list[FormField], parent: FormField | None):
            for f in fields:
                yield f, parent
                if f.children:
                    yield from walk(f.children, f)

        yield from walk(self.fields, None)


# --- Interpretations (score -> label rules) ---

class ScoreCondition(_Frozen):
    """Compare a section score (or ``"total"``) against a value."""

    score: str
    op: ComparisonOp
    value: Any

    @model_validator(mode="after")
    def _chk(self):
        _check_operand(self.op, self.value, self.score)
        return self


class InterpretationRule(_Frozen):
    """AND-ed ``when`` conditions; the first rule that matches yields ``then``."""

    when: List[ScoreCondition]
    then: str


class Interpretation(_Frozen):
    """A named, first-match-wins rule list evaluated over the section scores."""

    id: str
    rules: List[InterpretationRule]
    default: Optional[str] = None


# --- Definition ---

class FormDefinition(_Frozen):
    """A complete, versioned assessment scale."""

    id: str
    title: str
    version: str
    sections: List[FormSection]
    interpretations: List[Interpretation] = Field(default_factory=list)

    def iter_fields(self) -> Iterator[tuple[FormSection, FormField, Optional[FormField]]]:
        """Yield ``(section, field, parent_group)`` across all sections in order."""
        for section in self.sections:
            for f, parent in section.iter_fields():
                yield section, f, parent

    def get_field(self, field_id: str) -> FormField:
        """Look up a field by id.  Raises KeyError if unknown."""
        for _, f, _ in self.iter_fields():
            if f.id == field_id:
                return f
        raise KeyError(f"Unknown field '{field_id}' in form '{self.id}'")


# --- Evaluation output ---

class ValidationFailure(BaseModel):
    """A single, non-fatal validation problem for one field."""

    field_id: str
    reason: str
    detail: Optional[str] = None


class FormEvaluation(BaseModel):
    """Result of evaluating a definition against an answer store."""

    form_id: str
    version: str
    visible_field_ids: list[str]
    validation_failures: list[ValidationFailure]
    section_scores: dict[str, float]
    total_score: float
    interpretations: dict[str, Optional[str]] = Field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.validation_failures
