"""Form definition loading and load-time structural checks.

``load_form_definition`` turns a raw mapping (usually parsed YAML) into an
immutable :class:`FormDefinition` and rejects anything the form engine
could not evaluate safely:

  - duplicate field ids anywhere in the definition
  - ``visible_if`` referencing the field itself, a later field (forward or
    cyclic), a field in another section, a display-only field, or an
    unknown id
  - ``children`` on anything but a ``group``
  - choice/multiselect fields without options, with duplicate option
    values, or with more than one exclusive option
  - schema errors (unknown type, bare comparison strings such as ``"<2500"``)

All failures raise :class:`DefinitionError` naming the form, so the caller
can skip that definition and keep loading the rest.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from neuro_intake.errors import DefinitionError
from neuro_intake.models.form import DISPLAY_TYPES, OPTION_TYPES, FormDefinition, FormField

logger = logging.getLogger(__name__)


def load_form_definition(raw: dict[str, Any]) -> FormDefinition:
    """Validate ``raw`` and return a checked, immutable definition."""
    form_id = str(raw.get("id", "<unknown>")) if isinstance(raw, dict) else "<unknown>"
    try:
        definition = FormDefinition.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise DefinitionError(form_id, f"{loc}: {first.get('msg')}") from exc

    check_definition(definition)
    return definition


def check_definition(definition: FormDefinition) -> None:
    """Run every cross-field check; raise DefinitionError on the first problem."""
    form_id = definition.id

    # Which section each id belongs to, and which ids are display-only
    section_of: dict[str, str] = {}
    display_ids: set[str] = set()
    for section, field, _ in definition.iter_fields():
        if field.id in section_of:
            raise DefinitionError(form_id, f"duplicate field id '{field.id}'")
        section_of[field.id] = section.id
        if field.type in DISPLAY_TYPES:
            display_ids.add(field.id)

    for section in definition.sections:
        earlier: set[str] = set()
        for field, _parent in section.iter_fields():
            _check_field_shape(form_id, field)
            for pred in field.visible_if:
                ref = pred.field
                if ref == field.id:
                    raise DefinitionError(
                        form_id, f"field '{field.id}' has a visible_if on itself"
                    )
                if ref not in section_of:
                    raise DefinitionError(
                        form_id, f"field '{field.id}' references unknown field '{ref}'"
                    )
                if section_of[ref] != section.id:
                    raise DefinitionError(
                        form_id,
                        f"field '{field.id}' references '{ref}' in section "
                        f"'{section_of[ref]}'; visibility may not cross sections",
                    )
                if ref not in earlier:
                    raise DefinitionError(
                        form_id,
                        f"field '{field.id}' has a forward or cyclic reference to '{ref}'",
                    )
                if ref in display_ids:
                    raise DefinitionError(
                        form_id, f"field '{field.id}' references display-only field '{ref}'"
                    )
            earlier.add(field.id)


def _check_field_shape(form_id: str, field: FormField) -> None:
    if field.children and field.type != "group":
        raise DefinitionError(
            form_id, f"field '{field.id}' of type {field.type} cannot have children"
        )

    if (field.scored or field.expected is not None) and field.type != "number":
        raise DefinitionError(
            form_id, f"field '{field.id}': only number fields can be scored or keyed"
        )
    if field.scored and field.expected is not None:
        raise DefinitionError(
            form_id, f"field '{field.id}' is both scored and keyed; pick one"
        )

    if field.type in OPTION_TYPES:
        if not field.options:
            raise DefinitionError(form_id, f"{field.type} field '{field.id}' has no options")
        # bool is kept apart from int so that False and 0 are distinct values
        seen: list[tuple[bool, Any]] = []
        for opt in field.options:
            key = (isinstance(opt.value, bool), opt.value)
            if key in seen:
                raise DefinitionError(
                    form_id, f"field '{field.id}' repeats option value {opt.value!r}"
                )
            seen.append(key)
        exclusive = field.exclusive_values
        if exclusive and field.type != "multiselect":
            raise DefinitionError(
                form_id, f"field '{field.id}': only multiselect options can be exclusive"
            )
        if len(exclusive) > 1:
            raise DefinitionError(
                form_id, f"field '{field.id}' has more than one exclusive option"
            )
    elif field.options:
        logger.warning(
            "Form %s: options on %s field '%s' are ignored", form_id, field.type, field.id,
        )
