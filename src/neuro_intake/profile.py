"""Structured profile extraction from a finished triage.

The profile is a flat, disease-specific key/value record.  Pathway steps
that declare a ``profile_key`` contribute the value of the option the
patient selected; the analyzer's ``extracted_profile`` is laid over the
top, and the orchestrator merges the result into the stored profile.
"""

from __future__ import annotations

from typing import Any, Mapping

from neuro_intake.models.triage import Pathway


def extract_profile(pathway: Pathway, selections: Mapping[str, str]) -> dict[str, Any]:
    """Map each answered step with a ``profile_key`` to its selected option value."""
    profile: dict[str, Any] = {}
    for step in pathway.steps:
        if step.profile_key and step.id in selections:
            profile[step.profile_key] = selections[step.id]
    return profile


def merge_profile(
    existing: Mapping[str, Any] | None, update: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Return ``existing`` with ``update`` laid over it.

    Nested dicts merge key by key; every other value in ``update`` replaces
    the stored one.  ``None`` values in ``update`` are skipped so a sparse
    analyzer reply never erases known facts.
    """
    merged: dict[str, Any] = dict(existing or {})
    for key, value in (update or {}).items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_profile(current, value)
        else:
            merged[key] = value
    return merged
