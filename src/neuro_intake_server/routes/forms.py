"""Assessment form endpoints.

The server keeps no answer state for forms: the client sends its answer
store with every call and gets back the evaluation, or the updated store
after a single write.  No authentication is needed; nothing is persisted.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from neuro_intake.form_engine import FormEngine
from neuro_intake.models.form import FormDefinition, FormEvaluation
from neuro_intake.ruleset import RulesetStore

from neuro_intake_server.dependencies import get_form_engine, get_store

router = APIRouter(prefix="/forms", tags=["forms"])


class EvaluateRequest(BaseModel):
    """Body for POST /forms/{form_id}/evaluate.

    ``version`` is the definition version the answers were captured against;
    a mismatch is rejected with 409.
    """
    answers: dict[str, Any] = Field(default_factory=dict)
    version: str | None = None


class WriteAnswerRequest(BaseModel):
    """Body for POST /forms/{form_id}/answers.  ``value: null`` clears the answer."""
    answers: dict[str, Any] = Field(default_factory=dict)
    field_id: str
    value: Any = None


@router.get("")
def list_forms(store: RulesetStore = Depends(get_store)) -> list[dict]:
    return store.list_forms()


@router.get("/{form_id}")
def get_form(form_id: str, store: RulesetStore = Depends(get_store)) -> FormDefinition:
    return store.get_form(form_id)


@router.post("/{form_id}/evaluate")
def evaluate_form(
    form_id: str,
    body: EvaluateRequest,
    store: RulesetStore = Depends(get_store),
    engine: FormEngine = Depends(get_form_engine),
) -> FormEvaluation:
    """Visible fields, validation failures, section scores and interpretations."""
    return engine.evaluate(store.get_form(form_id), body.answers, version=body.version)


@router.post("/{form_id}/answers")
def write_answer(
    form_id: str,
    body: WriteAnswerRequest,
    store: RulesetStore = Depends(get_store),
    engine: FormEngine = Depends(get_form_engine),
) -> dict[str, Any]:
    """Apply one answer write, including multiselect exclusivity."""
    updated = engine.write_answer(store.get_form(form_id), body.answers, body.field_id, body.value)
    return {"answers": updated}
