"""Dialogue session and turn models, the contract between the engine and callers.

These models are intentionally decoupled from the ORM models in
``neuro_intake_db`` so that API consumers never see database internals.
The orchestrator converts a ``TriageSession`` row into a ``DialogueSession``,
lets the :class:`~neuro_intake.dialogue.DialogueEngine` mutate it, then
writes it back.

    Turn            - one persisted transcript entry
    TurnHistory     - capped transcript (oldest turns evicted)
    DialogueSession - explicit per-session state handed between calls
    TurnResult      - what ``advance`` returns to the UI
    SessionInfo     - public view of a persisted session
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from neuro_intake.constants import HISTORY_MAX_TURNS, HISTORY_PIN_ROUTING_TURN
from neuro_intake.models.triage import DiseaseType
from neuro_intake_db.models.enums import DialogueState


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Turn(BaseModel):
    """One transcript entry.  ``options`` are the quick replies shown with a model turn."""

    role: Literal["user", "model"]
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)
    options: Optional[list[str]] = None


class TurnHistory(BaseModel):
    """Transcript capped at ``max_turns`` entries.

    By default the oldest turns are dropped unconditionally.  With
    ``pin_routing_turn`` the first *user* turn (the chief complaint that
    decided the pathway) is kept and the oldest turns after it are dropped.
    Dropped turns are gone; nothing is summarised.
    """

    max_turns: int = HISTORY_MAX_TURNS
    pin_routing_turn: bool = HISTORY_PIN_ROUTING_TURN
    turns: list[Turn] = Field(default_factory=list)

    def append(self, turn: Turn) -> None:
        self.turns.append(turn)
        overflow = len(self.turns) - self.max_turns
        if overflow <= 0:
            return
        pinned = self._routing_turn_index() if self.pin_routing_turn else None
        # A window too small to hold the pinned turn plus newer ones degrades
        # to plain oldest-first eviction
        if pinned is None or pinned + 1 >= self.max_turns:
            del self.turns[:overflow]
            return
        # Keep everything up to and including the pinned turn, evict after it
        start = pinned + 1
        del self.turns[start:start + overflow]

    def _routing_turn_index(self) -> int | None:
        for i, t in enumerate(self.turns):
            if t.role == "user":
                return i
        return None

    def clear(self) -> None:
        self.turns = []

    def __len__(self) -> int:
        return len(self.turns)


class ParsedResponse(BaseModel):
    """A model response split into display text, quick replies and action tag."""

    display_text: str
    options: list[str] = Field(default_factory=list)
    action: Optional[str] = None


class TurnResult(BaseModel):
    """Engine output for one user turn.

    ``terminal_action`` is set (to ``OFFER_ASSESSMENT``) when the dialogue
    has finished collecting and the caller should request an analysis.
    """

    type: Literal["turn"] = "turn"
    display_text: str
    options: list[str] = Field(default_factory=list)
    terminal_action: Optional[str] = None
    state: DialogueState
    step: int
    total_steps: int
    disease: Optional[DiseaseType] = None
    risk_score: int = 0
    # Set only together with the terminal action
    risk_level: Optional[str] = None
    critical: bool = False
    safety_alert: bool = False
    recommended_tools: Optional[list[dict]] = None


class DialogueSession(BaseModel):
    """Explicit dialogue state, created at triage start and mutated per turn.

    ``selections`` maps a pathway step id to the value of the option the
    patient chose; the session score is always recomputed from it, so a
    step answered twice never counts twice.
    """

    session_id: Optional[str] = None
    state: DialogueState = DialogueState.INIT
    step: int = 0
    total_steps: int = 0
    disease: Optional[DiseaseType] = None
    pathway_hint: Optional[DiseaseType] = None
    # Index of the pathway question currently awaiting an answer (-1 before routing)
    step_index: int = -1
    selections: dict[str, str] = Field(default_factory=dict)
    free_text: dict[str, str] = Field(default_factory=dict)
    critical_steps: list[str] = Field(default_factory=list)
    risk_score: int = 0
    history: TurnHistory = Field(default_factory=TurnHistory)
    # Last user input and the result it produced, for idempotent replay
    last_input: Optional[str] = None
    last_result: Optional[TurnResult] = None

    @property
    def critical(self) -> bool:
        return bool(self.critical_steps)

    @property
    def is_terminal(self) -> bool:
        return self.state == DialogueState.TERMINAL


class SessionInfo(BaseModel):
    """Public view of a persisted session."""

    user_id: str
    session_id: str
    state: str
    disease: Optional[str] = None
    pathway_hint: Optional[str] = None
    step: int
    total_steps: int
    risk_score: int
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    # Serialised TriageSummary once the analysis has been consumed
    result: Optional[dict] = None
