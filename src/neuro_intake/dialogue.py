"""DialogueEngine: the option-driven triage state machine.

Pure and synchronous: every call takes an explicit :class:`DialogueSession`,
mutates it in place and returns a :class:`TurnResult`.  Persistence, the
analysis call and concurrency control belong to the orchestrator.

State overview:
    INIT              any input -> opening question with the routing options
    ROUTING           chief complaint -> disease (fixed for the session)
    COLLECTING        one pathway question per turn, weights accumulate
    OFFER_ASSESSMENT  terminal action emitted; waiting for the analysis
    TERMINAL          analysis consumed; input is rejected

Every response is rendered in the ``<OPTIONS>a|b</OPTIONS>`` /
``<ACTION>...</ACTION>`` markup a model-backed responder would produce and
then parsed back through :func:`parse_response`, so scripted and generated
responses reach the UI in the same shape.
"""

from __future__ import annotations

import logging
import re

from neuro_intake_db.models.enums import DialogueState

from neuro_intake.constants import OFFER_ASSESSMENT_ACTION, PRE_PATHWAY_STEPS, SAFETY_PATTERN
from neuro_intake.errors import SessionStateError
from neuro_intake.matcher import OptionMatcher
from neuro_intake.models.session import DialogueSession, ParsedResponse, Turn, TurnResult
from neuro_intake.models.triage import DiseaseType, Pathway, TriageStep
from neuro_intake.risk import classify_risk, selected_weight
from neuro_intake.router import DiseaseRouter
from neuro_intake.ruleset import RulesetStore

logger = logging.getLogger(__name__)

_OPTIONS_BLOCK = re.compile(r"<OPTIONS>([\s\S]*?)</OPTIONS>", re.IGNORECASE)
_ACTION_TAG = re.compile(r"<ACTION>([\s\S]*?)</ACTION>", re.IGNORECASE)
_OPTION_SEPARATORS = re.compile(r"[|、,]")


# ---------------------------------------------------------------------------
# Response markup
# ---------------------------------------------------------------------------

def parse_response(text: str) -> ParsedResponse:
    """Split a raw response into display text, quick-reply options and action tag.

    All ``<OPTIONS>`` blocks contribute options (split on ``|``, ``、`` or
    ``,``; trimmed; empty entries dropped).  The first ``<ACTION>`` tag is
    the action.  Both markers are removed from the display text, so parsing
    the display text again yields no options and no action.
    """
    options: list[str] = []
    for block in _OPTIONS_BLOCK.findall(text):
        options.extend(o.strip() for o in _OPTION_SEPARATORS.split(block) if o.strip())

    action_match = _ACTION_TAG.search(text)
    action = (action_match.group(1).strip() or None) if action_match else None

    display = _ACTION_TAG.sub("", _OPTIONS_BLOCK.sub("", text)).strip()
    return ParsedResponse(display_text=display, options=options, action=action)


def render_response(text: str, options: list[str] | None = None, action: str | None = None) -> str:
    """Inverse of :func:`parse_response` for engine-authored responses."""
    out = text
    if options:
        out += "\n<OPTIONS>" + "|".join(options) + "</OPTIONS>"
    if action:
        out += f"<ACTION>{action}</ACTION>"
    return out


# ---------------------------------------------------------------------------
# DialogueEngine
# ---------------------------------------------------------------------------

class DialogueEngine:
    """Drives one triage dialogue per :class:`DialogueSession`.

    Args:
        store: a loaded :class:`RulesetStore`
        short_circuit_on_critical: when True, selecting a critical option
            skips the remaining pathway questions and offers the assessment
            immediately.  Off by default: the critical flag is surfaced on
            every result either way.
    """

    def __init__(self, store: RulesetStore, *, short_circuit_on_critical: bool = False) -> None:
        self._store = store
        self._router = DiseaseRouter(store.routing.rules, store.routing.default)
        self._matcher = OptionMatcher(store.synonyms)
        self._safety = re.compile(SAFETY_PATTERN)
        self._short_circuit = short_circuit_on_critical

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    def create_session(
        self,
        pathway_hint: DiseaseType | None = None,
        *,
        session_id: str | None = None,
    ) -> DialogueSession:
        """Start a session in INIT.

        ``pathway_hint`` is the pathway the caller expects (e.g. the patient
        opened the epilepsy clinic).  It becomes the routing fallback; the
        complaint's keywords still take precedence.
        """
        total = (
            self._store.get_pathway(pathway_hint).total_steps
            if pathway_hint is not None else PRE_PATHWAY_STEPS
        )
        return DialogueSession(
            session_id=session_id, pathway_hint=pathway_hint, total_steps=total,
        )

    def advance(self, session: DialogueSession, user_input: str) -> TurnResult:
        """Consume one user turn and return what to show next.

        Raises:
            SessionStateError: the session is TERMINAL
        """
        if session.is_terminal:
            raise SessionStateError(
                f"Session {session.session_id} is terminal; input not accepted"
            )

        text = (user_input or "").strip()
        safety_alert = bool(text) and bool(self._safety.search(text))
        if safety_alert:
            logger.warning("Safety phrase detected in session %s", session.session_id)

        # While the offer is pending every input gets the cached offer back;
        # the transcript is left alone
        if session.state == DialogueState.OFFER_ASSESSMENT and session.last_result is not None:
            if text == session.last_input:
                logger.info("Replaying pending assessment offer for session %s", session.session_id)
                return session.last_result
            logger.info("Assessment offer pending for session %s; input ignored", session.session_id)
            return session.last_result.model_copy(update={"safety_alert": safety_alert})

        if text:
            session.history.append(Turn(role="user", text=text))

        if session.state == DialogueState.INIT:
            raw = self._open(session)
        elif not text and session.state in (DialogueState.ROUTING, DialogueState.COLLECTING):
            # Blank input re-asks the pending question without advancing
            raw = self._repeat(session)
        elif session.state == DialogueState.ROUTING:
            raw = self._route(session, text)
        elif session.state == DialogueState.COLLECTING:
            raw = self._collect(session, text)
        else:
            raw = self._offer(session)

        result = self._emit(session, raw, safety_alert=safety_alert)
        session.last_input = text
        session.last_result = result
        return result

    def finish(self, session: DialogueSession) -> None:
        """Mark the session TERMINAL once its analysis has been consumed.

        The transcript is overwritten with an empty one; the selections and
        score stay on the session for the record.
        """
        if session.state != DialogueState.OFFER_ASSESSMENT:
            raise SessionStateError(
                f"Session {session.session_id} has no pending assessment; "
                f"finish not accepted in state {session.state.value}"
            )
        session.state = DialogueState.TERMINAL
        session.history.clear()
        session.last_input = None
        session.last_result = None

    # ==================================================================
    # Internal: state handlers (each returns raw response markup)
    # ==================================================================

    def _open(self, session: DialogueSession) -> str:
        routing = self._store.routing
        session.state = DialogueState.ROUTING
        session.step = 1
        return render_response(routing.opening_text, routing.opening_options)

    def _route(self, session: DialogueSession, text: str) -> str:
        disease = self._router.route(text, fallback=session.pathway_hint)
        pathway = self._store.get_pathway(disease)
        ctx = self._store.get_context(disease)

        session.disease = disease
        session.total_steps = pathway.total_steps
        session.step = PRE_PATHWAY_STEPS
        session.step_index = 0
        logger.info("Session %s routed to %s", session.session_id, disease.value)

        intro = f"已为您匹配{ctx.display_name}诊疗路径。"
        if not pathway.steps:
            return self._offer(session, intro=intro)

        session.state = DialogueState.COLLECTING
        first = pathway.steps[0]
        return render_response(f"{intro}\n{first.question}", [o.label for o in first.options])

    def _collect(self, session: DialogueSession, text: str) -> str:
        pathway = self._store.get_pathway(session.disease)
        step = pathway.steps[session.step_index]
        self._record_answer(session, step, text)
        session.risk_score = selected_weight(pathway.steps, session.selections)

        session.step_index += 1
        session.step = min(session.step + 1, session.total_steps)

        if session.step_index >= len(pathway.steps):
            return self._offer(session)
        if self._short_circuit and session.critical:
            logger.info(
                "Critical selection in session %s, skipping %d remaining steps",
                session.session_id, len(pathway.steps) - session.step_index,
            )
            return self._offer(session)

        nxt = pathway.steps[session.step_index]
        return render_response(nxt.question, [o.label for o in nxt.options])

    def _offer(self, session: DialogueSession, *, intro: str | None = None) -> str:
        ctx = self._store.get_context(session.disease or DiseaseType.UNKNOWN)
        session.state = DialogueState.OFFER_ASSESSMENT
        session.step = session.total_steps

        lines = [intro] if intro else []
        lines += [
            "初步问诊结束。",
            f"基于您的回答，系统评估风险指数为 {session.risk_score}。",
            f"建议立即进行【{ctx.assessment_scale_id}】深度测评以获取详细医疗建议。",
        ]
        return render_response("\n".join(lines), action=OFFER_ASSESSMENT_ACTION)

    def _repeat(self, session: DialogueSession) -> str:
        if session.state == DialogueState.ROUTING:
            routing = self._store.routing
            return render_response(routing.opening_text, routing.opening_options)
        step = self._store.get_pathway(session.disease).steps[session.step_index]
        return render_response(step.question, [o.label for o in step.options])

    # ==================================================================
    # Internal: helpers
    # ==================================================================

    def _record_answer(self, session: DialogueSession, step: TriageStep, text: str) -> None:
        """Store the matched option value (or the raw text when nothing matches)."""
        option = self._matcher.match(text, step.options)
        if option is None:
            logger.warning(
                "No option matched for step %s in session %s; keeping free text",
                step.id, session.session_id,
            )
            session.selections.pop(step.id, None)
            session.free_text[step.id] = text
            return

        session.selections[step.id] = option.value
        session.free_text.pop(step.id, None)
        if option.is_critical and step.id not in session.critical_steps:
            session.critical_steps.append(step.id)

    def _emit(self, session: DialogueSession, raw: str, *, safety_alert: bool) -> TurnResult:
        """Parse the raw response, record the model turn and build the result."""
        parsed = parse_response(raw)
        session.history.append(
            Turn(role="model", text=parsed.display_text, options=parsed.options or None)
        )

        offering = parsed.action == OFFER_ASSESSMENT_ACTION
        tools = None
        if offering:
            ctx = self._store.get_context(session.disease or DiseaseType.UNKNOWN)
            tools = [t.model_dump() for t in ctx.recommended_tools]

        return TurnResult(
            display_text=parsed.display_text,
            options=parsed.options,
            terminal_action=parsed.action,
            state=session.state,
            step=session.step,
            total_steps=session.total_steps,
            disease=session.disease,
            risk_score=session.risk_score,
            risk_level=classify_risk(session.risk_score).value if offering else None,
            critical=session.critical,
            safety_alert=safety_alert,
            recommended_tools=tools,
        )


def pathway_for(store: RulesetStore, session: DialogueSession) -> Pathway:
    """The pathway a routed session is walking (empty before routing)."""
    if session.disease is None:
        return Pathway(disease=DiseaseType.UNKNOWN, steps=[])
    return store.get_pathway(session.disease)
