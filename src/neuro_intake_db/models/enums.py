"""Database-level enumerations for triage sessions."""

import enum


class DialogueState(str, enum.Enum):
    """Lifecycle states of a triage dialogue.

    Transitions:
        init -> routing               (any input; opening question emitted)
        routing -> collecting         (chief complaint routed to a pathway)
        collecting -> offer_assessment (all pathway steps answered, or a
                                        critical option short-circuits)
        offer_assessment -> terminal  (analysis succeeded and was consumed)
    """

    INIT = "init"
    ROUTING = "routing"
    COLLECTING = "collecting"
    OFFER_ASSESSMENT = "offer_assessment"
    TERMINAL = "terminal"
