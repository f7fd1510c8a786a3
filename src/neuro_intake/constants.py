"""Intake constants shared across the SDK.

These values are referenced by the dialogue engine, the orchestrator and
the ruleset store.  They mirror conventions encoded in the YAML rulesets
under ``v1/``.

Risk thresholds are fixed clinical constants and deliberately have no
environment override.  Operational knobs (history window, analysis
timeout) can be adjusted per deployment via environment variables.
"""

import os

# Risk classification thresholds, applied wherever a score becomes a level.
# score >= HIGH -> HIGH, score >= MODERATE -> MODERATE, else LOW.
RISK_HIGH_THRESHOLD = 60
RISK_MODERATE_THRESHOLD = 30

# A referral payload is synthesised when the analysed score reaches this value.
REFERRAL_THRESHOLD = RISK_HIGH_THRESHOLD

# Maximum number of turns kept in a session transcript.
# Overridable via HISTORY_MAX_TURNS env var.
HISTORY_MAX_TURNS = int(os.getenv("HISTORY_MAX_TURNS", "40"))

# When true, trimming keeps the routing turn (the patient's first complaint)
# and drops the oldest turns after it instead.
HISTORY_PIN_ROUTING_TURN = os.getenv("HISTORY_PIN_ROUTING_TURN", "false").lower() in (
    "1", "true", "yes",
)

# Seconds before an outstanding analysis call is abandoned as a retryable failure.
ANALYSIS_TIMEOUT_SECONDS = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "30"))

# Steps that precede the pathway questions: the opening turn and the routing turn.
# A pathway with N questions therefore has N + PRE_PATHWAY_STEPS steps in total.
PRE_PATHWAY_STEPS = 2

# Action tag emitted when the dialogue has collected every pathway answer.
OFFER_ASSESSMENT_ACTION = "OFFER_ASSESSMENT"

# Option values that the negation fallback may select ("no", "none", "normal").
NEGATIVE_OPTION_VALUES: tuple[str, ...] = ("none", "negative", "normal")

# Free-text markers of negation used by the option matcher.
NEGATION_MARKERS: tuple[str, ...] = ("没", "无", "否", "不")

# Patient phrases that must raise a safety alert on the turn.
SAFETY_PATTERN = r"自残|自杀|呼吸困难|剧烈呕吐|意识丧失|不想活了|救命"
