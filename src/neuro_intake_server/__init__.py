"""neuro_intake_server: FastAPI REST API for the neurology intake engine.

Exposes the triage dialogue, its analysis, the assessment form engine and
the ruleset reference data over HTTP.  Run with ``neuro-intake-server``.
"""
