"""Prompt rendering for model-backed analyzers.

Provides ``PromptManager``, a Jinja2-based template engine that renders a
finished triage transcript into an analysis prompt with JSON response
format instructions.
"""

from neuro_intake.prompt.manager import PromptManager

__all__ = ["PromptManager"]
