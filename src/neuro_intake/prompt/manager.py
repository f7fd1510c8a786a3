"""PromptManager: Jinja2-based prompt renderer for the analysis call.

Loads templates from the ``template/`` directory.  The analysis template
receives the disease context (role prompt, display name), the transcript
and the expected JSON reply shape.
"""

from __future__ import annotations

import json
from pathlib import Path

import jinja2

from neuro_intake.models.session import Turn
from neuro_intake.models.triage import DiseaseContext

_ANALYSIS_TEMPLATE = "analysis.jinja2"

# Reply shape the analysis endpoint is asked to produce
_REPLY_EXAMPLE = {
    "risk": 0,
    "disease": "MIGRAINE",
    "summary": "...",
    "profile": {},
}


class PromptManager:
    """Jinja2-based prompt renderer.

    Args:
        template_dir: optional override for the template directory.
            Defaults to ``template/`` sibling of this module.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        if template_dir is None:
            template_dir = Path(__file__).parent / "template"
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            # Keep whitespace control simple; templates use explicit trim
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register the json filter for use in templates
        self._env.filters["tojson"] = lambda v: json.dumps(v, ensure_ascii=False)

    def render_analysis(self, context: DiseaseContext, history: list[Turn]) -> str:
        """Render the analysis prompt for a finished transcript."""
        template = self._env.get_template(_ANALYSIS_TEMPLATE)
        return template.render(
            context=context,
            history=history,
            reply_example=json.dumps(_REPLY_EXAMPLE, ensure_ascii=False, indent=2),
        )
