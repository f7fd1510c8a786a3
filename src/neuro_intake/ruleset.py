"""RulesetStore: loads the YAML rulesets under ``v1/`` into typed models.

The store is loaded once at startup and is the single source of truth for
pathways, routing, disease context and assessment forms at runtime.

Usage::

    store = RulesetStore()          # defaults to v1/ relative to repo root
    store.load()                    # parse all YAML files

    pathway = store.get_pathway(DiseaseType.EPILEPSY)
    form = store.get_form("EPILEPSY_V4")

A malformed form definition does not abort loading: the error is logged,
recorded in :attr:`RulesetStore.form_errors` and the remaining forms load.
Any other missing or malformed file is fatal.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from neuro_intake.errors import DefinitionError
from neuro_intake.forms import load_form_definition
from neuro_intake.models.form import FormDefinition
from neuro_intake.models.triage import (
    AnalysisRule,
    DiseaseContext,
    DiseaseType,
    Facility,
    Pathway,
    RoutingTable,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# ---------------------------------------------------------------------------
# RulesetStore
# ---------------------------------------------------------------------------

class RulesetStore:
    """Loads all YAML from ``v1/`` and provides typed lookup.

    Attributes populated after :meth:`load`:

        contexts       dict[DiseaseType, DiseaseContext]
        facility       Facility used for referral payloads
        synonyms       dict[option value, list[colloquial phrase]]
        routing        RoutingTable (opening question + ordered rules)
        pathways       dict[DiseaseType, Pathway]
        analysis       dict[DiseaseType, AnalysisRule]
        forms          dict[form id, FormDefinition]
        form_errors    dict[file name, error message] for skipped forms
    """

    def __init__(self, ruleset_dir: str | Path | None = None) -> None:
        if ruleset_dir is None:
            ruleset_dir = find_repo_root() / "v1"
        self._base = Path(ruleset_dir)

        # Populated by load()
        self.contexts: dict[DiseaseType, DiseaseContext] = {}
        self.facility: Facility | None = None
        self.synonyms: dict[str, list[str]] = {}
        self.routing: RoutingTable | None = None
        self.pathways: dict[DiseaseType, Pathway] = {}
        self.analysis: dict[DiseaseType, AnalysisRule] = {}
        self.forms: dict[str, FormDefinition] = {}
        self.form_errors: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Parse all YAML files under the ruleset directory into typed models.

        Call this once at startup.  Raises ``FileNotFoundError`` if expected
        YAML files are missing.
        """
        self._load_constants()
        self._load_routing()
        self._load_pathways()
        self._load_analysis()
        self._load_forms()
        logger.info(
            "RulesetStore loaded: %d diseases, %d pathways, %d forms (%d skipped)",
            len(self.contexts),
            len(self.pathways),
            len(self.forms),
            len(self.form_errors),
        )

    def _load_constants(self) -> None:
        """Load v1/const/*.yaml: disease context, facility, synonyms."""
        const_dir = self._base / "const"

        # Disease context, keyed by disease
        for raw in load_yaml(const_dir / "diseases.yaml"):
            ctx = DiseaseContext(**raw)
            self.contexts[ctx.disease] = ctx

        self.facility = Facility(**load_yaml(const_dir / "facility.yaml"))

        # Synonyms: option value -> phrases; YAML may hold scalars for one-offs
        for value, phrases in (load_yaml(const_dir / "synonyms.yaml") or {}).items():
            if isinstance(phrases, str):
                phrases = [phrases]
            self.synonyms[str(value)] = [str(p) for p in phrases]

    def _load_routing(self) -> None:
        """Load v1/routing.yaml: opening question and ordered routing rules."""
        self.routing = RoutingTable(**load_yaml(self._base / "routing.yaml"))

    def _load_pathways(self) -> None:
        """Load every v1/pathways/*.yaml, one pathway per disease."""
        for path in sorted((self._base / "pathways").glob("*.yaml")):
            pathway = Pathway(**load_yaml(path))
            if pathway.disease in self.pathways:
                raise ValueError(
                    f"Duplicate pathway for {pathway.disease.value} in {path.name}"
                )
            self.pathways[pathway.disease] = pathway

    def _load_analysis(self) -> None:
        """Load v1/analysis.yaml: keyword analysis rules keyed by disease."""
        for disease_name, raw in load_yaml(self._base / "analysis.yaml").items():
            self.analysis[DiseaseType(disease_name)] = AnalysisRule(**raw)

    def _load_forms(self) -> None:
        """Load every v1/forms/*.yaml; a broken definition only skips itself."""
        for path in sorted((self._base / "forms").glob("*.yaml")):
            try:
                definition = load_form_definition(load_yaml(path))
            except DefinitionError as exc:
                logger.error("Skipping form %s: %s", path.name, exc)
                self.form_errors[path.name] = str(exc)
                continue
            if definition.id in self.forms:
                logger.error("Skipping form %s: duplicate form id '%s'", path.name, definition.id)
                self.form_errors[path.name] = f"duplicate form id '{definition.id}'"
                continue
            self.forms[definition.id] = definition

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def get_pathway(self, disease: DiseaseType) -> Pathway:
        """Return the pathway for a disease.

        UNKNOWN (and any disease without a YAML file) gets an empty pathway,
        so the dialogue goes straight from routing to the assessment offer.
        """
        return self.pathways.get(disease) or Pathway(disease=disease, steps=[])

    def get_context(self, disease: DiseaseType) -> DiseaseContext:
        """Return the disease context, falling back to UNKNOWN.

        Raises:
            KeyError: if neither the disease nor UNKNOWN is configured.
        """
        ctx = self.contexts.get(disease)
        if ctx is None:
            ctx = self.contexts[DiseaseType.UNKNOWN]
        return ctx

    def get_analysis_rule(self, disease: DiseaseType) -> AnalysisRule | None:
        return self.analysis.get(disease) or self.analysis.get(DiseaseType.UNKNOWN)

    def get_form(self, form_id: str) -> FormDefinition:
        """Look up a form definition by id.

        Raises:
            KeyError: if the form is unknown or was skipped at load time.
        """
        try:
            return self.forms[form_id]
        except KeyError:
            raise KeyError(f"Form not found: {form_id}") from None

    def list_forms(self) -> list[dict]:
        """Summaries of all loaded forms, suitable for API responses."""
        return [
            {"id": f.id, "title": f.title, "version": f.version, "sections": len(f.sections)}
            for f in self.forms.values()
        ]
