"""Answer matching and chief-complaint routing."""

import pytest
from pydantic import ValidationError

from neuro_intake.matcher import OptionMatcher
from neuro_intake.models.triage import DiseaseType, RoutingRule, TriageOption
from neuro_intake.router import DiseaseRouter


PULSATING = TriageOption(label="搏动性跳痛", value="pulsating", risk_weight=20)
PRESSING = TriageOption(label="压迫/紧箍感", value="pressing", risk_weight=10)
NONE = TriageOption(label="以上都没有", value="none")

OPTIONS = [PULSATING, PRESSING, NONE]


# =====================================================================
# OptionMatcher
# =====================================================================

class TestOptionMatcher:

    @pytest.fixture
    def matcher(self):
        return OptionMatcher({"pressing": ["带子", "箍"]})

    def test_value_match_is_case_insensitive(self, matcher):
        assert matcher.match("PULSATING", OPTIONS) is PULSATING

    def test_label_contained_in_answer(self, matcher):
        assert matcher.match("应该是搏动性跳痛吧", OPTIONS) is PULSATING

    def test_answer_contained_in_label(self, matcher):
        assert matcher.match("跳痛", OPTIONS) is PULSATING

    def test_synonym(self, matcher):
        assert matcher.match("感觉像带子绑住", OPTIONS) is PRESSING

    def test_negation_selects_negative_option(self, matcher):
        assert matcher.match("没有这些", OPTIONS) is NONE

    def test_negation_without_negative_option(self, matcher):
        assert matcher.match("说不清楚", [PULSATING, PRESSING]) is None

    def test_blank_answer(self, matcher):
        assert matcher.match("   ", OPTIONS) is None

    def test_no_synonyms(self):
        assert OptionMatcher().match("感觉像带子绑住", OPTIONS) is None

    def test_shipped_synonyms(self, store):
        steps = store.get_pathway(DiseaseType.MIGRAINE).steps
        nature = next(s for s in steps if s.id == "m_nature")
        chosen = OptionMatcher(store.synonyms).match("头里突突跳", nature.options)
        assert chosen is not None and chosen.value == "pulsating"


# =====================================================================
# DiseaseRouter
# =====================================================================

class TestDiseaseRouter:

    @pytest.fixture
    def router(self):
        return DiseaseRouter(
            [
                RoutingRule(pattern="头痛", disease=DiseaseType.MIGRAINE),
                RoutingRule(pattern="抽搐|发作", disease=DiseaseType.EPILEPSY),
            ],
            DiseaseType.UNKNOWN,
        )

    def test_first_match_wins(self, router):
        assert router.route("头痛之后又抽搐") == DiseaseType.MIGRAINE

    def test_later_rule(self, router):
        assert router.route("昨晚发作了一次") == DiseaseType.EPILEPSY

    def test_default(self, router):
        assert router.route("胃不舒服") == DiseaseType.UNKNOWN

    def test_fallback_overrides_default(self, router):
        assert router.route("胃不舒服", fallback=DiseaseType.COGNITIVE) == DiseaseType.COGNITIVE

    def test_invalid_pattern_rejected(self):
        with pytest.raises(ValidationError):
            RoutingRule(pattern="(unclosed", disease=DiseaseType.MIGRAINE)

    @pytest.mark.parametrize("complaint,expected", [
        ("记忆力明显下降", DiseaseType.COGNITIVE),
        ("反复肢体抽搐/意识丧失", DiseaseType.EPILEPSY),
        ("剧烈头痛/偏头痛", DiseaseType.MIGRAINE),
    ])
    def test_shipped_opening_options(self, store, complaint, expected):
        router = DiseaseRouter(store.routing.rules, store.routing.default)
        assert router.route(complaint) == expected
