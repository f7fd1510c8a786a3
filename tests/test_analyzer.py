"""Analyzer backends and the analysis prompt."""

import json

import httpx
import pytest

from neuro_intake.analyzer import HttpTriageAnalyzer, KeywordTriageAnalyzer
from neuro_intake.models.session import Turn
from neuro_intake.models.triage import DiseaseType
from neuro_intake.prompt import PromptManager

ANALYZE_URL = "http://analyzer.test/analyze"


def _history(*user_texts):
    turns = []
    for text in user_texts:
        turns.append(Turn(role="model", text="问题", options=["A", "B"]))
        turns.append(Turn(role="user", text=text))
    return turns


# =====================================================================
# KeywordTriageAnalyzer
# =====================================================================


class TestKeywordAnalyzer:

    @pytest.mark.asyncio
    async def test_base_risk_without_markers(self, store):
        summary = await KeywordTriageAnalyzer(store).analyze(
            _history("头痛", "pulsating"), DiseaseType.MIGRAINE,
        )
        assert summary.risk_score == 40
        assert summary.disease == DiseaseType.MIGRAINE
        assert summary.summary == "患者主诉头痛。伴随症状典型。"
        assert summary.extracted_profile is None

    @pytest.mark.asyncio
    async def test_marker_elevates_risk(self, store):
        summary = await KeywordTriageAnalyzer(store).analyze(
            _history("头痛", "> 15天/月 (慢性化风险)"), DiseaseType.MIGRAINE,
        )
        assert summary.risk_score == 75
        assert "慢性化倾向" in summary.summary
        assert summary.extracted_profile == {"chronic": True}

    @pytest.mark.asyncio
    async def test_all_hit_notes_are_included(self, store):
        summary = await KeywordTriageAnalyzer(store).analyze(
            _history("几乎每天", "> 10天/月 (MOH风险)"), DiseaseType.MIGRAINE,
        )
        assert summary.extracted_profile == {"chronic": True, "medication_overuse": True}
        assert "MOH" in summary.summary

    @pytest.mark.asyncio
    async def test_only_patient_turns_are_scanned(self, store):
        history = [Turn(role="model", text="您是否经常迷路？"), Turn(role="user", text="没有")]
        summary = await KeywordTriageAnalyzer(store).analyze(history, DiseaseType.COGNITIVE)
        assert summary.risk_score == 50, "Marker text in a model turn must not count"

    @pytest.mark.asyncio
    async def test_cognitive_disorientation(self, store):
        summary = await KeywordTriageAnalyzer(store).analyze(
            _history("老人经常迷路"), DiseaseType.COGNITIVE,
        )
        assert summary.risk_score == 80
        assert "定向力障碍" in summary.summary

    @pytest.mark.asyncio
    async def test_unknown_disease(self, store):
        summary = await KeywordTriageAnalyzer(store).analyze([], DiseaseType.UNKNOWN)
        assert summary.risk_score == 50


# =====================================================================
# HttpTriageAnalyzer.parse_reply
# =====================================================================


class TestParseReply:

    def test_plain_object(self):
        summary = HttpTriageAnalyzer.parse_reply(
            {"risk": 72, "disease": "EPILEPSY", "summary": "s", "profile": {"x": 1}},
            DiseaseType.EPILEPSY,
        )
        assert summary.risk_score == 72
        assert summary.extracted_profile == {"x": 1}

    def test_object_embedded_in_text(self):
        text = '分析如下：\n```json\n{"risk": 33.6, "summary": "ok"}\n```'
        summary = HttpTriageAnalyzer.parse_reply({"text": text}, DiseaseType.MIGRAINE)
        assert summary.risk_score == 34
        assert summary.extracted_profile is None

    def test_text_without_json(self):
        with pytest.raises(ValueError, match="no JSON object"):
            HttpTriageAnalyzer.parse_reply({"text": "无法评估"}, DiseaseType.MIGRAINE)

    @pytest.mark.parametrize("body", [
        {"summary": "s"},
        {"risk": 10},
    ], ids=["no_risk", "no_summary"])
    def test_missing_fields(self, body):
        with pytest.raises(ValueError, match="missing"):
            HttpTriageAnalyzer.parse_reply(body, DiseaseType.MIGRAINE)

    @pytest.mark.parametrize("risk", [True, "80", None])
    def test_non_numeric_risk(self, risk):
        with pytest.raises(ValueError, match="must be a number"):
            HttpTriageAnalyzer.parse_reply({"risk": risk, "summary": "s"}, DiseaseType.MIGRAINE)

    def test_non_object_reply(self):
        with pytest.raises(ValueError, match="must be an object"):
            HttpTriageAnalyzer.parse_reply([1, 2], DiseaseType.MIGRAINE)

    def test_reported_disease_is_ignored(self):
        summary = HttpTriageAnalyzer.parse_reply(
            {"risk": 50, "disease": "COGNITIVE", "summary": "s"}, DiseaseType.MIGRAINE,
        )
        assert summary.disease == DiseaseType.MIGRAINE

    def test_out_of_range_risk_fails_validation(self):
        with pytest.raises(ValueError):
            HttpTriageAnalyzer.parse_reply({"risk": 150, "summary": "s"}, DiseaseType.MIGRAINE)


# =====================================================================
# HttpTriageAnalyzer over a mocked transport
# =====================================================================


class TestHttpAnalyzer:

    @pytest.mark.asyncio
    async def test_posts_rendered_prompt(self, store):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"risk": 81, "summary": "高危", "disease": "EPILEPSY"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        analyzer = HttpTriageAnalyzer(ANALYZE_URL, store=store, client=client)
        try:
            summary = await analyzer.analyze(_history("反复抽搐"), DiseaseType.EPILEPSY)
        finally:
            await analyzer.aclose()

        assert summary.risk_score == 81
        assert seen["body"]["disease"] == "EPILEPSY"
        assert "患者：反复抽搐" in seen["body"]["prompt"]
        assert "癫痫中心" in seen["body"]["prompt"], "Role prompt must lead the prompt"

    @pytest.mark.asyncio
    async def test_http_error_propagates(self, store):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(502)),
        )
        analyzer = HttpTriageAnalyzer(ANALYZE_URL, store=store, client=client)
        try:
            with pytest.raises(httpx.HTTPStatusError):
                await analyzer.analyze([], DiseaseType.MIGRAINE)
        finally:
            await analyzer.aclose()


# =====================================================================
# PromptManager
# =====================================================================


class TestPromptManager:

    def test_render_analysis(self, store):
        history = [
            Turn(role="model", text="请问头痛性质？", options=["搏动性", "压迫感"]),
            Turn(role="user", text="搏动性"),
        ]
        prompt = PromptManager().render_analysis(store.get_context(DiseaseType.MIGRAINE), history)
        assert prompt.startswith("你是一位华西医院头痛中心专家")
        assert "「偏头痛」" in prompt
        assert "医生：请问头痛性质？" in prompt
        assert "(可选项：搏动性 | 压迫感)" in prompt
        assert "患者：搏动性" in prompt
        assert '"MIGRAINE"' in prompt
