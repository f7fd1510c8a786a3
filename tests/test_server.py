"""HTTP surface tests: routing, identity headers and error mapping.

The app is built with ``create_app`` and used without its lifespan; the
SDK objects are placed on ``app.state`` by hand, the orchestrator runs on
the in-memory MockRepository and ``get_db`` yields an AsyncMock.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from neuro_intake.analyzer import KeywordTriageAnalyzer
from neuro_intake.dialogue import DialogueEngine
from neuro_intake.form_engine import FormEngine
from neuro_intake.interfaces import TriageAnalyzer
from neuro_intake.orchestrator import TriageOrchestrator
from neuro_intake_server.app import create_app
from neuro_intake_server.config import ServerSettings
from neuro_intake_server.dependencies import get_db

from helpers.mock_db import MockRepository

USER = {"X-User-ID": "u1"}
MIGRAINE_VALUES = [
    "pulsating", "nausea", "episodic_frequent", "occasional",
    "none", "none", "negative", "mild",
]


class BrokenAnalyzer(TriageAnalyzer):
    async def analyze(self, history, disease):
        raise RuntimeError("connection refused")


def _client(store, analyzer=None, **settings):
    app = create_app(ServerSettings(**settings))
    orch = TriageOrchestrator(DialogueEngine(store), store, analyzer or KeywordTriageAnalyzer(store))
    orch._repo = MockRepository()
    app.state.store = store
    app.state.form_engine = FormEngine()
    app.state.orchestrator = orch

    async def fake_db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = fake_db
    return TestClient(app)


@pytest.fixture
def client(store):
    return _client(store)


def _walk_to_offer(client, session_id="s1"):
    client.post("/api/v1/sessions", json={"session_id": session_id}, headers=USER)
    url = f"/api/v1/sessions/{session_id}/turns"
    client.post(url, json={"text": ""}, headers=USER)
    client.post(url, json={"text": "头痛"}, headers=USER)
    resp = None
    for answer in MIGRAINE_VALUES:
        resp = client.post(url, json={"text": answer}, headers=USER)
    return resp


# =====================================================================
# Identity
# =====================================================================


class TestIdentity:

    def test_missing_user_header_is_401(self, client):
        resp = client.post("/api/v1/sessions", json={"session_id": "s1"})
        assert resp.status_code == 401

    def test_proxy_secret_required_when_configured(self, store):
        client = _client(store, trusted_proxy_secret="s3cret")
        resp = client.get("/api/v1/sessions", headers=USER)
        assert resp.status_code == 403
        resp = client.get("/api/v1/sessions", headers={**USER, "X-Proxy-Secret": "wrong"})
        assert resp.status_code == 403
        resp = client.get("/api/v1/sessions", headers={**USER, "X-Proxy-Secret": "s3cret"})
        assert resp.status_code == 200


# =====================================================================
# Sessions, turns and analysis
# =====================================================================


class TestDialogueRoutes:

    def test_create_and_get(self, client):
        resp = client.post("/api/v1/sessions", json={"session_id": "s1"}, headers=USER)
        assert resp.status_code == 201
        assert resp.json()["state"] == "init"
        assert client.get("/api/v1/sessions/s1", headers=USER).json()["session_id"] == "s1"

    def test_duplicate_is_409(self, client):
        client.post("/api/v1/sessions", json={"session_id": "s1"}, headers=USER)
        resp = client.post("/api/v1/sessions", json={"session_id": "s1"}, headers=USER)
        assert resp.status_code == 409
        assert "s1" not in resp.json()["detail"], "Identifiers must not leak to clients"

    def test_unknown_session_is_404(self, client):
        assert client.get("/api/v1/sessions/nope", headers=USER).status_code == 404
        resp = client.post("/api/v1/sessions/nope/turns", json={"text": "hi"}, headers=USER)
        assert resp.status_code == 404

    def test_invalid_pathway_hint_is_422(self, client):
        resp = client.post(
            "/api/v1/sessions", json={"session_id": "s1", "pathway_hint": "STROKE"}, headers=USER,
        )
        assert resp.status_code == 422

    def test_full_dialogue_and_analysis(self, client):
        offer = _walk_to_offer(client)
        assert offer.status_code == 200
        assert offer.json()["terminal_action"] == "OFFER_ASSESSMENT"

        resp = client.post("/api/v1/sessions/s1/analysis", headers=USER)
        assert resp.status_code == 200
        body = resp.json()
        assert body["risk_level"] == "MODERATE"
        assert body["referral"] is None

        assert client.get("/api/v1/sessions/s1/transcript", headers=USER).json() == []
        profile = client.get("/api/v1/profiles/MIGRAINE", headers=USER).json()
        assert profile["pain_nature"] == "pulsating"

    def test_turn_after_terminal_is_409(self, client):
        _walk_to_offer(client)
        client.post("/api/v1/sessions/s1/analysis", headers=USER)
        resp = client.post("/api/v1/sessions/s1/turns", json={"text": "hi"}, headers=USER)
        assert resp.status_code == 409

    def test_early_analysis_is_409(self, client):
        client.post("/api/v1/sessions", json={"session_id": "s1"}, headers=USER)
        assert client.post("/api/v1/sessions/s1/analysis", headers=USER).status_code == 409

    def test_analysis_failure_is_retryable_503(self, store):
        client = _client(store, analyzer=BrokenAnalyzer())
        _walk_to_offer(client)
        resp = client.post("/api/v1/sessions/s1/analysis", headers=USER)
        assert resp.status_code == 503
        assert resp.json()["retryable"] is True
        assert resp.json()["last_step"] == 10
        info = client.get("/api/v1/sessions/s1", headers=USER).json()
        assert info["state"] == "offer_assessment", "Failed analysis must not advance the session"

    def test_empty_profile(self, client):
        assert client.get("/api/v1/profiles/EPILEPSY", headers=USER).json() == {}


# =====================================================================
# Forms and reference data
# =====================================================================


class TestFormRoutes:

    def test_list_forms(self, client):
        ids = {f["id"] for f in client.get("/api/v1/forms").json()}
        assert {"adl_iadl_combined", "cdr_informant", "EPILEPSY_V4"} <= ids

    def test_offered_scale_is_served(self, client):
        resp = client.get("/api/v1/forms/MIDAS")
        assert resp.status_code == 200
        assert resp.json()["id"] == "MIDAS"

    def test_unknown_form_is_404(self, client):
        assert client.get("/api/v1/forms/nope").status_code == 404

    def test_evaluate(self, client):
        resp = client.post(
            "/api/v1/forms/EPILEPSY_V4/evaluate",
            json={"answers": {"delivery_date": "2026-03-01", "birth_weight": 3200}},
        )
        assert resp.status_code == 200
        assert resp.json()["validation_failures"] == []

    def test_version_mismatch_is_409(self, client):
        resp = client.post(
            "/api/v1/forms/EPILEPSY_V4/evaluate", json={"answers": {}, "version": "1.0"},
        )
        assert resp.status_code == 409

    def test_write_exclusive_answer(self, client):
        resp = client.post(
            "/api/v1/forms/EPILEPSY_V4/answers",
            json={"answers": {"complications": ["HEMORRHAGE"]},
                  "field_id": "complications", "value": "NONE"},
        )
        assert resp.json() == {"answers": {"complications": ["NONE"]}}

    def test_reference_pathway(self, client):
        body = client.get("/api/v1/reference/pathways/EPILEPSY").json()
        assert body["total_steps"] == 10
        assert body["steps"][0]["id"] == "e_semiology"

    def test_reference_diseases(self, client):
        diseases = {d["disease"]: d for d in client.get("/api/v1/reference/diseases").json()}
        assert diseases["MIGRAINE"]["assessment_scale_id"] == "MIDAS"
        assert diseases["UNKNOWN"]["has_pathway"] is False
