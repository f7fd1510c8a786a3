"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - a lifespan handler that loads the rulesets and builds the SDK objects once
  - CORS middleware
  - global exception handlers (SDK ValueError -> 404/409/400,
    AnalysisFailure -> 503)
  - all API routes under ``/api/v1``
  - ``/health`` for readiness checks

``cli()`` is the ``neuro-intake-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from neuro_intake.analyzer import HttpTriageAnalyzer, KeywordTriageAnalyzer
from neuro_intake.constants import ANALYSIS_TIMEOUT_SECONDS
from neuro_intake.dialogue import DialogueEngine
from neuro_intake.errors import AnalysisFailure
from neuro_intake.form_engine import FormEngine
from neuro_intake.interfaces import TriageAnalyzer
from neuro_intake.orchestrator import TriageOrchestrator
from neuro_intake.ruleset import RulesetStore
from neuro_intake_db.engine import dispose_engine, get_engine

from neuro_intake_server.config import ServerSettings, load_settings
from neuro_intake_server.errors import (
    analysis_failure_handler,
    generic_error_handler,
    key_error_handler,
    value_error_handler,
)
from neuro_intake_server.routes import register_routes

logger = logging.getLogger(__name__)


def build_analyzer(settings: ServerSettings, store: RulesetStore) -> TriageAnalyzer:
    """Construct the configured analysis backend."""
    if settings.analyzer_backend == "http":
        client = httpx.AsyncClient(timeout=ANALYSIS_TIMEOUT_SECONDS)
        return HttpTriageAnalyzer(settings.analyzer_url, store=store, client=client)
    return KeywordTriageAnalyzer(store)


# ------------------------------------------------------------------
# Lifespan
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load rulesets and build the engine stack at startup; release pools on shutdown."""
    settings: ServerSettings = app.state.settings

    store = RulesetStore(ruleset_dir=settings.ruleset_dir)
    store.load()
    if store.form_errors:
        logger.warning("Serving without %d broken form(s): %s",
                       len(store.form_errors), ", ".join(sorted(store.form_errors)))

    analyzer = build_analyzer(settings, store)
    engine = DialogueEngine(store, short_circuit_on_critical=settings.short_circuit_on_critical)

    app.state.store = store
    app.state.form_engine = FormEngine()
    app.state.orchestrator = TriageOrchestrator(engine, store, analyzer)
    logger.info("Triage engine ready (analyzer backend: %s)", settings.analyzer_backend)

    yield

    if isinstance(analyzer, HttpTriageAnalyzer):
        await analyzer.aclose()
    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Neuro Intake API Server",
        description="REST API for neurology triage dialogues and assessment forms",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AnalysisFailure, analysis_failure_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    @app.get("/health")
    async def health() -> dict:
        """Readiness check: verifies DB connectivity."""
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": "database unavailable"}

    register_routes(app)
    return app


# Module-level ASGI export (uvicorn neuro_intake_server.app:app)
app = create_app()


def cli() -> None:
    """Console-script entry point: ``neuro-intake-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "neuro_intake_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
