"""Route registration: mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from neuro_intake_server.routes.analysis import router as analysis_router
from neuro_intake_server.routes.forms import router as forms_router
from neuro_intake_server.routes.profiles import router as profiles_router
from neuro_intake_server.routes.reference import router as reference_router
from neuro_intake_server.routes.sessions import router as sessions_router
from neuro_intake_server.routes.turns import router as turns_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(sessions_router, prefix=API_PREFIX)
    app.include_router(turns_router, prefix=API_PREFIX)
    app.include_router(analysis_router, prefix=API_PREFIX)
    app.include_router(profiles_router, prefix=API_PREFIX)
    app.include_router(forms_router, prefix=API_PREFIX)
    app.include_router(reference_router, prefix=API_PREFIX)
