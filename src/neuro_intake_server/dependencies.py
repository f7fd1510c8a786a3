"""FastAPI dependencies: DB session, shared SDK objects and caller identity.

Every request that touches the database gets its own ``AsyncSession`` from
``get_db()``, committed on success and rolled back on error.  The SDK only
ever calls ``flush()``, so this is where transactions end.
"""

import hmac
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from neuro_intake.form_engine import FormEngine
from neuro_intake.orchestrator import TriageOrchestrator
from neuro_intake.ruleset import RulesetStore
from neuro_intake_db.engine import get_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ------------------------------------------------------------------
# Singletons built in the lifespan handler
# ------------------------------------------------------------------

def get_orchestrator(request: Request) -> TriageOrchestrator:
    return request.app.state.orchestrator


def get_store(request: Request) -> RulesetStore:
    return request.app.state.store


def get_form_engine(request: Request) -> FormEngine:
    return request.app.state.form_engine


# ------------------------------------------------------------------
# Caller identity
# ------------------------------------------------------------------

async def get_user_id(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str:
    """Return the ``X-User-ID`` header, or 401 when it is missing.

    With ``TRUSTED_PROXY_SECRET`` configured the request must also carry a
    matching ``X-Proxy-Secret`` (403 otherwise), proving the identity header
    was set by the gateway.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")

    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if expected_secret:
        if not x_proxy_secret:
            raise HTTPException(status_code=403, detail="X-Proxy-Secret header is required")
        if not hmac.compare_digest(x_proxy_secret, expected_secret):
            raise HTTPException(status_code=403, detail="Invalid proxy secret")

    return x_user_id
