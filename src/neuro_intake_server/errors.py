"""Global exception handlers mapping SDK exceptions to HTTP responses.

The SDK signals client errors with ``ValueError`` subclasses whose messages
follow fixed phrasings ("Session not found", "already exists", "not
accepted"...).  The handlers below pick a status from the message so the
routes only describe the happy path.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from neuro_intake.errors import AnalysisFailure

logger = logging.getLogger(__name__)

# Checked in order against the lowercased message; first match wins.
_VALUE_ERROR_PATTERNS: list[tuple[str, int]] = [
    # Duplicate (user_id, session_id)
    ("already exists", 409),
    ("not found", 404),
    # Terminal session or no pending assessment
    ("not accepted", 409),
    # A turn or analysis for the session is still running
    ("outstanding", 409),
    # Form answers captured against another definition version
    ("version mismatch", 409),
]

# Identifiers stay in the server log; the client sees a generic description.
_SAFE_MESSAGES: dict[int, str] = {
    404: "Resource not found",
    409: "Request conflicts with the current state of the resource",
    400: "Invalid request",
}


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Map an SDK ``ValueError`` to 404, 409 or (by default) 400."""
    msg = str(exc)
    status = 400
    lowered = msg.lower()
    for pattern, code in _VALUE_ERROR_PATTERNS:
        if pattern in lowered:
            status = code
            break

    logger.warning("ValueError [%d] at %s: %s", status, request.url, msg)
    return JSONResponse(
        status_code=status,
        content={"detail": _SAFE_MESSAGES.get(status, "Invalid request")},
    )


async def analysis_failure_handler(request: Request, exc: AnalysisFailure) -> JSONResponse:
    """A failed analysis is retryable: the session was left unchanged."""
    logger.warning("AnalysisFailure at %s: %s", request.url, exc)
    return JSONResponse(
        status_code=503,
        content={
            "detail": "Analysis is temporarily unavailable",
            "last_step": exc.last_step,
            "retryable": True,
        },
    )


async def key_error_handler(request: Request, exc: KeyError) -> JSONResponse:
    """Map ``KeyError`` (unknown form, field or disease) to 404."""
    logger.warning("KeyError at %s: %s", request.url, exc)
    return JSONResponse(status_code=404, content={"detail": "Resource not found"})


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback and return 500."""
    logger.exception("Unhandled exception at %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
