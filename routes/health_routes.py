"""
Health check endpoint.

GET /health — checks MongoDB connectivity and reports AI availability.
Rules:
- MongoDB failure → "unhealthy" (503); the app cannot function without it.
- AI provider not configured → "degraded" (200); study features fall back
  to placeholder content.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        db = request.app.state.db
        await db.client.admin.command("ping")
        checks["mongodb"] = "ok"
    except Exception:
        checks["mongodb"] = "error"
        overall = "unhealthy"

    ai_provider = getattr(request.app.state, "ai_provider", None)
    if ai_provider is not None and ai_provider.is_available():
        checks["ai"] = "ok"
    else:
        checks["ai"] = "not_configured"
        if overall == "healthy":
            overall = "degraded"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content=HealthResponse(status=overall, checks=checks).model_dump(),
    )
