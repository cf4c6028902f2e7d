"""
campaign_insights/routes/health.py – liveness and readiness endpoints.
"""
from __future__ import annotations

from fastapi import APIRouter

from campaign_insights.config import settings
from campaign_insights.models import HealthResponse, ReadinessResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/healthz",
    response_model=HealthResponse,
    summary="Liveness probe",
    description="Returns 200 as long as the application process is running.",
)
async def healthz() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=settings.app_version,
        klaviyo_key_configured=bool(settings.klaviyo_api_key),
    )


@router.get(
    "/readyz",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description=(
        "Returns 200 when the service is ready to handle requests. "
        "Requires a Klaviyo API key and reports which Klaviyo API "
        "endpoint and revision searches will run against."
    ),
)
async def readyz() -> ReadinessResponse:
    key_ok = bool(settings.klaviyo_api_key)
    return ReadinessResponse(
        ready=key_ok,
        checks={
            "klaviyo_api_key_configured": key_ok,
            "klaviyo_base_url": settings.klaviyo_base_url,
            "klaviyo_revision": settings.klaviyo_revision,
        },
    )
