"""Health check endpoints for monitoring."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Dict

from fastapi import APIRouter, Depends

from donation_verifier.api.dependencies import get_extraction_client, get_repository
from donation_verifier.core.config import settings
from donation_verifier.models.schemas import HealthReport
from donation_verifier.services.donation_repository import SqlDonationRepository
from donation_verifier.services.extraction_service import StructuredExtractionClient


logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.api_route("/health", methods=["GET", "HEAD"])
async def health_check() -> Dict[str, str]:
    """Basic liveness check (supports GET & HEAD)."""
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@router.get("/health/detailed", response_model=HealthReport)
async def detailed_health_check(
    client: StructuredExtractionClient = Depends(get_extraction_client),
    repository: SqlDonationRepository = Depends(get_repository),
) -> HealthReport:
    """Ping the AI provider and write the health probe row."""
    now = dt.datetime.now(dt.timezone.utc)
    try:
        test_response = await client.ping()
        await repository.record_health_check("ok")
    except Exception as exc:
        logger.error("Health check failed: %s", exc)
        return HealthReport(status="unhealthy", timestamp=now, error=str(exc))
    return HealthReport(
        status="healthy",
        timestamp=now,
        ai="connected",
        database="connected",
        test_response=test_response,
    )
