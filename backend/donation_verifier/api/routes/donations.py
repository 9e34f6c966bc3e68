"""API routes for donation verification."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from donation_verifier.api.dependencies import get_pipeline
from donation_verifier.core.exceptions import DonationNotFound
from donation_verifier.core.security import get_current_caller
from donation_verifier.models.schemas import DonationIdRequest, ManualProcessResponse
from donation_verifier.services.pipeline import DonationPipeline


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/donations", tags=["donations"])


@router.post("/process", response_model=ManualProcessResponse)
async def manual_process_donation(
    body: DonationIdRequest,
    caller: Dict[str, Any] = Depends(get_current_caller),
    pipeline: DonationPipeline = Depends(get_pipeline),
) -> ManualProcessResponse:
    """Run verification again for a donation, whatever its current state.

    The decision is written to the donation as usual and also returned
    to the caller.  A failed verification is a normal response with
    ``success: false``; only an unknown donation id is an HTTP error.
    """
    logger.info("Manual processing for donation %s requested by %s", body.donation_id, caller.get("sub"))
    try:
        outcome = await pipeline.reprocess(body.donation_id)
    except DonationNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Donation not found") from exc
    return ManualProcessResponse(success=outcome.success, message=outcome.message)
