"""Donation lifecycle event hook.

The donor-facing flow (or a database change feed in front of it) calls
this endpoint after it writes a new ``pending`` donation.  The hook only
enqueues the ``process_donation`` actor; the pending check happens in
the worker when the donation is loaded.

When ``EVENT_HOOK_SECRET`` is configured the caller must send it in the
``X-Event-Secret`` header.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, status

from donation_verifier.core.config import settings
from donation_verifier.core.observability import sentry_breadcrumb
from donation_verifier.core.tasks import process_donation
from donation_verifier.models.schemas import DonationCreatedAck, DonationIdRequest


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


def _verify_hook_secret(provided: Optional[str]) -> None:
    expected = settings.EVENT_HOOK_SECRET
    if not expected:
        return
    if not provided or not hmac.compare_digest(provided, expected):
        logger.warning("[events] rejected donation-created hook: bad secret")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid event secret")


@router.post("/donation-created", response_model=DonationCreatedAck, status_code=status.HTTP_202_ACCEPTED)
async def donation_created(
    body: DonationIdRequest,
    x_event_secret: Optional[str] = Header(default=None),
) -> DonationCreatedAck:
    """Queue automatic verification of a newly created donation."""
    _verify_hook_secret(x_event_secret)
    process_donation.send(body.donation_id)
    logger.info("[events] queued donation %s for processing", body.donation_id)
    sentry_breadcrumb("donation", "queued", data={"donation_id": body.donation_id})
    return DonationCreatedAck(queued=True, donation_id=body.donation_id)
