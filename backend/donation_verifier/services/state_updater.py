"""Write verification decisions back to the donation record."""

from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Callable, Optional

from donation_verifier.core.observability import sentry_breadcrumb
from donation_verifier.models.enums import DonationState
from donation_verifier.models.schemas import ExtractedReceiptFields
from donation_verifier.services.donation_repository import DonationStore


logger = logging.getLogger(__name__)


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class DonationStateUpdater:
    """Persist the final state, note and extraction audit record."""

    def __init__(self, store: DonationStore, clock: Callable[[], int] = _epoch_millis) -> None:
        self.store = store
        self.clock = clock

    async def update_status(self, donation_id: str, state: DonationState, note: Optional[str] = None) -> None:
        """Overwrite state and note; the note is cleared unless declined."""
        if state is not DonationState.DECLINED:
            note = None
        await self.store.update_state(donation_id, state, note, self.clock())
        logger.info(
            "Updated donation %s to %s%s",
            donation_id,
            state.value,
            f" with note: {note}" if note else "",
        )
        sentry_breadcrumb("donation", f"state -> {state.value}", data={"donation_id": donation_id})

    async def save_extracted_data(self, donation_id: str, extracted: ExtractedReceiptFields) -> bool:
        """Store the audit record; failures are logged and reported as ``False``."""
        try:
            await self.store.save_extraction(donation_id, extracted.to_record(), dt.datetime.now(dt.timezone.utc))
        except Exception:
            logger.exception("Error saving extracted data for donation %s", donation_id)
            return False
        logger.info("Saved extracted data for donation %s", donation_id)
        return True
