"""Donation verification pipeline.

A run moves a donation from ``pending`` to ``accepted`` or
``declined``:

1. load the donation (automatic runs skip anything not ``pending``)
2. extract receipt fields from the payslip image
3. load the organization's bank details
4. load the donation service
5. validate the fields against both records
6. write the final state; on acceptance also store the extracted fields

Each step is a hard gate.  A failure raises a
:class:`DonationProcessingError` whose ``note`` becomes the decline
reason, and the run stops.  Steps 2 to 5 are bounded by a wall-clock
timeout; the final write runs outside it, so a timeout can never
overwrite an acceptance that was already written.  Unexpected
exceptions are logged and still decline the donation so it never stays
``pending``.  Nothing is retried; the manual entry point is the only
way to run a donation again.

The pending check and the final write are not atomic and no lock is
taken, so a manual run racing the automatic one on the same donation
can interleave.  The last write wins.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from donation_verifier.core.config import get_matching_policy, settings
from donation_verifier.core.exceptions import (
    DonationNotFound,
    DonationProcessingError,
    DonationServiceNotFound,
    ExtractionFailed,
    OrganizationNotFound,
    ProcessingTimeout,
    UnexpectedProcessingError,
    ValidationFailure,
)
from donation_verifier.core.observability import sentry_breadcrumb, sentry_capture
from donation_verifier.models.enums import DonationState, TriggerType
from donation_verifier.models.schemas import Donation, ExtractedReceiptFields, ProcessingOutcome
from donation_verifier.services.donation_repository import DonationStore, ReferenceDataStore, SqlDonationRepository
from donation_verifier.services.extraction_service import ReceiptExtractor, build_receipt_extractor
from donation_verifier.services.state_updater import DonationStateUpdater
from donation_verifier.services.validation_service import DonationValidator


logger = logging.getLogger(__name__)

ACCEPTED_MESSAGE = "Donation accepted"


class DonationPipeline:
    """Orchestrates extraction, lookups, validation and the state write."""

    def __init__(
        self,
        extractor: ReceiptExtractor,
        reference_store: ReferenceDataStore,
        donation_store: DonationStore,
        validator: DonationValidator,
        updater: Optional[DonationStateUpdater] = None,
        timeout: Optional[float] = None,
        manual_timeout: Optional[float] = None,
    ) -> None:
        self.extractor = extractor
        self.reference_store = reference_store
        self.donation_store = donation_store
        self.validator = validator
        self.updater = updater or DonationStateUpdater(donation_store)
        self.timeout = timeout if timeout is not None else settings.PIPELINE_TIMEOUT_SECONDS
        self.manual_timeout = manual_timeout if manual_timeout is not None else settings.MANUAL_TIMEOUT_SECONDS

    async def process_created(self, donation_id: str) -> Optional[ProcessingOutcome]:
        """Automatic entry point for a newly created donation.

        Returns ``None`` when the donation is missing or no longer
        ``pending``; nothing is written in that case.
        """
        donation = await self.donation_store.get_donation(donation_id)
        if donation is None:
            logger.info("No donation data found for %s", donation_id)
            return None
        if donation.state is not DonationState.PENDING:
            logger.info("Donation %s is not pending (%s), skipping processing", donation_id, donation.state.value)
            return None
        return await self._run(donation, TriggerType.AUTOMATIC, self.timeout)

    async def reprocess(self, donation_id: str) -> ProcessingOutcome:
        """Manual entry point; runs regardless of the current state.

        Raises :class:`DonationNotFound` for an unknown id.
        """
        donation = await self.donation_store.get_donation(donation_id)
        if donation is None:
            raise DonationNotFound(donation_id)
        return await self._run(donation, TriggerType.MANUAL, self.manual_timeout)

    async def _run(self, donation: Donation, trigger: TriggerType, timeout: float) -> ProcessingOutcome:
        logger.info("Processing donation %s trigger=%s", donation.id, trigger.value)
        sentry_breadcrumb("donation", "processing started", data={"donation_id": donation.id, "trigger": trigger.value})
        try:
            extracted = await asyncio.wait_for(self._verify(donation), timeout=timeout)
            return await self._accept(donation.id, extracted)
        except asyncio.TimeoutError:
            logger.error("Processing donation %s exceeded %.0fs", donation.id, timeout)
            failure: DonationProcessingError = ProcessingTimeout()
        except ValidationFailure as exc:
            logger.info("Donation %s declined: %s", donation.id, exc.note)
            failure = exc
        except DonationProcessingError as exc:
            logger.warning("Donation %s declined: %s", donation.id, exc)
            failure = exc
        except Exception as exc:
            logger.exception("Error processing donation %s", donation.id)
            sentry_capture(exc)
            failure = UnexpectedProcessingError(str(exc))
        return await self._decline(donation.id, failure.note)

    async def _verify(self, donation: Donation) -> ExtractedReceiptFields:
        extracted = await self.extractor.extract(donation.payslip)
        if extracted is None:
            raise ExtractionFailed()
        logger.info("Extracted payslip data for %s: %s", donation.id, extracted.to_record())

        org_bank_details = await self.reference_store.get_org_bank_details(donation.organization_id)
        if org_bank_details is None:
            raise OrganizationNotFound()

        donation_service = await self.reference_store.get_donation_service(donation.donation_service_id)
        if donation_service is None:
            raise DonationServiceNotFound()

        result = self.validator.validate(extracted, org_bank_details, donation_service, donation.units)
        if not result.is_valid:
            raise ValidationFailure(result.reasons)
        return extracted

    async def _accept(self, donation_id: str, extracted: ExtractedReceiptFields) -> ProcessingOutcome:
        await self.updater.update_status(donation_id, DonationState.ACCEPTED)
        logger.info("Donation %s accepted", donation_id)
        await self.updater.save_extracted_data(donation_id, extracted)
        return ProcessingOutcome(success=True, message=ACCEPTED_MESSAGE, state=DonationState.ACCEPTED)

    async def _decline(self, donation_id: str, note: str) -> ProcessingOutcome:
        try:
            await self.updater.update_status(donation_id, DonationState.DECLINED, note)
        except Exception:
            logger.exception("Error updating donation status for %s", donation_id)
            return ProcessingOutcome(success=False, message=note, state=None)
        return ProcessingOutcome(success=False, message=note, state=DonationState.DECLINED)


def build_pipeline(session_factory: async_sessionmaker[AsyncSession]) -> DonationPipeline:
    """Wire a pipeline to the database, HTTP image store and configured AI provider."""
    repository = SqlDonationRepository(session_factory)
    return DonationPipeline(
        extractor=build_receipt_extractor(),
        reference_store=repository,
        donation_store=repository,
        validator=DonationValidator(get_matching_policy()),
    )
