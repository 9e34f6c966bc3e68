from __future__ import annotations

import asyncio

import pytest

from donation_verifier.core.config import get_matching_policy
from donation_verifier.core.exceptions import DonationNotFound
from donation_verifier.models.enums import DonationState
from donation_verifier.models.schemas import (
    Donation,
    DonationService,
    ExtractedReceiptFields,
    OrganizationBankDetails,
)
from donation_verifier.services.pipeline import DonationPipeline
from donation_verifier.services.state_updater import DonationStateUpdater
from donation_verifier.services.validation_service import DonationValidator


GOOD_RECEIPT = ExtractedReceiptFields(
    recipient_name="Hope Foundation",
    recipient_account="123 456",
    bank_name="Commercial Bank",
    amount=5000,
    status="completed",
)


class InMemoryStore:
    """Reference data and donation store kept in dictionaries."""

    def __init__(self):
        self.donations = {
            "don_1": Donation(
                id="don_1",
                organization_id="org_1",
                donation_service_id="svc_1",
                units=5,
                payslip="https://files.example/receipt.png",
            )
        }
        self.orgs = {
            "org_1": OrganizationBankDetails(
                organization_id="org_1",
                account_name="Hope Foundation Ltd",
                account_number="123456",
                bank_name="Commercial Bank of Ceylon",
            )
        }
        self.services = {"svc_1": DonationService(id="svc_1", approximate_unit_price=1000)}
        self.extractions = {}
        self.updates = []
        self.fail_updates = False
        self.fail_extraction_save = False
        self.extraction_save_delay = 0.0

    async def get_donation(self, donation_id):
        return self.donations.get(donation_id)

    async def get_org_bank_details(self, organization_id):
        return self.orgs.get(organization_id)

    async def get_donation_service(self, donation_service_id):
        return self.services.get(donation_service_id)

    async def update_state(self, donation_id, state, note, updated_at):
        if self.fail_updates:
            raise RuntimeError("database unavailable")
        self.updates.append((donation_id, state, note, updated_at))
        current = self.donations[donation_id]
        self.donations[donation_id] = current.model_copy(update={"state": state, "note": note, "updated_at": updated_at})

    async def save_extraction(self, donation_id, extracted_data, extracted_at):
        if self.extraction_save_delay:
            await asyncio.sleep(self.extraction_save_delay)
        if self.fail_extraction_save:
            raise RuntimeError("write failed")
        self.extractions[donation_id] = extracted_data


class StubExtractor:
    def __init__(self, result=GOOD_RECEIPT, delay: float = 0.0, error: Exception | None = None):
        self.result = result
        self.delay = delay
        self.error = error
        self.urls = []

    async def extract(self, url):
        self.urls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def store():
    return InMemoryStore()


def _pipeline(store, extractor=None, **kwargs) -> DonationPipeline:
    return DonationPipeline(
        extractor=extractor or StubExtractor(),
        reference_store=store,
        donation_store=store,
        validator=DonationValidator(get_matching_policy()),
        updater=DonationStateUpdater(store, clock=lambda: 1700000000000),
        **kwargs,
    )


def test_valid_receipt_accepts_and_stores_audit_record(store):
    outcome = asyncio.run(_pipeline(store).process_created("don_1"))

    assert outcome.success is True
    assert outcome.message == "Donation accepted"
    assert outcome.state is DonationState.ACCEPTED
    assert store.updates == [("don_1", DonationState.ACCEPTED, None, 1700000000000)]
    assert store.extractions["don_1"]["recipientName"] == "Hope Foundation"


def test_validation_failure_declines_with_reasons(store):
    extractor = StubExtractor(GOOD_RECEIPT.model_copy(update={"recipient_account": "123 457"}))
    outcome = asyncio.run(_pipeline(store, extractor).process_created("don_1"))

    assert outcome.success is False
    assert outcome.state is DonationState.DECLINED
    assert outcome.message == "Account number does not match"
    assert store.donations["don_1"].note == "Account number does not match"
    assert store.extractions == {}


def test_multiple_reasons_are_joined(store):
    extractor = StubExtractor(GOOD_RECEIPT.model_copy(update={"recipient_account": "1", "status": "pending"}))
    outcome = asyncio.run(_pipeline(store, extractor).process_created("don_1"))
    assert outcome.message == "Account number does not match; Transaction is not completed"


def test_extraction_failure_declines(store):
    extractor = StubExtractor(result=None)
    outcome = asyncio.run(_pipeline(store, extractor).process_created("don_1"))
    assert outcome.message == "Failed to extract payslip data"
    assert store.donations["don_1"].state is DonationState.DECLINED


def test_missing_organization_declines_before_service_lookup(store):
    store.orgs.clear()
    store.services.clear()
    outcome = asyncio.run(_pipeline(store).process_created("don_1"))
    assert outcome.message == "Organization bank details not found"


def test_missing_service_declines(store):
    store.services.clear()
    outcome = asyncio.run(_pipeline(store).process_created("don_1"))
    assert outcome.message == "Donation service not found"
    assert store.donations["don_1"].note == "Donation service not found"


@pytest.mark.parametrize("state", [DonationState.ACCEPTED, DonationState.DECLINED])
def test_automatic_run_skips_non_pending(store, state):
    store.donations["don_1"] = store.donations["don_1"].model_copy(update={"state": state})
    extractor = StubExtractor()
    assert asyncio.run(_pipeline(store, extractor).process_created("don_1")) is None
    assert extractor.urls == []
    assert store.updates == []


def test_automatic_run_ignores_unknown_donation(store):
    assert asyncio.run(_pipeline(store).process_created("missing")) is None
    assert store.updates == []


def test_reprocess_runs_regardless_of_state(store):
    store.donations["don_1"] = store.donations["don_1"].model_copy(
        update={"state": DonationState.DECLINED, "note": "Failed to extract payslip data"}
    )
    outcome = asyncio.run(_pipeline(store).reprocess("don_1"))
    assert outcome.success is True
    assert store.donations["don_1"].state is DonationState.ACCEPTED
    assert store.donations["don_1"].note is None


def test_reprocess_unknown_donation_raises(store):
    with pytest.raises(DonationNotFound):
        asyncio.run(_pipeline(store).reprocess("missing"))


def test_timeout_declines(store):
    extractor = StubExtractor(delay=0.5)
    outcome = asyncio.run(_pipeline(store, extractor, timeout=0.01).process_created("don_1"))
    assert outcome.message == "Processing timed out"
    assert store.donations["don_1"].state is DonationState.DECLINED


def test_slow_acceptance_write_is_not_overwritten_by_timeout(store):
    store.extraction_save_delay = 0.3
    outcome = asyncio.run(_pipeline(store, timeout=0.05).process_created("don_1"))

    assert outcome.success is True
    assert outcome.state is DonationState.ACCEPTED
    assert [u[1] for u in store.updates] == [DonationState.ACCEPTED]
    assert store.donations["don_1"].state is DonationState.ACCEPTED
    assert store.extractions["don_1"]["amount"] == 5000


def test_failed_acceptance_write_declines(store):
    class AcceptRejectingStore(InMemoryStore):
        async def update_state(self, donation_id, state, note, updated_at):
            if state is DonationState.ACCEPTED:
                raise RuntimeError("database unavailable")
            await super().update_state(donation_id, state, note, updated_at)

    store = AcceptRejectingStore()
    outcome = asyncio.run(_pipeline(store).process_created("don_1"))
    assert outcome.message == "Processing error occurred"
    assert store.donations["don_1"].state is DonationState.DECLINED


def test_manual_run_uses_manual_timeout(store):
    extractor = StubExtractor(delay=0.5)
    pipeline = _pipeline(store, extractor, timeout=10, manual_timeout=0.01)
    outcome = asyncio.run(pipeline.reprocess("don_1"))
    assert outcome.message == "Processing timed out"


def test_unexpected_error_declines_with_generic_note(store):
    extractor = StubExtractor(error=KeyError("boom"))
    outcome = asyncio.run(_pipeline(store, extractor).process_created("don_1"))
    assert outcome.success is False
    assert outcome.message == "Processing error occurred"
    assert store.donations["don_1"].note == "Processing error occurred"


def test_failed_decline_write_is_reported_without_state(store):
    store.fail_updates = True
    outcome = asyncio.run(_pipeline(store, StubExtractor(result=None)).process_created("don_1"))
    assert outcome.success is False
    assert outcome.state is None
    assert store.donations["don_1"].state is DonationState.PENDING


def test_audit_write_failure_does_not_undo_acceptance(store):
    store.fail_extraction_save = True
    outcome = asyncio.run(_pipeline(store).process_created("don_1"))
    assert outcome.success is True
    assert store.donations["don_1"].state is DonationState.ACCEPTED


def test_updater_clears_note_unless_declined(store):
    updater = DonationStateUpdater(store, clock=lambda: 1)
    asyncio.run(updater.update_status("don_1", DonationState.ACCEPTED, "ignored"))
    asyncio.run(updater.update_status("don_1", DonationState.DECLINED, "Bank name does not match"))
    assert store.updates == [
        ("don_1", DonationState.ACCEPTED, None, 1),
        ("don_1", DonationState.DECLINED, "Bank name does not match", 1),
    ]
