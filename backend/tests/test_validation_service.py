from __future__ import annotations

import pytest

from donation_verifier.core.config import get_matching_policy
from donation_verifier.models.schemas import (
    DonationService,
    ExtractedReceiptFields,
    OrganizationBankDetails,
)
from donation_verifier.services.validation_service import DonationValidator


ORG = OrganizationBankDetails(
    organization_id="org_1",
    account_name="Hope Foundation Ltd",
    account_number="123456",
    bank_name="Commercial Bank of Ceylon",
)
SERVICE = DonationService(id="svc_1", approximate_unit_price=1000)


@pytest.fixture
def validator():
    return DonationValidator(get_matching_policy())


def _receipt(**overrides) -> ExtractedReceiptFields:
    data = {
        "recipientName": "Hope Foundation",
        "recipientAccount": "123 456",
        "bankName": "Commercial Bank",
        "amount": 5000,
        "status": "completed",
    }
    data.update(overrides)
    return ExtractedReceiptFields.model_validate({k: v for k, v in data.items() if v is not None})


def test_matching_receipt_is_valid(validator):
    result = validator.validate(_receipt(), ORG, SERVICE, 5)
    assert result.is_valid
    assert result.reasons == []
    assert result.reason is None


def test_wrong_account_number_is_the_only_reason(validator):
    result = validator.validate(_receipt(recipientAccount="123 457"), ORG, SERVICE, 5)
    assert not result.is_valid
    assert result.reasons == ["Account number does not match"]


def test_missing_status_is_not_a_failure(validator):
    result = validator.validate(_receipt(status=None), ORG, SERVICE, 5)
    assert result.is_valid


@pytest.mark.parametrize("status", ["pending", "FAILED", "completed successfully"])
def test_non_completed_status_fails(validator, status):
    result = validator.validate(_receipt(status=status), ORG, SERVICE, 5)
    assert result.reasons == ["Transaction is not completed"]


def test_status_comparison_ignores_case(validator):
    assert validator.validate(_receipt(status="COMPLETED"), ORG, SERVICE, 5).is_valid


@pytest.mark.parametrize("amount,ok", [(1049, True), (1050, True), (950, True), (1051, False), (949, False)])
def test_amount_tolerance_is_inclusive(validator, amount, ok):
    result = validator.validate(_receipt(amount=amount), ORG, SERVICE, 1)
    assert result.is_valid is ok


def test_amount_mismatch_reports_expected_and_found(validator):
    result = validator.validate(_receipt(amount=7500.5), ORG, SERVICE, 5)
    assert result.reasons == ["Amount mismatch. Expected: 5000, Found: 7500.5"]


def test_all_missing_fields_reported_in_check_order(validator):
    result = validator.validate(ExtractedReceiptFields(), ORG, SERVICE, 5)
    assert result.reasons == [
        "Recipient name not found in payslip",
        "Account number not found in payslip",
        "Bank name not found in payslip",
        "Transaction amount not found in payslip",
    ]
    assert result.reason == "; ".join(result.reasons)


def test_every_check_runs_without_short_circuit(validator):
    receipt = _receipt(
        recipientName="Acme Traders",
        recipientAccount="999",
        bankName="Seylan Bank",
        amount=10,
        status="pending",
    )
    result = validator.validate(receipt, ORG, SERVICE, 5)
    assert result.reasons == [
        "Recipient name does not match organization account name",
        "Account number does not match",
        "Bank name does not match",
        "Amount mismatch. Expected: 5000, Found: 10",
        "Transaction is not completed",
    ]


def test_zero_amount_counts_as_missing(validator):
    result = validator.validate(_receipt(amount=0), ORG, SERVICE, 5)
    assert result.reasons == ["Transaction amount not found in payslip"]


@pytest.mark.parametrize("amount", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_amount_counts_as_missing(validator, amount):
    receipt = _receipt().model_copy(update={"amount": amount})
    result = validator.validate(receipt, ORG, SERVICE, 5)
    assert result.reasons == ["Transaction amount not found in payslip"]


def test_tolerance_comes_from_policy():
    strict = DonationValidator(get_matching_policy().model_copy(update={"amount_tolerance": 0.0}))
    assert not strict.validate(_receipt(amount=5001), ORG, SERVICE, 5).is_valid
    assert strict.validate(_receipt(amount=5000), ORG, SERVICE, 5).is_valid
