"""Donation validation against organization and service records.

The validator compares the fields extracted from a receipt with what
the donation should look like: the organization's receiving account
and bank, and the amount implied by the donation service's unit price.
Five independent checks run in a fixed order:

1. recipient name (fuzzy, see :class:`OrganizationNameMatcher`)
2. recipient account number (exact after removing whitespace)
3. bank name (alias table, see :class:`BankNameMatcher`)
4. amount (relative tolerance around ``unit price * units``)
5. transaction status (only when the receipt states one)

Every check runs even when an earlier one fails so that the decline
note lists every problem at once.  Each check returns ``None`` when it
passes or a human-readable reason when it does not.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Callable, List, Optional

from donation_verifier.models.schemas import (
    DonationService,
    ExtractedReceiptFields,
    MatchingPolicy,
    OrganizationBankDetails,
    ValidationResult,
)
from donation_verifier.services.name_matching import BankNameMatcher, OrganizationNameMatcher


logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s")


def _format_amount(value: float) -> str:
    """Render whole amounts without a trailing ``.0``."""
    return str(int(value)) if float(value).is_integer() else str(value)


def strip_whitespace(value: str) -> str:
    return _WHITESPACE.sub("", value or "")


class DonationValidator:
    """Apply the verification checks to one extracted receipt."""

    def __init__(self, policy: MatchingPolicy) -> None:
        self.policy = policy
        self.org_matcher = OrganizationNameMatcher(policy)
        self.bank_matcher = BankNameMatcher(policy)

    def _check_recipient_name(self, extracted: ExtractedReceiptFields, org: OrganizationBankDetails) -> Optional[str]:
        if not extracted.recipient_name:
            return "Recipient name not found in payslip"
        if not self.org_matcher.match(extracted.recipient_name, org.account_name):
            return "Recipient name does not match organization account name"
        return None

    def _check_account_number(self, extracted: ExtractedReceiptFields, org: OrganizationBankDetails) -> Optional[str]:
        if not extracted.recipient_account:
            return "Account number not found in payslip"
        if strip_whitespace(extracted.recipient_account) != strip_whitespace(org.account_number):
            return "Account number does not match"
        return None

    def _check_bank_name(self, extracted: ExtractedReceiptFields, org: OrganizationBankDetails) -> Optional[str]:
        if not extracted.bank_name:
            return "Bank name not found in payslip"
        if not self.bank_matcher.match(extracted.bank_name, org.bank_name):
            return "Bank name does not match"
        return None

    def _check_amount(self, extracted: ExtractedReceiptFields, service: DonationService, units: int) -> Optional[str]:
        # Zero and non-finite amounts are treated as not read, like a missing one.
        if not extracted.amount or not math.isfinite(extracted.amount):
            return "Transaction amount not found in payslip"
        expected = service.approximate_unit_price * units
        tolerance = expected * self.policy.amount_tolerance
        if abs(extracted.amount - expected) > tolerance:
            return (
                f"Amount mismatch. Expected: {_format_amount(expected)}, "
                f"Found: {_format_amount(extracted.amount)}"
            )
        return None

    @staticmethod
    def _check_status(extracted: ExtractedReceiptFields) -> Optional[str]:
        if extracted.status and extracted.status.lower() != "completed":
            return "Transaction is not completed"
        return None

    def validate(
        self,
        extracted: ExtractedReceiptFields,
        org_bank_details: OrganizationBankDetails,
        donation_service: DonationService,
        units: int,
    ) -> ValidationResult:
        """Run every check and collect the failures in check order."""
        checks: List[Callable[[], Optional[str]]] = [
            lambda: self._check_recipient_name(extracted, org_bank_details),
            lambda: self._check_account_number(extracted, org_bank_details),
            lambda: self._check_bank_name(extracted, org_bank_details),
            lambda: self._check_amount(extracted, donation_service, units),
            lambda: self._check_status(extracted),
        ]
        reasons: List[str] = []
        for check in checks:
            reason = check()
            if reason:
                reasons.append(reason)
        result = ValidationResult(is_valid=not reasons, reasons=reasons)
        logger.debug("validation result valid=%s reasons=%s", result.is_valid, reasons)
        return result
