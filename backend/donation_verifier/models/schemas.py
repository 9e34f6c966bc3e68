"""Pydantic schemas for domain values and API payloads.

Pydantic models are used for validating and serialising data that
crosses the boundary of the service: the structured output requested
from the AI model, the reference records loaded from the database and
the request/response bodies of the HTTP API.

The receipt fields use camelCase aliases because that is the shape of
the JSON the extraction schema asks the model to produce and the shape
stored in the extraction audit record.  Python code uses the snake_case
attribute names.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import DonationState


logger = logging.getLogger(__name__)

# Largest integer a float represents exactly
_MAX_EXACT_FLOAT_INT = 2 ** 53


# ---------------------------------------------------------------------------
# Domain schemas


class ExtractedReceiptFields(BaseModel):
    """Structured fields read from a bank transfer receipt."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    transaction_id: Optional[str] = Field(default=None, alias="transactionId", description="Transaction reference number or ID")
    amount: Optional[float] = Field(default=None, description="Transfer amount as a number")
    currency: Optional[str] = Field(default=None, description="Currency code (e.g., LKR, USD)")
    sender_name: Optional[str] = Field(default=None, alias="senderName", description="Sender's name")
    sender_account: Optional[str] = Field(default=None, alias="senderAccount", description="Sender's account number")
    recipient_name: Optional[str] = Field(default=None, alias="recipientName", description="Recipient's name")
    recipient_account: Optional[str] = Field(default=None, alias="recipientAccount", description="Recipient's account number")
    bank_name: Optional[str] = Field(default=None, alias="bankName", description="Bank name")
    bank_branch: Optional[str] = Field(default=None, alias="bankBranch", description="Bank branch")
    transaction_date: Optional[str] = Field(default=None, alias="transactionDate", description="Transaction date in YYYY-MM-DD format")
    transaction_time: Optional[str] = Field(default=None, alias="transactionTime", description="Transaction time")
    description: Optional[str] = Field(default=None, description="Payment description or reference")
    status: Optional[str] = Field(default=None, description="Transaction status (completed, pending, etc.)")

    @field_validator("recipient_account", "sender_account", "transaction_id", mode="before")
    @classmethod
    def _coerce_numeric_identifiers(cls, v):
        # Models occasionally emit account numbers as JSON numbers.
        if isinstance(v, bool):
            return v
        if isinstance(v, int):
            return str(v)
        if isinstance(v, float):
            if not math.isfinite(v) or (v.is_integer() and abs(v) >= _MAX_EXACT_FLOAT_INT):
                logger.warning("discarding identifier %r: digits lost in float conversion", v)
                return None
            return str(int(v)) if v.is_integer() else str(v)
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, v):
        """Accept amounts printed with thousands separators or a currency code."""
        if isinstance(v, str):
            cleaned = v.replace(",", "").strip()
            for prefix in ("LKR", "Rs.", "Rs", "USD", "$"):
                if cleaned.upper().startswith(prefix.upper()):
                    cleaned = cleaned[len(prefix):].strip()
            try:
                v = float(cleaned)
            except ValueError:
                return None
        # NaN and infinity (bare JSON constants or "nan" strings) are unreadable amounts
        if isinstance(v, float) and not math.isfinite(v):
            return None
        return v

    def to_record(self) -> Dict[str, Any]:
        """Return the camelCase dictionary persisted in the audit record."""
        return self.model_dump(by_alias=True)


class OrganizationBankDetails(BaseModel):
    """Expected receiving account for an organization."""

    model_config = ConfigDict(from_attributes=True)

    organization_id: str
    account_name: str
    account_number: str
    bank_name: str


class DonationService(BaseModel):
    """A donatable product or unit with its approximate price."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    approximate_unit_price: float


class Donation(BaseModel):
    """A donation awaiting or having completed verification."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    donation_service_id: str
    units: int
    payslip: str
    state: DonationState = DonationState.PENDING
    note: Optional[str] = None
    updated_at: Optional[int] = None


class ValidationResult(BaseModel):
    """Outcome of comparing extracted fields with the expected records."""

    is_valid: bool
    reasons: List[str] = Field(default_factory=list)

    @property
    def reason(self) -> Optional[str]:
        """All reasons joined in check order, or ``None`` when valid."""
        return "; ".join(self.reasons) if self.reasons else None


class ProcessingOutcome(BaseModel):
    """Final result of a pipeline run."""

    success: bool
    message: str
    state: Optional[DonationState] = None


class MatchingPolicy(BaseModel):
    """Tunable constants for fuzzy matching and amount tolerance."""

    model_config = ConfigDict(frozen=True)

    name_similarity_threshold: float = 0.8
    amount_tolerance: float = 0.05
    org_name_stopwords: Tuple[str, ...] = ()
    bank_aliases: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# API request/response schemas


class DonationIdRequest(BaseModel):
    """Body carrying a donation id, as sent by the app and the event hook."""

    model_config = ConfigDict(populate_by_name=True)

    donation_id: str = Field(alias="donationId", min_length=1)


class ManualProcessResponse(BaseModel):
    success: bool
    message: str


class DonationCreatedAck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    queued: bool
    donation_id: str = Field(alias="donationId")


class HealthReport(BaseModel):
    status: str
    timestamp: datetime
    ai: Optional[str] = None
    database: Optional[str] = None
    test_response: Optional[str] = None
    error: Optional[str] = None
