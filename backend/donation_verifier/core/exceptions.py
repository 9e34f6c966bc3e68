"""Exception types raised by the verification pipeline.

Every pipeline failure carries the ``note`` written onto the declined
donation.  The orchestrator catches these at the top of a run, so the
HTTP layer only ever sees :class:`DonationNotFound` (manual trigger for
an unknown id).
"""

from __future__ import annotations

from typing import List, Optional


class DonationProcessingError(Exception):
    """Base class for failures that decline a donation."""

    note = "Processing error occurred"

    def __init__(self, message: Optional[str] = None, *, note: Optional[str] = None) -> None:
        if note is not None:
            self.note = note
        super().__init__(message or self.note)


class ExtractionFailed(DonationProcessingError):
    """No receipt fields could be obtained for the donation."""

    note = "Failed to extract payslip data"


class ImageFetchError(ExtractionFailed):
    """The receipt image could not be downloaded."""


class ExtractionParseError(ExtractionFailed):
    """The AI response was not a JSON object matching the schema."""


class LookupNotFound(DonationProcessingError):
    """A reference record required for validation does not exist."""


class OrganizationNotFound(LookupNotFound):
    note = "Organization bank details not found"


class DonationServiceNotFound(LookupNotFound):
    note = "Donation service not found"


class ValidationFailure(DonationProcessingError):
    """The receipt did not match the expected records."""

    def __init__(self, reasons: List[str]) -> None:
        self.reasons = list(reasons)
        super().__init__(note="; ".join(self.reasons))


class ProcessingTimeout(DonationProcessingError):
    note = "Processing timed out"


class UnexpectedProcessingError(DonationProcessingError):
    note = "Processing error occurred"


class DonationNotFound(Exception):
    """The donation id does not refer to a stored donation."""

    def __init__(self, donation_id: str) -> None:
        self.donation_id = donation_id
        super().__init__(f"Donation {donation_id} not found")
