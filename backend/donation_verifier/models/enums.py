"""Enumeration types used throughout the donation verification service.

Enumerations constrain the values that can be stored in the database
or passed through the API. When modifying these enums you should update
any corresponding database columns or Pydantic validators so that new
values are accepted where appropriate.
"""

from enum import Enum


class DonationState(str, Enum):
    """Lifecycle states for a donation.

    Donations are created ``pending`` by the donor-facing flow and are
    moved to one of the terminal states by the verification pipeline.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class AIProvider(str, Enum):
    """Generative AI back ends that can perform receipt extraction."""

    OPENAI = "openai"
    GEMINI = "gemini"


class TriggerType(str, Enum):
    """How a pipeline run was started."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"
