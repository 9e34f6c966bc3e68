"""SQLAlchemy ORM models for the donation verification service.

Donations are written by the donor-facing flow and only their state,
note and ``updated_at`` are changed here.  Organization bank details and
donation services are reference data owned by NGO management and are
read-only from this service's point of view.  Extraction audit records
and the health probe row are owned by this service.

If you extend or modify these models remember to call the ``init_db``
helper during development to recreate the tables.
"""

from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    Integer,
    BigInteger,
    String,
    Text,
    JSON,
)

from donation_verifier.core.database import Base
from .enums import DonationState


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Donation(Base):
    """A donation pledged against a donation service of an organization."""

    __tablename__ = "donations"

    id = Column(String, primary_key=True)
    organization_id = Column(String, nullable=False, index=True)
    donation_service_id = Column(String, nullable=False)
    units = Column(Integer, nullable=False, default=1)
    # URL of the uploaded receipt image
    payslip = Column(String, nullable=False)
    state = Column(
        Enum(DonationState, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=DonationState.PENDING,
        index=True,
    )
    note = Column(Text, nullable=True)
    # epoch milliseconds
    updated_at = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class OrganizationBankDetail(Base):
    """Receiving account registered by an organization."""

    __tablename__ = "org_bank_details"

    organization_id = Column(String, primary_key=True)
    account_name = Column(String, nullable=False)
    account_number = Column(String, nullable=False)
    bank_name = Column(String, nullable=False)


class DonationServiceRecord(Base):
    """A donatable unit (e.g. a dry-ration pack) and its approximate price."""

    __tablename__ = "donation_services"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    approximate_unit_price = Column(Float, nullable=False)


class DonationExtraction(Base):
    """Fields extracted from the receipt of an accepted donation."""

    __tablename__ = "donation_extractions"

    donation_id = Column(String, primary_key=True)
    extracted_data = Column(JSON, nullable=False)
    extracted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class HealthCheck(Base):
    """Row rewritten by the detailed health probe."""

    __tablename__ = "health_check"

    id = Column(String, primary_key=True, default="test")
    status = Column(String, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
