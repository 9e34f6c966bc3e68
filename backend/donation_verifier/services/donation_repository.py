"""Persistence for donations and their reference data.

The pipeline depends on two small capabilities rather than on a
database session directly:

* ``ReferenceDataStore`` – keyed lookups of organization bank details
  and donation services.  ``None`` means the record does not exist;
  a lookup error propagates as an exception.
* ``DonationStore`` – read a donation, write its decision and write the
  extraction audit record.

``SqlDonationRepository`` implements both on top of the async SQLAlchemy
session factory.  Each call opens its own short session so a pipeline
run never holds a connection across the AI call.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from donation_verifier.core.exceptions import DonationNotFound
from donation_verifier.models import tables
from donation_verifier.models.enums import DonationState
from donation_verifier.models.schemas import Donation, DonationService, OrganizationBankDetails


logger = logging.getLogger(__name__)


class ReferenceDataStore(Protocol):
    async def get_org_bank_details(self, organization_id: str) -> Optional[OrganizationBankDetails]: ...

    async def get_donation_service(self, donation_service_id: str) -> Optional[DonationService]: ...


class DonationStore(Protocol):
    async def get_donation(self, donation_id: str) -> Optional[Donation]: ...

    async def update_state(
        self, donation_id: str, state: DonationState, note: Optional[str], updated_at: int
    ) -> None: ...

    async def save_extraction(
        self, donation_id: str, extracted_data: Dict[str, Any], extracted_at: dt.datetime
    ) -> None: ...


class SqlDonationRepository:
    """Donation and reference-data access backed by SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_donation(self, donation_id: str) -> Optional[Donation]:
        async with self.session_factory() as session:
            row = await session.get(tables.Donation, donation_id)
            return Donation.model_validate(row) if row is not None else None

    async def get_org_bank_details(self, organization_id: str) -> Optional[OrganizationBankDetails]:
        async with self.session_factory() as session:
            row = await session.get(tables.OrganizationBankDetail, organization_id)
            if row is None:
                logger.info("Organization bank details not found organization_id=%s", organization_id)
                return None
            return OrganizationBankDetails.model_validate(row)

    async def get_donation_service(self, donation_service_id: str) -> Optional[DonationService]:
        async with self.session_factory() as session:
            row = await session.get(tables.DonationServiceRecord, donation_service_id)
            if row is None:
                logger.info("Donation service not found donation_service_id=%s", donation_service_id)
                return None
            return DonationService.model_validate(row)

    async def update_state(
        self, donation_id: str, state: DonationState, note: Optional[str], updated_at: int
    ) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                update(tables.Donation)
                .where(tables.Donation.id == donation_id)
                .values(state=state, note=note, updated_at=updated_at)
            )
            if result.rowcount == 0:
                await session.rollback()
                raise DonationNotFound(donation_id)
            await session.commit()

    async def save_extraction(
        self, donation_id: str, extracted_data: Dict[str, Any], extracted_at: dt.datetime
    ) -> None:
        async with self.session_factory() as session:
            await session.merge(
                tables.DonationExtraction(
                    donation_id=donation_id,
                    extracted_data=extracted_data,
                    extracted_at=extracted_at,
                )
            )
            await session.commit()

    async def record_health_check(self, status: str) -> None:
        async with self.session_factory() as session:
            await session.merge(
                tables.HealthCheck(id="test", status=status, timestamp=dt.datetime.now(dt.timezone.utc))
            )
            await session.commit()
