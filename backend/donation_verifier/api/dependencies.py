"""Common dependencies for FastAPI routes.

Collaborators are constructed per request from the process-wide session
factory so that tests can swap any of them with
``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from donation_verifier.core import database
from donation_verifier.services.donation_repository import SqlDonationRepository
from donation_verifier.services.extraction_service import StructuredExtractionClient, build_extraction_client
from donation_verifier.services.pipeline import DonationPipeline, build_pipeline


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return database.AsyncSessionLocal


def get_repository(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> SqlDonationRepository:
    return SqlDonationRepository(session_factory)


def get_pipeline(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> DonationPipeline:
    return build_pipeline(session_factory)


def get_extraction_client() -> StructuredExtractionClient:
    return build_extraction_client()
