"""Simple configuration management.

This module defines a ``Settings`` class that reads configuration
values from environment variables and provides sensible defaults.
``.env`` support is implemented by loading files from the repository
root in a defined order.  You can override any value via environment
variables.

The fuzzy matching thresholds and the bank alias table are policy
constants rather than code.  They are exposed here so that they can be
tuned per deployment and replaced in tests; ``get_matching_policy``
packages them into the immutable object the matchers consume.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv, find_dotenv

from donation_verifier.models.schemas import MatchingPolicy

# -----------------------------------------------------------------------------
# .env loading
#
# Prefer a .env in the repository root but allow fallback to whatever
# python-dotenv discovers from the current working directory.  Files are
# loaded in order without overriding already-set variables.

_THIS_FILE = Path(__file__).resolve()
_REPO_ROOT = _THIS_FILE.parents[3]
_ROOT_ENV = _REPO_ROOT / ".env"

_candidate_envs: list[str] = []
if _ROOT_ENV.exists():
    _candidate_envs.append(str(_ROOT_ENV))

_FOUND_ENV = find_dotenv(usecwd=True)
if _FOUND_ENV and _FOUND_ENV not in _candidate_envs:
    _candidate_envs.append(_FOUND_ENV)

for _env_path in _candidate_envs:
    load_dotenv(dotenv_path=_env_path, override=False)


DEFAULT_BANK_ALIASES: Dict[str, List[str]] = {
    "sampath": ["sampath bank", "sampath bank plc"],
    "commercial": ["commercial bank", "commercial bank of ceylon"],
    "peoples": ["peoples bank", "people's bank"],
    "hnb": ["hatton national bank", "hnb"],
    "dfcc": ["dfcc bank", "dfcc"],
    "seylan": ["seylan bank"],
    "ndb": ["national development bank", "ndb bank"],
    "nsb": ["national savings bank", "nsb"],
}

DEFAULT_ORG_NAME_STOPWORDS: List[str] = [
    "ltd",
    "limited",
    "pvt",
    "foundation",
    "charity",
    "organization",
    "org",
]


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from the environment with sensible defaults.  Any
    attribute defined here can be overridden by setting the corresponding
    environment variable.  List and dict values are read as JSON.
    """

    model_config = SettingsConfigDict(
        env_file=tuple(_candidate_envs) if _candidate_envs else (".env",),
        case_sensitive=True,
        extra="allow",
    )

    # API Settings
    PROJECT_NAME: str = "Relief Donation Verifier"
    ENVIRONMENT: str = Field(default="development")
    BACKEND_CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
    )

    # Database
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./donations.db")

    # Redis / Dramatiq
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    DRAMATIQ_BROKER_URL: Optional[str] = Field(default=None)

    # AI extraction
    AI_PROVIDER: str = Field(default="openai")
    OPENAI_API_KEY: Optional[str] = Field(default=None)
    GOOGLE_API_KEY: Optional[str] = Field(default=None)
    EXTRACTION_MODEL: Optional[str] = Field(default=None)
    EXTRACTION_DEBUG: bool = Field(default=False)

    # Pipeline limits
    IMAGE_FETCH_TIMEOUT_SECONDS: float = Field(default=30.0)
    PIPELINE_TIMEOUT_SECONDS: float = Field(default=540.0)
    MANUAL_TIMEOUT_SECONDS: float = Field(default=300.0)
    # Upper bound on concurrent runs (worker processes x threads)
    WORKER_MAX_INSTANCES: int = Field(default=10)

    # Matching policy
    NAME_SIMILARITY_THRESHOLD: float = Field(default=0.8)
    AMOUNT_TOLERANCE: float = Field(default=0.05)
    ORG_NAME_STOPWORDS: List[str] = Field(default_factory=lambda: list(DEFAULT_ORG_NAME_STOPWORDS))
    BANK_ALIASES: Dict[str, List[str]] = Field(default_factory=lambda: dict(DEFAULT_BANK_ALIASES))

    # Auth
    DEV_AUTH_BYPASS: bool = Field(default=False)
    AUTH_JWT_SECRET: Optional[str] = Field(default=None)
    AUTH_JWT_ALGORITHM: str = Field(default="HS256")
    AUTH_JWT_AUDIENCE: Optional[str] = Field(default=None)
    # Shared secret expected in X-Event-Secret on the donation-created hook
    EVENT_HOOK_SECRET: Optional[str] = Field(default=None)

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0)
    SENTRY_RELEASE: Optional[str] = Field(default=None)


# Instantiate global settings
settings = Settings()


def get_matching_policy() -> MatchingPolicy:
    """Build the matching policy from the current settings."""
    return MatchingPolicy(
        name_similarity_threshold=settings.NAME_SIMILARITY_THRESHOLD,
        amount_tolerance=settings.AMOUNT_TOLERANCE,
        org_name_stopwords=tuple(settings.ORG_NAME_STOPWORDS),
        bank_aliases={k: tuple(v) for k, v in settings.BANK_ALIASES.items()},
    )


def get_broker_url() -> str:
    """Return the Dramatiq broker URL, falling back to ``REDIS_URL``."""
    return settings.DRAMATIQ_BROKER_URL or os.getenv("DRAMATIQ_BROKER_URL") or settings.REDIS_URL
