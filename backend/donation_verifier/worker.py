"""Dramatiq worker configuration.

This module initialises observability and imports all tasks so they are
registered when the worker starts.

Run with:
    dramatiq donation_verifier.worker
"""

import logging

from donation_verifier.core.config import settings
from donation_verifier.core.observability import init_sentry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

if init_sentry("worker"):
    logger.info("Sentry SDK initialized for worker")

# Import tasks to register them with the configured broker
from donation_verifier.core.tasks import broker, process_donation  # noqa: E402,F401

logger.info(
    "Worker ready provider=%s pipeline_timeout=%ss max_instances=%s",
    settings.AI_PROVIDER,
    settings.PIPELINE_TIMEOUT_SECONDS,
    settings.WORKER_MAX_INSTANCES,
)
