"""Dramatiq task definitions for background processing.

Verifying a donation involves downloading an image and waiting on a
vision model, which is far too slow for the request that reports a new
donation.  The API therefore enqueues ``process_donation`` and a
Dramatiq worker runs the automatic pipeline.

To run these tasks start a worker pointed at the worker module:

```bash
dramatiq donation_verifier.worker --processes 2 --threads 5
```

The broker URL defaults to ``REDIS_URL``.  When ``ENVIRONMENT=test`` a
``StubBroker`` is installed so importing this module needs no Redis.

Failed runs are terminal (the donation is declined), so the actor is
declared with ``max_retries=0``.  ``TimeLimit`` is set slightly above
the in-process pipeline timeout so the pipeline gets to decline the
donation before the worker kills the message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker
from dramatiq.middleware import TimeLimit

from donation_verifier.core.config import get_broker_url, settings
from donation_verifier.core.database import create_engine, create_session_factory
from donation_verifier.models.schemas import ProcessingOutcome
from donation_verifier.services.pipeline import build_pipeline


logger = logging.getLogger(__name__)

# Grace period between the pipeline timeout and the hard actor limit
_TIME_LIMIT_GRACE_SECONDS = 30


def _configure_broker() -> dramatiq.Broker:
    if (settings.ENVIRONMENT or "").lower() == "test":
        broker: dramatiq.Broker = StubBroker()
    else:
        broker_url = get_broker_url()
        logger.info("Configuring Dramatiq with broker URL: %s", broker_url)
        broker = RedisBroker(url=broker_url)
    if not any(isinstance(m, TimeLimit) for m in broker.middleware):
        broker.add_middleware(TimeLimit())
    dramatiq.set_broker(broker)
    return broker


broker = _configure_broker()


async def run_created_donation(donation_id: str) -> Optional[ProcessingOutcome]:
    """Run the automatic pipeline with a database engine private to this loop."""
    engine = create_engine()
    try:
        pipeline = build_pipeline(create_session_factory(engine))
        return await pipeline.process_created(donation_id)
    finally:
        await engine.dispose()


@dramatiq.actor(
    queue_name="donations",
    max_retries=0,
    time_limit=int((settings.PIPELINE_TIMEOUT_SECONDS + _TIME_LIMIT_GRACE_SECONDS) * 1000),
)
def process_donation(donation_id: str) -> None:
    """Verify a newly created donation."""
    outcome = asyncio.run(run_created_donation(donation_id))
    if outcome is None:
        logger.info("process_donation %s: nothing to do", donation_id)
    else:
        logger.info(
            "process_donation %s finished state=%s message=%s",
            donation_id,
            outcome.state.value if outcome.state else None,
            outcome.message,
        )
