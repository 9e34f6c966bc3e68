"""Entry point for the FastAPI application.

This module constructs the FastAPI app, includes all routers and sets
up startup and shutdown events.  Run it with uvicorn:

```bash
uvicorn donation_verifier.api.main:app --reload
```
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from donation_verifier.api.endpoints.health import router as health_router
from donation_verifier.api.error_handlers import generic_exception_handler, validation_exception_handler
from donation_verifier.api.routes.donations import router as donations_router
from donation_verifier.api.routes.events import router as events_router
from donation_verifier.core.config import settings
from donation_verifier.core.database import init_db
from donation_verifier.core.observability import init_sentry

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("Starting up...")
    if init_sentry("api"):
        logger.info("Sentry SDK initialized (api)")
    await init_db()
    yield
    logger.info("Shutting down...")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        lifespan=lifespan,
    )

    env_is_dev = (settings.ENVIRONMENT or "development").lower() == "development"
    allow_origins = ["*"] if env_is_dev else list(settings.BACKEND_CORS_ORIGINS or [])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=not env_is_dev,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register custom exception handlers
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(events_router)
    app.include_router(donations_router)
    return app


app = create_app()
