"""Logfire cloud observability initialization and instrumentation."""

import logging

import logfire
from fastapi import FastAPI

from wagerfeed import __version__
from wagerfeed.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings, app: FastAPI | None = None) -> bool:
    """
    Initialize Logfire with instrumentation.

    Call once at startup, before the storage client is opened.

    Instruments:
    - HTTPX clients (Supabase REST, Storage and Auth calls)
    - FastAPI request handling, when an app is given
    - Python logging (bridges to Logfire)

    Args:
        settings: Application settings containing the Logfire token
        app: FastAPI application to instrument

    Returns:
        True when Logfire was configured.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="wagerfeed",
            service_version=__version__,
            environment=settings.environment,
        )

        logfire.instrument_httpx()

        if app is not None:
            logfire.instrument_fastapi(app)

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("✓ Logfire cloud tracking initialized")
        return True

    except Exception as e:
        # Observability is optional; keep serving.
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
