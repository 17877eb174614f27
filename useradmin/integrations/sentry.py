# =============================================================================
# Sentry Error Tracking Integration
# =============================================================================
#
# Setup:
#   1. Create a Python project at sentry.io
#   2. Copy DSN to .env: SENTRY_DSN=https://...@sentry.io/...
#
# Usage:
#   init_sentry(settings) runs in the app lifespan (useradmin/api/app.py)
#
# =============================================================================

from __future__ import annotations

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from useradmin.config import Settings
from useradmin.core.errors import DomainError

logger = logging.getLogger(__name__)

# Expected client errors, never worth an event
IGNORED_STATUS_CODES = (401, 403, 404, 422)

SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key")


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry error tracking.

    Returns True if initialized, False if skipped.
    """
    if not settings.sentry_dsn:
        logger.info("SENTRY_DSN not set - error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            StarletteIntegration(transaction_style="endpoint"),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],
        # Accounts carry emails and phone numbers
        send_default_pii=False,
        before_send=filter_event,
        before_send_transaction=filter_transaction,
    )

    logger.info(f"Sentry initialized for {settings.environment}")
    return True


def filter_event(event: dict, hint: dict) -> dict | None:
    """Drop expected client errors and scrub credentials from requests."""
    if "exc_info" in hint:
        _, exc_value, _ = hint["exc_info"]
        status_code = getattr(exc_value, "status_code", None)
        if status_code in IGNORED_STATUS_CODES:
            return None
        if isinstance(exc_value, DomainError) and exc_value.status_code < 500:
            return None

    headers = event.get("request", {}).get("headers")
    if headers:
        for key in list(headers.keys()):
            if key.lower() in SENSITIVE_HEADERS:
                headers[key] = "[Filtered]"

    return event


def filter_transaction(event: dict, hint: dict) -> dict | None:
    """Skip health checks."""
    if event.get("transaction", "") in ("/health", "/healthz", "/ready"):
        return None
    return event
