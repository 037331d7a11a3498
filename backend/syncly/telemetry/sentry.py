"""
Sentry Error Tracking
=====================

Centralized error tracking using Sentry.

Related files:
- syncly/main.py: Initializes Sentry on app startup
- syncly/deps.py: Sets user/shop context after identity and shop resolution

Environment Variables:
- SENTRY_DSN: Sentry project DSN (Sentry stays disabled when unset)
- ENVIRONMENT: Environment name (production, staging, development)
- RELEASE_VERSION: Release tag set by CI/CD (optional)
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = logging.getLogger(__name__)


def get_sentry_dsn() -> Optional[str]:
    return os.environ.get("SENTRY_DSN")


def init_sentry() -> bool:
    """
    Initialize Sentry SDK for FastAPI.

    Returns:
        True if Sentry was initialized, False when no DSN is configured.
    """
    dsn = get_sentry_dsn()
    if not dsn:
        logger.info("[SENTRY] SENTRY_DSN not set - error tracking disabled")
        return False

    environment = os.environ.get("ENVIRONMENT", "development")

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
            LoggingIntegration(
                level=logging.INFO,        # INFO+ as breadcrumbs
                event_level=logging.ERROR,  # ERROR+ as events
            ),
        ],
        traces_sample_rate=0.1,
        # Identity is attached explicitly after session resolution
        send_default_pii=False,
        release=os.environ.get("RELEASE_VERSION"),
    )

    logger.info(f"[SENTRY] Initialized for {environment} environment")
    return True


def set_user_context(user_id: str) -> None:
    """Attach the Clerk user id to subsequent events of this request."""
    sentry_sdk.set_user({"id": user_id})


def set_shop_context(shop_id: str) -> None:
    """Tag subsequent events with the resolved shop."""
    sentry_sdk.set_tag("shop_id", shop_id)


def capture_exception(exception: Exception, extra: Optional[dict] = None) -> None:
    """
    Capture a handled exception (e.g. a failed Graph API call) to Sentry.

    Args:
        exception: The exception to capture
        extra: Additional context to attach to the event
    """
    with sentry_sdk.new_scope() as scope:
        if extra:
            for key, value in extra.items():
                scope.set_extra(key, value)
        sentry_sdk.capture_exception(exception)
