"""
Telemetry Module
================

Observability stack for the Syncly API.

Components:
- sentry.py: Error tracking with user/shop context

Usage:
    from syncly.telemetry import init_observability

    @app.on_event("startup")
    async def startup():
        init_observability()

Related modules:
- syncly/main.py: Initializes observability on startup
- syncly/deps.py: Sets user and shop context after resolution
"""

from syncly.telemetry.sentry import (
    init_sentry,
    set_user_context,
    set_shop_context,
    capture_exception,
)


def init_observability() -> dict:
    """
    Initialize all observability tools.

    Returns:
        Dict with status of each tool initialization, e.g. {"sentry": False}.
    """
    return {
        "sentry": init_sentry(),
    }


__all__ = [
    "init_observability",
    "init_sentry",
    "set_user_context",
    "set_shop_context",
    "capture_exception",
]
