"""Health check endpoint.

WHAT: GET /api/health reports liveness plus whether required configuration
      (database URL, OpenAI key) is present.
WHY: Load balancers and uptime checks need an unauthenticated check; a
     misconfigured deploy should fail the check with 503 instead of serving
     errors on every dashboard call.
"""

import logging
import time
from datetime import datetime

from fastapi import APIRouter, Depends, Response, status

from ..deps import Settings, get_settings
from ..schemas import HealthChecks, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])

START_TIME = time.monotonic()


@router.get("/health", response_model=HealthResponse, summary="Health check")
def health(response: Response, settings: Settings = Depends(get_settings)):
    """Liveness and configuration check. Does not require authentication."""
    checks = HealthChecks(
        api=True,
        environment=bool(settings.DATABASE_URL and settings.OPENAI_API_KEY),
    )
    healthy = checks.api and checks.environment

    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    if not healthy:
        logger.warning("[HEALTH] Degraded: required configuration missing")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.utcnow(),
        version=settings.APP_VERSION,
        uptime=round(time.monotonic() - START_TIME, 3),
        checks=checks,
    )
