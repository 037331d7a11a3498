"""Messenger webhook for connected Facebook Pages.

WHAT:
    - GET  /api/webhook   subscription handshake (hub.mode / hub.verify_token / hub.challenge)
    - POST /api/webhook   page events; each text message is stored and, when
                          the assistant is on and not paused, answered by AI
WHY:
    This is the only inbound path for customer messages. Deliveries are
    signed by Meta with the app secret (X-Hub-Signature-256) and routed to the
    shop whose `facebook_page_id` matches the entry id.
REFERENCES:
    - https://developers.facebook.com/docs/graph-api/webhooks/getting-started
    - syncly/services/messenger.py
    - syncly/routers/clerk_webhooks.py (same signed-delivery handling)
"""

import hashlib
import hmac
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import Settings, get_settings
from ..errors import ValidationError
from ..services import messenger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["Webhooks"])


def _verify_meta_signature(payload: bytes, signature_header: Optional[str], app_secret: str) -> bool:
    """Check `sha256=<hex>` against an HMAC-SHA256 of the raw body."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(app_secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header[len("sha256="):])


@router.get("", response_class=PlainTextResponse, summary="Messenger subscription handshake")
def verify_subscription(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
    settings: Settings = Depends(get_settings),
):
    expected = settings.FACEBOOK_VERIFY_TOKEN
    if hub_mode == "subscribe" and expected and hub_verify_token and hmac.compare_digest(hub_verify_token, expected):
        logger.info("[MESSENGER_WEBHOOK] Subscription verified")
        return PlainTextResponse(hub_challenge or "")

    logger.warning(f"[MESSENGER_WEBHOOK] Verification failed (mode={hub_mode})")
    raise HTTPException(status_code=403, detail="Forbidden")


@router.post("", summary="Receive Messenger events")
async def receive_messenger_events(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    signature: Optional[str] = Header(None, alias="x-hub-signature-256"),
):
    """Store incoming messages and answer them.

    Raises:
        HTTPException 403: Signature missing or wrong (when FACEBOOK_APP_SECRET is set)
        ValidationError 400: Body is not JSON or not a `page` object
    """
    body = await request.body()

    if settings.FACEBOOK_APP_SECRET:
        if not _verify_meta_signature(body, signature, settings.FACEBOOK_APP_SECRET):
            logger.warning("[MESSENGER_WEBHOOK] Invalid webhook signature")
            raise HTTPException(status_code=403, detail="Invalid webhook signature")
    else:
        logger.warning("[MESSENGER_WEBHOOK] FACEBOOK_APP_SECRET not set; signature not checked")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON payload") from None

    if not isinstance(payload, dict) or payload.get("object") != "page":
        raise ValidationError("Invalid object type")

    handled = 0
    for entry in payload.get("entry") or []:
        outcomes = await messenger.handle_entry(db, entry, openai_api_key=settings.OPENAI_API_KEY)
        handled += len(outcomes)

    logger.info(f"[MESSENGER_WEBHOOK] Processed {handled} message(s)")
    return {"status": "ok"}
