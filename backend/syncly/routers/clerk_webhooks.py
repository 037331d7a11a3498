"""Clerk webhook handlers for user lifecycle events.

WHAT: Receives events from Clerk when users are created/updated/deleted
WHY: Every signed-up user needs a shop row to land on; Clerk is the only
     source of identity, so shops follow the Clerk user lifecycle.
REFERENCES:
    - https://clerk.com/docs/integrations/webhooks
    - https://docs.svix.com/receiving/verifying-payloads/how
    - syncly/services/shop_factory.py

Events handled:
    - user.created: create the default shop (skipped if one exists)
    - user.updated: fill the shop's owner name when it is still empty
    - user.deleted: deactivate the user's shops (rows are kept for orders)
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import Settings, get_settings
from ..models import Shop
from ..services.shop_factory import create_default_shop, display_name

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["Webhooks"])

TIMESTAMP_TOLERANCE_SECONDS = 300


def _verify_clerk_signature(
    payload: bytes,
    svix_id: str,
    svix_timestamp: str,
    svix_signature: str,
    secret: str,
) -> bool:
    """Verify a Svix HMAC-SHA256 signature.

    Parameters:
        payload: Raw request body bytes
        svix_id: Unique message ID from svix-id header
        svix_timestamp: Unix timestamp from svix-timestamp header
        svix_signature: "v1,<sig> v1,<sig> ..." from svix-signature header
        secret: Signing secret from the Clerk dashboard (whsec_...)

    Returns:
        bool: True if any listed v1 signature matches
    """
    if secret.startswith("whsec_"):
        secret = secret[6:]
    try:
        secret_bytes = base64.b64decode(secret)
    except (binascii.Error, ValueError):
        logger.error("[CLERK_WEBHOOK] Signing secret is not valid base64")
        return False

    signed_payload = f"{svix_id}.{svix_timestamp}.{payload.decode('utf-8')}"
    expected = base64.b64encode(
        hmac.new(secret_bytes, signed_payload.encode("utf-8"), hashlib.sha256).digest()
    ).decode("utf-8")

    for sig in svix_signature.split(" "):
        if sig.startswith("v1,") and hmac.compare_digest(expected, sig[3:]):
            return True
    return False


@router.post("/clerk")
async def handle_clerk_webhook(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    svix_id: str = Header(None, alias="svix-id"),
    svix_timestamp: str = Header(None, alias="svix-timestamp"),
    svix_signature: str = Header(None, alias="svix-signature"),
):
    """Handle a Clerk webhook delivery.

    Raises:
        HTTPException 400: Missing headers, bad signature, stale timestamp, bad JSON
        HTTPException 500: Webhook secret not configured
    """
    if not settings.CLERK_WEBHOOK_SECRET:
        logger.error("[CLERK_WEBHOOK] Webhook secret not configured")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    body = await request.body()

    if not all([svix_id, svix_timestamp, svix_signature]):
        logger.warning("[CLERK_WEBHOOK] Missing required Svix headers")
        raise HTTPException(status_code=400, detail="Missing webhook signature headers")

    if not _verify_clerk_signature(body, svix_id, svix_timestamp, svix_signature, settings.CLERK_WEBHOOK_SECRET):
        logger.warning("[CLERK_WEBHOOK] Invalid webhook signature")
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    # Replay protection
    try:
        age_seconds = abs(int(time.time()) - int(svix_timestamp))
    except (ValueError, TypeError):
        logger.warning(f"[CLERK_WEBHOOK] Invalid timestamp format: {svix_timestamp}")
        raise HTTPException(status_code=400, detail="Invalid webhook timestamp") from None
    if age_seconds > TIMESTAMP_TOLERANCE_SECONDS:
        logger.warning(f"[CLERK_WEBHOOK] Stale webhook rejected: age={age_seconds}s")
        raise HTTPException(status_code=400, detail="Webhook timestamp too old (possible replay attack)")

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        logger.error("[CLERK_WEBHOOK] Invalid JSON payload")
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from None

    event_type = payload.get("type")
    data = payload.get("data") or {}
    logger.info(f"[CLERK_WEBHOOK] Received event: {event_type}")

    if event_type == "user.created":
        return _handle_user_created(db, data)
    elif event_type == "user.updated":
        return _handle_user_updated(db, data)
    elif event_type == "user.deleted":
        return _handle_user_deleted(db, data)

    logger.info(f"[CLERK_WEBHOOK] Ignoring event type: {event_type}")
    return {"received": True, "status": "ignored", "event_type": event_type}


def _handle_user_created(db: Session, data: dict[str, Any]) -> dict:
    user_id = data.get("id")
    if not user_id:
        raise HTTPException(status_code=400, detail="Missing user id")

    shop = create_default_shop(db, user_id, data)
    if shop is None:
        return {"received": True, "status": "already_exists"}

    db.commit()
    logger.info(f"[CLERK_WEBHOOK] Created shop {shop.id} for {user_id}")
    return {"received": True, "status": "created", "shop_id": str(shop.id)}


def _handle_user_updated(db: Session, data: dict[str, Any]) -> dict:
    user_id = data.get("id")
    full_name = display_name(data)
    if not user_id or not full_name:
        return {"received": True, "status": "unchanged"}

    updated = (
        db.query(Shop)
        .filter(Shop.user_id == user_id, Shop.owner_name.is_(None))
        .update({Shop.owner_name: full_name}, synchronize_session=False)
    )
    db.commit()
    logger.info(f"[CLERK_WEBHOOK] Filled owner name on {updated} shop(s) for {user_id}")
    return {"received": True, "status": "updated", "shops": updated}


def _handle_user_deleted(db: Session, data: dict[str, Any]) -> dict:
    user_id = data.get("id")
    if not user_id:
        return {"received": True, "status": "unchanged"}

    deactivated = (
        db.query(Shop)
        .filter(Shop.user_id == user_id)
        .update({Shop.is_active: False}, synchronize_session=False)
    )
    db.commit()
    logger.info(f"[CLERK_WEBHOOK] Deactivated {deactivated} shop(s) for {user_id}")
    return {"received": True, "status": "deactivated", "shops": deactivated}
