"""Web-push subscription endpoints for the dashboard PWA."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import Settings, get_current_shop, get_settings
from ..models import Shop
from ..schemas import (
    PushSubscribeRequest,
    PushSubscribeResponse,
    PushUnsubscribeRequest,
    SuccessResponse,
    VapidResponse,
)
from ..services.shop_scope import ShopScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/push", tags=["Push"])


@router.post("/subscribe", response_model=PushSubscribeResponse)
def subscribe(
    payload: PushSubscribeRequest,
    user_agent: Optional[str] = Header(default=None, alias="user-agent"),
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """Register (or refresh) this browser's push endpoint for the shop."""
    subscription = ShopScope(db, shop.id).upsert_push_subscription(
        endpoint=payload.subscription.endpoint,
        p256dh=payload.subscription.keys.p256dh,
        auth=payload.subscription.keys.auth,
        user_agent=user_agent,
    )
    logger.info(f"[PUSH] shop={shop.id} subscription={subscription.id}")
    return PushSubscribeResponse(success=True, message="Subscribed to push notifications", id=subscription.id)


@router.delete("/subscribe", response_model=SuccessResponse)
def unsubscribe(
    payload: PushUnsubscribeRequest,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    deleted = ShopScope(db, shop.id).delete_push_subscription(payload.endpoint)
    logger.info(f"[PUSH] shop={shop.id} removed {deleted} subscription(s)")
    return SuccessResponse(success=True, message="Unsubscribed from push notifications")


@router.get("/vapid", response_model=VapidResponse)
def vapid_public_key(settings: Settings = Depends(get_settings)):
    """Public VAPID key the browser needs to create a subscription."""
    if not settings.VAPID_PUBLIC_KEY:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="VAPID key not configured")
    return VapidResponse(public_key=settings.VAPID_PUBLIC_KEY)
