"""AI assistant preview endpoint.

WHAT:
    POST /api/chat/test lets the owner try the shop's assistant from the
    dashboard. The reply uses the plan's model and token budget.

WHY:
    A preview is not a customer conversation, so nothing is written to chat
    history and it does not use up the monthly quota. An exhausted quota still
    blocks previews, matching what customers would get.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import Settings, get_current_shop, get_settings
from ..errors import PlanLimitError
from ..models import Shop
from ..plans import check_message_limit, get_plan_limits
from ..schemas import ChatTestRequest, ChatTestResponse
from ..services import ai_chat
from ..services.shop_scope import ShopScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["AI Chat"])


@router.post("/test", response_model=ChatTestResponse)
async def preview_chat(
    payload: ChatTestRequest,
    shop: Shop = Depends(get_current_shop),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
):
    scope = ShopScope(db, shop.id)
    month_start = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    used = scope.count_messages(month_start)
    quota = check_message_limit(shop.subscription_plan, used)
    if not quota.allowed:
        raise PlanLimitError(
            "Monthly AI message limit reached",
            details={"limit": quota.limit, "remaining": 0},
        )

    limits = get_plan_limits(shop.subscription_plan)
    prompt = ai_chat.build_system_prompt(shop, scope.list_products(active_only=True), payload.shop_context)
    reply = await ai_chat.generate_reply(
        api_key=settings.OPENAI_API_KEY,
        limits=limits,
        system_prompt=prompt,
        message=payload.message,
    )

    return ChatTestResponse(
        success=True,
        message=reply,
        model=limits.model,
        remaining_messages=quota.remaining,
    )
