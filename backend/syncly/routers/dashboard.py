"""Dashboard aggregation endpoints.

WHAT:
    - GET  /api/dashboard/stats                 home page counters + recent activity
    - GET  /api/dashboard/reports?period=       revenue/best sellers/chart/status report
    - GET  /api/dashboard/conversations         chat history grouped per customer
    - POST /api/dashboard/conversations/reply   owner replies by hand through Messenger
    - GET  /api/dashboard/active-carts          open carts with items

WHY:
    Each endpoint composes several shop-scoped queries into one explicit
    response record. A failing query fails the whole request (generic 500).

REFERENCES:
    - syncly/services/reports.py (assemblers)
    - syncly/services/shop_scope.py (queries)
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_current_shop
from ..models import OrderStatusEnum, Shop
from ..schemas import (
    ActiveCartsResponse,
    ConversationListResponse,
    DashboardStats,
    ReplyRequest,
    ReplyResponse,
    ReportResponse,
    StatsShop,
)
from ..security import decrypt_secret
from ..services import facebook_graph
from ..services.reports import build_report, format_active_carts, summarize_conversations
from ..services.serializers import serialize_order, serialize_recent_chat
from ..services.shop_scope import ShopScope

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/dashboard",
    tags=["Dashboard"],
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Shop not found"}},
)

CONVERSATION_ROWS = 200
RECENT_ORDERS = 10
RECENT_CHATS = 5
# How long the assistant stays quiet after the owner answers by hand
HUMAN_REPLY_AI_PAUSE = timedelta(minutes=30)


@router.get("/stats", response_model=DashboardStats, summary="Dashboard counters")
def get_stats(
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    scope = ShopScope(db, shop.id)
    today_start = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)

    stats = DashboardStats(
        today_orders=scope.count_orders(start=today_start),
        pending_orders=scope.count_orders(status=OrderStatusEnum.pending),
        total_revenue=round(scope.revenue()),
        total_customers=scope.count_customers(),
        recent_orders=[serialize_order(o) for o in scope.list_orders(limit=RECENT_ORDERS)],
        recent_chats=[serialize_recent_chat(c) for c in scope.recent_chats(RECENT_CHATS)],
        shop=StatsShop(id=shop.id, name=shop.name),
    )
    logger.info(f"[DASHBOARD_STATS] shop={shop.id} today={stats.today_orders} pending={stats.pending_orders}")
    return stats


@router.get("/reports", response_model=ReportResponse, summary="Period report")
def get_report(
    period: Optional[str] = Query("month", description="today | week | month | year"),
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """Revenue, best sellers, daily chart, customer counts and status histogram.

    Unknown periods fall back to `month`.
    """
    return build_report(ShopScope(db, shop.id), period)


@router.get("/conversations", response_model=ConversationListResponse, summary="Conversations")
def list_conversations(
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    rows = ShopScope(db, shop.id).recent_chats(CONVERSATION_ROWS)
    return ConversationListResponse(conversations=summarize_conversations(rows))


@router.post("/conversations/reply", response_model=ReplyResponse, summary="Reply as the shop owner")
async def reply_to_conversation(
    payload: ReplyRequest,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """Send a human reply through Messenger and pause the assistant for that customer."""
    scope = ShopScope(db, shop.id)
    customer = scope.get_customer(payload.customer_id)
    if not customer.facebook_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer has no Messenger id")

    if not shop.facebook_page_access_token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Facebook page is not connected")

    page_token = decrypt_secret(shop.facebook_page_access_token, context=f"page:{shop.facebook_page_id}")
    message_id = await facebook_graph.send_text_message(page_token, customer.facebook_id, payload.message)

    scope.add_chat(customer.id, message="", response=payload.message, intent="human_reply")
    paused_until = datetime.utcnow() + HUMAN_REPLY_AI_PAUSE
    scope.pause_ai(customer, paused_until)

    logger.info(f"[DASHBOARD_REPLY] shop={shop.id} customer={customer.id} ai_paused_until={paused_until}")
    return ReplyResponse(success=True, message_id=message_id, ai_paused_until=paused_until)


@router.get("/active-carts", response_model=ActiveCartsResponse, summary="Open carts")
def list_active_carts(
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    carts = ShopScope(db, shop.id).list_carts()
    return ActiveCartsResponse(carts=format_active_carts(carts))
