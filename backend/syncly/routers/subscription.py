"""Subscription catalog and current-plan endpoints."""

import logging
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_current_identity, get_current_shop
from ..models import Plan, Shop, Subscription
from ..plans import check_message_limit, check_shop_limit, get_plan_limits, is_paid_plan
from ..schemas import (
    CurrentSubscriptionResponse,
    PlanLimitsOut,
    PlanListResponse,
    PlanOut,
    SubscriptionOut,
    UsageOut,
)
from ..services.shop_resolver import account_plan, list_owned_shops
from ..services.shop_scope import ShopScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscription", tags=["Subscription"])


@router.get("/plans", response_model=PlanListResponse, summary="Active pricing plans")
def list_plans(db: Session = Depends(get_db)):
    """Public catalog, ordered by `sort_order`. Read-only."""
    plans = (
        db.query(Plan)
        .filter(Plan.is_active.is_(True))
        .order_by(Plan.sort_order.asc(), Plan.name.asc())
        .all()
    )
    return PlanListResponse(plans=[PlanOut.model_validate(p) for p in plans])


@router.get("/current", response_model=CurrentSubscriptionResponse, summary="Current plan and usage")
def current_subscription(
    shop: Shop = Depends(get_current_shop),
    identity: str = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    scope = ShopScope(db, shop.id)
    limits = get_plan_limits(shop.subscription_plan)
    month_start = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    messages_used = scope.count_messages(month_start)
    message_check = check_message_limit(shop.subscription_plan, messages_used)
    owned = len(list_owned_shops(db, identity))
    shop_check = check_shop_limit(account_plan(db, identity), owned)

    subscription = (
        db.query(Subscription)
        .filter(Subscription.shop_id == shop.id)
        .order_by(Subscription.created_at.desc())
        .first()
    )
    subscription_out = None
    if subscription is not None:
        subscription_out = SubscriptionOut(
            id=subscription.id,
            status=subscription.status.value if hasattr(subscription.status, "value") else str(subscription.status),
            billing_cycle=subscription.billing_cycle,
            current_period_start=subscription.current_period_start,
            current_period_end=subscription.current_period_end,
            plan=PlanOut.model_validate(subscription.plan) if subscription.plan else None,
        )

    usage = UsageOut(
        messages_this_month=messages_used,
        messages_limit=message_check.limit,
        messages_remaining=message_check.remaining,
        products=scope.count_products(),
        customers=scope.count_customers(),
        orders=scope.count_orders(),
        orders_this_month=scope.count_orders(start=month_start),
        revenue_this_month=scope.revenue(start=month_start),
        shops=owned,
        shops_limit=shop_check.limit,
    )

    return CurrentSubscriptionResponse(
        plan=limits.plan,
        is_paid=is_paid_plan(shop.subscription_plan),
        limits=PlanLimitsOut(**asdict(limits)),
        subscription=subscription_out,
        usage=usage,
        has_subscription=subscription is not None,
    )
