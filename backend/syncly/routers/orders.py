"""Dashboard orders endpoints.

WHAT:
    List the shop's orders (optionally bounded by creation time) and change
    order status, one order at a time or in a batch (POST /api/orders/bulk).

WHY:
    Status changes are the owner's main action on the orders page. The update
    reads the order by (id, shop) first, so ids from other shops return 404.
    The batch update filters on the shop as well and reports how many rows
    actually changed.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_current_shop
from ..models import Shop
from ..schemas import (
    BulkOrderStatusResponse,
    BulkOrderStatusUpdate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from ..services.serializers import serialize_order
from ..services.shop_scope import ShopScope

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/dashboard/orders",
    tags=["Orders"],
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Shop or order not found"}},
)


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Columns store naive UTC
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@router.get("", response_model=OrderListResponse, summary="List orders")
def list_orders(
    from_: Optional[datetime] = Query(None, alias="from", description="Inclusive lower bound on created_at (ISO 8601)"),
    to: Optional[datetime] = Query(None, description="Inclusive upper bound on created_at (ISO 8601)"),
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    scope = ShopScope(db, shop.id)
    orders = scope.list_orders(start=_to_naive_utc(from_), end=_to_naive_utc(to))
    return OrderListResponse(orders=[serialize_order(order) for order in orders])


@router.patch("", response_model=OrderResponse, summary="Update order status")
def update_order_status(
    payload: OrderStatusUpdate,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    scope = ShopScope(db, shop.id)
    order = scope.update_order_status(payload.id, payload.status)
    return OrderResponse(order=serialize_order(order))


bulk_router = APIRouter(
    prefix="/api/orders",
    tags=["Orders"],
    responses={401: {"description": "Not authenticated"}, 404: {"description": "Shop not found"}},
)


@bulk_router.post("/bulk", response_model=BulkOrderStatusResponse, summary="Update many orders' status")
def bulk_update_order_status(
    payload: BulkOrderStatusUpdate,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """Set one status on a batch of orders.

    Only orders owned by the resolved shop change; `updatedCount` reports how
    many did, so foreign or unknown ids simply do not count.
    """
    if not payload.order_ids:
        return BulkOrderStatusResponse(success=True, updated_count=0, message="0 захиалга шинэчлэгдлээ")

    updated = ShopScope(db, shop.id).bulk_update_order_status(payload.order_ids, payload.status)
    return BulkOrderStatusResponse(success=True, updated_count=updated, message=f"{updated} захиалга шинэчлэгдлээ")
