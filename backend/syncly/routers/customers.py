"""Customer list and detail endpoints (shop-scoped)."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_current_shop
from ..models import Shop
from ..schemas import (
    CustomerDetail,
    CustomerListResponse,
    CustomerOrderOut,
    CustomerOut,
    CustomerResponse,
)
from ..services.serializers import serialize_chat
from ..services.shop_scope import ShopScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard/customers", tags=["Customers"])

CUSTOMER_CHAT_LIMIT = 10


@router.get("", response_model=CustomerListResponse)
def list_customers(
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """Customers ordered by total spent, biggest first."""
    customers = ShopScope(db, shop.id).list_customers()
    return CustomerListResponse(customers=[CustomerOut.model_validate(c) for c in customers])


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(
    customer_id: str,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """One customer with their orders and the 10 latest chat rows."""
    scope = ShopScope(db, shop.id)
    customer = scope.get_customer(customer_id)
    base = CustomerOut.model_validate(customer)

    detail = CustomerDetail(
        **base.model_dump(),
        orders=[CustomerOrderOut.model_validate(o) for o in scope.customer_orders(customer.id)],
        chat_history=[serialize_chat(c) for c in scope.customer_chats(customer.id, CUSTOMER_CHAT_LIMIT)],
    )
    return CustomerResponse(customer=detail)
