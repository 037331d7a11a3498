"""Scoped data gateway.

WHAT:
    `ShopScope` bundles every customer/order/product/chat/cart/push query the
    dashboard needs, each one filtered by the resolved shop id.

WHY:
    - Tenant isolation lives in one place instead of being repeated (and
      occasionally forgotten) in every router.
    - Updates and deletes read the row by (id, shop_id) first, so a cross-tenant
      id surfaces as ResourceNotFoundError (404) instead of a silent 0-row write.

REFERENCES:
    - syncly/services/shop_resolver.py (produces the shop this scope wraps)
    - syncly/routers/dashboard.py, orders.py, products.py, customers.py
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from ..errors import ResourceNotFoundError, ValidationError
from ..models import (
    Cart,
    CartItem,
    ChatHistory,
    Customer,
    Order,
    OrderItem,
    OrderStatusEnum,
    Product,
    PushSubscription,
    REVENUE_STATUSES,
)

logger = logging.getLogger(__name__)


# Fields the dashboard may change on a product
PRODUCT_UPDATABLE_FIELDS = (
    "name",
    "description",
    "price",
    "stock",
    "type",
    "colors",
    "sizes",
    "images",
    "discount_percent",
    "is_active",
)

# Updatable fields backed by NOT NULL columns
PRODUCT_REQUIRED_FIELDS = ("name", "price", "type", "colors", "sizes", "images", "is_active")


def _parse_id(value: Any, resource: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ResourceNotFoundError(f"{resource} not found") from None


class ShopScope:
    """Tenant-scoped queries for one shop."""

    def __init__(self, db: Session, shop_id: uuid.UUID):
        self.db = db
        self.shop_id = shop_id

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def _orders(self):
        return self.db.query(Order).filter(Order.shop_id == self.shop_id)

    def list_orders(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Order]:
        """Orders newest first with customer and items (with products) loaded."""
        query = self._orders().options(
            joinedload(Order.customer),
            selectinload(Order.items).joinedload(OrderItem.product),
        )
        if start is not None:
            query = query.filter(Order.created_at >= start)
        if end is not None:
            query = query.filter(Order.created_at <= end)
        query = query.order_by(Order.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_order(self, order_id: Any) -> Order:
        order = (
            self._orders()
            .options(
                joinedload(Order.customer),
                selectinload(Order.items).joinedload(OrderItem.product),
            )
            .filter(Order.id == _parse_id(order_id, "Order"))
            .first()
        )
        if order is None:
            raise ResourceNotFoundError("Order not found")
        return order

    def update_order_status(self, order_id: Any, new_status: OrderStatusEnum) -> Order:
        order = self.get_order(order_id)
        previous = order.status
        order.status = new_status
        order.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"[ORDERS] shop={self.shop_id} order={order.id} {previous} -> {new_status}")
        return order

    def bulk_update_order_status(self, order_ids: Iterable[uuid.UUID], new_status: OrderStatusEnum) -> int:
        """Set the status of every listed order this shop owns.

        Ids belonging to other shops (or to nothing) are skipped; the return
        value counts only the rows actually changed.
        """
        ids = list(order_ids)
        if not ids:
            return 0
        updated = (
            self._orders()
            .filter(Order.id.in_(ids))
            .update({Order.status: new_status, Order.updated_at: datetime.utcnow()}, synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"[ORDERS] shop={self.shop_id} bulk status -> {new_status}: {updated}/{len(ids)} orders")
        return updated

    def count_orders(self, start: Optional[datetime] = None, status: Optional[OrderStatusEnum] = None) -> int:
        query = self.db.query(func.count(Order.id)).filter(Order.shop_id == self.shop_id)
        if start is not None:
            query = query.filter(Order.created_at >= start)
        if status is not None:
            query = query.filter(Order.status == status)
        return int(query.scalar() or 0)

    def revenue(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> float:
        """Sum of total_amount over revenue-status orders in [start, end)."""
        query = (
            self.db.query(func.coalesce(func.sum(Order.total_amount), 0))
            .filter(Order.shop_id == self.shop_id)
            .filter(Order.status.in_(REVENUE_STATUSES))
        )
        if start is not None:
            query = query.filter(Order.created_at >= start)
        if end is not None:
            query = query.filter(Order.created_at < end)
        return float(query.scalar() or 0)

    def revenue_orders(self, start: datetime, end: Optional[datetime] = None) -> List[Tuple[datetime, float]]:
        """(created_at, total_amount) for revenue-status orders in the window."""
        query = (
            self.db.query(Order.created_at, Order.total_amount)
            .filter(Order.shop_id == self.shop_id)
            .filter(Order.status.in_(REVENUE_STATUSES))
            .filter(Order.created_at >= start)
        )
        if end is not None:
            query = query.filter(Order.created_at < end)
        return [(created_at, float(amount or 0)) for created_at, amount in query.all()]

    def order_statuses(self, start: datetime) -> List[str]:
        """Status of every order created since `start` (all statuses)."""
        rows = (
            self.db.query(Order.status)
            .filter(Order.shop_id == self.shop_id)
            .filter(Order.created_at >= start)
            .all()
        )
        return [status.value if isinstance(status, OrderStatusEnum) else str(status) for (status,) in rows]

    def sold_items(self, start: datetime) -> List[Tuple[OrderItem, Optional[Product]]]:
        """Order items of revenue-status orders since `start`, with their products."""
        return (
            self.db.query(OrderItem, Product)
            .join(Order, OrderItem.order_id == Order.id)
            .outerjoin(Product, OrderItem.product_id == Product.id)
            .filter(Order.shop_id == self.shop_id)
            .filter(Order.status.in_(REVENUE_STATUSES))
            .filter(Order.created_at >= start)
            .all()
        )

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def _customers(self):
        return self.db.query(Customer).filter(Customer.shop_id == self.shop_id)

    def list_customers(self) -> List[Customer]:
        return self._customers().order_by(Customer.total_spent.desc()).all()

    def get_customer(self, customer_id: Any) -> Customer:
        customer = self._customers().filter(Customer.id == _parse_id(customer_id, "Customer")).first()
        if customer is None:
            raise ResourceNotFoundError("Customer not found")
        return customer

    def customer_orders(self, customer_id: uuid.UUID) -> List[Order]:
        return (
            self._orders()
            .filter(Order.customer_id == customer_id)
            .order_by(Order.created_at.desc())
            .all()
        )

    def count_customers(self, start: Optional[datetime] = None, vip_only: bool = False) -> int:
        query = self.db.query(func.count(Customer.id)).filter(Customer.shop_id == self.shop_id)
        if start is not None:
            query = query.filter(Customer.created_at >= start)
        if vip_only:
            query = query.filter(Customer.is_vip.is_(True))
        return int(query.scalar() or 0)

    def get_or_create_messenger_customer(self, facebook_id: str) -> Customer:
        """Customer for a Messenger sender, created on first contact."""
        customer = self._customers().filter(Customer.facebook_id == facebook_id).first()
        if customer is None:
            customer = Customer(shop_id=self.shop_id, facebook_id=facebook_id)
            self.db.add(customer)
            self.db.commit()
            self.db.refresh(customer)
            logger.info(f"[CUSTOMERS] shop={self.shop_id} new messenger customer={customer.id}")
        return customer

    def set_customer_phone(self, customer: Customer, phone: str) -> None:
        customer.phone = phone
        self.db.commit()

    def pause_ai(self, customer: Customer, until: datetime) -> None:
        customer.ai_paused_until = until
        self.db.commit()

    # ------------------------------------------------------------------
    # Chat history
    # ------------------------------------------------------------------

    def _chats(self):
        return self.db.query(ChatHistory).filter(ChatHistory.shop_id == self.shop_id)

    def recent_chats(self, limit: int) -> List[ChatHistory]:
        return (
            self._chats()
            .options(joinedload(ChatHistory.customer))
            .order_by(ChatHistory.created_at.desc())
            .limit(limit)
            .all()
        )

    def customer_chats(self, customer_id: uuid.UUID, limit: int) -> List[ChatHistory]:
        return (
            self._chats()
            .filter(ChatHistory.customer_id == customer_id)
            .order_by(ChatHistory.created_at.desc())
            .limit(limit)
            .all()
        )

    def count_messages(self, start: datetime) -> int:
        return int(
            self.db.query(func.count(ChatHistory.id))
            .filter(ChatHistory.shop_id == self.shop_id)
            .filter(ChatHistory.created_at >= start)
            .scalar()
            or 0
        )

    def add_chat(
        self,
        customer_id: Optional[uuid.UUID],
        *,
        message: str,
        response: Optional[str],
        intent: Optional[str] = None,
    ) -> ChatHistory:
        entry = ChatHistory(
            shop_id=self.shop_id,
            customer_id=customer_id,
            message=message,
            response=response,
            intent=intent,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def _products(self):
        return self.db.query(Product).filter(Product.shop_id == self.shop_id)

    def list_products(self, active_only: bool = False) -> List[Product]:
        query = self._products()
        if active_only:
            query = query.filter(Product.is_active.is_(True))
        return query.order_by(Product.created_at.desc()).all()

    def count_products(self) -> int:
        return int(
            self.db.query(func.count(Product.id)).filter(Product.shop_id == self.shop_id).scalar() or 0
        )

    def get_product(self, product_id: Any) -> Product:
        product = self._products().filter(Product.id == _parse_id(product_id, "Product")).first()
        if product is None:
            raise ResourceNotFoundError("Product not found")
        return product

    def add_products(self, rows: Iterable[Dict[str, Any]]) -> List[Product]:
        products = [Product(shop_id=self.shop_id, **row) for row in rows]
        self.db.add_all(products)
        self.db.flush()
        return products

    def update_product(self, product_id: Any, fields: Dict[str, Any]) -> Product:
        """Apply a partial update; explicit nulls on required fields are rejected."""
        product = self.get_product(product_id)
        nulled = [key for key in PRODUCT_REQUIRED_FIELDS if key in fields and fields[key] is None]
        if nulled:
            raise ValidationError("Fields cannot be null", details={"fields": nulled})
        for key, value in fields.items():
            if key in PRODUCT_UPDATABLE_FIELDS:
                setattr(product, key, value)
        self.db.commit()
        self.db.refresh(product)
        return product

    def delete_product(self, product_id: Any) -> None:
        product = self.get_product(product_id)
        deleted_id = product.id
        self.db.delete(product)
        self.db.commit()
        logger.info(f"[PRODUCTS] shop={self.shop_id} deleted product={deleted_id}")

    # ------------------------------------------------------------------
    # Carts
    # ------------------------------------------------------------------

    def list_carts(self) -> List[Cart]:
        return (
            self.db.query(Cart)
            .options(
                joinedload(Cart.customer),
                selectinload(Cart.items).joinedload(CartItem.product),
            )
            .filter(Cart.shop_id == self.shop_id)
            .order_by(Cart.updated_at.desc())
            .all()
        )

    # ------------------------------------------------------------------
    # Push subscriptions
    # ------------------------------------------------------------------

    def upsert_push_subscription(
        self, endpoint: str, p256dh: str, auth: str, user_agent: Optional[str]
    ) -> PushSubscription:
        """Insert or refresh a subscription; endpoints are globally unique.

        An endpoint already registered to another shop is rebound to this one,
        since the browser that owns it is now signed in here.
        """
        subscription = self.db.query(PushSubscription).filter(PushSubscription.endpoint == endpoint).first()
        if subscription is None:
            subscription = PushSubscription(endpoint=endpoint)
            self.db.add(subscription)
        subscription.shop_id = self.shop_id
        subscription.p256dh = p256dh
        subscription.auth = auth
        subscription.user_agent = user_agent
        subscription.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(subscription)
        return subscription

    def delete_push_subscription(self, endpoint: str) -> int:
        deleted = (
            self.db.query(PushSubscription)
            .filter(PushSubscription.shop_id == self.shop_id)
            .filter(PushSubscription.endpoint == endpoint)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
