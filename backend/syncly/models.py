"""SQLAlchemy ORM models and enums.

This module defines the shop-scoped domain schema using UUID primary keys and
explicit relationships. Every tenant-owned table carries a `shop_id` foreign
key; the owning identity is only stored on `shops.user_id` (Clerk user id).
"""

import uuid
from datetime import datetime
import enum

from sqlalchemy import Column, String, DateTime, Enum, Integer, ForeignKey, Numeric, JSON, Text, Boolean, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, declarative_base


# Single Base used by the entire application
Base = declarative_base()


# Enums ---------------------------------------------------------

class OrderStatusEnum(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


# Statuses that count toward revenue in reports and stats
REVENUE_STATUSES = (
    OrderStatusEnum.confirmed,
    OrderStatusEnum.processing,
    OrderStatusEnum.shipped,
    OrderStatusEnum.delivered,
)


class ProductTypeEnum(str, enum.Enum):
    physical = "physical"
    service = "service"
    appointment = "appointment"


class SubscriptionStatusEnum(str, enum.Enum):
    active = "active"
    trialing = "trialing"
    past_due = "past_due"
    cancelled = "cancelled"


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


# Core models ----------------------------------------------------

class Shop(Base):
    """Shop is the tenant record.

    A Clerk identity may own several shops (bounded by its plan). Shops are
    never hard-deleted; `is_active` is the soft flag toggled by the Clerk
    `user.deleted` webhook.
    """
    __tablename__ = "shops"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String, index=True, nullable=True)  # Clerk user id (JWT `sub`)
    name = Column(String, nullable=False)
    owner_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    # Messenger page connection (token is Fernet-encrypted)
    facebook_page_id = Column(String, nullable=True)
    facebook_page_name = Column(String, nullable=True)
    facebook_page_access_token = Column(Text, nullable=True)

    # Instagram business account connection
    instagram_business_account_id = Column(String, nullable=True)
    instagram_username = Column(String, nullable=True)
    instagram_access_token = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    setup_completed = Column(Boolean, default=False, nullable=False)
    subscription_plan = Column(String, default="trial", nullable=True)

    # AI assistant behaviour
    ai_instructions = Column(Text, nullable=True)
    ai_emotion = Column(String, nullable=True)
    is_ai_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    customers = relationship("Customer", back_populates="shop")
    orders = relationship("Order", back_populates="shop")
    products = relationship("Product", back_populates="shop")
    subscriptions = relationship("Subscription", back_populates="shop")

    # This is used to display the model in the admin interface.
    def __str__(self):
        return self.name


class Customer(Base):
    """A shopper who has talked to or ordered from a shop."""
    __tablename__ = "customers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_id = Column(UUID(as_uuid=True), ForeignKey("shops.id"), nullable=False, index=True)
    name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    facebook_id = Column(String, nullable=True, index=True)
    instagram_id = Column(String, nullable=True)
    is_vip = Column(Boolean, default=False, nullable=False)
    total_spent = Column(Numeric(14, 2), default=0, nullable=False)
    total_orders = Column(Integer, default=0, nullable=False)
    ai_paused_until = Column(DateTime, nullable=True)  # set when the owner replies by hand
    created_at = Column(DateTime, default=datetime.utcnow)

    shop = relationship("Shop", back_populates="customers")
    orders = relationship("Order", back_populates="customer")
    chats = relationship("ChatHistory", back_populates="customer")

    def __str__(self):
        return self.name or str(self.id)


class Product(Base):
    """A product or bookable service sold by a shop.

    `stock` is NULL for service products (unlimited).
    """
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_id = Column(UUID(as_uuid=True), ForeignKey("shops.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(14, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=True)
    type = Column(Enum(ProductTypeEnum, values_callable=_enum_values), nullable=False, default=ProductTypeEnum.physical)
    colors = Column(JSON, nullable=False, default=list)
    sizes = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)
    discount_percent = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    shop = relationship("Shop", back_populates="products")

    def __str__(self):
        return self.name


class Order(Base):
    """An order placed by a customer in a shop."""
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_id = Column(UUID(as_uuid=True), ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=True)
    status = Column(Enum(OrderStatusEnum, values_callable=_enum_values), nullable=False, default=OrderStatusEnum.pending)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    shop = relationship("Shop", back_populates="orders")
    customer = relationship("Customer", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    def __str__(self):
        return f"Order {self.id} ({self.status})"


class OrderItem(Base):
    """Line item; `unit_price` is a snapshot taken at order time."""
    __tablename__ = "order_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")


class ChatHistory(Base):
    """Append-only log of customer messages and assistant/owner responses."""
    __tablename__ = "chat_history"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_id = Column(UUID(as_uuid=True), ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=True, index=True)
    message = Column(Text, nullable=True)
    response = Column(Text, nullable=True)
    intent = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    customer = relationship("Customer", back_populates="chats")


class Cart(Base):
    """Open shopping cart of a customer, built up in chat."""
    __tablename__ = "carts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_id = Column(UUID(as_uuid=True), ForeignKey("shops.id"), nullable=False, index=True)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer")
    items = relationship("CartItem", back_populates="cart", cascade="all, delete-orphan")


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    cart_id = Column(UUID(as_uuid=True), ForeignKey("carts.id"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(14, 2), nullable=False, default=0)

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")


class PushSubscription(Base):
    """Web-push endpoint registered from the dashboard PWA."""
    __tablename__ = "push_subscriptions"
    __table_args__ = (
        UniqueConstraint("endpoint", name="uq_push_subscriptions_endpoint"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_id = Column(UUID(as_uuid=True), ForeignKey("shops.id"), nullable=False, index=True)
    endpoint = Column(Text, nullable=False)
    p256dh = Column(String, nullable=False)
    auth = Column(String, nullable=False)
    user_agent = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Billing --------------------------------------------------------

class Plan(Base):
    """Pricing catalog row shown on the pricing page.

    Capability limits live in `syncly.plans` (static configuration); this
    table only carries marketing data and prices.
    """
    __tablename__ = "plans"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    price_monthly = Column(Numeric(14, 2), nullable=False, default=0)
    price_yearly = Column(Numeric(14, 2), nullable=True)
    features = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __str__(self):
        return self.name


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    shop_id = Column(UUID(as_uuid=True), ForeignKey("shops.id"), nullable=False, index=True)
    plan_id = Column(UUID(as_uuid=True), ForeignKey("plans.id"), nullable=True)
    status = Column(Enum(SubscriptionStatusEnum, values_callable=_enum_values), nullable=False, default=SubscriptionStatusEnum.active)
    billing_cycle = Column(String, default="monthly", nullable=False)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    shop = relationship("Shop", back_populates="subscriptions")
    plan = relationship("Plan")

    def __str__(self):
        return f"{self.shop_id} / {self.status}"
