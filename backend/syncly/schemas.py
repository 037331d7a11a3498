"""Pydantic schemas for request/response payloads.

Dashboard payloads use camelCase keys on the wire (the Next.js dashboard reads
them as-is); models that need that declare `CamelModel` as their base and are
still constructed with snake_case field names.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import OrderStatusEnum, ProductTypeEnum


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class HealthChecks(BaseModel):
    api: bool = Field(description="API process is serving requests", example=True)
    environment: bool = Field(description="Required configuration is present", example=True)


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: Literal["healthy", "degraded"] = Field(description="Service health status", example="healthy")
    timestamp: datetime = Field(description="Server time (UTC)")
    version: str = Field(description="Deployed API version", example="1.0.0")
    uptime: float = Field(description="Seconds since process start", example=3600.5)
    checks: HealthChecks


# ---------------------------------------------------------------------------
# Shops
# ---------------------------------------------------------------------------

class ShopOut(BaseModel):
    """Public representation of a shop (page tokens are never returned)."""

    id: UUID = Field(description="Shop identifier", example="123e4567-e89b-12d3-a456-426614174000")
    name: str = Field(description="Shop display name", example="Saraa's Shop")
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None
    facebook_page_id: Optional[str] = None
    facebook_page_name: Optional[str] = None
    instagram_business_account_id: Optional[str] = None
    instagram_username: Optional[str] = None
    is_active: bool = True
    setup_completed: bool = False
    subscription_plan: Optional[str] = Field(default=None, example="trial")
    ai_instructions: Optional[str] = None
    ai_emotion: Optional[str] = None
    is_ai_active: bool = True
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ShopResponse(BaseModel):
    shop: ShopOut


class ShopListResponse(BaseModel):
    shops: List[ShopOut]


class ShopCreate(BaseModel):
    name: str = Field(min_length=1, description="Shop display name", example="Saraa's Shop")
    owner_name: Optional[str] = Field(default=None, example="Saraa")
    phone: Optional[str] = Field(default=None, example="99112233")
    description: Optional[str] = None


class ShopUpdate(BaseModel):
    """Whitelisted shop fields the owner may edit."""

    name: Optional[str] = Field(default=None, min_length=1)
    owner_name: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None
    ai_instructions: Optional[str] = None
    ai_emotion: Optional[str] = None
    is_ai_active: Optional[bool] = None


class SwitchShopRequest(CamelModel):
    shop_id: str = Field(min_length=1, description="Shop to activate (client-held)")


class SwitchShopResponse(BaseModel):
    success: bool
    shop: ShopOut
    message: str


class DisconnectRequest(BaseModel):
    platform: Literal["facebook", "instagram"]


class SuccessResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

class ProductOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    price: float
    stock: Optional[int] = None
    type: ProductTypeEnum
    colors: List[str] = []
    sizes: List[str] = []
    images: List[str] = []
    discount_percent: Optional[int] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ProductListResponse(BaseModel):
    products: List[ProductOut]


class ProductResponse(BaseModel):
    product: ProductOut


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, example="Cashmere scarf")
    description: Optional[str] = None
    price: float = Field(ge=0, example=89000)
    stock: Optional[int] = Field(default=None, ge=0)
    type: ProductTypeEnum = ProductTypeEnum.physical
    colors: List[str] = []
    sizes: List[str] = []
    images: List[str] = []
    discount_percent: Optional[int] = Field(default=None, ge=0, le=100)
    is_active: bool = True


class ProductUpdate(BaseModel):
    id: str = Field(min_length=1, description="Product to update")
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    type: Optional[ProductTypeEnum] = None
    colors: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    images: Optional[List[str]] = None
    discount_percent: Optional[int] = Field(default=None, ge=0, le=100)
    is_active: Optional[bool] = None


class BulkProductsResponse(BaseModel):
    products: List[ProductOut] = []
    message: str


class UploadResponse(BaseModel):
    url: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

class OrderCustomer(BaseModel):
    id: UUID
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class OrderItemProduct(BaseModel):
    id: UUID
    name: str


class OrderItemOut(BaseModel):
    id: UUID
    quantity: int
    unit_price: float
    products: Optional[OrderItemProduct] = None


class OrderOut(BaseModel):
    id: UUID
    customer_id: Optional[UUID] = None
    status: OrderStatusEnum
    total_amount: float
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    customers: Optional[OrderCustomer] = None
    order_items: List[OrderItemOut] = []


class OrderListResponse(BaseModel):
    orders: List[OrderOut]


class OrderResponse(BaseModel):
    order: OrderOut


class OrderStatusUpdate(BaseModel):
    id: str = Field(min_length=1, description="Order to update")
    status: OrderStatusEnum = Field(description="New order status", example="confirmed")


class BulkOrderStatusUpdate(CamelModel):
    order_ids: List[UUID] = Field(description="Orders to update; ids of other shops are skipped")
    status: OrderStatusEnum = Field(description="New order status", example="shipped")


class BulkOrderStatusResponse(CamelModel):
    success: bool
    updated_count: int
    message: str



# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

class CustomerOut(BaseModel):
    id: UUID
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    facebook_id: Optional[str] = None
    instagram_id: Optional[str] = None
    is_vip: bool = False
    total_spent: float = 0
    total_orders: int = 0
    ai_paused_until: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CustomerListResponse(BaseModel):
    customers: List[CustomerOut]


class CustomerOrderOut(BaseModel):
    id: UUID
    status: OrderStatusEnum
    total_amount: float
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ChatOut(BaseModel):
    id: UUID
    customer_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    message: Optional[str] = None
    response: Optional[str] = None
    intent: Optional[str] = None
    created_at: Optional[datetime] = None


class CustomerDetail(CustomerOut):
    orders: List[CustomerOrderOut] = []
    chat_history: List[ChatOut] = []


class CustomerResponse(BaseModel):
    customer: CustomerDetail


# ---------------------------------------------------------------------------
# Dashboard aggregations
# ---------------------------------------------------------------------------

class StatsShop(BaseModel):
    id: UUID
    name: str


class RecentChat(CamelModel):
    """Chat row on the dashboard home page (camelCase like the rest of the stats)."""

    id: UUID
    customer_id: Optional[UUID] = None
    customer_name: Optional[str] = None
    message: Optional[str] = None
    response: Optional[str] = None
    intent: Optional[str] = None
    created_at: Optional[datetime] = None


class DashboardStats(CamelModel):
    today_orders: int
    pending_orders: int
    total_revenue: int
    total_customers: int
    recent_orders: List[OrderOut]
    recent_chats: List[RecentChat]
    shop: StatsShop


class RevenueSummary(CamelModel):
    total: float
    order_count: int
    avg_order_value: int
    growth: int
    prev_period_total: float


class BestSeller(CamelModel):
    id: UUID
    name: str
    image: Optional[str] = None
    quantity: int
    revenue: float
    rank: int
    percent: int


class ChartPoint(CamelModel):
    date: str = Field(example="2026-10-18")
    revenue: int
    label: str = Field(example="10-р сар 18")


class CustomerSummary(CamelModel):
    total: int
    new: int
    vip: int


class ReportResponse(CamelModel):
    period: Literal["today", "week", "month", "year"]
    period_start: datetime
    revenue: RevenueSummary
    best_sellers: List[BestSeller]
    chart_data: List[ChartPoint]
    customers: CustomerSummary
    order_status: Dict[str, int]


class ConversationMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    created_at: Optional[datetime] = None
    intent: Optional[str] = None


class Conversation(BaseModel):
    id: UUID = Field(description="Customer id the conversation belongs to")
    customer_name: str
    last_message: str
    last_message_at: Optional[datetime] = None
    answered: bool
    unread_count: int = 0
    messages: List[ConversationMessage]


class ConversationListResponse(BaseModel):
    conversations: List[Conversation]


class ReplyRequest(CamelModel):
    customer_id: str = Field(min_length=1)
    message: str = Field(min_length=1)


class ReplyResponse(CamelModel):
    success: bool
    message_id: Optional[str] = None
    ai_paused_until: datetime


class CartCustomer(CamelModel):
    id: Optional[UUID] = None
    name: str
    facebook_id: Optional[str] = None
    is_vip: Optional[bool] = None


class CartItemOut(CamelModel):
    id: UUID
    name: str
    price: float
    quantity: int
    image: Optional[str] = None


class ActiveCart(CamelModel):
    id: UUID
    cart_id: UUID
    customer: CartCustomer
    last_active: Optional[datetime] = None
    item_count: int
    total_amount: float
    items: List[CartItemOut]


class ActiveCartsResponse(BaseModel):
    carts: List[ActiveCart]


# ---------------------------------------------------------------------------
# Subscription
# ---------------------------------------------------------------------------

class PlanOut(BaseModel):
    id: UUID
    name: str
    slug: str
    description: Optional[str] = None
    price_monthly: float
    price_yearly: Optional[float] = None
    features: Any = None
    is_featured: bool = False

    model_config = {"from_attributes": True}


class PlanListResponse(BaseModel):
    plans: List[PlanOut]


class PlanLimitsOut(BaseModel):
    plan: str
    model: str
    max_tokens: int
    messages_per_month: int
    max_shops: int
    instagram: bool
    price_mnt: int
    trial_days: Optional[int] = None


class SubscriptionOut(BaseModel):
    id: UUID
    status: str
    billing_cycle: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    plan: Optional[PlanOut] = None


class UsageOut(BaseModel):
    messages_this_month: int
    messages_limit: int
    messages_remaining: int
    products: int
    customers: int
    orders: int
    orders_this_month: int
    revenue_this_month: float
    shops: int
    shops_limit: int


class CurrentSubscriptionResponse(BaseModel):
    plan: str
    is_paid: bool
    limits: PlanLimitsOut
    subscription: Optional[SubscriptionOut] = None
    usage: UsageOut
    has_subscription: bool


# ---------------------------------------------------------------------------
# Social connections
# ---------------------------------------------------------------------------

class FacebookPageOut(BaseModel):
    id: str
    name: str
    category: Optional[str] = None


class FacebookPagesResponse(BaseModel):
    pages: List[FacebookPageOut]
    message: Optional[str] = None


class SelectPageRequest(CamelModel):
    page_id: str = Field(min_length=1)


class ConnectedPageResponse(BaseModel):
    success: bool
    shop: ShopOut


class InstagramAccountOut(CamelModel):
    page_id: str
    page_name: str
    instagram_id: str
    instagram_username: str = ""
    instagram_name: Optional[str] = None
    profile_picture: Optional[str] = None


class InstagramAccountsResponse(BaseModel):
    accounts: List[InstagramAccountOut]


class SelectInstagramRequest(CamelModel):
    instagram_id: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------

class PushKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class PushSubscriptionIn(BaseModel):
    endpoint: str = Field(min_length=1)
    keys: PushKeys


class PushSubscribeRequest(BaseModel):
    subscription: PushSubscriptionIn


class PushSubscribeResponse(BaseModel):
    success: bool
    message: str
    id: UUID


class PushUnsubscribeRequest(BaseModel):
    endpoint: str = Field(min_length=1)


class VapidResponse(CamelModel):
    public_key: str


# ---------------------------------------------------------------------------
# AI chat
# ---------------------------------------------------------------------------

class ChatTestRequest(CamelModel):
    message: str = Field(min_length=1, example="Ямар бараа байна вэ?")
    shop_context: Optional[Dict[str, Any]] = None


class ChatTestResponse(CamelModel):
    success: bool
    message: str
    model: str
    remaining_messages: int


# ---------------------------------------------------------------------------
# Debug (non-production only)
# ---------------------------------------------------------------------------

class DebugAuthResponse(BaseModel):
    authenticated: bool
    user_id: Optional[str] = None
    has_token: bool
    token_source: Optional[Literal["header", "cookie"]] = None
    claims: Dict[str, Any] = Field(default_factory=dict)


class DebugShopsResponse(BaseModel):
    user_id: str
    shop_count: int
    resolved_shop_id: Optional[UUID] = None
    shops: List[ShopOut]
