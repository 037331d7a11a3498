"""Initial Syncly schema: shops, catalog, orders, chat, carts, push, billing.

Revision ID: 20260301_000001
Revises:
Create Date: 2026-03-01 10:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20260301_000001"
down_revision = None
branch_labels = None
depends_on = None

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
PRODUCT_TYPES = ("physical", "service", "appointment")
SUBSCRIPTION_STATUSES = ("active", "trialing", "past_due", "cancelled")


def _uuid_pk():
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False, server_default=sa.text("gen_random_uuid()"))


def _shop_fk():
    return sa.Column("shop_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("shops.id"), nullable=False)


def upgrade():
    op.create_table(
        "shops",
        _uuid_pk(),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("owner_name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("facebook_page_id", sa.String(), nullable=True),
        sa.Column("facebook_page_name", sa.String(), nullable=True),
        sa.Column("facebook_page_access_token", sa.Text(), nullable=True),
        sa.Column("instagram_business_account_id", sa.String(), nullable=True),
        sa.Column("instagram_username", sa.String(), nullable=True),
        sa.Column("instagram_access_token", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("setup_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("subscription_plan", sa.String(), nullable=True, server_default="trial"),
        sa.Column("ai_instructions", sa.Text(), nullable=True),
        sa.Column("ai_emotion", sa.String(), nullable=True),
        sa.Column("is_ai_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_shops_user_id", "shops", ["user_id"])

    op.create_table(
        "plans",
        _uuid_pk(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_monthly", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("price_yearly", sa.Numeric(14, 2), nullable=True),
        sa.Column("features", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )

    op.create_table(
        "customers",
        _uuid_pk(),
        _shop_fk(),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("facebook_id", sa.String(), nullable=True),
        sa.Column("instagram_id", sa.String(), nullable=True),
        sa.Column("is_vip", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_spent", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_orders", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ai_paused_until", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_customers_shop_id", "customers", ["shop_id"])
    op.create_index("ix_customers_facebook_id", "customers", ["facebook_id"])

    op.create_table(
        "products",
        _uuid_pk(),
        _shop_fk(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("stock", sa.Integer(), nullable=True),
        sa.Column("type", sa.Enum(*PRODUCT_TYPES, name="producttypeenum"), nullable=False, server_default="physical"),
        sa.Column("colors", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("sizes", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("images", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("discount_percent", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_products_shop_id", "products", ["shop_id"])

    op.create_table(
        "orders",
        _uuid_pk(),
        _shop_fk(),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("status", sa.Enum(*ORDER_STATUSES, name="orderstatusenum"), nullable=False, server_default="pending"),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_orders_shop_id", "orders", ["shop_id"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])

    op.create_table(
        "order_items",
        _uuid_pk(),
        sa.Column("order_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False, server_default="0"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    op.create_table(
        "chat_history",
        _uuid_pk(),
        _shop_fk(),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("response", sa.Text(), nullable=True),
        sa.Column("intent", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_chat_history_shop_id", "chat_history", ["shop_id"])
    op.create_index("ix_chat_history_customer_id", "chat_history", ["customer_id"])
    op.create_index("ix_chat_history_created_at", "chat_history", ["created_at"])

    op.create_table(
        "carts",
        _uuid_pk(),
        _shop_fk(),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_carts_shop_id", "carts", ["shop_id"])

    op.create_table(
        "cart_items",
        _uuid_pk(),
        sa.Column("cart_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("carts.id"), nullable=False),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False, server_default="0"),
    )
    op.create_index("ix_cart_items_cart_id", "cart_items", ["cart_id"])

    op.create_table(
        "push_subscriptions",
        _uuid_pk(),
        _shop_fk(),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("p256dh", sa.String(), nullable=False),
        sa.Column("auth", sa.String(), nullable=False),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("endpoint", name="uq_push_subscriptions_endpoint"),
    )
    op.create_index("ix_push_subscriptions_shop_id", "push_subscriptions", ["shop_id"])

    op.create_table(
        "subscriptions",
        _uuid_pk(),
        _shop_fk(),
        sa.Column("plan_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("plans.id"), nullable=True),
        sa.Column("status", sa.Enum(*SUBSCRIPTION_STATUSES, name="subscriptionstatusenum"), nullable=False, server_default="active"),
        sa.Column("billing_cycle", sa.String(), nullable=False, server_default="monthly"),
        sa.Column("current_period_start", sa.DateTime(), nullable=True),
        sa.Column("current_period_end", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_subscriptions_shop_id", "subscriptions", ["shop_id"])


def downgrade():
    for table in (
        "subscriptions",
        "push_subscriptions",
        "cart_items",
        "carts",
        "chat_history",
        "order_items",
        "orders",
        "products",
        "customers",
        "plans",
        "shops",
    ):
        op.drop_table(table)
    op.execute("DROP TYPE IF EXISTS subscriptionstatusenum;")
    op.execute("DROP TYPE IF EXISTS orderstatusenum;")
    op.execute("DROP TYPE IF EXISTS producttypeenum;")
