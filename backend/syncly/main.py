"""FastAPI application entrypoint.

Configures middleware, error handlers, routers, the admin panel and the
uploads mount. Use the factory (`uvicorn syncly.main:create_app --factory`);
each app owns its own `Database`, so tests build an app over SQLite without
touching process-wide state.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.staticfiles import StaticFiles
from sqladmin import Admin, ModelView
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from . import models
from .authentication import SimpleAuth
from .database import Database
from .deps import Settings, get_settings
from .errors import register_exception_handlers
from .routers import chat as chat_router
from .routers import clerk_webhooks as clerk_webhooks_router
from .routers import customers as customers_router
from .routers import dashboard as dashboard_router
from .routers import debug as debug_router
from .routers import facebook_oauth as facebook_oauth_router
from .routers import health as health_router
from .routers import messenger_webhook as messenger_webhook_router
from .routers import orders as orders_router
from .routers import products as products_router
from .routers import push as push_router
from .routers import shop as shop_router
from .routers import subscription as subscription_router
from .routers import user_shops as user_shops_router
from .telemetry import init_observability

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_ADMIN_SECRET = "supersecretkey-change-this-in-production"


# SQLAdmin ModelView classes
# WHEN MAKING CHANGES TO THESE CLASSES, MAKE SURE TO UPDATE THE __str__ METHODS IN THE MODELS.PY FILE

class ShopAdmin(ModelView, model=models.Shop):
    """Admin view for shops. Page access tokens are never listed or editable."""
    column_list = [
        models.Shop.id,
        models.Shop.name,
        models.Shop.user_id,
        models.Shop.subscription_plan,
        models.Shop.facebook_page_name,
        models.Shop.instagram_username,
        models.Shop.is_active,
        models.Shop.created_at,
    ]
    form_columns = ["name", "owner_name", "phone", "subscription_plan", "is_active", "setup_completed", "is_ai_active"]
    column_searchable_list = ["name", "user_id", "facebook_page_name"]
    column_sortable_list = ["name", "created_at", "subscription_plan"]
    name = "Shop"
    name_plural = "Shops"
    icon = "fa-solid fa-store"


class PlanAdmin(ModelView, model=models.Plan):
    column_list = [
        models.Plan.id,
        models.Plan.name,
        models.Plan.slug,
        models.Plan.price_monthly,
        models.Plan.price_yearly,
        models.Plan.is_active,
        models.Plan.sort_order,
    ]
    form_columns = ["name", "slug", "description", "price_monthly", "price_yearly", "features", "is_active", "is_featured", "sort_order"]
    column_sortable_list = ["sort_order", "name", "price_monthly"]
    name = "Plan"
    name_plural = "Plans"
    icon = "fa-solid fa-tags"


class SubscriptionAdmin(ModelView, model=models.Subscription):
    column_list = [
        models.Subscription.id,
        models.Subscription.shop,
        models.Subscription.plan,
        models.Subscription.status,
        models.Subscription.billing_cycle,
        models.Subscription.current_period_end,
    ]
    form_columns = ["shop", "plan", "status", "billing_cycle", "current_period_start", "current_period_end"]
    column_sortable_list = ["status", "current_period_end"]
    form_ajax_refs = {
        "shop": {
            "fields": ["name"],
            "order_by": "name",
        },
    }
    name = "Subscription"
    name_plural = "Subscriptions"
    icon = "fa-solid fa-credit-card"


class OrderAdmin(ModelView, model=models.Order):
    column_list = [
        models.Order.id,
        models.Order.shop,
        models.Order.customer,
        models.Order.status,
        models.Order.total_amount,
        models.Order.created_at,
    ]
    form_columns = ["status", "notes"]
    column_sortable_list = ["status", "total_amount", "created_at"]
    name = "Order"
    name_plural = "Orders"
    icon = "fa-solid fa-receipt"


class CustomerAdmin(ModelView, model=models.Customer):
    column_list = [
        models.Customer.id,
        models.Customer.shop,
        models.Customer.name,
        models.Customer.phone,
        models.Customer.is_vip,
        models.Customer.total_spent,
    ]
    form_columns = ["name", "phone", "address", "is_vip"]
    column_searchable_list = ["name", "phone"]
    column_sortable_list = ["name", "total_spent"]
    name = "Customer"
    name_plural = "Customers"
    icon = "fa-solid fa-user"


def _cors_origins(settings: Settings) -> list[str]:
    # BACKEND_CORS_ORIGINS is a comma-separated list
    origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]
    frontend = settings.FRONTEND_URL.rstrip("/")
    if frontend and frontend not in origins:
        origins.append(frontend)
    return origins


def create_app(database: Optional[Database] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    database = database or Database(settings.DATABASE_URL or "")

    app = FastAPI(
        title="Syncly API",
        description="""
        Syncly is a chat-commerce platform for shops selling through
        Facebook Messenger and Instagram.

        This API backs the merchant dashboard:
        - Shops, products and the AI assistant settings
        - Orders, customers, conversations and active carts
        - Dashboard statistics and sales reports
        - Facebook Page and Instagram account connections
        - Subscription plans and usage limits

        ## Authentication

        Requests carry a Clerk session token, either as `Authorization: Bearer <token>`
        or the `__session` cookie. Owners of several shops pick one with the
        `x-shop-id` header; it is only honoured for shops the caller owns.
        """,
        version=settings.APP_VERSION,
        contact={
            "name": "Syncly Support",
            "email": "support@syncly.mn",
        },
        license_info={
            "name": "Proprietary",
        },
    )
    app.state.db = database
    app.state.settings = settings

    # Trust X-Forwarded-Proto from the load balancer so OAuth redirect URLs use https
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

    if settings.ADMIN_SECRET_KEY == DEFAULT_ADMIN_SECRET:
        logger.warning("[STARTUP] Using default admin secret key. Set ADMIN_SECRET_KEY for production.")
    app.add_middleware(SessionMiddleware, secret_key=settings.ADMIN_SECRET_KEY)

    allowed_origins = _cors_origins(settings)
    logger.info(f"[CORS] Allowed origins: {allowed_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, expose_details=settings.expose_error_details)

    app.include_router(health_router.router)
    app.include_router(shop_router.router)
    app.include_router(user_shops_router.router)
    app.include_router(orders_router.router)
    app.include_router(orders_router.bulk_router)
    app.include_router(customers_router.router)
    app.include_router(products_router.router)
    app.include_router(dashboard_router.router)
    app.include_router(subscription_router.router)
    app.include_router(facebook_oauth_router.router)
    app.include_router(clerk_webhooks_router.router)
    app.include_router(messenger_webhook_router.router)
    app.include_router(push_router.router)
    app.include_router(chat_router.router)
    if settings.debug_endpoints_enabled:
        logger.warning("[STARTUP] Debug endpoints enabled at /api/debug")
        app.include_router(debug_router.router)

    app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

    @app.on_event("startup")
    async def startup_event():
        status = init_observability()
        logger.info(f"[STARTUP] Observability: {status}")

    @app.on_event("shutdown")
    async def shutdown_event():
        database.dispose()

    authentication_backend = SimpleAuth(
        secret_key=settings.ADMIN_SECRET_KEY,
        username=settings.ADMIN_USERNAME,
        password=settings.ADMIN_PASSWORD,
    )
    admin = Admin(
        app,
        database.engine,
        title="Syncly Admin",
        authentication_backend=authentication_backend,
    )
    admin.add_view(ShopAdmin)
    admin.add_view(PlanAdmin)
    admin.add_view(SubscriptionAdmin)
    admin.add_view(OrderAdmin)
    admin.add_view(CustomerAdmin)

    # Custom OpenAPI schema with security definitions
    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )
        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "bearerAuth": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Clerk session token",
            },
            "cookieAuth": {
                "type": "apiKey",
                "in": "cookie",
                "name": "__session",
                "description": "Clerk session cookie",
            },
        }

        public_prefixes = ("/api/health", "/api/webhook", "/api/subscription/plans", "/api/push/vapid")
        for path, methods in openapi_schema["paths"].items():
            if path.startswith(public_prefixes):
                continue
            for operation in methods.values():
                operation.setdefault("security", [{"bearerAuth": []}, {"cookieAuth": []}])

        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi
    return app
