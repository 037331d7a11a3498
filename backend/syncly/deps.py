"""Dependency providers and settings management."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.orm import Session

from .database import get_db
from .errors import UnauthenticatedError
from .models import Shop
from .security import resolve_identity
from .services.shop_resolver import resolve_shop
from .telemetry import set_shop_context, set_user_context


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    ENVIRONMENT: str = "development"
    APP_VERSION: str = "1.0.0"
    DATABASE_URL: Optional[str] = None

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    FRONTEND_URL: str = "http://localhost:3000"

    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: Optional[str] = None
    ADMIN_SECRET_KEY: str = "supersecretkey-change-this-in-production"

    CLERK_WEBHOOK_SECRET: Optional[str] = None

    FACEBOOK_APP_ID: Optional[str] = None
    FACEBOOK_APP_SECRET: Optional[str] = None
    # Echoed back by Meta during the Messenger webhook subscription handshake
    FACEBOOK_VERIFY_TOKEN: Optional[str] = None

    OPENAI_API_KEY: Optional[str] = None
    VAPID_PUBLIC_KEY: Optional[str] = None

    UPLOAD_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    # Debug surface: both must allow it, and never in production
    ENABLE_DEBUG_ENDPOINTS: bool = False
    EXPOSE_ERROR_DETAILS: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def debug_endpoints_enabled(self) -> bool:
        return self.ENABLE_DEBUG_ENDPOINTS and not self.is_production

    @property
    def expose_error_details(self) -> bool:
        return self.EXPOSE_ERROR_DETAILS and not self.is_production


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_identity(request: Request) -> Optional[str]:
    """Clerk user id of the caller, or None when unauthenticated."""
    return resolve_identity(request)


def get_current_identity(identity: Optional[str] = Depends(get_identity)) -> str:
    """Require an authenticated caller."""
    if not identity:
        raise UnauthenticatedError("Not authenticated")
    set_user_context(identity)
    return identity


def get_current_shop(
    identity: str = Depends(get_current_identity),
    db: Session = Depends(get_db),
    x_shop_id: Optional[str] = Header(default=None, alias="x-shop-id"),
) -> Shop:
    """Resolve the shop the request operates on.

    The `x-shop-id` header only selects among shops the caller owns.
    """
    shop = resolve_shop(db, identity, x_shop_id)
    if shop is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found")
    set_shop_context(str(shop.id))
    return shop
