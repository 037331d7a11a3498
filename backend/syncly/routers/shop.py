"""Shop profile endpoints.

WHAT:
    - GET   /api/shop             the resolved shop
    - POST  /api/shop             first shop for a new account
    - PATCH /api/shop             edit whitelisted profile/assistant fields
    - POST  /api/shop/products    setup-wizard bulk product insert
    - POST  /api/shop/disconnect  unlink Facebook or Instagram

WHY:
    The setup wizard creates the shop, connects a page and adds products; a
    successful bulk insert is what marks the shop's setup as completed.

REFERENCES:
    - syncly/services/catalog.py (entry coercion)
    - syncly/routers/user_shops.py (additional shops, plan-gated)
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_current_identity, get_current_shop
from ..errors import ValidationError
from ..models import Shop
from ..schemas import BulkProductsResponse, DisconnectRequest, ProductOut, ShopCreate, ShopOut, ShopResponse, ShopUpdate
from ..services.catalog import coerce_products
from ..services.shop_resolver import list_owned_shops
from ..services.shop_scope import ShopScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/shop", tags=["Shop"])

PLATFORM_FIELDS = {
    "facebook": ("facebook_page_id", "facebook_page_name", "facebook_page_access_token"),
    "instagram": ("instagram_business_account_id", "instagram_username", "instagram_access_token"),
}


@router.get("", response_model=ShopResponse)
def get_shop(shop: Shop = Depends(get_current_shop)):
    return ShopResponse(shop=ShopOut.model_validate(shop))


@router.post("", response_model=ShopResponse, status_code=status.HTTP_201_CREATED)
def create_shop(
    payload: ShopCreate,
    identity: str = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Create the account's first shop. Additional shops go through /api/user/shops."""
    if list_owned_shops(db, identity):
        raise ValidationError("Shop already exists")

    shop = Shop(
        user_id=identity,
        name=payload.name.strip(),
        owner_name=payload.owner_name,
        phone=payload.phone,
        description=payload.description,
        is_active=True,
        setup_completed=False,
        subscription_plan="trial",
    )
    db.add(shop)
    db.commit()
    db.refresh(shop)
    logger.info(f"[SHOP] Created shop {shop.id} for {identity}")
    return ShopResponse(shop=ShopOut.model_validate(shop))


@router.patch("", response_model=ShopResponse)
def update_shop(
    payload: ShopUpdate,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    for key, value in payload.model_dump(exclude_unset=True).items():
        if key in ("name", "is_ai_active") and value is None:
            continue
        setattr(shop, key, value)
    db.commit()
    db.refresh(shop)
    return ShopResponse(shop=ShopOut.model_validate(shop))


@router.post("/products", response_model=BulkProductsResponse)
def add_products(
    payload: Dict[str, Any] = Body(...),
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """Insert the wizard's products; entries without name or price are skipped."""
    entries = payload.get("products")
    if not isinstance(entries, list):
        raise ValidationError("Products array required")

    rows = coerce_products(entries)
    if not rows:
        return BulkProductsResponse(products=[], message="No valid products to add")

    products = ShopScope(db, shop.id).add_products(rows)
    shop.setup_completed = True
    db.commit()
    for product in products:
        db.refresh(product)

    logger.info(f"[SHOP] shop={shop.id} added {len(products)} of {len(entries)} products")
    return BulkProductsResponse(
        products=[ProductOut.model_validate(p) for p in products],
        message=f"{len(products)} бүтээгдэхүүн нэмэгдлээ",
    )


@router.post("/disconnect", response_model=ShopResponse)
def disconnect_platform(
    payload: DisconnectRequest,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    for field in PLATFORM_FIELDS[payload.platform]:
        setattr(shop, field, None)
    db.commit()
    db.refresh(shop)
    logger.info(f"[SHOP] shop={shop.id} disconnected {payload.platform}")
    return ShopResponse(shop=ShopOut.model_validate(shop))
