"""Multi-shop endpoints for one account.

WHAT:
    - GET  /api/user/shops        every shop the caller owns (oldest first)
    - POST /api/user/shops        add a shop, gated by the account plan's shop limit
    - POST /api/user/switch-shop  confirm the caller owns a shop before the
                                  dashboard stores it as the active one

WHY:
    The active shop is client-held (sent back as the `x-shop-id` header), so
    switching only verifies ownership; nothing is stored server-side.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_current_identity
from ..errors import PlanLimitError
from ..models import Shop
from ..plans import check_shop_limit, normalize_plan
from ..schemas import ShopCreate, ShopListResponse, ShopOut, ShopResponse, SwitchShopRequest, SwitchShopResponse
from ..services.shop_resolver import account_plan, list_owned_shops, resolve_shop

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["User Shops"])


@router.get("/shops", response_model=ShopListResponse)
def list_shops(
    identity: str = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    shops = list_owned_shops(db, identity)
    return ShopListResponse(shops=[ShopOut.model_validate(s) for s in shops])


@router.post("/shops", response_model=ShopResponse, status_code=status.HTTP_201_CREATED)
def create_shop(
    payload: ShopCreate,
    identity: str = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Create another shop if the account plan allows it.

    The account plan is the plan of the caller's oldest shop; a caller with
    no shop is on trial.
    """
    plan = account_plan(db, identity)
    current = len(list_owned_shops(db, identity))
    check = check_shop_limit(plan, current)
    if not check.allowed:
        logger.info(f"[USER_SHOPS] {identity} hit shop limit ({current}/{check.limit}) on {plan}")
        raise PlanLimitError(
            "Shop limit reached for your plan",
            details={"plan": normalize_plan(plan), "limit": check.limit, "current": current},
        )

    shop = Shop(
        user_id=identity,
        name=payload.name.strip(),
        owner_name=payload.owner_name,
        phone=payload.phone,
        description=payload.description,
        is_active=True,
        setup_completed=False,
        subscription_plan=normalize_plan(plan),
    )
    db.add(shop)
    db.commit()
    db.refresh(shop)
    logger.info(f"[USER_SHOPS] Created shop {shop.id} for {identity} ({current + 1}/{check.limit})")
    return ShopResponse(shop=ShopOut.model_validate(shop))


@router.post("/switch-shop", response_model=SwitchShopResponse)
def switch_shop(
    payload: SwitchShopRequest,
    identity: str = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    shop = resolve_shop(db, identity, payload.shop_id)
    if shop is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shop not found or access denied")

    return SwitchShopResponse(
        success=True,
        shop=ShopOut.model_validate(shop),
        message=f"Switched to {shop.name}",
    )
