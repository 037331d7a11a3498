"""Shop resolver: identity (+ optional tenant hint) -> owned shop.

WHAT:
    Maps a Clerk user id to the shop it owns. When the dashboard sends the
    `x-shop-id` hint (the shop the user picked in the shop switcher), the hint
    narrows the lookup but ownership is always re-checked in the same query.

WHY:
    The hint is client-held state; trusting it without the `user_id` filter
    would let any signed-in user read another tenant's data.

REFERENCES:
    - syncly/deps.py (get_current_shop dependency)
    - syncly/routers/user_shops.py (switch-shop uses the same check)
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models import Shop

logger = logging.getLogger(__name__)


def parse_shop_id(value: Optional[str]) -> Optional[uuid.UUID]:
    """Parse a client-supplied shop id; malformed values yield None."""
    if not value:
        return None
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        return None


def resolve_shop(db: Session, identity: str, hint: Optional[str] = None) -> Optional[Shop]:
    """Return the oldest shop owned by `identity`, narrowed by `hint` if given.

    A hint that is malformed or names a shop owned by someone else resolves
    to None; it never falls back to another shop.
    """
    query = db.query(Shop).filter(Shop.user_id == identity)

    if hint:
        shop_id = parse_shop_id(hint)
        if shop_id is None:
            logger.info(f"[SHOP_RESOLVER] Malformed shop hint from {identity}")
            return None
        query = query.filter(Shop.id == shop_id)

    shop = query.order_by(Shop.created_at.asc()).first()
    if shop is None:
        logger.info(f"[SHOP_RESOLVER] No shop for identity={identity} hint={hint}")
    return shop


def list_owned_shops(db: Session, identity: str) -> List[Shop]:
    return (
        db.query(Shop)
        .filter(Shop.user_id == identity)
        .order_by(Shop.created_at.asc())
        .all()
    )


def account_plan(db: Session, identity: str) -> str:
    """Plan that governs account-wide limits: the plan of the oldest owned shop."""
    first = (
        db.query(Shop)
        .filter(Shop.user_id == identity)
        .order_by(Shop.created_at.asc())
        .first()
    )
    if first is None or not first.subscription_plan:
        return "trial"
    return first.subscription_plan
