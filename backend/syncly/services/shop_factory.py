"""Shop factory: default shop provisioning for new accounts.

WHAT: Builds the placeholder shop a new Clerk user lands on, named after the
      user's full name or the local part of their email.
WHY: Signup webhooks can be redelivered by Svix; provisioning is a no-op when
     the user already owns a shop so retries never create duplicates.

REFERENCES:
    - syncly/routers/clerk_webhooks.py (user.created handler)
    - syncly/models.py (Shop)
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import Shop

logger = logging.getLogger(__name__)

DEFAULT_PLAN = "trial"


def display_name(data: dict[str, Any]) -> Optional[str]:
    """Full name from a Clerk user payload, or None if both parts are blank."""
    first = (data.get("first_name") or "").strip()
    last = (data.get("last_name") or "").strip()
    full = f"{first} {last}".strip()
    return full or None


def primary_email(data: dict[str, Any]) -> Optional[str]:
    """Primary email address, falling back to the first listed one."""
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for entry in addresses:
        if primary_id and entry.get("id") == primary_id:
            return entry.get("email_address")
    if addresses:
        return addresses[0].get("email_address")
    return None


def generate_shop_name(full_name: Optional[str], email: Optional[str]) -> str:
    """"Bat Dorj's Shop", "bat's Shop" from the email, or "My Shop".

    Example:
        generate_shop_name("Bat Dorj", None)         # "Bat Dorj's Shop"
        generate_shop_name(None, "bat@example.mn")   # "bat's Shop"
    """
    base = (full_name or "").strip()
    if not base and email:
        base = email.split("@", 1)[0].strip()
    if not base:
        return "My Shop"
    return f"{base}'s Shop"


def create_default_shop(db: Session, user_id: str, data: dict[str, Any]) -> Optional[Shop]:
    """Create the signup shop for `user_id` unless one already exists.

    Returns the new shop (flushed, not committed) or None when the user
    already owns a shop.
    """
    existing = db.query(Shop).filter(Shop.user_id == user_id).first()
    if existing is not None:
        logger.info(f"[SHOP_FACTORY] {user_id} already owns shop {existing.id}, skipping")
        return None

    full_name = display_name(data)
    shop = Shop(
        user_id=user_id,
        name=generate_shop_name(full_name, primary_email(data)),
        owner_name=full_name,
        is_active=True,
        setup_completed=False,
        subscription_plan=DEFAULT_PLAN,
    )
    db.add(shop)
    db.flush()
    return shop
