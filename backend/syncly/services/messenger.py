"""Inbound Messenger conversations.

WHAT:
    Turns one webhook `entry` (one page) into stored chat rows and, when the
    assistant may speak, an AI reply sent back through that page.

WHY:
    The owner's manual reply pauses the assistant for a customer
    (`ai_paused_until`), and `Shop.is_ai_active` switches it off for the whole
    shop. Both are checked here, before the model is called; a message that
    arrives while the assistant is quiet is still recorded so it shows up as
    unanswered in the dashboard conversations.

REFERENCES:
    - https://developers.facebook.com/docs/messenger-platform/webhooks
    - syncly/routers/messenger_webhook.py
    - syncly/routers/dashboard.py (reply_to_conversation sets the pause)
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..errors import UpstreamError
from ..models import ChatHistory, Customer, Shop
from ..plans import check_message_limit, get_plan_limits
from ..security import decrypt_secret
from . import ai_chat, facebook_graph
from .shop_scope import ShopScope

logger = logging.getLogger(__name__)

# Previous exchanges sent to the model with each new message
HISTORY_TURNS = 5
# Mongolian mobile numbers are 8 digits
PHONE_PATTERN = re.compile(r"(?<!\d)(\d{8})(?!\d)")
FALLBACK_REPLY = "Уучлаарай, одоо системд түр алдаа гарлаа. Удахгүй хариулах болно! 🙏"


def find_shop_for_page(db: Session, page_id: str) -> Optional[Shop]:
    if not page_id:
        return None
    return (
        db.query(Shop)
        .filter(Shop.facebook_page_id == page_id, Shop.is_active.is_(True))
        .order_by(Shop.created_at.asc())
        .first()
    )


def history_messages(chats: Sequence[ChatHistory]) -> List[Dict[str, str]]:
    """Chat rows (newest first) as chat-completion turns, oldest first."""
    turns: List[Dict[str, str]] = []
    for chat in reversed(chats):
        if chat.message:
            turns.append({"role": "user", "content": chat.message})
        if chat.response:
            turns.append({"role": "assistant", "content": chat.response})
    return turns


def ai_block_reason(shop: Shop, customer: Customer, now: datetime) -> Optional[str]:
    if not shop.is_ai_active:
        return "ai_inactive"
    if customer.ai_paused_until is not None and customer.ai_paused_until > now:
        return "ai_paused"
    return None


async def handle_entry(db: Session, entry: Dict[str, Any], *, openai_api_key: Optional[str]) -> List[str]:
    """Process every text message in one page entry; returns one outcome per message."""
    page_id = str(entry.get("id") or "")
    shop = find_shop_for_page(db, page_id)
    if shop is None:
        logger.warning(f"[MESSENGER] No active shop for page {page_id}")
        return []
    if not shop.facebook_page_access_token:
        logger.warning(f"[MESSENGER] Shop {shop.id} has no page access token")
        return []

    page_token = decrypt_secret(shop.facebook_page_access_token, context=f"page:{page_id}")
    scope = ShopScope(db, shop.id)

    outcomes = []
    for event in entry.get("messaging") or []:
        message = event.get("message") or {}
        sender_id = (event.get("sender") or {}).get("id")
        text = message.get("text")
        # Echoes are the page's own outgoing messages
        if not text or not sender_id or message.get("is_echo"):
            continue
        outcome = await handle_text_message(
            scope, shop, page_token, str(sender_id), text, openai_api_key=openai_api_key
        )
        outcomes.append(outcome)
    return outcomes


async def handle_text_message(
    scope: ShopScope,
    shop: Shop,
    page_token: str,
    sender_id: str,
    text: str,
    *,
    openai_api_key: Optional[str],
) -> str:
    customer = scope.get_or_create_messenger_customer(sender_id)
    if not customer.phone:
        match = PHONE_PATTERN.search(text)
        if match:
            scope.set_customer_phone(customer, match.group(1))

    blocked = ai_block_reason(shop, customer, datetime.utcnow())
    if blocked:
        scope.add_chat(customer.id, message=text, response=None)
        logger.info(f"[MESSENGER] shop={shop.id} customer={customer.id} stored without reply ({blocked})")
        return blocked

    month_start = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    quota = check_message_limit(shop.subscription_plan, scope.count_messages(month_start))
    if not quota.allowed:
        scope.add_chat(customer.id, message=text, response=None)
        logger.warning(f"[MESSENGER] shop={shop.id} monthly AI message limit reached ({quota.limit})")
        return "limit_reached"

    history = history_messages(scope.customer_chats(customer.id, HISTORY_TURNS))
    prompt = ai_chat.build_system_prompt(shop, scope.list_products(active_only=True))
    try:
        reply = await ai_chat.generate_reply(
            api_key=openai_api_key,
            limits=get_plan_limits(shop.subscription_plan),
            system_prompt=prompt,
            message=text,
            history=history,
        )
    except UpstreamError:
        logger.warning(f"[MESSENGER] shop={shop.id} AI reply failed, sending fallback")
        reply = FALLBACK_REPLY

    scope.add_chat(customer.id, message=text, response=reply)
    try:
        await facebook_graph.send_text_message(page_token, sender_id, reply)
    except UpstreamError:
        # Already logged and reported by facebook_graph; the row stays for the dashboard
        logger.warning(f"[MESSENGER] shop={shop.id} customer={customer.id} reply not delivered")
        return "send_failed"

    logger.info(f"[MESSENGER] shop={shop.id} customer={customer.id} replied")
    return "replied"
