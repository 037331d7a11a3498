"""Facebook Graph API calls used by OAuth and the dashboard reply flow.

WHAT:
    Thin async wrappers over the Graph endpoints Syncly needs: code exchange,
    long-lived token exchange, page listing and Messenger send.

WHY:
    Keeps httpx details out of routers and turns every provider failure into
    `UpstreamError` (raw provider errors are logged, never returned).

REFERENCES:
    - https://developers.facebook.com/docs/facebook-login/guides/advanced/manual-flow
    - https://developers.facebook.com/docs/messenger-platform/send-messages
    - syncly/routers/facebook_oauth.py, syncly/routers/dashboard.py
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import UpstreamError
from ..telemetry import capture_exception

logger = logging.getLogger(__name__)

GRAPH_VERSION = "v21.0"
GRAPH_BASE_URL = f"https://graph.facebook.com/{GRAPH_VERSION}"
TOKEN_URL = f"{GRAPH_BASE_URL}/oauth/access_token"
PAGES_URL = f"{GRAPH_BASE_URL}/me/accounts"
MESSAGES_URL = f"{GRAPH_BASE_URL}/me/messages"

PAGE_FIELDS = "id,name,access_token,category"
INSTAGRAM_PAGE_FIELDS = "id,name,access_token,instagram_business_account{id,username,name,profile_picture_url}"

REQUEST_TIMEOUT = 15.0


async def _get_json(url: str, params: Dict[str, Any], *, action: str) -> Dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            response = await client.get(url, params=params)
            data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.exception(f"[FB_GRAPH] {action} request failed")
        capture_exception(exc, {"action": action})
        raise UpstreamError(f"Facebook {action} failed", provider="facebook") from exc

    if response.status_code >= 400 or "error" in data:
        logger.error(f"[FB_GRAPH] {action} returned error: {data.get('error')}")
        raise UpstreamError(f"Facebook {action} failed", provider="facebook")
    return data


async def exchange_code(code: str, *, redirect_uri: str, app_id: str, app_secret: str) -> str:
    """Exchange an OAuth code for a user access token."""
    data = await _get_json(
        TOKEN_URL,
        {
            "client_id": app_id,
            "client_secret": app_secret,
            "redirect_uri": redirect_uri,
            "code": code,
        },
        action="token exchange",
    )
    token = data.get("access_token")
    if not token:
        raise UpstreamError("Facebook token exchange returned no token", provider="facebook")
    return token


async def exchange_long_lived(token: str, *, app_id: str, app_secret: str) -> str:
    """Swap a short-lived user token for a long-lived one.

    Falls back to the short-lived token when Facebook refuses the swap.
    """
    try:
        data = await _get_json(
            TOKEN_URL,
            {
                "grant_type": "fb_exchange_token",
                "client_id": app_id,
                "client_secret": app_secret,
                "fb_exchange_token": token,
            },
            action="long-lived token exchange",
        )
    except UpstreamError:
        logger.warning("[FB_GRAPH] Using short-lived token")
        return token
    return data.get("access_token") or token


async def list_pages(user_token: str, *, fields: str = PAGE_FIELDS) -> List[Dict[str, Any]]:
    """Pages the user manages, each with its page access token."""
    data = await _get_json(
        PAGES_URL,
        {"access_token": user_token, "fields": fields},
        action="page listing",
    )
    return data.get("data", [])


async def send_text_message(page_token: str, recipient_id: str, text: str) -> Optional[str]:
    """Send a Messenger text message as the page; returns the message id."""
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            response = await client.post(
                MESSAGES_URL,
                params={"access_token": page_token},
                json={
                    "recipient": {"id": recipient_id},
                    "message": {"text": text},
                    "messaging_type": "RESPONSE",
                },
            )
            data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.exception("[FB_GRAPH] Messenger send failed")
        capture_exception(exc, {"action": "send message"})
        raise UpstreamError("Failed to send message", provider="facebook") from exc

    if response.status_code >= 400 or "error" in data:
        logger.error(f"[FB_GRAPH] Messenger send error: {data.get('error')}")
        raise UpstreamError("Failed to send message", provider="facebook")
    return data.get("message_id")
