"""Facebook and Instagram OAuth flows for connecting a shop's pages.

WHAT:
    Facebook:
        GET  /api/auth/facebook           redirect to the Facebook consent screen
        GET  /api/auth/facebook/callback  exchange code, list pages, stash them in a cookie
        GET  /api/auth/facebook/pages     pages from the cookie (no tokens)
        POST /api/auth/facebook/pages     connect the chosen page to the resolved shop
    Instagram (plan-gated):
        GET  /api/auth/instagram           redirect with Instagram scopes
        GET  /api/auth/instagram/callback  list pages that have an IG business account
        GET  /api/auth/instagram/accounts  accounts from the cookie (no tokens)
        POST /api/auth/instagram/accounts  connect the chosen account to the resolved shop

WHY:
    - The CSRF `state` is random, stored in an httpOnly cookie and compared on
      callback.
    - Page tokens only ever travel inside Fernet-encrypted httpOnly cookies and
      are stored encrypted on the shop; list endpoints never return them.

REFERENCES:
    - https://developers.facebook.com/docs/facebook-login/guides/advanced/manual-flow
    - syncly/services/facebook_graph.py
"""

import base64
import json
import logging
import secrets
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import Settings, get_current_identity, get_current_shop, get_settings
from ..errors import PlanLimitError, UpstreamError
from ..models import Shop
from ..plans import can_use_instagram, normalize_plan
from ..schemas import (
    ConnectedPageResponse,
    FacebookPageOut,
    FacebookPagesResponse,
    InstagramAccountOut,
    InstagramAccountsResponse,
    SelectInstagramRequest,
    SelectPageRequest,
    ShopOut,
)
from ..security import decrypt_secret, encrypt_secret
from ..services import facebook_graph

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Facebook OAuth"])

DIALOG_URL = f"https://www.facebook.com/{facebook_graph.GRAPH_VERSION}/dialog/oauth"

FACEBOOK_SCOPES = [
    "pages_show_list",
    "pages_messaging",
    "pages_read_engagement",
    "pages_manage_metadata",
    "public_profile",
]
INSTAGRAM_SCOPES = FACEBOOK_SCOPES + ["instagram_basic", "instagram_manage_messages"]

FB_STATE_COOKIE = "fb_oauth_state"
IG_STATE_COOKIE = "ig_oauth_state"
FB_PAGES_COOKIE = "fb_pages"
IG_ACCOUNTS_COOKIE = "ig_accounts"

STATE_MAX_AGE = 600
FB_PAGES_MAX_AGE = 3600
IG_ACCOUNTS_MAX_AGE = 86400
MAX_INSTAGRAM_ACCOUNTS = 10


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _callback_url(settings: Settings, provider: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/api/auth/{provider}/callback"


def _setup_redirect(settings: Settings, **params: Any) -> RedirectResponse:
    url = f"{settings.FRONTEND_URL.rstrip('/')}/setup?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


def _set_cookie(response, settings: Settings, name: str, value: str, max_age: int) -> None:
    response.set_cookie(
        name,
        value,
        max_age=max_age,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def _require_app_credentials(settings: Settings) -> None:
    if not settings.FACEBOOK_APP_ID:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Facebook App ID not configured",
        )


def _read_cookie_list(value: Optional[str], *, context: str) -> Optional[List[Dict[str, Any]]]:
    """Decrypt a page/account cookie; None when absent or unreadable."""
    if not value:
        return None
    try:
        data = json.loads(decrypt_secret(value, context=context))
    except ValueError:
        logger.warning(f"[FB_OAUTH] Unreadable {context} cookie")
        return None
    return data if isinstance(data, list) else None


def _encode_instagram_state(nonce: str, shop_id: str) -> str:
    payload = json.dumps({"source": "setup", "shopId": shop_id, "nonce": nonce})
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("utf-8")


def _decode_instagram_state(state: str) -> Dict[str, Any]:
    try:
        data = json.loads(base64.urlsafe_b64decode(state.encode("utf-8")).decode("utf-8"))
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Facebook
# ---------------------------------------------------------------------------

@router.get("/facebook", summary="Start Facebook page connection")
def facebook_authorize(
    identity: str = Depends(get_current_identity),
    settings: Settings = Depends(get_settings),
):
    _require_app_credentials(settings)

    state = secrets.token_urlsafe(24)
    params = {
        "client_id": settings.FACEBOOK_APP_ID,
        "redirect_uri": _callback_url(settings, "facebook"),
        "scope": ",".join(FACEBOOK_SCOPES),
        "response_type": "code",
        "state": state,
    }
    response = RedirectResponse(url=f"{DIALOG_URL}?{urlencode(params)}", status_code=status.HTTP_302_FOUND)
    _set_cookie(response, settings, FB_STATE_COOKIE, state, STATE_MAX_AGE)
    logger.info(f"[FB_OAUTH] Redirecting {identity} to Facebook consent screen")
    return response


@router.get("/facebook/callback", summary="Facebook OAuth callback")
async def facebook_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_reason: Optional[str] = Query(None),
    fb_oauth_state: Optional[str] = Cookie(default=None),
    settings: Settings = Depends(get_settings),
):
    if error:
        logger.error(f"[FB_OAUTH] OAuth error: {error} - {error_reason}")
        return _setup_redirect(settings, fb_error=error_reason or error)

    if not state or not fb_oauth_state or not secrets.compare_digest(state, fb_oauth_state):
        logger.error("[FB_OAUTH] State mismatch")
        return _setup_redirect(settings, fb_error="invalid_state")

    if not code:
        return _setup_redirect(settings, fb_error="no_code")

    if not settings.FACEBOOK_APP_ID or not settings.FACEBOOK_APP_SECRET:
        logger.error("[FB_OAUTH] OAuth not configured - missing credentials")
        return _setup_redirect(settings, fb_error="config_missing")

    try:
        user_token = await facebook_graph.exchange_code(
            code,
            redirect_uri=_callback_url(settings, "facebook"),
            app_id=settings.FACEBOOK_APP_ID,
            app_secret=settings.FACEBOOK_APP_SECRET,
        )
        user_token = await facebook_graph.exchange_long_lived(
            user_token, app_id=settings.FACEBOOK_APP_ID, app_secret=settings.FACEBOOK_APP_SECRET
        )
        pages = await facebook_graph.list_pages(user_token)
    except UpstreamError:
        return _setup_redirect(settings, fb_error="token_error")

    if not pages:
        return _setup_redirect(settings, fb_error="no_pages")

    stored = [
        {
            "id": p.get("id"),
            "name": p.get("name"),
            "access_token": p.get("access_token"),
            "category": p.get("category"),
        }
        for p in pages
        if p.get("id") and p.get("access_token")
    ]
    logger.info(f"[FB_OAUTH] Found {len(stored)} page(s)")

    response = _setup_redirect(settings, fb_success="true", page_count=len(stored))
    _set_cookie(response, settings, FB_PAGES_COOKIE, encrypt_secret(json.dumps(stored), context="fb_pages"), FB_PAGES_MAX_AGE)
    response.delete_cookie(FB_STATE_COOKIE, path="/")
    return response


@router.get("/facebook/pages", response_model=FacebookPagesResponse, summary="Pages awaiting selection")
def facebook_pages(
    identity: str = Depends(get_current_identity),
    fb_pages: Optional[str] = Cookie(default=None),
):
    pages = _read_cookie_list(fb_pages, context="fb_pages")
    if pages is None:
        return FacebookPagesResponse(pages=[], message="No Facebook pages found. Please connect again.")
    return FacebookPagesResponse(
        pages=[FacebookPageOut(id=p["id"], name=p.get("name") or p["id"], category=p.get("category")) for p in pages]
    )


@router.post("/facebook/pages", response_model=ConnectedPageResponse, summary="Connect a page to the shop")
def connect_facebook_page(
    payload: SelectPageRequest,
    request: Request,
    response: Response,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    pages = _read_cookie_list(request.cookies.get(FB_PAGES_COOKIE), context="fb_pages")
    if pages is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No Facebook session. Please reconnect.")

    page = next((p for p in pages if p.get("id") == payload.page_id), None)
    if page is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")

    shop.facebook_page_id = page["id"]
    shop.facebook_page_name = page.get("name")
    shop.facebook_page_access_token = encrypt_secret(page["access_token"], context=f"page:{page['id']}")
    db.commit()
    db.refresh(shop)
    logger.info(f"[FB_OAUTH] shop={shop.id} connected page={page['id']}")

    response.delete_cookie(FB_PAGES_COOKIE, path="/")
    return ConnectedPageResponse(success=True, shop=ShopOut.model_validate(shop))


# ---------------------------------------------------------------------------
# Instagram
# ---------------------------------------------------------------------------

def _require_instagram_plan(shop: Shop) -> None:
    if not can_use_instagram(shop.subscription_plan):
        raise PlanLimitError(
            "Instagram requires the Pro plan or higher",
            details={"plan": normalize_plan(shop.subscription_plan)},
        )


@router.get("/instagram", summary="Start Instagram account connection")
def instagram_authorize(
    shop: Shop = Depends(get_current_shop),
    settings: Settings = Depends(get_settings),
):
    _require_instagram_plan(shop)
    _require_app_credentials(settings)

    nonce = secrets.token_urlsafe(24)
    params = {
        "client_id": settings.FACEBOOK_APP_ID,
        "redirect_uri": _callback_url(settings, "instagram"),
        "scope": ",".join(INSTAGRAM_SCOPES),
        "response_type": "code",
        "auth_type": "rerequest",
        "state": _encode_instagram_state(nonce, str(shop.id)),
    }
    response = RedirectResponse(url=f"{DIALOG_URL}?{urlencode(params)}", status_code=status.HTTP_302_FOUND)
    _set_cookie(response, settings, IG_STATE_COOKIE, nonce, STATE_MAX_AGE)
    logger.info(f"[IG_OAUTH] Redirecting shop={shop.id} to Instagram consent screen")
    return response


@router.get("/instagram/callback", summary="Instagram OAuth callback")
async def instagram_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    error_reason: Optional[str] = Query(None),
    ig_oauth_state: Optional[str] = Cookie(default=None),
    settings: Settings = Depends(get_settings),
):
    if error:
        logger.error(f"[IG_OAUTH] OAuth error: {error} - {error_reason}")
        return _setup_redirect(settings, ig_error=error_reason or "Unknown error")

    nonce = _decode_instagram_state(state or "").get("nonce")
    if not nonce or not ig_oauth_state or not secrets.compare_digest(str(nonce), ig_oauth_state):
        logger.error("[IG_OAUTH] State mismatch")
        return _setup_redirect(settings, ig_error="invalid_state")

    if not code:
        return _setup_redirect(settings, ig_error="no_code")

    if not settings.FACEBOOK_APP_ID or not settings.FACEBOOK_APP_SECRET:
        return _setup_redirect(settings, ig_error="config_missing")

    try:
        user_token = await facebook_graph.exchange_code(
            code,
            redirect_uri=_callback_url(settings, "instagram"),
            app_id=settings.FACEBOOK_APP_ID,
            app_secret=settings.FACEBOOK_APP_SECRET,
        )
        pages = await facebook_graph.list_pages(user_token, fields=facebook_graph.INSTAGRAM_PAGE_FIELDS)
    except UpstreamError:
        return _setup_redirect(settings, ig_error="token_error")

    with_instagram = [p for p in pages if (p.get("instagram_business_account") or {}).get("id")][:MAX_INSTAGRAM_ACCOUNTS]
    if not with_instagram:
        return _setup_redirect(settings, ig_error="no_instagram_account", pages=len(pages))

    accounts = []
    for page in with_instagram:
        ig = page["instagram_business_account"]
        accounts.append(
            {
                "pageId": page["id"],
                "pageName": page.get("name") or "",
                "pageAccessToken": page.get("access_token"),
                "instagramId": ig["id"],
                "instagramUsername": ig.get("username") or "",
                "instagramName": ig.get("name") or page.get("name"),
                "profilePicture": ig.get("profile_picture_url") or "",
            }
        )
    logger.info(f"[IG_OAUTH] Found {len(accounts)} Instagram account(s)")

    response = _setup_redirect(settings, ig_success="true", ig_count=len(accounts))
    _set_cookie(response, settings, IG_ACCOUNTS_COOKIE, encrypt_secret(json.dumps(accounts), context="ig_accounts"), IG_ACCOUNTS_MAX_AGE)
    response.delete_cookie(IG_STATE_COOKIE, path="/")
    return response


@router.get("/instagram/accounts", response_model=InstagramAccountsResponse, summary="Accounts awaiting selection")
def instagram_accounts(
    identity: str = Depends(get_current_identity),
    ig_accounts: Optional[str] = Cookie(default=None),
):
    accounts = _read_cookie_list(ig_accounts, context="ig_accounts") or []
    return InstagramAccountsResponse(
        accounts=[
            InstagramAccountOut(
                page_id=a["pageId"],
                page_name=a.get("pageName") or "",
                instagram_id=a["instagramId"],
                instagram_username=a.get("instagramUsername") or "",
                instagram_name=a.get("instagramName"),
                profile_picture=a.get("profilePicture"),
            )
            for a in accounts
        ]
    )


@router.post("/instagram/accounts", response_model=ConnectedPageResponse, summary="Connect an Instagram account")
def connect_instagram_account(
    payload: SelectInstagramRequest,
    request: Request,
    response: Response,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    _require_instagram_plan(shop)

    accounts = _read_cookie_list(request.cookies.get(IG_ACCOUNTS_COOKIE), context="ig_accounts")
    if accounts is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No Instagram session. Please reconnect.")

    account = next((a for a in accounts if a.get("instagramId") == payload.instagram_id), None)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Instagram account not found")

    shop.instagram_business_account_id = account["instagramId"]
    shop.instagram_username = account.get("instagramUsername") or None
    if account.get("pageAccessToken"):
        shop.instagram_access_token = encrypt_secret(account["pageAccessToken"], context=f"instagram:{account['instagramId']}")
    db.commit()
    db.refresh(shop)
    logger.info(f"[IG_OAUTH] shop={shop.id} connected instagram={account['instagramId']}")
    response.delete_cookie(IG_ACCOUNTS_COOKIE, path="/")

    return ConnectedPageResponse(success=True, shop=ShopOut.model_validate(shop))
