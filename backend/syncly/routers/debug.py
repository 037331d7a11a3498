"""Debug endpoints for local troubleshooting.

WHAT:
    - GET /api/debug/auth   what the session resolver sees for this request
    - GET /api/debug/shops  the caller's own shops and which one resolves

WHY:
    Sign-in and shop-switching problems are easiest to diagnose from the
    server's view of the request. These routes are only mounted outside
    production when ENABLE_DEBUG_ENDPOINTS is set (see main.create_app), and
    never show data belonging to anyone but the caller.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from jose import JWTError
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_current_identity, get_identity
from ..schemas import DebugAuthResponse, DebugShopsResponse, ShopOut
from ..security import decode_session_token, extract_session_token
from ..services.shop_resolver import list_owned_shops, resolve_shop

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/debug", tags=["Debug"])

# Claims safe to echo back; never the raw token
VISIBLE_CLAIMS = ("sub", "iss", "iat", "exp", "nbf", "sid", "azp")


@router.get("/auth", response_model=DebugAuthResponse)
def debug_auth(request: Request, identity: Optional[str] = Depends(get_identity)):
    token = extract_session_token(request)
    source = None
    claims = {}
    if token:
        bearer = request.headers.get("authorization", "").lower().startswith("bearer ")
        source = "header" if bearer else "cookie"
        try:
            decoded = decode_session_token(token)
            claims = {k: decoded[k] for k in VISIBLE_CLAIMS if k in decoded}
        except JWTError as exc:
            claims = {"error": str(exc)}

    return DebugAuthResponse(
        authenticated=identity is not None,
        user_id=identity,
        has_token=token is not None,
        token_source=source,
        claims=claims,
    )


@router.get("/shops", response_model=DebugShopsResponse)
def debug_shops(
    identity: str = Depends(get_current_identity),
    db: Session = Depends(get_db),
    x_shop_id: Optional[str] = Header(default=None, alias="x-shop-id"),
):
    shops = list_owned_shops(db, identity)
    resolved = resolve_shop(db, identity, x_shop_id)
    return DebugShopsResponse(
        user_id=identity,
        shop_count=len(shops),
        resolved_shop_id=resolved.id if resolved else None,
        shops=[ShopOut.model_validate(s) for s in shops],
    )
