"""Security utilities: session tokens, identity resolution, secret encryption.

WHAT:
    - Verifies Clerk session JWTs (RS256 with the Clerk JWT public key) or, in
      development and tests, HS256 tokens signed with JWT_SECRET.
    - Resolves the request identity from the `Authorization: Bearer` header
      or the Clerk `__session` cookie.
    - Symmetric encryption for Facebook/Instagram page access tokens and the
      short-lived OAuth cookies.

WHY:
    - An absent or invalid credential is "unauthenticated", never an error and
      never a placeholder tenant.
    - Page tokens must not land in the database or logs in plaintext.

REFERENCES:
    - https://clerk.com/docs/backend-requests/handling/manual-jwt
    - syncly/deps.py (get_current_identity, get_current_shop)
"""

import base64
import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Request
from jose import jwt, JWTError


ALGORITHM = "HS256"
CLERK_ALGORITHM = "RS256"
SESSION_COOKIE = "__session"
JWT_SECRET = os.getenv("JWT_SECRET", "")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))
TOKEN_ENCRYPTION_KEY = os.getenv("TOKEN_ENCRYPTION_KEY", "")

logger = logging.getLogger(__name__)


if not JWT_SECRET or not TOKEN_ENCRYPTION_KEY:
    # Attempt to load from local .env if running in dev
    from syncly.utils.env import load_env_file
    load_env_file()
    JWT_SECRET = JWT_SECRET or os.getenv("JWT_SECRET", "")
    JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))
    TOKEN_ENCRYPTION_KEY = TOKEN_ENCRYPTION_KEY or os.getenv("TOKEN_ENCRYPTION_KEY", "")

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET is not set. Ensure backend/.env is created or env var is exported.")

if not TOKEN_ENCRYPTION_KEY:
    raise RuntimeError(
        "TOKEN_ENCRYPTION_KEY is not set. Generate a 32-byte Fernet key with "
        "backend/generate_keys.py and add it to backend/.env."
    )

try:
    base64.urlsafe_b64decode(TOKEN_ENCRYPTION_KEY.encode("utf-8"))
    _cipher = Fernet(TOKEN_ENCRYPTION_KEY)
except (ValueError, TypeError) as exc:
    raise RuntimeError(
        "TOKEN_ENCRYPTION_KEY must be a URL-safe base64-encoded 32-byte string. "
        "Generate with: python backend/generate_keys.py"
    ) from exc


def _clerk_public_key() -> Optional[str]:
    # PEM keys pasted into a single env line keep their newlines escaped
    key = os.getenv("CLERK_JWT_KEY")
    if not key:
        return None
    return key.replace("\\n", "\n")


def encrypt_secret(plaintext: str, *, context: str) -> str:
    """Encrypt a provider secret before persisting or setting it in a cookie.

    Args:
        plaintext: Raw secret to encrypt (e.g., page access token).
        context:   Friendly label for logs (provider/page).

    Returns:
        URL-safe base64 ciphertext.
    """
    if not plaintext:
        raise ValueError("Cannot encrypt empty secret.")

    ciphertext = _cipher.encrypt(plaintext.encode("utf-8")).decode("utf-8")
    logger.info("[TOKEN_ENCRYPT] Secret encrypted for %s (length=%d)", context, len(plaintext))
    return ciphertext


def decrypt_secret(ciphertext: str, *, context: str) -> str:
    """Reverse `encrypt_secret`.

    Raises:
        ValueError: If the stored value cannot be decrypted.
    """
    if not ciphertext:
        raise ValueError("Cannot decrypt empty secret.")

    try:
        return _cipher.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken as exc:
        logger.error("[TOKEN_DECRYPT] Invalid ciphertext for %s", context)
        raise ValueError("Unable to decrypt stored token.") from exc


def create_session_token(subject: str, expires_minutes: int | None = None) -> str:
    """Create an HS256 session token for the given Clerk user id (dev/tests)."""
    if expires_minutes is None:
        expires_minutes = JWT_EXPIRES_MINUTES
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expires_minutes)
    to_encode: Dict[str, Any] = {"sub": subject, "iat": int(now.timestamp()), "exp": int(expire.timestamp())}
    return jwt.encode(to_encode, JWT_SECRET, algorithm=ALGORITHM)


def decode_session_token(token: str) -> Dict[str, Any]:
    """Decode and validate a session token, returning its claims.

    Uses the Clerk RS256 public key when CLERK_JWT_KEY is configured,
    otherwise HS256 with JWT_SECRET.

    Raises jose.JWTError on failure.
    """
    public_key = _clerk_public_key()
    if public_key:
        return jwt.decode(token, public_key, algorithms=[CLERK_ALGORITHM], options={"verify_aud": False})
    return jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])


def extract_session_token(request: Request) -> Optional[str]:
    """Return the raw session token from the bearer header or `__session` cookie."""
    authorization = request.headers.get("authorization")
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[len("Bearer "):].strip()
        if token:
            return token

    cookie = request.cookies.get(SESSION_COOKIE)
    if cookie:
        return cookie
    return None


def resolve_identity(request: Request) -> Optional[str]:
    """Session Resolver: the Clerk user id of the caller, or None.

    Missing, expired, malformed and wrongly signed tokens all resolve to None.
    """
    token = extract_session_token(request)
    if not token:
        return None

    try:
        claims = decode_session_token(token)
    except JWTError as exc:
        logger.info(f"[SESSION] Rejected session token: {exc}")
        return None

    subject = claims.get("sub")
    if not subject or not isinstance(subject, str):
        logger.info("[SESSION] Session token has no subject")
        return None
    return subject
